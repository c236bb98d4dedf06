from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from dotenv import load_dotenv
import logging
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..core import engine as engine_module
from .routers.config import router as config_router
from .routers.live import router as live_router
from .routers.products import router as products_router
from .routers.speech import router as speech_router
from ..observability.metrics import metrics_middleware_factory
from ..services.telemetry_sink import event_counts

load_dotenv()  # Load environment variables from .env if present (OPENAI_API_KEY, LIVEHOST_*, etc.)

logger = logging.getLogger("livehost.api")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    current = engine_module.current_engine()
    if current is not None:
        await current.shutdown()
        engine_module.reset_engine()


app = FastAPI(title="LiveHost API", version="0.1.0", lifespan=lifespan)

# Observability: request latency histogram
app.middleware("http")(metrics_middleware_factory())

# Routers
app.include_router(live_router)
app.include_router(products_router)
app.include_router(config_router)
app.include_router(speech_router)

# Same routers under /api, the paths the dashboard calls
app.include_router(live_router, prefix="/api")
app.include_router(products_router, prefix="/api")
app.include_router(config_router, prefix="/api")
app.include_router(speech_router, prefix="/api")

# CORS (dashboard dev server)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _health_document() -> dict:
    current = engine_module.current_engine()
    return {
        "status": "ok",
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        "components": {
            "api": "ok",
            "live": current.adapter.state.value if current else "idle",
            "subscribers": current.bus.subscriber_count if current else 0,
        },
        "telemetry": event_counts(),
    }


@app.get("/")
def root():
    return {"name": "LiveHost API", "version": "0.1.0"}


@app.get("/health")
def health():
    return _health_document()


@app.get("/metrics")
def metrics() -> Response:
    # Expose Prometheus metrics
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


@app.get("/api/health")
def api_health():
    return _health_document()

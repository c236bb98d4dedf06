import pytest
from fastapi.testclient import TestClient

from src.livehost.api.main import app
from src.livehost.api.routers import products as products_router
from src.livehost.core import engine as engine_module
from src.livehost.core.engine import build_engine
from src.livehost.domain.models import Product
from src.livehost.services.narration import STARTUP_GREETING


@pytest.fixture
def engine(provider, completion, speech):
    return build_engine(provider_factory=provider, completion=completion, speech=speech, idle_seconds=30)


@pytest.fixture
def client(engine):
    engine_module.reset_engine(engine)
    with TestClient(app) as c:
        yield c
    engine_module.reset_engine()


def test_root_and_health(client, engine):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["name"] == "LiveHost API"

    for path in ("/health", "/api/health"):
        body = client.get(path).json()
        assert body["status"] == "ok"
        assert body["components"]["live"] == "idle"
        assert body["components"]["subscribers"] == 0


@pytest.mark.parametrize("username", ["", "   ", "@"])
def test_start_rejects_blank_username(client, username):
    r = client.post("/api/live/start", json={"username": username})
    assert r.status_code == 400
    assert r.json()["detail"] == "Username required"


def test_start_status_stop_cycle(client, provider):
    r = client.post("/api/live/start", json={"username": "@alice"})
    assert r.status_code == 200, r.text
    assert r.json() == {"success": True, "username": "alice"}

    status = client.get("/api/live/status").json()
    assert status["state"] == "online"
    assert status["channel"] == "alice"
    assert 29 < status["idle_deadline_in"] <= 30

    assert client.get("/health").json()["components"]["live"] == "online"
    assert client.get("/health").json()["telemetry"]["live_started"] == 1

    r = client.post("/live/stop")
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert client.get("/live/status").json()["state"] == "idle"
    assert provider.latest().disconnects == 1


def test_start_connect_failure_is_bad_gateway(client, provider):
    provider.fail_channels.add("ghost")
    r = client.post("/live/start", json={"username": "ghost"})
    assert r.status_code == 502
    assert "not live" in r.json()["detail"]
    assert client.get("/live/status").json()["state"] == "idle"


def test_add_and_list_products(client, monkeypatch):
    def fake_scrape(product_id, url):
        return Product(id=product_id, url=url, name="Tas Kulit", price="Rp 250.000")

    monkeypatch.setattr(products_router, "scrape_product", fake_scrape)

    r = client.post("/api/products", json={"id": 2, "url": "https://shop.example/tas"})
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Tas Kulit"

    listed = client.get("/api/products").json()
    assert [p["id"] for p in listed] == [2]


@pytest.mark.parametrize("payload", [{"id": 11, "url": "https://x"}, {"id": 1, "url": ""}, {"url": "https://x"}])
def test_add_product_validation(client, payload):
    assert client.post("/products", json=payload).status_code == 422


def test_config_read_and_patch(client):
    assert client.get("/api/config").json() == {
        "developer_mode": True,
        "token_limit": 1_000_000,
        "tokens_used": 0,
        "voice": "nova",
    }
    r = client.patch("/api/config", json={"voice": "echo", "tokens_used": 42})
    assert r.status_code == 200
    assert r.json()["voice"] == "echo"
    assert r.json()["developer_mode"] is True
    assert client.get("/config").json()["tokens_used"] == 42

    assert client.patch("/config", json={"voice": "robot"}).status_code == 422


def test_tts_returns_audio(client, speech):
    r = client.post("/api/tts", json={"text": "Halo semua", "voice": "alloy"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "audio/mpeg"
    assert r.content == b"ID3Halo semua"
    assert speech.calls == [("Halo semua", "alloy")]


def test_tts_failure_is_bad_gateway(client, speech):
    speech.fail = True
    r = client.post("/tts", json={"text": "Halo"})
    assert r.status_code == 502


def test_tts_rejects_empty_text(client):
    assert client.post("/tts", json={"text": ""}).status_code == 422


def test_startup_greeting_uses_configured_voice(client, speech):
    client.patch("/config", json={"voice": "coral"})
    r = client.get("/api/startup")
    assert r.status_code == 200
    assert speech.calls[-1] == (STARTUP_GREETING, "coral")


def test_stream_route_serves_event_stream(client, engine):
    engine.bus.close()
    r = client.get("/api/live/stream")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/event-stream")
    assert r.headers["cache-control"] == "no-cache, no-transform"
    assert r.text == "retry: 2000\n\n"


def test_metrics_endpoint_exposes_histogram(client):
    assert client.get("/health").status_code == 200

    body = client.get("/metrics").text

    assert "# HELP livehost_request_latency_seconds" in body
    assert "# TYPE livehost_request_latency_seconds histogram" in body
    assert "livehost_bus_events_total" in body
    assert "livehost_stream_subscribers" in body

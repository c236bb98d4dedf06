from __future__ import annotations

from fastapi import APIRouter, Depends

from ...core.engine import LiveEngine, get_engine
from ...domain.models import LiveConfig, LiveConfigUpdate

router = APIRouter(prefix="/config", tags=["config"])


@router.get("", response_model=LiveConfig)
def read_config(engine: LiveEngine = Depends(get_engine)) -> LiveConfig:
    return engine.store.get_config()


@router.patch("", response_model=LiveConfig)
def update_config(payload: LiveConfigUpdate, engine: LiveEngine = Depends(get_engine)) -> LiveConfig:
    return engine.store.update_config(payload.model_dump(exclude_none=True))

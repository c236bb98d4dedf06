from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ...core.engine import LiveEngine, get_engine
from ...domain.errors import CollaboratorFailure
from ...domain.models import TTSRequest
from ...services.narration import STARTUP_GREETING

router = APIRouter(tags=["speech"])


@router.post("/tts")
async def text_to_speech(payload: TTSRequest, engine: LiveEngine = Depends(get_engine)) -> Response:
    try:
        audio = await engine.speech.asynthesize(payload.text, payload.voice)
    except CollaboratorFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to generate speech") from exc
    return Response(content=audio, media_type="audio/mpeg")


@router.get("/startup")
async def startup_greeting(engine: LiveEngine = Depends(get_engine)) -> Response:
    voice = engine.store.get_config().voice
    try:
        audio = await engine.speech.asynthesize(STARTUP_GREETING, voice)
    except CollaboratorFailure as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to generate startup greeting"
        ) from exc
    return Response(content=audio, media_type="audio/mpeg")

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from ...core.engine import LiveEngine, get_engine
from ...domain.errors import InvalidArgument, UpstreamConnectFailure
from ...domain.models import LiveStatusResponse, StartLiveRequest, StartLiveResponse, StopLiveResponse
from ...services.publisher import stream_live_events

router = APIRouter(prefix="/live", tags=["live"])


@router.post("/start", response_model=StartLiveResponse)
async def start_live(
    payload: StartLiveRequest,
    engine: LiveEngine = Depends(get_engine),
) -> StartLiveResponse:
    try:
        ack = await engine.adapter.start(payload.username)
    except InvalidArgument as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UpstreamConnectFailure as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.detail) from exc
    return StartLiveResponse(username=ack.channel)


@router.post("/stop", response_model=StopLiveResponse)
async def stop_live(engine: LiveEngine = Depends(get_engine)) -> StopLiveResponse:
    await engine.adapter.stop()
    return StopLiveResponse()


@router.get("/status", response_model=LiveStatusResponse)
def live_status(engine: LiveEngine = Depends(get_engine)) -> LiveStatusResponse:
    snapshot = engine.adapter.snapshot()
    return LiveStatusResponse(
        state=snapshot["state"],
        channel=snapshot["channel"],
        idle_deadline_in=engine.scheduler.seconds_remaining(),
    )


@router.get("/stream", response_class=StreamingResponse)
async def stream_live(request: Request, engine: LiveEngine = Depends(get_engine)):
    headers = {
        "Cache-Control": "no-cache, no-transform",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(
        stream_live_events(engine.bus, is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=headers,
    )

"""Health endpoint: service status plus local model liveness."""

from fastapi import APIRouter, Request

from nurse_call.errors import ServiceUnavailable

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    bridge = request.app.state.chat_pipeline.bridge
    try:
        version = await bridge.probe()
    except ServiceUnavailable:
        return {"status": "degraded", "model": "unavailable"}
    return {"status": "ok", "model": "available", "model_version": version}

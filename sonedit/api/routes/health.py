"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends

from sonedit.api.deps import get_engine
from sonedit.audio.engine import AudioEngine
from sonedit.core.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
async def health_check(
    engine: AudioEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings)
):
    """
    System health check endpoint.

    Returns service status and a summary of the editing session.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.env,
        "session": {
            "tracks": len(engine.registry),
            "playback": engine.playback.state.value,
            "capture": engine.capture.state.value,
            "status": engine.status,
        }
    }

"""
FastAPI dependency providers.

One editing session per process: the AudioEngine is created on first use
and shared by every request.
"""

from typing import Any, Optional

from sonedit.audio.engine import AudioEngine
from sonedit.audio.effects import get_effect_class
from sonedit.core.exceptions import EffectNotFound, SonEditError

_engine: Optional[AudioEngine] = None


def get_engine() -> AudioEngine:
    """Return the process-wide AudioEngine, creating it on first call."""
    global _engine
    if _engine is None:
        _engine = AudioEngine()
    return _engine


def reset_engine() -> None:
    """Drop the current session; the next request starts a fresh one."""
    global _engine
    _engine = None


def ensure_ok(engine: AudioEngine, result: Any) -> Any:
    """
    Re-raise a failure the engine reported as status.

    Facade methods return None/False on error and record the error code;
    the HTTP layer needs the error back to build a response.
    """
    if (result is None or result is False) and engine.last_error is not None:
        message = engine.status.removeprefix("Error: ")
        raise SonEditError(message, code=engine.last_error)
    return result


def require_effect(effect_type: str) -> None:
    """Reject effect names outside the catalog before they reach the engine."""
    if get_effect_class(effect_type) is None:
        raise EffectNotFound(f"Unknown effect type: {effect_type}")

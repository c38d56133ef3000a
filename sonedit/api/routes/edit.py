"""
Selection, clipboard and undo/redo endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from sonedit.api.deps import ensure_ok, get_engine, require_effect
from sonedit.api.schemas import EffectRequest, HistoryState, SelectionRequest
from sonedit.audio.engine import AudioEngine

router = APIRouter()


def _session_state(engine: AudioEngine, **extra):
    selection = engine.selection
    return {
        "selection": {"start": selection.start, "end": selection.end},
        "history": engine.history.get_state(),
        "status": engine.status,
        **extra,
    }


@router.post("/selection")
async def set_selection(request: SelectionRequest, engine: AudioEngine = Depends(get_engine)):
    """Select a time range; the bounds may be given in either order."""
    ensure_ok(engine, engine.set_selection(request.start, request.end))
    return _session_state(engine)


@router.delete("/selection")
async def clear_selection(engine: AudioEngine = Depends(get_engine)):
    ensure_ok(engine, engine.clear_selection())
    return _session_state(engine)


@router.post("/edit/effect")
async def apply_effect(request: EffectRequest, engine: AudioEngine = Depends(get_engine)):
    """Apply an effect to the selection of every track."""
    require_effect(request.type)
    applied = ensure_ok(engine, engine.apply_effect(request.type, request.parameters))
    return _session_state(engine, applied=applied)


@router.post("/edit/copy")
async def copy_selection(track_id: Optional[str] = Query(None), engine: AudioEngine = Depends(get_engine)):
    copied = ensure_ok(engine, engine.copy(track_id))
    return _session_state(engine, copied=copied)


@router.post("/edit/cut")
async def cut_selection(track_id: Optional[str] = Query(None), engine: AudioEngine = Depends(get_engine)):
    cut = ensure_ok(engine, engine.cut(track_id))
    return _session_state(engine, cut=cut)


@router.post("/edit/delete")
async def delete_selection(track_id: Optional[str] = Query(None), engine: AudioEngine = Depends(get_engine)):
    deleted = ensure_ok(engine, engine.delete_selection(track_id))
    return _session_state(engine, deleted=deleted)


@router.post("/edit/paste")
async def paste(
    track_id: Optional[str] = Query(None),
    at: Optional[float] = Query(None),
    engine: AudioEngine = Depends(get_engine)
):
    pasted = ensure_ok(engine, engine.paste(track_id, at))
    return _session_state(engine, pasted=pasted)


@router.get("/history", response_model=HistoryState)
async def get_history(engine: AudioEngine = Depends(get_engine)):
    return engine.history.get_state()


@router.post("/history/undo")
async def undo(engine: AudioEngine = Depends(get_engine)):
    done = ensure_ok(engine, engine.undo())
    return _session_state(engine, done=done)


@router.post("/history/redo")
async def redo(engine: AudioEngine = Depends(get_engine)):
    done = ensure_ok(engine, engine.redo())
    return _session_state(engine, done=done)

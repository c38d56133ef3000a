"""
Track endpoints: create, inspect, edit, export.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from sonedit.api.deps import ensure_ok, get_engine, require_effect
from sonedit.api.schemas import (
    BulkDeleteRequest,
    EffectRequest,
    GenerateRequest,
    ReorderRequest,
    TrackResponse,
    TrackUpdate,
)
from sonedit.audio.engine import AudioEngine
from sonedit.core.exceptions import TrackNotFound
from sonedit.core.logging import get_logger
from sonedit.signal_processing.analysis import waveform_peaks

logger = get_logger(__name__)

router = APIRouter()


def _track_response(engine: AudioEngine, track_id) -> TrackResponse:
    return TrackResponse(**engine.get_track(track_id).to_dict())


def _export_response(exported, filename: str) -> Response:
    return Response(
        content=exported.data,
        media_type=exported.mime_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}.{exported.format}"',
            "X-Placeholder-Encoding": "true" if exported.is_placeholder else "false",
        }
    )


@router.get("/tracks", response_model=list[TrackResponse])
async def list_tracks(engine: AudioEngine = Depends(get_engine)):
    return [TrackResponse(**track.to_dict()) for track in engine.tracks]


@router.post("/tracks/generate", response_model=TrackResponse, status_code=status.HTTP_201_CREATED)
async def generate_track(request: GenerateRequest, engine: AudioEngine = Depends(get_engine)):
    """Create a track from a tone, noise, silence, chirp or DTMF generator."""
    track_id = ensure_ok(engine, engine.generate(
        request.kind,
        request.duration,
        name=request.name,
        **request.generator_params()
    ))
    return _track_response(engine, track_id)


@router.post("/tracks/import", response_model=TrackResponse, status_code=status.HTTP_201_CREATED)
async def import_track(
    request: Request,
    name: Optional[str] = Query(None),
    engine: AudioEngine = Depends(get_engine)
):
    """Decode an uploaded audio file (raw request body) into a new track."""
    data = await request.body()
    track_id = ensure_ok(engine, engine.load_file(data, name=name))
    return _track_response(engine, track_id)


@router.post("/tracks/bulk-delete")
async def bulk_delete(request: BulkDeleteRequest, engine: AudioEngine = Depends(get_engine)):
    deleted = engine.bulk_delete(request.track_ids)
    ensure_ok(engine, deleted or None)
    return {"deleted": deleted}


@router.get("/tracks/{track_id}", response_model=TrackResponse)
async def get_track(track_id: str, engine: AudioEngine = Depends(get_engine)):
    return _track_response(engine, track_id)


@router.patch("/tracks/{track_id}", response_model=TrackResponse)
async def update_track(track_id: str, update: TrackUpdate, engine: AudioEngine = Depends(get_engine)):
    """Change name, volume, pan, mute or solo (undoable)."""
    changes = update.model_dump(exclude_none=True)
    if changes:
        ensure_ok(engine, engine.update_track(track_id, **changes))
    return _track_response(engine, track_id)


@router.delete("/tracks/{track_id}")
async def delete_track(track_id: str, engine: AudioEngine = Depends(get_engine)):
    ensure_ok(engine, engine.remove_track(track_id))
    return {"deleted": track_id}


@router.post("/tracks/{track_id}/reorder", response_model=TrackResponse)
async def reorder_track(track_id: str, request: ReorderRequest, engine: AudioEngine = Depends(get_engine)):
    ensure_ok(engine, engine.reorder_track(track_id, request.index))
    return _track_response(engine, track_id)


@router.post("/tracks/{track_id}/effects", response_model=TrackResponse)
async def apply_track_effect(
    track_id: str,
    request: EffectRequest,
    engine: AudioEngine = Depends(get_engine)
):
    """Destructively apply an effect to the selection of one track (or all of it)."""
    engine.get_track(track_id)
    require_effect(request.type)
    ensure_ok(engine, engine.apply_effect(request.type, request.parameters, track_id=track_id))
    return _track_response(engine, track_id)


@router.delete("/tracks/{track_id}/effects/{effect_id}", response_model=TrackResponse)
async def remove_track_effect(track_id: str, effect_id: str, engine: AudioEngine = Depends(get_engine)):
    ensure_ok(engine, engine.remove_effect(track_id, effect_id))
    return _track_response(engine, track_id)


@router.get("/tracks/{track_id}/waveform")
async def get_waveform(
    track_id: str,
    samples_per_peak: Optional[int] = Query(None, ge=1),
    engine: AudioEngine = Depends(get_engine)
):
    """Min/max peaks per bucket for each channel."""
    buffer = engine.get_track(track_id).buffer
    peaks = waveform_peaks(buffer, samples_per_peak)
    return {
        "track_id": track_id,
        "sample_rate": buffer.sample_rate,
        "channels": [
            {"min": mins.tolist(), "max": maxs.tolist()}
            for mins, maxs in peaks
        ]
    }


@router.get("/tracks/{track_id}/analysis")
async def get_analysis(track_id: str, engine: AudioEngine = Depends(get_engine)):
    return ensure_ok(engine, engine.analyze_track(track_id))


@router.get("/tracks/{track_id}/export")
async def export_track(
    track_id: str,
    format: str = Query("wav"),
    engine: AudioEngine = Depends(get_engine)
):
    """Download a track; unknown formats are rejected with UNSUPPORTED_FORMAT."""
    if track_id not in engine.registry:
        raise TrackNotFound(f"Track {track_id} does not exist")
    exported = ensure_ok(engine, engine.export_track(track_id, format))
    return _export_response(exported, engine.get_track(track_id).name)


@router.get("/mix/export")
async def export_mix(format: str = Query("wav"), engine: AudioEngine = Depends(get_engine)):
    """Download the stereo mix of all tracks."""
    exported = ensure_ok(engine, engine.export_mix(format))
    return _export_response(exported, "mix")

"""
Request and response models for the editing API.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Create a track from a signal generator."""
    kind: Literal["tone", "noise", "silence", "chirp", "dtmf"] = "tone"
    duration: float = Field(1.0, gt=0.0, le=600.0)
    name: Optional[str] = None
    frequency: Optional[float] = Field(None, gt=0.0)
    amplitude: Optional[float] = Field(None, ge=0.0, le=1.0)
    waveform: Optional[Literal["sine", "square", "sawtooth", "triangle"]] = None
    noise_type: Optional[Literal["white", "pink"]] = None
    start_freq: Optional[float] = Field(None, gt=0.0)
    end_freq: Optional[float] = Field(None, gt=0.0)
    digit: Optional[str] = Field(None, min_length=1, max_length=1)

    model_config = ConfigDict(json_schema_extra={
        "example": {"kind": "tone", "duration": 2.0, "frequency": 440.0, "waveform": "sine"}
    })

    def generator_params(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"kind", "duration", "name"}, exclude_none=True)


class TrackUpdate(BaseModel):
    """Partial track update; omitted fields are left alone."""
    name: Optional[str] = None
    volume: Optional[float] = Field(None, ge=0.0, le=10.0)
    pan: Optional[float] = Field(None, ge=-1.0, le=1.0)
    muted: Optional[bool] = None
    solo: Optional[bool] = None


class ReorderRequest(BaseModel):
    index: int = Field(..., ge=0)


class EffectRequest(BaseModel):
    """Effect application."""
    type: str = Field(..., description="Effect type")
    parameters: Dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(json_schema_extra={
        "example": {"type": "echo", "parameters": {"delay": 0.3, "decay": 0.5, "repeat": 3}}
    })


class SelectionRequest(BaseModel):
    start: float
    end: float


class BulkDeleteRequest(BaseModel):
    track_ids: List[str] = Field(..., min_length=1)


class TrackResponse(BaseModel):
    id: str
    name: str
    duration: float
    sample_rate: int
    channels: int
    frames: int
    volume: float
    pan: float
    muted: bool
    solo: bool
    effects: List[Dict[str, Any]]


class HistoryState(BaseModel):
    can_undo: bool
    can_redo: bool
    undo_description: Optional[str]
    redo_description: Optional[str]
    undo_stack_size: int
    redo_stack_size: int

"""
Track registry for the editing session.

Tracks live in a generational arena: an id is a (slot, generation) pair, a
removed track's slot may be reused by a later track with a higher
generation, and looking up a stale id fails instead of silently resolving
to the newer occupant. Undo restores a removed track into its original slot
with its original id, so ids held by other commands stay valid.
"""

import itertools
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Union

from sonedit.audio.effects import EffectType, get_effect_class
from sonedit.core.exceptions import EffectNotFound, InvalidParameter, InvalidRange, TrackNotFound
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer

logger = get_logger(__name__)

MIN_TRACK_VOLUME = 0.0
MAX_TRACK_VOLUME = 10.0


class TrackId(NamedTuple):
    slot: int
    generation: int

    def __str__(self) -> str:
        return f"{self.slot}:{self.generation}"

    @classmethod
    def parse(cls, value: Union["TrackId", str, Tuple[int, int]]) -> "TrackId":
        """
        Accept a TrackId, a (slot, generation) pair or its "slot:generation" text.

        Raises:
            TrackNotFound: if the value is not a well-formed id
        """
        if isinstance(value, TrackId):
            return value
        try:
            if isinstance(value, str):
                slot, generation = value.split(":")
                return cls(int(slot), int(generation))
            slot, generation = value
            return cls(int(slot), int(generation))
        except (TypeError, ValueError) as e:
            raise TrackNotFound(f"Malformed track id: {value!r}") from e


TrackRef = Union[TrackId, str, Tuple[int, int]]


@dataclass
class EffectRecord:
    """An effect applied to a track, with its validated parameters."""
    id: str
    type: EffectType
    params: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type.value, "params": dict(self.params)}


@dataclass
class Track:
    id: TrackId
    name: str
    buffer: SampleBuffer
    volume: float = 1.0
    pan: float = 0.0
    muted: bool = False
    solo: bool = False
    effects: List[EffectRecord] = field(default_factory=list)

    @property
    def duration(self) -> float:
        return self.buffer.duration

    def to_dict(self) -> Dict[str, Any]:
        """Summary without sample data."""
        return {
            "id": str(self.id),
            "name": self.name,
            "duration": self.duration,
            "sample_rate": self.buffer.sample_rate,
            "channels": self.buffer.channel_count,
            "frames": self.buffer.frame_count,
            "volume": self.volume,
            "pan": self.pan,
            "muted": self.muted,
            "solo": self.solo,
            "effects": [record.to_dict() for record in self.effects],
        }


@dataclass(frozen=True)
class Selection:
    """Time range in seconds; empty when end <= start."""
    start: float = 0.0
    end: float = 0.0

    @classmethod
    def none(cls) -> "Selection":
        return cls(0.0, 0.0)

    @classmethod
    def normalized(cls, start: float, end: float) -> "Selection":
        """
        Build a selection from two drag positions in either order.

        Raises:
            InvalidRange: for negative, non-finite or non-numeric positions
        """
        try:
            start, end = float(start), float(end)
        except (TypeError, ValueError) as e:
            raise InvalidRange(f"Selection bounds must be numbers: ({start!r}, {end!r})") from e
        if not (math.isfinite(start) and math.isfinite(end)):
            raise InvalidRange("Selection bounds must be finite")
        if start < 0 or end < 0:
            raise InvalidRange(f"Selection bounds must not be negative: ({start}, {end})")
        return cls(min(start, end), max(start, end))

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.start)


_UPDATABLE_FIELDS = ("name", "volume", "pan", "muted", "solo", "buffer")


def _as_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise InvalidParameter(f"Track {name} must be a number, got {value!r}") from e


def _validate_track_field(name: str, value: Any) -> Any:
    if name == "volume":
        volume = _as_float(name, value)
        if not MIN_TRACK_VOLUME <= volume <= MAX_TRACK_VOLUME:
            raise InvalidParameter(
                f"Track volume {volume} is outside [{MIN_TRACK_VOLUME}, {MAX_TRACK_VOLUME}]"
            )
        return volume
    if name == "pan":
        pan = _as_float(name, value)
        if not -1.0 <= pan <= 1.0:
            raise InvalidParameter(f"Track pan {pan} is outside [-1, 1]")
        return pan
    if name in ("muted", "solo"):
        return bool(value)
    if name == "name":
        return str(value)
    if name == "buffer":
        if not isinstance(value, SampleBuffer):
            raise InvalidParameter("Track buffer must be a SampleBuffer")
        return value.freeze()
    raise InvalidParameter(f"Unknown track field: {name}")


class TrackRegistry:
    """
    Ordered collection of tracks plus the current selection.

    Buffers committed to a track are frozen; edits replace the buffer.
    """

    def __init__(self) -> None:
        self._slots: List[Optional[Track]] = []
        self._generations: List[int] = []
        self._free_slots: List[int] = []
        self._order: List[TrackId] = []
        self._effect_ids = itertools.count(1)
        self.selection = Selection.none()

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, track_id: object) -> bool:
        try:
            self.get(track_id)
        except TrackNotFound:
            return False
        return True

    def _allocate(self) -> TrackId:
        while self._free_slots:
            slot = self._free_slots.pop()
            if self._slots[slot] is None:
                self._generations[slot] += 1
                return TrackId(slot, self._generations[slot])

        self._slots.append(None)
        self._generations.append(0)
        return TrackId(len(self._slots) - 1, 0)

    def add_track(
        self,
        buffer: SampleBuffer,
        name: Optional[str] = None,
        **fields: Any
    ) -> Track:
        """
        Add a track at the end of the display order.

        Args:
            buffer: Track audio (frozen on commit)
            name: Display name (defaults to "Track N")
            **fields: Optional volume, pan, muted, solo

        Raises:
            InvalidParameter: for unknown fields or out-of-range values
        """
        values = {key: _validate_track_field(key, value) for key, value in fields.items()}
        if "buffer" in values:
            raise InvalidParameter("Pass the buffer positionally")

        track_id = self._allocate()
        track = Track(
            id=track_id,
            name=name or f"Track {len(self._order) + 1}",
            buffer=buffer.freeze(),
            **values
        )
        self._slots[track_id.slot] = track
        self._order.append(track_id)

        logger.info("track_added", track_id=str(track_id), name=track.name, duration=track.duration)
        return track

    def get(self, track_id: TrackRef) -> Track:
        """
        Look up a live track.

        Raises:
            TrackNotFound: for unknown, removed or stale ids
        """
        track_id = TrackId.parse(track_id)
        if 0 <= track_id.slot < len(self._slots):
            track = self._slots[track_id.slot]
            if track is not None and track.id == track_id:
                return track
        raise TrackNotFound(f"Track {track_id} does not exist")

    def tracks(self) -> List[Track]:
        """Live tracks in display order."""
        return [self._slots[track_id.slot] for track_id in self._order]

    def index_of(self, track_id: TrackRef) -> int:
        track = self.get(track_id)
        return self._order.index(track.id)

    def remove_track(self, track_id: TrackRef) -> Tuple[Track, int]:
        """
        Remove a track and vacate its slot.

        Returns:
            The removed track and its display index, for restoring later
        """
        track = self.get(track_id)
        index = self._order.index(track.id)
        del self._order[index]
        self._slots[track.id.slot] = None
        self._free_slots.append(track.id.slot)

        logger.info("track_removed", track_id=str(track.id), name=track.name)
        return track, index

    def restore_track(self, track: Track, index: int) -> Track:
        """Put a removed track back into its original slot and display position."""
        slot = track.id.slot
        if slot >= len(self._slots) or self._slots[slot] is not None:
            raise ValueError(f"Cannot restore track {track.id}: slot is occupied")

        self._slots[slot] = track
        self._generations[slot] = max(self._generations[slot], track.id.generation)
        index = max(0, min(index, len(self._order)))
        self._order.insert(index, track.id)

        logger.info("track_restored", track_id=str(track.id), index=index)
        return track

    def update_track(self, track_id: TrackRef, **updates: Any) -> Dict[str, Any]:
        """
        Change track fields.

        Returns:
            The previous values of exactly the updated fields

        Raises:
            InvalidParameter: for unknown fields or out-of-range values
        """
        track = self.get(track_id)
        values = {key: _validate_track_field(key, value) for key, value in updates.items()}

        previous = {key: getattr(track, key) for key in values}
        for key, value in values.items():
            setattr(track, key, value)

        logger.debug("track_updated", track_id=str(track.id), fields=list(values))
        return previous

    def reorder_track(self, track_id: TrackRef, new_index: int) -> int:
        """Move a track in the display order; returns its previous index."""
        track = self.get(track_id)
        try:
            new_index = int(new_index)
        except (TypeError, ValueError) as e:
            raise InvalidParameter(f"Track index must be an integer, got {new_index!r}") from e
        old_index = self._order.index(track.id)
        self._order.pop(old_index)
        new_index = max(0, min(new_index, len(self._order)))
        self._order.insert(new_index, track.id)
        return old_index

    def _find_effect(self, track: Track, effect_id: str) -> int:
        for index, record in enumerate(track.effects):
            if record.id == effect_id:
                return index
        raise EffectNotFound(f"Effect {effect_id} is not on track {track.id}")

    def get_effect(self, track_id: TrackRef, effect_id: str) -> EffectRecord:
        track = self.get(track_id)
        return track.effects[self._find_effect(track, effect_id)]

    def add_effect(
        self,
        track_id: TrackRef,
        effect_type: Any,
        params: Optional[Mapping[str, Any]] = None
    ) -> EffectRecord:
        """
        Append an effect record to a track.

        Raises:
            EffectNotFound: if the effect type is not in the catalog
            InvalidParameter: if the parameters don't fit its table
        """
        track = self.get(track_id)
        effect_class = get_effect_class(effect_type)
        if effect_class is None:
            raise EffectNotFound(f"Unknown effect type: {effect_type}")

        record = EffectRecord(
            id=f"fx{next(self._effect_ids)}",
            type=effect_class.effect_type,
            params=effect_class.validate_parameters(params or {}),
        )
        track.effects.append(record)
        return record

    def remove_effect(self, track_id: TrackRef, effect_id: str) -> Tuple[EffectRecord, int]:
        track = self.get(track_id)
        index = self._find_effect(track, effect_id)
        return track.effects.pop(index), index

    def restore_effect(self, track_id: TrackRef, record: EffectRecord, index: int) -> EffectRecord:
        track = self.get(track_id)
        track.effects.insert(max(0, min(index, len(track.effects))), record)
        return record

    def update_effect(
        self,
        track_id: TrackRef,
        effect_id: str,
        params: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """
        Change some parameters of an effect record.

        Returns:
            The previous values of exactly the updated parameters
        """
        record = self.get_effect(track_id, effect_id)
        merged = dict(record.params)
        merged.update(params)
        validated = get_effect_class(record.type).validate_parameters(merged)

        previous = {key: record.params[key] for key in params}
        record.params = validated
        return previous

    def set_selection(self, selection: Selection) -> Selection:
        """Replace the selection; returns the previous one."""
        previous = self.selection
        self.selection = selection
        return previous

    @property
    def total_duration(self) -> float:
        return max((track.duration for track in self.tracks()), default=0.0)

    def clear(self) -> None:
        self._slots.clear()
        self._generations.clear()
        self._free_slots.clear()
        self._order.clear()
        self.selection = Selection.none()

"""
Editing commands over the track registry.

Each command captures the state it needs for undo inside ``execute``, so a
command constructed but never executed holds nothing.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from sonedit.editing.history import Command
from sonedit.editing.registry import (
    EffectRecord,
    Selection,
    Track,
    TrackId,
    TrackRef,
    TrackRegistry,
)
from sonedit.signal_processing.buffer import SampleBuffer


class AddTrackCommand(Command):
    def __init__(
        self,
        registry: TrackRegistry,
        buffer: SampleBuffer,
        name: Optional[str] = None,
        **fields: Any
    ):
        super().__init__(f'Add track "{name or "Untitled"}"')
        self.registry = registry
        self.buffer = buffer
        self.name = name
        self.fields = fields
        self.track: Optional[Track] = None
        self.index = -1

    @property
    def track_id(self) -> Optional[TrackId]:
        return self.track.id if self.track else None

    def execute(self) -> Track:
        if self.track is None:
            self.track = self.registry.add_track(self.buffer, self.name, **self.fields)
            self.index = self.registry.index_of(self.track.id)
            self.description = f'Add track "{self.track.name}"'
        else:
            # Redo brings back the same track under the same id
            self.registry.restore_track(self.track, self.index)
        return self.track

    def undo(self) -> Track:
        track, self.index = self.registry.remove_track(self.track.id)
        return track


class RemoveTrackCommand(Command):
    def __init__(self, registry: TrackRegistry, track_id: TrackRef):
        super().__init__("Remove track")
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.removed: Optional[Track] = None
        self.index = -1

    def execute(self) -> Track:
        self.removed, self.index = self.registry.remove_track(self.track_id)
        self.description = f'Remove track "{self.removed.name}"'
        return self.removed

    def undo(self) -> Track:
        return self.registry.restore_track(self.removed, self.index)


class UpdateTrackCommand(Command):
    """Change track fields; undo restores only the fields that were updated."""

    def __init__(self, registry: TrackRegistry, track_id: TrackRef, **updates: Any):
        super().__init__("Update track")
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.updates = updates
        self.previous: Dict[str, Any] = {}

    def execute(self) -> Track:
        self.previous = self.registry.update_track(self.track_id, **self.updates)
        track = self.registry.get(self.track_id)
        self.description = f'Update track "{track.name}"'
        return track

    def undo(self) -> Track:
        self.registry.update_track(self.track_id, **self.previous)
        return self.registry.get(self.track_id)


class ReorderTrackCommand(Command):
    def __init__(self, registry: TrackRegistry, track_id: TrackRef, new_index: int):
        super().__init__("Move track")
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.new_index = new_index
        self.old_index = -1

    def execute(self) -> int:
        self.old_index = self.registry.reorder_track(self.track_id, self.new_index)
        self.description = f'Move track "{self.registry.get(self.track_id).name}"'
        return self.registry.index_of(self.track_id)

    def undo(self) -> int:
        self.registry.reorder_track(self.track_id, self.old_index)
        return self.old_index


class SetSelectionCommand(Command):
    def __init__(self, registry: TrackRegistry, selection: Selection):
        super().__init__("Change selection")
        self.registry = registry
        self.selection = selection
        self.previous: Optional[Selection] = None

    def execute(self) -> Selection:
        self.previous = self.registry.set_selection(self.selection)
        return self.selection

    def undo(self) -> Selection:
        self.registry.set_selection(self.previous)
        return self.previous


class AddEffectCommand(Command):
    def __init__(
        self,
        registry: TrackRegistry,
        track_id: TrackRef,
        effect_type: Any,
        params: Optional[Mapping[str, Any]] = None
    ):
        super().__init__(f"Add {effect_type} effect")
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.effect_type = effect_type
        self.params = dict(params or {})
        self.record: Optional[EffectRecord] = None
        self.index = -1

    def execute(self) -> EffectRecord:
        if self.record is None:
            self.record = self.registry.add_effect(self.track_id, self.effect_type, self.params)
            self.index = len(self.registry.get(self.track_id).effects) - 1
            self.description = f"Add {self.record.type.value} effect"
        else:
            self.registry.restore_effect(self.track_id, self.record, self.index)
        return self.record

    def undo(self) -> EffectRecord:
        record, self.index = self.registry.remove_effect(self.track_id, self.record.id)
        return record


class RemoveEffectCommand(Command):
    def __init__(self, registry: TrackRegistry, track_id: TrackRef, effect_id: str):
        super().__init__("Remove effect")
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.effect_id = effect_id
        self.removed: Optional[EffectRecord] = None
        self.index = -1

    def execute(self) -> EffectRecord:
        self.removed, self.index = self.registry.remove_effect(self.track_id, self.effect_id)
        self.description = f"Remove {self.removed.type.value} effect"
        return self.removed

    def undo(self) -> EffectRecord:
        return self.registry.restore_effect(self.track_id, self.removed, self.index)


class UpdateEffectCommand(Command):
    def __init__(
        self,
        registry: TrackRegistry,
        track_id: TrackRef,
        effect_id: str,
        params: Mapping[str, Any]
    ):
        super().__init__("Update effect")
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.effect_id = effect_id
        self.params = dict(params)
        self.previous: Dict[str, Any] = {}

    def execute(self) -> EffectRecord:
        self.previous = self.registry.update_effect(self.track_id, self.effect_id, self.params)
        record = self.registry.get_effect(self.track_id, self.effect_id)
        self.description = f"Update {record.type.value} effect"
        return record

    def undo(self) -> EffectRecord:
        self.registry.update_effect(self.track_id, self.effect_id, self.previous)
        return self.registry.get_effect(self.track_id, self.effect_id)


@dataclass(frozen=True)
class DeleteTarget:
    """One item of a bulk delete: a whole track, or one effect on a track."""
    track_id: TrackId
    effect_id: Optional[str] = None

    @property
    def kind(self) -> str:
        return "effect" if self.effect_id else "track"


class BulkDeleteCommand(Command):
    """
    Delete several tracks and/or effects as one step.

    Items that no longer exist when the command runs are skipped. Undo
    restores the deleted items in reverse order of deletion.
    """

    def __init__(
        self,
        registry: TrackRegistry,
        targets: Sequence[Union[DeleteTarget, TrackRef]]
    ):
        super().__init__(f"Delete {len(targets)} items")
        self.registry = registry
        self.targets = [
            target if isinstance(target, DeleteTarget) else DeleteTarget(TrackId.parse(target))
            for target in targets
        ]
        self.deleted: List[Tuple[DeleteTarget, Union[Track, EffectRecord], int]] = []

    def _exists(self, target: DeleteTarget) -> bool:
        if target.track_id not in self.registry:
            return False
        if target.effect_id is None:
            return True
        track = self.registry.get(target.track_id)
        return any(record.id == target.effect_id for record in track.effects)

    def execute(self) -> int:
        self.deleted = []
        for target in self.targets:
            if not self._exists(target):
                continue
            if target.effect_id is None:
                item, index = self.registry.remove_track(target.track_id)
            else:
                item, index = self.registry.remove_effect(target.track_id, target.effect_id)
            self.deleted.append((target, item, index))

        self.description = f"Delete {len(self.deleted)} items"
        return len(self.deleted)

    def undo(self) -> int:
        for target, item, index in reversed(self.deleted):
            if target.effect_id is None:
                self.registry.restore_track(item, index)
            else:
                self.registry.restore_effect(target.track_id, item, index)
        return len(self.deleted)


class ReplaceBufferCommand(Command):
    """Commit a new buffer to a track, keeping the old one for undo."""

    def __init__(
        self,
        registry: TrackRegistry,
        track_id: TrackRef,
        buffer: SampleBuffer,
        description: str = "Edit audio"
    ):
        super().__init__(description)
        self.registry = registry
        self.track_id = TrackId.parse(track_id)
        self.buffer = buffer
        self.previous: Optional[SampleBuffer] = None

    def execute(self) -> Track:
        self.previous = self.registry.update_track(self.track_id, buffer=self.buffer)["buffer"]
        return self.registry.get(self.track_id)

    def undo(self) -> Track:
        self.registry.update_track(self.track_id, buffer=self.previous)
        return self.registry.get(self.track_id)

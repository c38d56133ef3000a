"""
Track registry and undoable editing commands.
"""

from sonedit.editing.registry import EffectRecord, Selection, Track, TrackId, TrackRegistry
from sonedit.editing.history import Command, HistoryManager, MacroCommand
from sonedit.editing.commands import (
    AddEffectCommand,
    AddTrackCommand,
    BulkDeleteCommand,
    DeleteTarget,
    RemoveEffectCommand,
    RemoveTrackCommand,
    ReorderTrackCommand,
    ReplaceBufferCommand,
    SetSelectionCommand,
    UpdateEffectCommand,
    UpdateTrackCommand,
)

__all__ = [
    "EffectRecord",
    "Selection",
    "Track",
    "TrackId",
    "TrackRegistry",
    "Command",
    "HistoryManager",
    "MacroCommand",
    "AddEffectCommand",
    "AddTrackCommand",
    "BulkDeleteCommand",
    "DeleteTarget",
    "RemoveEffectCommand",
    "RemoveTrackCommand",
    "ReorderTrackCommand",
    "ReplaceBufferCommand",
    "SetSelectionCommand",
    "UpdateEffectCommand",
    "UpdateTrackCommand",
]

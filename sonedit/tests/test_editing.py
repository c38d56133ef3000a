"""
Tests for the track registry, commands and undo history.
"""

import pytest

from sonedit.core.exceptions import (
    EffectNotFound,
    InvalidParameter,
    InvalidRange,
    TrackNotFound,
)
from sonedit.editing import (
    AddEffectCommand,
    AddTrackCommand,
    BulkDeleteCommand,
    Command,
    DeleteTarget,
    HistoryManager,
    MacroCommand,
    RemoveEffectCommand,
    RemoveTrackCommand,
    ReorderTrackCommand,
    ReplaceBufferCommand,
    Selection,
    SetSelectionCommand,
    TrackId,
    TrackRegistry,
    UpdateEffectCommand,
    UpdateTrackCommand,
)


@pytest.fixture
def registry():
    return TrackRegistry()


@pytest.fixture
def history():
    return HistoryManager(max_size=50)


def snapshot(registry):
    """Observable registry state for comparing before and after undo."""
    return (
        [track.to_dict() for track in registry.tracks()],
        [id(track.buffer) for track in registry.tracks()],
        registry.selection,
    )


class Counter(Command):
    def __init__(self, log, name, fail=False):
        super().__init__(name)
        self.log = log
        self.name = name
        self.fail = fail

    def execute(self):
        if self.fail:
            raise RuntimeError("boom")
        self.log.append(f"do {self.name}")

    def undo(self):
        self.log.append(f"undo {self.name}")


class TestTrackRegistry:
    """Test the generational track arena."""

    def test_add_and_get(self, registry, stereo_buffer):
        track = registry.add_track(stereo_buffer)
        assert track.name == "Track 1"
        assert registry.get(track.id) is track
        assert registry.get(str(track.id)) is track
        assert track.buffer.is_frozen

    def test_stale_id_after_slot_reuse(self, registry, stereo_buffer):
        first = registry.add_track(stereo_buffer, "first")
        registry.remove_track(first.id)
        second = registry.add_track(stereo_buffer, "second")

        assert second.id.slot == first.id.slot
        assert second.id.generation > first.id.generation
        with pytest.raises(TrackNotFound):
            registry.get(first.id)
        assert first.id not in registry

    def test_malformed_id(self, registry):
        with pytest.raises(TrackNotFound):
            registry.get("not-an-id")
        with pytest.raises(TrackNotFound):
            registry.get(TrackId(7, 0))

    def test_update_validates(self, registry, stereo_buffer):
        track = registry.add_track(stereo_buffer)
        with pytest.raises(InvalidParameter):
            registry.update_track(track.id, volume=11.0)
        with pytest.raises(InvalidParameter):
            registry.update_track(track.id, pan=-2.0)
        with pytest.raises(InvalidParameter):
            registry.update_track(track.id, colour="red")
        with pytest.raises(InvalidParameter):
            registry.update_track(track.id, volume="loud")
        with pytest.raises(InvalidParameter):
            registry.update_track(track.id, pan=[0.5])

    def test_update_returns_previous_values(self, registry, stereo_buffer):
        track = registry.add_track(stereo_buffer, volume=0.5)
        previous = registry.update_track(track.id, volume=2.0)
        assert previous == {"volume": 0.5}

    def test_reorder(self, registry, stereo_buffer):
        a = registry.add_track(stereo_buffer, "a")
        b = registry.add_track(stereo_buffer, "b")
        c = registry.add_track(stereo_buffer, "c")
        assert registry.reorder_track(c.id, 0) == 2
        assert [t.name for t in registry.tracks()] == ["c", "a", "b"]
        assert registry.index_of(b.id) == 2
        assert registry.index_of(a.id) == 1

    def test_effects(self, registry, stereo_buffer):
        track = registry.add_track(stereo_buffer)
        record = registry.add_effect(track.id, "echo", {"delay": 0.5})
        assert record.params == {"delay": 0.5, "decay": 0.5, "repeat": 3}

        with pytest.raises(EffectNotFound):
            registry.add_effect(track.id, "flanger")
        with pytest.raises(InvalidParameter):
            registry.add_effect(track.id, "echo", {"delay": 5.0})
        with pytest.raises(EffectNotFound):
            registry.remove_effect(track.id, "fx999")

    def test_selection_normalized(self):
        assert Selection.normalized(2.0, 1.0) == Selection(1.0, 2.0)
        with pytest.raises(InvalidRange):
            Selection.normalized(-1.0, 1.0)
        with pytest.raises(InvalidRange):
            Selection.normalized(0.0, float("inf"))
        assert Selection.none().is_empty

    def test_total_duration(self, registry, make_buffer):
        registry.add_track(make_buffer(frames=4000))
        registry.add_track(make_buffer(frames=8000))
        assert registry.total_duration == pytest.approx(1.0)


class TestCommands:
    """Each command's undo restores the prior observable state."""

    def test_add_track_undo_redo(self, registry, history, stereo_buffer):
        before = snapshot(registry)
        command = AddTrackCommand(registry, stereo_buffer, "vox")
        history.execute_command(command)
        track_id = command.track_id

        history.undo()
        assert snapshot(registry) == before

        history.redo()
        assert registry.get(track_id).name == "vox"

    def test_remove_track_restores_position(self, registry, history, stereo_buffer):
        registry.add_track(stereo_buffer, "a")
        b = registry.add_track(stereo_buffer, "b")
        registry.add_track(stereo_buffer, "c")
        before = snapshot(registry)

        history.execute_command(RemoveTrackCommand(registry, b.id))
        assert [t.name for t in registry.tracks()] == ["a", "c"]

        history.undo()
        assert snapshot(registry) == before
        assert registry.get(b.id) is b

    def test_update_track_restores_only_changed_fields(self, registry, history, stereo_buffer):
        track = registry.add_track(stereo_buffer, "a", volume=0.5, pan=0.25)
        history.execute_command(UpdateTrackCommand(registry, track.id, volume=2.0))
        registry.update_track(track.id, pan=-0.5)

        history.undo()
        assert track.volume == 0.5
        assert track.pan == -0.5

    def test_reorder_undo(self, registry, history, stereo_buffer):
        a = registry.add_track(stereo_buffer, "a")
        registry.add_track(stereo_buffer, "b")
        before = snapshot(registry)

        history.execute_command(ReorderTrackCommand(registry, a.id, 1))
        history.undo()
        assert snapshot(registry) == before

    def test_selection_undo(self, registry, history):
        history.execute_command(SetSelectionCommand(registry, Selection(1.0, 2.0)))
        assert registry.selection == Selection(1.0, 2.0)
        history.undo()
        assert registry.selection.is_empty

    def test_effect_commands(self, registry, history, stereo_buffer):
        track = registry.add_track(stereo_buffer)
        before = snapshot(registry)

        add = AddEffectCommand(registry, track.id, "reverb")
        history.execute_command(add)
        effect_id = add.record.id
        history.execute_command(UpdateEffectCommand(registry, track.id, effect_id, {"wet_level": 0.9}))
        assert registry.get_effect(track.id, effect_id).params["wet_level"] == 0.9

        history.undo()
        assert registry.get_effect(track.id, effect_id).params["wet_level"] == 0.3

        history.execute_command(RemoveEffectCommand(registry, track.id, effect_id))
        assert track.effects == []
        history.undo()
        assert [r.id for r in track.effects] == [effect_id]

        history.undo()
        assert snapshot(registry) == before

        history.redo()
        assert [r.id for r in track.effects] == [effect_id]

    def test_replace_buffer(self, registry, history, stereo_buffer, make_buffer):
        track = registry.add_track(stereo_buffer)
        replacement = make_buffer(frames=100, seed=9)

        history.execute_command(ReplaceBufferCommand(registry, track.id, replacement))
        assert track.buffer is replacement
        assert replacement.is_frozen

        history.undo()
        assert track.buffer is stereo_buffer

    def test_bulk_delete(self, registry, history, stereo_buffer):
        a = registry.add_track(stereo_buffer, "a")
        b = registry.add_track(stereo_buffer, "b")
        c = registry.add_track(stereo_buffer, "c")
        record = registry.add_effect(c.id, "amplify")
        before = snapshot(registry)

        command = BulkDeleteCommand(registry, [
            a.id,
            DeleteTarget(c.id, record.id),
            b.id,
            b.id,
            TrackId(42, 0),
        ])
        assert history.execute_command(command) == 3
        assert [t.name for t in registry.tracks()] == ["c"]
        assert c.effects == []

        history.undo()
        assert snapshot(registry) == before

    def test_bulk_delete_rejects_malformed_ids(self, registry):
        with pytest.raises(TrackNotFound):
            BulkDeleteCommand(registry, ["bad"])


class TestHistoryManager:
    """Test stack discipline."""

    def test_undo_redo_order(self, history):
        log = []
        history.execute_command(Counter(log, "a"))
        history.execute_command(Counter(log, "b"))

        assert history.undo()
        assert history.undo()
        assert not history.undo()
        assert history.redo()

        assert log == ["do a", "do b", "undo b", "undo a", "do a"]
        assert history.undo_description() == "a"
        assert history.redo_description() == "b"

    def test_new_command_clears_redo(self, history):
        log = []
        history.execute_command(Counter(log, "a"))
        history.undo()
        history.execute_command(Counter(log, "b"))
        assert not history.can_redo()

    def test_failed_command_not_recorded(self, history):
        log = []
        with pytest.raises(RuntimeError):
            history.execute_command(Counter(log, "bad", fail=True))
        assert not history.can_undo()
        assert not history.is_executing

    def test_cap(self):
        history = HistoryManager(max_size=3)
        log = []
        for name in "abcde":
            history.execute_command(Counter(log, name))

        assert [c.description for c in history.undo_stack] == ["c", "d", "e"]

    def test_reentrant_execute_is_ignored(self, history):
        log = []
        inner = Counter(log, "inner")

        class Outer(Command):
            def execute(self):
                return history.execute_command(inner)

            def undo(self):
                pass

        assert history.execute_command(Outer("outer")) is None
        assert log == []
        assert len(history.undo_stack) == 1

    def test_macro_rolls_back_on_failure(self, history):
        log = []
        macro = MacroCommand(
            [Counter(log, "a"), Counter(log, "b"), Counter(log, "c", fail=True)],
            "batch"
        )
        with pytest.raises(RuntimeError):
            history.execute_command(macro)

        assert log == ["do a", "do b", "undo b", "undo a"]
        assert not history.can_undo()

    def test_macro_undo_reverse(self, history):
        log = []
        history.execute_command(MacroCommand([Counter(log, "a"), Counter(log, "b")]))
        history.undo()
        assert log == ["do a", "do b", "undo b", "undo a"]

    def test_state(self, history):
        state = history.get_state()
        assert state == {
            "can_undo": False,
            "can_redo": False,
            "undo_description": None,
            "redo_description": None,
            "undo_stack_size": 0,
            "redo_stack_size": 0,
        }


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

"""
Main audio engine for the sonedit editor.

Coordinates the track registry, undo history, playback, capture and export
behind one facade. Every ``SonEditError`` raised underneath is turned into a
status message here; facade methods return None/False instead of raising.
"""

import functools
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import numpy as np

from sonedit.audio.capture import CaptureAccumulator, InputDevice
from sonedit.audio.decode import AudioSource, decode_audio
from sonedit.audio.effects import EffectBase, get_effect
from sonedit.audio.export import ExportedAudio, export_buffer
from sonedit.audio.mixer import AudioMixer
from sonedit.audio.playback import PlaybackScheduler, PlaybackState
from sonedit.core.config import settings
from sonedit.core.exceptions import InvalidParameter, SonEditError
from sonedit.core.logging import get_logger
from sonedit.editing.commands import (
    AddEffectCommand,
    AddTrackCommand,
    BulkDeleteCommand,
    RemoveEffectCommand,
    RemoveTrackCommand,
    ReorderTrackCommand,
    ReplaceBufferCommand,
    SetSelectionCommand,
    UpdateEffectCommand,
    UpdateTrackCommand,
)
from sonedit.editing.history import Command, HistoryManager, MacroCommand
from sonedit.editing.registry import Selection, Track, TrackId, TrackRef, TrackRegistry
from sonedit.signal_processing import analysis, generators
from sonedit.signal_processing.buffer import (
    SampleBuffer,
    extract_range,
    insert,
    range_to_frames,
    splice_out,
)

logger = get_logger(__name__)

GENERATORS: Dict[str, Callable[..., SampleBuffer]] = {
    "tone": generators.generate_tone,
    "noise": generators.generate_noise,
    "silence": generators.generate_silence,
    "chirp": generators.generate_chirp,
    "dtmf": generators.generate_dtmf,
}


def _reports_errors(default: Any = None):
    """Turn SonEditError into a status message and a default return value."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            self.last_error = None
            try:
                return method(self, *args, **kwargs)
            except SonEditError as e:
                self._fail(method.__name__, e)
                return default
        return wrapper
    return decorator


class AudioEngine:
    """
    Editing session facade.

    All edits go through the undo history. The clipboard holds a copy of the
    last copied or cut range.
    """

    def __init__(
        self,
        sample_rate: Optional[int] = None,
        input_device: Optional[InputDevice] = None,
        history_max_size: Optional[int] = None,
        on_status: Optional[Callable[[str], None]] = None
    ):
        """
        Initialize audio engine.

        Args:
            sample_rate: Project sample rate in Hz (used for generated audio and mixing)
            input_device: Capture device (optional)
            history_max_size: Undo depth (defaults to settings)
            on_status: Callback for status messages (optional)
        """
        self.sample_rate = sample_rate or settings.sample_rate
        self.on_status = on_status

        self.registry = TrackRegistry()
        self.history = HistoryManager(max_size=history_max_size)
        self.mixer = AudioMixer(sample_rate=self.sample_rate)
        self.playback = PlaybackScheduler(on_finished=self._on_playback_finished)
        self.capture = CaptureAccumulator(device=input_device)
        self.clipboard: Optional[SampleBuffer] = None

        self.status = "Ready"
        self.last_error: Optional[str] = None
        self._playing_track: Optional[TrackId] = None

        logger.info("audio_engine_initialized", sample_rate=self.sample_rate)

    # Status

    def _set_status(self, message: str) -> None:
        self.status = message
        if self.on_status is not None:
            self.on_status(message)

    def _fail(self, action: str, error: SonEditError) -> None:
        self.last_error = error.code
        logger.warning("engine_action_failed", action=action, code=error.code, error=error.message)
        self._set_status(f"Error: {error.message}")

    def _run(self, command: Command) -> Any:
        result = self.history.execute_command(command)
        self._set_status(command.description)
        return result

    # Tracks

    def get_track(self, track_id: TrackRef) -> Track:
        return self.registry.get(track_id)

    @property
    def tracks(self) -> List[Track]:
        return self.registry.tracks()

    @_reports_errors()
    def add_buffer(self, buffer: SampleBuffer, name: Optional[str] = None, **fields) -> Optional[TrackId]:
        """Add a buffer as a new track; returns its id."""
        command = AddTrackCommand(self.registry, buffer, name, **fields)
        self._run(command)
        return command.track_id

    @_reports_errors()
    def load_file(self, source: AudioSource, name: Optional[str] = None) -> Optional[TrackId]:
        """Decode a file (path or bytes) into a new track."""
        buffer = decode_audio(source)
        return self.add_buffer(buffer, name or "Imported audio")

    @_reports_errors()
    def generate(
        self,
        kind: str,
        duration: float,
        name: Optional[str] = None,
        **params
    ) -> Optional[TrackId]:
        """
        Generate audio into a new track.

        Args:
            kind: 'tone', 'noise', 'silence', 'chirp' or 'dtmf'
            duration: Length in seconds
            name: Track name
            **params: Generator arguments (frequency, amplitude, ...)
        """
        generator = GENERATORS.get(kind)
        if generator is None:
            raise InvalidParameter(f"Unknown generator: {kind}")

        params.setdefault("sample_rate", self.sample_rate)
        try:
            buffer = generator(duration=duration, **params)
        except (TypeError, ValueError) as e:
            raise InvalidParameter(f"Bad arguments for {kind} generator: {e}") from e
        return self.add_buffer(buffer, name or f"Generated {kind}")

    @_reports_errors(default=False)
    def remove_track(self, track_id: TrackRef) -> bool:
        self._run(RemoveTrackCommand(self.registry, track_id))
        return True

    @_reports_errors(default=False)
    def update_track(self, track_id: TrackRef, **updates) -> bool:
        """Change name, volume, pan, muted or solo."""
        self._run(UpdateTrackCommand(self.registry, track_id, **updates))
        return True

    @_reports_errors(default=False)
    def reorder_track(self, track_id: TrackRef, new_index: int) -> bool:
        self._run(ReorderTrackCommand(self.registry, track_id, new_index))
        return True

    @_reports_errors(default=0)
    def bulk_delete(self, targets: Iterable[Any]) -> int:
        """Delete tracks (ids) and/or effects (DeleteTarget) as one undo step."""
        return self._run(BulkDeleteCommand(self.registry, list(targets)))

    # Selection

    @property
    def selection(self) -> Selection:
        return self.registry.selection

    @_reports_errors(default=False)
    def set_selection(self, start: float, end: float) -> bool:
        """Select [start, end) in seconds; the bounds may be given in either order."""
        self._run(SetSelectionCommand(self.registry, Selection.normalized(start, end)))
        return True

    @_reports_errors(default=False)
    def clear_selection(self) -> bool:
        self._run(SetSelectionCommand(self.registry, Selection.none()))
        return True

    @_reports_errors(default=False)
    def select_all(self) -> bool:
        self._run(SetSelectionCommand(self.registry, Selection(0.0, self.registry.total_duration)))
        return True

    def _targets(self, track_id: Optional[TrackRef]) -> List[Track]:
        if track_id is not None:
            return [self.registry.get(track_id)]
        return self.registry.tracks()

    # Effects

    def _process_selection(self, buffer: SampleBuffer, effect: EffectBase) -> Optional[SampleBuffer]:
        selection = self.registry.selection
        if selection.is_empty:
            return effect.process(buffer)

        start, end = range_to_frames(buffer, selection.start, selection.end)
        if start >= end:
            return None

        processed = effect.process(extract_range(buffer, selection.start, selection.end))
        data = np.concatenate(
            [buffer.channels[:, :start], processed.channels, buffer.channels[:, end:]],
            axis=1
        )
        return SampleBuffer(data, buffer.sample_rate)

    @_reports_errors(default=False)
    def apply_effect(
        self,
        effect_type: Any,
        params: Optional[Mapping[str, Any]] = None,
        track_id: Optional[TrackRef] = None
    ) -> bool:
        """
        Destructively apply an effect to the selection (or whole tracks).

        Applies to every track unless ``track_id`` is given. Unknown effect
        names change nothing and return False.
        """
        effect = get_effect(effect_type, **dict(params or {}))
        if effect is None:
            self._set_status(f"Unknown effect: {effect_type}")
            return False

        commands: List[Command] = []
        for track in self._targets(track_id):
            processed = self._process_selection(track.buffer, effect)
            if processed is None:
                continue
            commands.append(ReplaceBufferCommand(self.registry, track.id, processed))
            commands.append(AddEffectCommand(self.registry, track.id, effect.effect_type, effect.params))

        if not commands:
            self._set_status("Nothing to process")
            return False

        self._run(MacroCommand(commands, f"Apply {effect.display_name}"))
        return True

    @_reports_errors()
    def add_effect(
        self,
        track_id: TrackRef,
        effect_type: Any,
        params: Optional[Mapping[str, Any]] = None
    ) -> Optional[str]:
        """Record an effect on a track without processing audio; returns its id."""
        return self._run(AddEffectCommand(self.registry, track_id, effect_type, params)).id

    @_reports_errors(default=False)
    def update_effect(self, track_id: TrackRef, effect_id: str, params: Mapping[str, Any]) -> bool:
        self._run(UpdateEffectCommand(self.registry, track_id, effect_id, params))
        return True

    @_reports_errors(default=False)
    def remove_effect(self, track_id: TrackRef, effect_id: str) -> bool:
        self._run(RemoveEffectCommand(self.registry, track_id, effect_id))
        return True

    # Clipboard

    @_reports_errors(default=False)
    def copy(self, track_id: Optional[TrackRef] = None) -> bool:
        """Copy the selected range of a track (default: first track) to the clipboard."""
        selection = self.registry.selection
        if selection.is_empty:
            self._set_status("Nothing selected")
            return False

        tracks = self._targets(track_id)
        if not tracks:
            self._set_status("No tracks")
            return False

        self.clipboard = extract_range(tracks[0].buffer, selection.start, selection.end)
        self._set_status(f"Copied {self.clipboard.duration:.2f}s")
        return True

    @_reports_errors(default=False)
    def delete_selection(self, track_id: Optional[TrackRef] = None) -> bool:
        """Remove the selected range from the tracks and clear the selection."""
        selection = self.registry.selection
        if selection.is_empty:
            self._set_status("Nothing selected")
            return False

        commands: List[Command] = []
        for track in self._targets(track_id):
            start, end = range_to_frames(track.buffer, selection.start, selection.end)
            if start >= end:
                continue
            remaining = splice_out(track.buffer, selection.start, selection.end)
            commands.append(ReplaceBufferCommand(self.registry, track.id, remaining))
        commands.append(SetSelectionCommand(self.registry, Selection.none()))

        self._run(MacroCommand(commands, "Delete selection"))
        return True

    def cut(self, track_id: Optional[TrackRef] = None) -> bool:
        return self.copy(track_id) and self.delete_selection(track_id)

    @_reports_errors(default=False)
    def paste(self, track_id: Optional[TrackRef] = None, at: Optional[float] = None) -> bool:
        """
        Insert the clipboard into a track at ``at`` (default: selection start).

        With no tracks the clipboard becomes a new track.
        """
        if self.clipboard is None:
            self._set_status("Clipboard is empty")
            return False

        tracks = self._targets(track_id)
        if not tracks:
            return self.add_buffer(self.clipboard.copy(), "Pasted audio") is not None

        track = tracks[0]
        position = self.registry.selection.start if at is None else at
        pasted = insert(track.buffer, self.clipboard, position)
        self._run(ReplaceBufferCommand(self.registry, track.id, pasted, "Paste"))
        return True

    # History

    @_reports_errors(default=False)
    def undo(self) -> bool:
        description = self.history.undo_description()
        if not self.history.undo():
            return False
        self._set_status(f"Undo: {description}")
        return True

    @_reports_errors(default=False)
    def redo(self) -> bool:
        description = self.history.redo_description()
        if not self.history.redo():
            return False
        self._set_status(f"Redo: {description}")
        return True

    # Playback

    def _on_playback_finished(self) -> None:
        self._playing_track = None
        self._set_status("Playback finished")

    @_reports_errors(default=False)
    def play(
        self,
        track_id: Optional[TrackRef] = None,
        start: Optional[float] = None,
        duration: Optional[float] = None
    ) -> bool:
        """
        Play one track, or the mix of all tracks.

        Without an explicit start, a paused session resumes; otherwise a
        non-empty selection limits playback to the selected range.
        """
        playing = TrackId.parse(track_id) if track_id is not None else None

        if (self.playback.state == PlaybackState.PAUSED and start is None
                and playing == self._playing_track):
            return self.playback.play(self.playback.buffer)

        if playing is not None:
            buffer = self.registry.get(playing).buffer
        else:
            buffer = self.mixer.mixdown(self.registry.tracks())

        selection = self.registry.selection
        if start is None and not selection.is_empty:
            start, duration = selection.start, selection.duration

        if self.playback.state == PlaybackState.PAUSED:
            self.playback.stop()

        started = self.playback.play(buffer, start, duration)
        if started:
            self._playing_track = playing
            self._set_status("Playing")
        return started

    def pause(self) -> bool:
        paused = self.playback.pause()
        if paused:
            self._set_status("Paused")
        return paused

    def stop(self) -> bool:
        stopped = self.playback.stop()
        if stopped:
            self._playing_track = None
            self._set_status("Stopped")
        return stopped

    def tick(self, frames: int) -> Optional[np.ndarray]:
        """Advance playback by one clock tick of ``frames`` output frames."""
        return self.playback.advance(frames)

    def set_master_volume(self, volume: float) -> float:
        return self.playback.set_master_volume(volume)

    def set_playback_rate(self, rate: float) -> float:
        return self.playback.set_playback_rate(rate)

    # Capture

    @_reports_errors(default=False)
    def start_capture(self) -> bool:
        self.capture.start_capture()
        self._set_status("Recording")
        return True

    @_reports_errors()
    def stop_capture(self, name: Optional[str] = None) -> Optional[TrackId]:
        """Stop recording; the captured audio becomes a new track."""
        buffer = self.capture.stop_capture()
        if buffer is None:
            return None
        self._set_status("Recording stopped")
        return self.add_buffer(buffer, name or "Recording")

    # Export and analysis

    @_reports_errors()
    def export_track(self, track_id: TrackRef, fmt: str = "wav") -> Optional[ExportedAudio]:
        """Encode a track; None (no encoder invoked) if the track doesn't exist."""
        if track_id not in self.registry:
            self._set_status(f"Track {track_id} does not exist")
            return None

        exported = export_buffer(self.registry.get(track_id).buffer, fmt)
        self._set_status(f"Exported {exported.format}")
        return exported

    @_reports_errors()
    def export_mix(self, fmt: str = "wav") -> Optional[ExportedAudio]:
        """Encode the stereo mix of all tracks."""
        exported = export_buffer(self.mixer.mixdown(self.registry.tracks()), fmt)
        self._set_status(f"Exported mix as {exported.format}")
        return exported

    @_reports_errors()
    def analyze_track(self, track_id: TrackRef) -> Optional[Dict[str, float]]:
        """Level and spectrum summary of a track."""
        buffer = self.registry.get(track_id).buffer
        peak = analysis.peak_level(buffer)
        rms = analysis.rms_level(buffer)
        return {
            "peak": peak,
            "peak_db": analysis.to_decibels(peak),
            "rms": rms,
            "rms_db": analysis.to_decibels(rms),
            "zero_crossing_rate": analysis.zero_crossing_rate(buffer),
            "peak_frequency": analysis.peak_frequency(buffer),
            "spectral_centroid": analysis.spectral_centroid(buffer),
        }

    def get_configuration(self) -> Dict:
        """
        Get current engine state.

        Returns:
            Configuration dictionary
        """
        selection = self.registry.selection
        return {
            "sample_rate": self.sample_rate,
            "tracks": [track.to_dict() for track in self.registry.tracks()],
            "selection": {"start": selection.start, "end": selection.end},
            "playback": self.playback.get_state(),
            "capture": {
                "state": self.capture.state.value,
                "frames": self.capture.frames_captured,
            },
            "history": self.history.get_state(),
            "clipboard_duration": self.clipboard.duration if self.clipboard else 0.0,
            "status": self.status,
            "last_error": self.last_error,
        }

"""
Tick-driven playback of a sample buffer.

The scheduler owns no clock and no thread. An external clock (an output
stream callback, a UI timer or a test) calls ``advance`` once per tick and
receives the next block of output samples.
"""

import math
from enum import Enum
from typing import Callable, Dict, Optional

import numpy as np
from numpy.typing import NDArray

from sonedit.core.config import settings
from sonedit.core.exceptions import InvalidRange
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer

logger = get_logger(__name__)

# Cursor positions closer than this to the end count as finished
_FRAME_EPSILON = 1e-6


class PlaybackState(str, Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackScheduler:
    """
    Plays one buffer at a time.

    The cursor counts (fractional) source frames. Each output frame moves it
    by ``playback_rate``; ``on_finished`` fires exactly once when the cursor
    reaches the end of the requested range. Pausing or stopping never fires
    it.
    """

    MIN_RATE = 0.25
    MAX_RATE = 4.0

    def __init__(
        self,
        master_volume: Optional[float] = None,
        on_position: Optional[Callable[[float], None]] = None,
        on_finished: Optional[Callable[[], None]] = None
    ) -> None:
        self.on_position = on_position
        self.on_finished = on_finished

        self.state = PlaybackState.STOPPED
        self.buffer: Optional[SampleBuffer] = None
        self.playback_rate = 1.0
        self.master_volume = 0.0
        self.applied_gain = 0.0
        self._cursor = 0.0
        self._end_frame = 0.0
        self._finished_emitted = False

        self.set_master_volume(settings.master_volume if master_volume is None else master_volume)

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    @property
    def position(self) -> float:
        """Cursor in seconds of the source buffer."""
        if self.buffer is None:
            return 0.0
        return self._cursor / self.buffer.sample_rate

    @property
    def end_position(self) -> float:
        if self.buffer is None:
            return 0.0
        return self._end_frame / self.buffer.sample_rate

    def play(
        self,
        buffer: SampleBuffer,
        start_sec: Optional[float] = None,
        duration_sec: Optional[float] = None
    ) -> bool:
        """
        Start or resume playback.

        Resuming from pause (same buffer, no explicit start) continues from
        the frozen cursor. Otherwise playback covers
        [start, min(start + duration, buffer.duration)).

        Returns:
            False if already playing (nothing changes), True otherwise

        Raises:
            InvalidRange: for a negative start or duration
        """
        if self.is_playing:
            logger.debug("play_ignored_already_playing")
            return False

        if self.state == PlaybackState.PAUSED and buffer is self.buffer and start_sec is None:
            self.state = PlaybackState.PLAYING
            logger.info("playback_resumed", position=self.position)
            return True

        start = 0.0 if start_sec is None else float(start_sec)
        if start < 0:
            raise InvalidRange(f"Playback start must not be negative, got {start}")
        if duration_sec is not None and duration_sec < 0:
            raise InvalidRange(f"Playback duration must not be negative, got {duration_sec}")

        end_frame = float(buffer.frame_count)
        if duration_sec is not None:
            end_frame = min((start + duration_sec) * buffer.sample_rate, end_frame)

        self.buffer = buffer
        self._end_frame = end_frame
        self._cursor = min(start * buffer.sample_rate, end_frame)
        self._finished_emitted = False
        self.state = PlaybackState.PLAYING

        logger.info(
            "playback_started",
            start=self.position,
            end=self.end_position,
            rate=self.playback_rate
        )
        return True

    def pause(self) -> bool:
        """Freeze the cursor. No-op unless playing."""
        if not self.is_playing:
            return False
        self.state = PlaybackState.PAUSED
        logger.info("playback_paused", position=self.position)
        return True

    def stop(self) -> bool:
        """
        Stop and rewind to 0.

        After playback has finished on its own the cursor is still rewound,
        but only an active or paused transport counts as stopped.
        """
        self._cursor = 0.0
        if self.state == PlaybackState.STOPPED:
            return False
        self.state = PlaybackState.STOPPED
        logger.info("playback_stopped")
        return True

    def seek(self, position_sec: float) -> float:
        """Move the cursor, clamped into the playable range; returns the new position."""
        if self.buffer is None:
            return 0.0
        if not math.isfinite(position_sec):
            raise InvalidRange(f"Cannot seek to {position_sec}")
        self._cursor = min(max(position_sec * self.buffer.sample_rate, 0.0), self._end_frame)
        return self.position

    def advance(self, frames: int) -> Optional[NDArray[np.float32]]:
        """
        Render the next ``frames`` output frames and move the cursor.

        Returns:
            Array of shape (channels, frames), zero padded past the end, or
            None when not playing
        """
        if not self.is_playing:
            return None

        buffer = self.buffer
        source = self._cursor + np.arange(frames) * self.playback_rate
        audible = source < self._end_frame - _FRAME_EPSILON
        block = np.zeros((buffer.channel_count, frames), dtype=np.float64)

        if audible.any():
            grid = np.arange(buffer.frame_count)
            for ch in range(buffer.channel_count):
                block[ch, audible] = np.interp(source[audible], grid, buffer.channels[ch])
            block *= self.applied_gain

        self._cursor = min(self._cursor + frames * self.playback_rate, self._end_frame)

        if self.on_position is not None:
            self.on_position(self.position)

        if self._cursor >= self._end_frame - _FRAME_EPSILON:
            self.state = PlaybackState.STOPPED
            if not self._finished_emitted:
                self._finished_emitted = True
                logger.info("playback_finished", position=self.position)
                if self.on_finished is not None:
                    self.on_finished()

        return block.astype(np.float32)

    def set_master_volume(self, volume: float) -> float:
        """
        Set the master volume.

        The value is clamped to [0, 1]; the gain applied to output blocks
        is its square.
        """
        self.master_volume = float(np.clip(volume, 0.0, 1.0))
        self.applied_gain = self.master_volume ** 2
        logger.debug("master_volume_changed", volume=self.master_volume, gain=self.applied_gain)
        return self.master_volume

    def set_playback_rate(self, rate: float) -> float:
        """Set the playback rate, clamped to [0.25, 4.0]."""
        self.playback_rate = float(np.clip(rate, self.MIN_RATE, self.MAX_RATE))
        logger.debug("playback_rate_changed", rate=self.playback_rate)
        return self.playback_rate

    def get_state(self) -> Dict:
        return {
            "state": self.state.value,
            "position": self.position,
            "end": self.end_position,
            "rate": self.playback_rate,
            "master_volume": self.master_volume,
        }

"""
Audio mixer for rendering the project's tracks to one stereo buffer.
"""

import math
from typing import TYPE_CHECKING, Iterable, List, Optional

import numpy as np

from sonedit.core.config import settings
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer, match_channels

if TYPE_CHECKING:
    from sonedit.editing.registry import Track

logger = get_logger(__name__)


def pan_gains(pan: float) -> tuple[float, float]:
    """Linear pan law: -1 is hard left, 0 centre, 1 hard right."""
    pan = float(np.clip(pan, -1.0, 1.0))
    return 1.0 - max(pan, 0.0), 1.0 + min(pan, 0.0)


def resample_linear(buffer: SampleBuffer, sample_rate: int) -> np.ndarray:
    """Resample a buffer's channels to ``sample_rate`` by linear interpolation."""
    if buffer.sample_rate == sample_rate or buffer.frame_count == 0:
        return buffer.channels.astype(np.float64)

    new_length = int(math.floor(buffer.frame_count * sample_rate / buffer.sample_rate))
    positions = np.arange(new_length) * (buffer.sample_rate / sample_rate)
    grid = np.arange(buffer.frame_count)
    return np.array([np.interp(positions, grid, ch) for ch in buffer.channels])


class AudioMixer:
    """
    Multi-track mixer.

    Track volume, pan, mute and solo are applied at mix time only; the
    tracks' buffers are never modified.
    """

    def __init__(self, sample_rate: Optional[int] = None):
        """
        Initialize audio mixer.

        Args:
            sample_rate: Output sample rate in Hz (defaults to settings)
        """
        self.sample_rate = sample_rate or settings.sample_rate

    def audible_tracks(self, tracks: Iterable["Track"]) -> List["Track"]:
        """Tracks that contribute to the mix given mute and solo flags."""
        tracks = list(tracks)
        has_solo = any(track.solo for track in tracks)
        return [
            track for track in tracks
            if not track.muted and (track.solo or not has_solo)
        ]

    def mixdown(self, tracks: Iterable["Track"]) -> SampleBuffer:
        """
        Render tracks to a stereo buffer.

        Args:
            tracks: Tracks in display order

        Returns:
            Stereo buffer as long as the longest audible track
        """
        rendered = []
        for track in self.audible_tracks(tracks):
            data = match_channels(resample_linear(track.buffer, self.sample_rate), 2)
            left, right = pan_gains(track.pan)
            gains = np.array([[left], [right]]) * track.volume
            rendered.append(data * gains)

        length = max((part.shape[1] for part in rendered), default=0)
        output = np.zeros((2, length))
        for part in rendered:
            output[:, :part.shape[1]] += part

        peak = float(np.max(np.abs(output))) if output.size else 0.0
        if peak > 1.0:
            output = np.clip(output, -1.0, 1.0)
            logger.warning("mix_clipped", peak=peak)

        logger.info(
            "mixdown_rendered",
            tracks=len(rendered),
            frames=length,
            sample_rate=self.sample_rate
        )
        return SampleBuffer(output, self.sample_rate)


def mixdown(tracks: Iterable["Track"], sample_rate: Optional[int] = None) -> SampleBuffer:
    """Render tracks to stereo at the given (or configured) sample rate."""
    return AudioMixer(sample_rate=sample_rate).mixdown(tracks)

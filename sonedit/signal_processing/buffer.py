"""
In-memory multi-channel sample buffer and its copy-based editing primitives.

Every editing operation here borrows its input and returns a new buffer, so a
buffer held by a track or by an undo snapshot is never written behind its
owner's back. Buffers committed to a track are frozen (read-only arrays);
``SampleBuffer.copy()`` is the only way to get a writable duplicate.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from sonedit.core.exceptions import DecodeFailure, InvalidParameter, InvalidRange
from sonedit.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(eq=False)
class SampleBuffer:
    """
    Multi-channel 32-bit float audio.

    Samples are stored as a single array of shape (channel_count, frame_count),
    which keeps every channel the same length by construction.
    """
    channels: NDArray[np.float32]
    sample_rate: int

    def __post_init__(self) -> None:
        self.channels = np.asarray(self.channels, dtype=np.float32)

        if self.channels.ndim != 2 or self.channels.shape[0] < 1:
            raise InvalidParameter(
                f"Sample data must have shape (channels, frames), got {self.channels.shape}"
            )
        if self.sample_rate <= 0:
            raise InvalidParameter(f"Sample rate must be positive, got {self.sample_rate}")
        if not np.all(np.isfinite(self.channels)):
            raise InvalidParameter("Sample data contains non-finite values")

    @classmethod
    def from_channels(
        cls,
        channels: Sequence[NDArray],
        sample_rate: int
    ) -> "SampleBuffer":
        """
        Build a buffer from decoded per-channel arrays.

        The arrays are copied, so the caller keeps ownership of its input.

        Raises:
            DecodeFailure: if there are no channels, lengths differ or any
                sample is not finite
        """
        if len(channels) == 0:
            raise DecodeFailure("Decoded audio has no channels")

        lengths = {len(channel) for channel in channels}
        if len(lengths) != 1:
            raise DecodeFailure(f"Decoded channels have different lengths: {sorted(lengths)}")

        data = np.array([np.asarray(channel, dtype=np.float32) for channel in channels])
        if not np.all(np.isfinite(data)):
            raise DecodeFailure("Decoded audio contains non-finite samples")

        return cls(data, int(sample_rate))

    @classmethod
    def silence(
        cls,
        duration: float,
        sample_rate: int,
        channel_count: int = 1
    ) -> "SampleBuffer":
        """Create a zero-filled buffer of floor(duration * sample_rate) frames."""
        frames = seconds_to_frames(duration, sample_rate)
        return cls(np.zeros((channel_count, frames), dtype=np.float32), sample_rate)

    @property
    def channel_count(self) -> int:
        return self.channels.shape[0]

    @property
    def frame_count(self) -> int:
        return self.channels.shape[1]

    @property
    def duration(self) -> float:
        """Length in seconds."""
        return self.frame_count / self.sample_rate

    @property
    def is_frozen(self) -> bool:
        return not self.channels.flags.writeable

    def channel(self, index: int) -> NDArray[np.float32]:
        """Return one channel's samples (a view)."""
        return self.channels[index]

    def copy(self) -> "SampleBuffer":
        """Element-for-element duplicate with its own, writable storage."""
        return SampleBuffer(self.channels.copy(), self.sample_rate)

    def freeze(self) -> "SampleBuffer":
        """Mark the sample array read-only; returns self for chaining."""
        self.channels.flags.writeable = False
        return self

    def __repr__(self) -> str:
        return (
            f"SampleBuffer(channels={self.channel_count}, frames={self.frame_count}, "
            f"sample_rate={self.sample_rate})"
        )


def seconds_to_frames(seconds: float, sample_rate: int) -> int:
    """Convert a time in seconds to a frame index (floor)."""
    if seconds < 0:
        raise InvalidParameter(f"Duration must not be negative, got {seconds}")
    return int(math.floor(seconds * sample_rate))


def copy_buffer(buffer: SampleBuffer) -> SampleBuffer:
    """Duplicate a buffer; mutating the result never changes the source."""
    return buffer.copy()


def range_to_frames(buffer: SampleBuffer, start_sec: float, end_sec: float) -> tuple[int, int]:
    """Validate a [start, end) range and map it to frame indices within the buffer."""
    if start_sec < 0:
        raise InvalidRange(f"Range start must not be negative, got {start_sec}")
    if end_sec < start_sec:
        raise InvalidRange(f"Range end {end_sec} is before start {start_sec}")

    start = min(int(math.floor(start_sec * buffer.sample_rate)), buffer.frame_count)
    end = min(int(math.floor(end_sec * buffer.sample_rate)), buffer.frame_count)
    return start, end


def extract_range(buffer: SampleBuffer, start_sec: float, end_sec: float) -> SampleBuffer:
    """
    Copy the frames covering [start_sec, end_sec) into a new buffer.

    Raises:
        InvalidRange: if start is negative or end is before start
    """
    start, end = range_to_frames(buffer, start_sec, end_sec)
    return SampleBuffer(buffer.channels[:, start:end].copy(), buffer.sample_rate)


def splice_out(buffer: SampleBuffer, start_sec: float, end_sec: float) -> SampleBuffer:
    """
    Return a new buffer with the frames in [start_sec, end_sec) removed.

    Raises:
        InvalidRange: if start is negative or end is before start
    """
    start, end = range_to_frames(buffer, start_sec, end_sec)
    data = np.concatenate(
        [buffer.channels[:, :start], buffer.channels[:, end:]],
        axis=1
    )
    return SampleBuffer(data, buffer.sample_rate)


def match_channels(data: NDArray[np.float32], channel_count: int) -> NDArray[np.float32]:
    """
    Adapt (channels, frames) data to a different channel count.

    Down-mixing to mono averages; otherwise source channels are reused
    cyclically (mono clips are duplicated to every channel).
    """
    if data.shape[0] == channel_count:
        return data
    if channel_count == 1:
        return data.mean(axis=0, keepdims=True)
    indices = np.arange(channel_count) % data.shape[0]
    return data[indices]


def insert(buffer: SampleBuffer, clip: SampleBuffer, at_sec: float) -> SampleBuffer:
    """
    Return a new buffer with ``clip`` inserted at ``at_sec``.

    Positions past the end append the clip.

    Raises:
        InvalidRange: if the position is negative
        InvalidParameter: if the sample rates differ
    """
    if at_sec < 0:
        raise InvalidRange(f"Insert position must not be negative, got {at_sec}")
    if clip.sample_rate != buffer.sample_rate:
        raise InvalidParameter(
            f"Cannot insert {clip.sample_rate} Hz audio into a {buffer.sample_rate} Hz buffer"
        )

    position = min(int(math.floor(at_sec * buffer.sample_rate)), buffer.frame_count)
    clip_data = match_channels(clip.channels, buffer.channel_count)
    data = np.concatenate(
        [buffer.channels[:, :position], clip_data, buffer.channels[:, position:]],
        axis=1
    )
    return SampleBuffer(data, buffer.sample_rate)


def concatenate(
    chunks_per_channel: Sequence[Sequence[NDArray[np.float32]]],
    sample_rate: int
) -> SampleBuffer:
    """
    Join per-channel chunk lists, in order, into one buffer.

    Args:
        chunks_per_channel: One list of 1-D chunks per channel
        sample_rate: Sample rate of the chunks
    """
    channels = [
        np.concatenate(chunks).astype(np.float32, copy=False)
        if len(chunks) > 0 else np.zeros(0, dtype=np.float32)
        for chunks in chunks_per_channel
    ]
    return SampleBuffer(np.stack(channels), sample_rate)


def to_interleaved(buffer: SampleBuffer) -> NDArray[np.float32]:
    """Frame-major (frames, channels) view of the samples."""
    return buffer.channels.T

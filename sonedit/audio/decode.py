"""
Decoding audio files into sample buffers.
"""

import io
from pathlib import Path
from typing import Union

import numpy as np
import soundfile as sf

from sonedit.core.exceptions import DecodeFailure
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer

logger = get_logger(__name__)

AudioSource = Union[bytes, bytearray, str, Path]


def decode_audio(source: AudioSource) -> SampleBuffer:
    """
    Decode a file (path or raw bytes) in any format libsndfile reads.

    Args:
        source: File path or the file's bytes

    Returns:
        Decoded buffer in 32-bit float

    Raises:
        DecodeFailure: if the data cannot be decoded or holds no audio
    """
    if isinstance(source, (bytes, bytearray)):
        if len(source) == 0:
            raise DecodeFailure("Audio data is empty")
        handle = io.BytesIO(bytes(source))
        label = f"<{len(source)} bytes>"
    else:
        handle = str(source)
        label = handle

    try:
        data, sample_rate = sf.read(handle, dtype='float32', always_2d=True)
    except (RuntimeError, OSError, TypeError) as e:
        logger.warning("audio_decode_failed", source=label, error=str(e))
        raise DecodeFailure(f"Could not decode audio: {e}") from e

    if data.shape[0] == 0:
        raise DecodeFailure("Decoded audio contains no frames")

    buffer = SampleBuffer.from_channels(list(np.ascontiguousarray(data.T)), sample_rate)
    logger.info(
        "audio_decoded",
        source=label,
        channels=buffer.channel_count,
        frames=buffer.frame_count,
        sample_rate=sample_rate
    )
    return buffer

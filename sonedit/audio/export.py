"""
Encoding sample buffers to downloadable bytes.

WAV is written through libsndfile as canonical 16-bit PCM: a 44-byte RIFF
header followed by interleaved little-endian samples. Other allow-listed
formats have no true encoder yet; they return WAV bytes tagged with the
requested format and are marked ``is_placeholder``. ``register_encoder``
swaps in a real encoder without changing what callers see.
"""

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, NamedTuple, Optional

import numpy as np
import soundfile as sf

from sonedit.core.config import settings
from sonedit.core.exceptions import DecodeFailure, UnsupportedFormat
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer, to_interleaved

logger = get_logger(__name__)

MIME_TYPES: Dict[str, str] = {
    "wav": "audio/wav",
    "mp3": "audio/mpeg",
    "flac": "audio/flac",
    "ogg": "audio/ogg",
}

WAV_HEADER_SIZE = 44

# libsndfile subtype -> (bits per sample, WAVE format tag)
_SUBTYPE_LAYOUT = {
    "PCM_U8": (8, 1),
    "PCM_16": (16, 1),
    "PCM_24": (24, 1),
    "PCM_32": (32, 1),
    "FLOAT": (32, 3),
    "DOUBLE": (64, 3),
}


class WavHeader(NamedTuple):
    channel_count: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int
    format_tag: int


@dataclass(frozen=True)
class ExportedAudio:
    """Encoded bytes plus the label the caller asked for."""
    data: bytes
    format: str
    mime_type: str
    is_placeholder: bool = False

    def __len__(self) -> int:
        return len(self.data)


def pcm16(buffer: SampleBuffer) -> np.ndarray:
    """Interleaved int16 samples: round(clamp(s, -1, 1) * 32767)."""
    interleaved = to_interleaved(buffer).astype(np.float64)
    return np.round(np.clip(interleaved, -1.0, 1.0) * 32767).astype('<i2')


def encode_wav(buffer: SampleBuffer) -> bytes:
    """Encode a buffer as a canonical 16-bit PCM WAV file."""
    frames = pcm16(buffer).reshape(buffer.frame_count, buffer.channel_count)
    output = io.BytesIO()
    sf.write(output, frames, buffer.sample_rate, format="WAV", subtype="PCM_16")
    return output.getvalue()


def read_wav_header(data: bytes) -> WavHeader:
    """
    Describe the stream layout of WAV bytes such as those from ``encode_wav``.

    Raises:
        DecodeFailure: if the bytes are not a PCM or float WAV file
    """
    if len(data) < WAV_HEADER_SIZE:
        raise DecodeFailure(f"WAV data too short: {len(data)} bytes")

    try:
        info = sf.info(io.BytesIO(bytes(data)))
    except (RuntimeError, OSError, TypeError) as e:
        raise DecodeFailure(f"Not a RIFF/WAVE file: {e}") from e

    if info.format != "WAV" or info.subtype not in _SUBTYPE_LAYOUT:
        raise DecodeFailure(f"Unsupported WAV layout: {info.format}/{info.subtype}")

    bits, format_tag = _SUBTYPE_LAYOUT[info.subtype]
    block_align = info.channels * (bits // 8)
    return WavHeader(
        channel_count=info.channels,
        sample_rate=info.samplerate,
        byte_rate=info.samplerate * block_align,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=info.frames * block_align,
        format_tag=format_tag,
    )


class Encoder(ABC):
    """Turns a buffer into file bytes."""

    is_placeholder: bool = False

    @abstractmethod
    def encode(self, buffer: SampleBuffer) -> bytes:
        pass


class WavEncoder(Encoder):
    def encode(self, buffer: SampleBuffer) -> bytes:
        return encode_wav(buffer)


class PlaceholderEncoder(Encoder):
    """Stands in for a missing codec by returning WAV bytes."""

    is_placeholder = True

    def __init__(self, label: str):
        self.label = label

    def encode(self, buffer: SampleBuffer) -> bytes:
        logger.warning("placeholder_encoder_used", format=self.label)
        return encode_wav(buffer)


_ENCODERS: Dict[str, Encoder] = {
    "wav": WavEncoder(),
    "mp3": PlaceholderEncoder("mp3"),
    "flac": PlaceholderEncoder("flac"),
    "ogg": PlaceholderEncoder("ogg"),
}


def supported_formats() -> list[str]:
    """Allow-listed formats that have an encoder (placeholder or real)."""
    return [fmt for fmt in settings.export_formats if fmt.lower() in _ENCODERS]


def register_encoder(fmt: str, encoder: Encoder, mime_type: Optional[str] = None) -> None:
    """Install or replace the encoder for a format."""
    key = fmt.lower()
    _ENCODERS[key] = encoder
    if mime_type is not None:
        MIME_TYPES[key] = mime_type
    logger.info("encoder_registered", format=key, encoder=type(encoder).__name__)


def get_encoder(fmt: str) -> Encoder:
    """
    Resolve a format label to its encoder.

    Raises:
        UnsupportedFormat: if the format is not allow-listed
    """
    key = str(fmt).lower()
    allowed = {f.lower() for f in settings.export_formats}
    if key not in allowed or key not in _ENCODERS:
        raise UnsupportedFormat(f"Export format '{fmt}' is not supported")
    return _ENCODERS[key]


def export_buffer(buffer: SampleBuffer, fmt: str = "wav") -> ExportedAudio:
    """
    Encode a buffer in the requested format.

    Raises:
        UnsupportedFormat: if the format is not allow-listed
    """
    encoder = get_encoder(fmt)
    key = str(fmt).lower()
    data = encoder.encode(buffer)

    logger.info(
        "buffer_exported",
        format=key,
        bytes=len(data),
        frames=buffer.frame_count,
        placeholder=encoder.is_placeholder
    )
    return ExportedAudio(
        data=data,
        format=key,
        mime_type=MIME_TYPES.get(key, "application/octet-stream"),
        is_placeholder=encoder.is_placeholder,
    )

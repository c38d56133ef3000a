"""
Read-only analysis of sample buffers.

Provides:
- Waveform peaks for rendering
- Level metering (peak, RMS, dBFS)
- Zero-crossing rate
- Power spectrum, peak frequency and spectral centroid
"""

from typing import List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy import signal

from sonedit.core.config import settings
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer

logger = get_logger(__name__)

# Level reported for digital silence
MIN_DECIBELS = -120.0


def waveform_peaks(
    buffer: SampleBuffer,
    samples_per_peak: Optional[int] = None
) -> List[Tuple[NDArray[np.float32], NDArray[np.float32]]]:
    """
    Compute min/max pairs per bucket for drawing a waveform overview.

    Buckets that never cross zero report 0 for the missing side, so a
    positive-only bucket has min 0.

    Args:
        buffer: Buffer to summarize
        samples_per_peak: Frames per bucket (defaults to settings)

    Returns:
        One (mins, maxs) pair of arrays per channel
    """
    samples_per_peak = samples_per_peak or settings.waveform_samples_per_peak
    n_buckets = -(-buffer.frame_count // samples_per_peak)
    padded_length = n_buckets * samples_per_peak

    peaks = []
    for channel in buffer.channels:
        padded = np.zeros(padded_length, dtype=np.float32)
        padded[:len(channel)] = channel
        buckets = padded.reshape(n_buckets, samples_per_peak)
        mins = np.minimum(buckets.min(axis=1), 0.0)
        maxs = np.maximum(buckets.max(axis=1), 0.0)
        peaks.append((mins, maxs))

    return peaks


def peak_level(buffer: SampleBuffer) -> float:
    """Largest absolute sample across all channels."""
    if buffer.frame_count == 0:
        return 0.0
    return float(np.max(np.abs(buffer.channels)))


def rms_level(buffer: SampleBuffer) -> float:
    """Root-mean-square level across all channels."""
    if buffer.frame_count == 0:
        return 0.0
    return float(np.sqrt(np.mean(buffer.channels.astype(np.float64) ** 2)))


def to_decibels(level: float) -> float:
    """Convert a linear level to dBFS, floored at MIN_DECIBELS."""
    if level <= 0:
        return MIN_DECIBELS
    return max(MIN_DECIBELS, 20.0 * float(np.log10(level)))


def zero_crossing_rate(buffer: SampleBuffer) -> float:
    """Fraction of adjacent sample pairs (first channel) whose sign differs."""
    data = buffer.channels[0]
    if len(data) < 2:
        return 0.0
    crossings = np.count_nonzero(np.signbit(data[1:]) != np.signbit(data[:-1]))
    return crossings / (len(data) - 1)


def spectrum(
    buffer: SampleBuffer,
    fft_size: int = 2048
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Estimate the power spectrum of the mono mix with Welch's method.

    Returns:
        (frequencies in Hz, power spectral density)
    """
    mono = buffer.channels.mean(axis=0)
    if len(mono) == 0:
        return np.zeros(0), np.zeros(0)

    nperseg = min(fft_size, len(mono))
    freqs, psd = signal.welch(mono, fs=buffer.sample_rate, nperseg=nperseg)
    return freqs, psd


def peak_frequency(buffer: SampleBuffer, fft_size: int = 2048) -> float:
    """Frequency bin with the most power."""
    freqs, psd = spectrum(buffer, fft_size)
    if len(psd) == 0:
        return 0.0
    return float(freqs[int(np.argmax(psd))])


def spectral_centroid(buffer: SampleBuffer, fft_size: int = 2048) -> float:
    """Power-weighted mean frequency."""
    freqs, psd = spectrum(buffer, fft_size)
    total = float(np.sum(psd))
    if total == 0:
        return 0.0
    return float(np.sum(freqs * psd) / total)

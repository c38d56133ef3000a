"""
Signal generators that create new sample buffers (tone, noise, silence, chirp, DTMF).
"""

from typing import Dict, Literal, Optional, Tuple

import numpy as np
from scipy import signal

from sonedit.core.config import settings
from sonedit.core.exceptions import InvalidParameter
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer, seconds_to_frames

logger = get_logger(__name__)

Waveform = Literal["sine", "square", "sawtooth", "triangle"]
NoiseType = Literal["white", "pink"]

# Row/column frequency pairs of the telephone keypad
DTMF_FREQUENCIES: Dict[str, Tuple[float, float]] = {
    '1': (697.0, 1209.0), '2': (697.0, 1336.0), '3': (697.0, 1477.0), 'A': (697.0, 1633.0),
    '4': (770.0, 1209.0), '5': (770.0, 1336.0), '6': (770.0, 1477.0), 'B': (770.0, 1633.0),
    '7': (852.0, 1209.0), '8': (852.0, 1336.0), '9': (852.0, 1477.0), 'C': (852.0, 1633.0),
    '*': (941.0, 1209.0), '0': (941.0, 1336.0), '#': (941.0, 1477.0), 'D': (941.0, 1633.0),
}


def _time_axis(duration: float, sample_rate: int) -> np.ndarray:
    frames = seconds_to_frames(duration, sample_rate)
    return np.arange(frames) / sample_rate


def _mono(samples: np.ndarray, sample_rate: int) -> SampleBuffer:
    return SampleBuffer(samples.astype(np.float32)[np.newaxis, :], sample_rate)


def generate_tone(
    frequency: float,
    duration: float,
    amplitude: float = 0.5,
    waveform: Waveform = "sine",
    sample_rate: Optional[int] = None
) -> SampleBuffer:
    """
    Generate a mono periodic tone.

    Args:
        frequency: Frequency in Hz
        duration: Duration in seconds
        amplitude: Peak amplitude (0-1)
        waveform: 'sine', 'square', 'sawtooth' or 'triangle'
        sample_rate: Sample rate (defaults to settings)

    Returns:
        Generated buffer
    """
    sample_rate = sample_rate or settings.sample_rate
    if frequency <= 0:
        raise InvalidParameter(f"Tone frequency must be positive, got {frequency}")

    t = _time_axis(duration, sample_rate)
    phase = t * frequency

    if waveform == "sine":
        samples = np.sin(2 * np.pi * phase)
    elif waveform == "square":
        samples = np.where(np.sin(2 * np.pi * phase) > 0, 1.0, -1.0)
    elif waveform == "sawtooth":
        samples = 2 * (phase - np.floor(phase + 0.5))
    elif waveform == "triangle":
        samples = 2 * np.abs(2 * (phase - np.floor(phase + 0.5))) - 1
    else:
        raise InvalidParameter(f"Unknown waveform: {waveform}")

    logger.debug("tone_generated", frequency=frequency, duration=duration, waveform=waveform)
    return _mono(samples * amplitude, sample_rate)


def generate_noise(
    duration: float,
    amplitude: float = 0.1,
    noise_type: NoiseType = "white",
    sample_rate: Optional[int] = None,
    seed: Optional[int] = None
) -> SampleBuffer:
    """
    Generate mono white or pink noise.

    Pink noise uses Paul Kellet's economy filter bank over white noise.
    """
    sample_rate = sample_rate or settings.sample_rate
    frames = seconds_to_frames(duration, sample_rate)
    rng = np.random.default_rng(seed)
    white = rng.uniform(-1.0, 1.0, frames)

    if noise_type == "white":
        samples = white * amplitude
    elif noise_type == "pink":
        poles = [0.99886, 0.99332, 0.969, 0.8665, 0.55, -0.7616]
        gains = [0.0555179, 0.0750759, 0.153852, 0.3104856, 0.5329522, -0.016898]
        pink = white * 0.5362
        for pole, gain in zip(poles, gains):
            pink += signal.lfilter([gain], [1.0, -pole], white)
        # b6 term: previous white sample
        pink[1:] += white[:-1] * 0.115926
        samples = pink * amplitude * 0.11
    else:
        raise InvalidParameter(f"Unknown noise type: {noise_type}")

    return _mono(samples, sample_rate)


def generate_silence(
    duration: float,
    sample_rate: Optional[int] = None,
    channel_count: int = 1
) -> SampleBuffer:
    """Generate a zero-filled buffer."""
    return SampleBuffer.silence(duration, sample_rate or settings.sample_rate, channel_count)


def generate_chirp(
    start_freq: float,
    end_freq: float,
    duration: float,
    amplitude: float = 0.5,
    sample_rate: Optional[int] = None
) -> SampleBuffer:
    """Generate a linear frequency sweep from start_freq to end_freq."""
    sample_rate = sample_rate or settings.sample_rate
    t = _time_axis(duration, sample_rate)
    if len(t) == 0:
        return _mono(t, sample_rate)

    samples = signal.chirp(t, f0=start_freq, t1=max(duration, 1.0 / sample_rate),
                           f1=end_freq, method='linear', phi=-90)
    return _mono(samples * amplitude, sample_rate)


def generate_dtmf(
    digit: str,
    duration: float,
    amplitude: float = 0.5,
    sample_rate: Optional[int] = None
) -> SampleBuffer:
    """Generate the dual tone for a telephone keypad digit."""
    sample_rate = sample_rate or settings.sample_rate
    key = str(digit).upper()
    if key not in DTMF_FREQUENCIES:
        raise InvalidParameter(f"Unknown DTMF digit: {digit}")

    low, high = DTMF_FREQUENCIES[key]
    t = _time_axis(duration, sample_rate)
    samples = 0.5 * (np.sin(2 * np.pi * low * t) + np.sin(2 * np.pi * high * t))
    return _mono(samples * amplitude, sample_rate)

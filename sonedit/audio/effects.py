"""
Destructive audio effects applied to whole sample buffers.

Each effect type in the closed ``EffectType`` catalog has one class with a
typed constructor and a parameter table (``PARAMETERS``). The table is the
single source of truth for validation and for the ranges a UI may offer.
Effects borrow their input buffer and always return a new one (or the input
itself when the parameters make the effect an identity).
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Tuple, Type

import numpy as np
from scipy import signal

from sonedit.core.exceptions import InvalidParameter
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer

logger = get_logger(__name__)


class EffectType(str, Enum):
    """Closed catalog of effects."""
    AMPLIFY = "amplify"
    NORMALIZE = "normalize"
    FADE_IN = "fade_in"
    FADE_OUT = "fade_out"
    ECHO = "echo"
    REVERB = "reverb"
    CHANGE_SPEED = "change_speed"
    CHANGE_PITCH = "change_pitch"
    HIGH_PASS = "high_pass"
    LOW_PASS = "low_pass"
    NOISE_REDUCTION = "noise_reduction"
    COMPRESSOR = "compressor"
    DISTORTION = "distortion"

    @classmethod
    def parse(cls, name: Any) -> Optional["EffectType"]:
        """Look up a catalog entry by value; None for unknown names."""
        if isinstance(name, EffectType):
            return name
        try:
            return cls(str(name))
        except ValueError:
            return None


@dataclass(frozen=True)
class ParameterSpec:
    """Declared range of one effect parameter."""
    name: str
    min: float
    max: float
    default: float
    step: float
    unit: str = ""
    integer: bool = False

    def validate(self, value: Any) -> float:
        """
        Check a user-supplied value against the declared range.

        Raises:
            InvalidParameter: for non-numeric, non-finite, fractional
                integer or out-of-range values
        """
        if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
            raise InvalidParameter(f"Parameter '{self.name}' must be a number, got {value!r}")

        value = float(value)
        if not math.isfinite(value):
            raise InvalidParameter(f"Parameter '{self.name}' must be finite")
        if value < self.min or value > self.max:
            raise InvalidParameter(
                f"Parameter '{self.name}'={value} is outside [{self.min}, {self.max}]"
            )
        if self.integer:
            if not value.is_integer():
                raise InvalidParameter(f"Parameter '{self.name}' must be a whole number")
            return int(value)
        return value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "min": self.min,
            "max": self.max,
            "default": self.default,
            "step": self.step,
            "unit": self.unit,
        }


def _as_float64(buffer: SampleBuffer) -> np.ndarray:
    """Working copy of the samples in double precision."""
    return buffer.channels.astype(np.float64)


def _amplify(buffer: SampleBuffer, gain: float) -> SampleBuffer:
    return SampleBuffer(np.clip(_as_float64(buffer) * gain, -1.0, 1.0), buffer.sample_rate)


class EffectBase(ABC):
    """Base class for audio effects."""

    effect_type: ClassVar[EffectType]
    display_name: ClassVar[str]
    description: ClassVar[str] = ""
    PARAMETERS: ClassVar[Tuple[ParameterSpec, ...]] = ()

    def __init__(self, **params: Any) -> None:
        """
        Validate and store parameters.

        Args:
            **params: Parameter values keyed by their declared names

        Raises:
            InvalidParameter: for unknown names or out-of-range values
        """
        self.params = self.validate_parameters(params)

    @classmethod
    def validate_parameters(cls, params: Mapping[str, Any]) -> Dict[str, Any]:
        """Return the full parameter set, filling defaults for missing names."""
        declared = {spec.name: spec for spec in cls.PARAMETERS}
        unknown = set(params) - set(declared)
        if unknown:
            raise InvalidParameter(
                f"Unknown parameter(s) for {cls.effect_type.value}: {sorted(unknown)}"
            )

        validated = {}
        for name, spec in declared.items():
            value = params.get(name)
            if value is None:
                validated[name] = int(spec.default) if spec.integer else spec.default
            else:
                validated[name] = spec.validate(value)
        return validated

    @classmethod
    def parameter_table(cls) -> List[Dict[str, Any]]:
        return [spec.to_dict() for spec in cls.PARAMETERS]

    def process(self, buffer: SampleBuffer) -> SampleBuffer:
        """
        Apply the effect.

        Args:
            buffer: Input buffer (never modified)

        Returns:
            Processed buffer
        """
        output = self._process(buffer)
        logger.debug(
            "effect_processed",
            effect=self.effect_type.value,
            params=self.params,
            frames_in=buffer.frame_count,
            frames_out=output.frame_count
        )
        return output

    @abstractmethod
    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.params})"


class AmplifyEffect(EffectBase):
    """Multiply every sample by a gain and clamp to [-1, 1]."""

    effect_type = EffectType.AMPLIFY
    display_name = "Amplify"
    description = "Scale amplitude by a constant gain"
    PARAMETERS = (
        ParameterSpec("gain", 0.0, 10.0, 1.0, 0.1, "x"),
    )

    def __init__(self, gain: float = None):
        super().__init__(gain=gain)
        self.gain = self.params["gain"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        return _amplify(buffer, self.gain)


class NormalizeEffect(EffectBase):
    """Scale so the loudest sample across all channels hits the target peak."""

    effect_type = EffectType.NORMALIZE
    display_name = "Normalize"
    description = "Scale to a target peak level"
    PARAMETERS = (
        ParameterSpec("target_peak", 0.1, 1.0, 0.95, 0.01),
    )

    def __init__(self, target_peak: float = None):
        super().__init__(target_peak=target_peak)
        self.target_peak = self.params["target_peak"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        peak = float(np.max(np.abs(buffer.channels))) if buffer.frame_count else 0.0
        if peak == 0:
            return buffer
        return _amplify(buffer, self.target_peak / peak)


def _fade_length(buffer: SampleBuffer, duration: float) -> int:
    return min(int(math.floor(duration * buffer.sample_rate)), buffer.frame_count)


class FadeInEffect(EffectBase):
    """Linear ramp from silence over the first ``duration`` seconds."""

    effect_type = EffectType.FADE_IN
    display_name = "Fade In"
    description = "Linear fade from silence"
    PARAMETERS = (
        ParameterSpec("duration", 0.1, 10.0, 1.0, 0.1, "s"),
    )

    def __init__(self, duration: float = None):
        super().__init__(duration=duration)
        self.duration = self.params["duration"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        data = _as_float64(buffer)
        n = _fade_length(buffer, self.duration)
        if n > 0:
            data[:, :n] *= np.arange(n) / n
        return SampleBuffer(data, buffer.sample_rate)


class FadeOutEffect(EffectBase):
    """Linear ramp to silence over the last ``duration`` seconds."""

    effect_type = EffectType.FADE_OUT
    display_name = "Fade Out"
    description = "Linear fade to silence"
    PARAMETERS = (
        ParameterSpec("duration", 0.1, 10.0, 1.0, 0.1, "s"),
    )

    def __init__(self, duration: float = None):
        super().__init__(duration=duration)
        self.duration = self.params["duration"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        data = _as_float64(buffer)
        n = _fade_length(buffer, self.duration)
        if n > 0:
            data[:, buffer.frame_count - n:] *= 1.0 - np.arange(n) / n
        return SampleBuffer(data, buffer.sample_rate)


class EchoEffect(EffectBase):
    """
    Repeating echo with geometric decay.

    The output is extended by ``repeat`` delay periods so the tail is kept.
    """

    effect_type = EffectType.ECHO
    display_name = "Echo"
    description = "Decaying repeats of the signal"
    PARAMETERS = (
        ParameterSpec("delay", 0.01, 2.0, 0.3, 0.01, "s"),
        ParameterSpec("decay", 0.1, 0.9, 0.5, 0.01),
        ParameterSpec("repeat", 1, 10, 3, 1, integer=True),
    )

    def __init__(self, delay: float = None, decay: float = None, repeat: int = None):
        super().__init__(delay=delay, decay=decay, repeat=repeat)
        self.delay = self.params["delay"]
        self.decay = self.params["decay"]
        self.repeat = self.params["repeat"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        delay_samples = int(math.floor(self.delay * buffer.sample_rate))
        frames = buffer.frame_count
        source = _as_float64(buffer)

        output = np.zeros((buffer.channel_count, frames + delay_samples * self.repeat))
        output[:, :frames] = source

        for r in range(1, self.repeat + 1):
            start = r * delay_samples
            output[:, start:start + frames] += source * self.decay ** r

        return SampleBuffer(output, buffer.sample_rate)


def _feedback_comb(x: np.ndarray, delay: int, feedback: float) -> np.ndarray:
    """
    Run w[n] = x[n] + feedback * w[n - delay] with zeroed state.

    Processed one delay period at a time; each block only depends on the
    previous, already finished block.
    """
    w = x.copy()
    for start in range(delay, len(x), delay):
        end = min(start + delay, len(x))
        w[start:end] += feedback * w[start - delay:end - delay]
    return w


class ReverbEffect(EffectBase):
    """
    Reverb from a bank of feedback delay lines.

    Six lines of 30-130 ms, each fed back by ``room_size * damping``. The
    averaged line outputs are mixed with the dry signal by ``wet_level``.
    Line state starts empty for every channel.
    """

    effect_type = EffectType.REVERB
    display_name = "Reverb"
    description = "Spatial ambience"
    PARAMETERS = (
        ParameterSpec("room_size", 0.1, 1.0, 0.7, 0.01),
        ParameterSpec("damping", 0.1, 1.0, 0.5, 0.01),
        ParameterSpec("wet_level", 0.0, 1.0, 0.3, 0.01),
    )

    DELAY_TIMES = (0.03, 0.05, 0.07, 0.09, 0.11, 0.13)

    def __init__(self, room_size: float = None, damping: float = None, wet_level: float = None):
        super().__init__(room_size=room_size, damping=damping, wet_level=wet_level)
        self.room_size = self.params["room_size"]
        self.damping = self.params["damping"]
        self.wet_level = self.params["wet_level"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        feedback = self.room_size * self.damping
        delays = [int(math.floor(t * buffer.sample_rate)) for t in self.DELAY_TIMES]
        dry = _as_float64(buffer)
        output = np.empty_like(dry)

        for ch, x in enumerate(dry):
            reverb_sum = np.zeros_like(x)
            for delay in delays:
                if delay == 0 or delay >= len(x):
                    continue
                line = _feedback_comb(x, delay, feedback)
                reverb_sum[delay:] += line[:-delay]

            wet = reverb_sum / len(delays)
            output[ch] = x * (1 - self.wet_level) + wet * self.wet_level

        return SampleBuffer(output, buffer.sample_rate)


class ChangeSpeedEffect(EffectBase):
    """Resample by linear interpolation; changes both tempo and pitch."""

    effect_type = EffectType.CHANGE_SPEED
    display_name = "Change Speed"
    description = "Play faster or slower (pitch follows)"
    PARAMETERS = (
        ParameterSpec("speed_ratio", 0.25, 4.0, 1.0, 0.01, "x"),
    )

    def __init__(self, speed_ratio: float = None):
        super().__init__(speed_ratio=speed_ratio)
        self.speed_ratio = self.params["speed_ratio"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        if self.speed_ratio == 1.0:
            return buffer

        new_length = int(math.floor(buffer.frame_count / self.speed_ratio))
        if buffer.frame_count == 0 or new_length == 0:
            return SampleBuffer(np.zeros((buffer.channel_count, 0)), buffer.sample_rate)

        positions = np.arange(new_length) * self.speed_ratio
        grid = np.arange(buffer.frame_count)
        output = np.array([np.interp(positions, grid, ch) for ch in _as_float64(buffer)])
        return SampleBuffer(output, buffer.sample_rate)


class ChangePitchEffect(EffectBase):
    """
    Pitch shift that keeps the original length.

    Overlap-add of Hann-windowed 1024-sample frames with a hop of 256; each
    frame is read from the input at ``pitch_ratio`` speed. There is no phase
    alignment between frames, so non-unity ratios leave audible seams.
    """

    effect_type = EffectType.CHANGE_PITCH
    display_name = "Change Pitch"
    description = "Shift pitch without changing length"
    PARAMETERS = (
        ParameterSpec("pitch_ratio", 0.25, 4.0, 1.0, 0.01, "x"),
    )

    FRAME_SIZE = 1024
    HOP_SIZE = FRAME_SIZE // 4

    def __init__(self, pitch_ratio: float = None):
        super().__init__(pitch_ratio=pitch_ratio)
        self.pitch_ratio = self.params["pitch_ratio"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        if self.pitch_ratio == 1.0:
            return buffer

        n = self.FRAME_SIZE
        length = buffer.frame_count
        offsets = np.arange(n)
        window = 0.5 * (1 - np.cos(2 * np.pi * offsets / n))
        grid = np.arange(length)
        output = np.zeros((buffer.channel_count, length))

        for ch, x in enumerate(_as_float64(buffer)):
            position = 0
            while position + n < length:
                source = position + offsets * self.pitch_ratio
                valid = source < length - 1
                frame = np.interp(source[valid], grid, x)
                output[ch, position + offsets[valid]] += frame * window[valid]
                position += self.HOP_SIZE

        return SampleBuffer(output, buffer.sample_rate)


class _OnePoleFilter(EffectBase):
    """Shared setup for the single-pole RC filters."""

    PARAMETERS = (
        ParameterSpec("cutoff_freq", 20.0, 20000.0, 1000.0, 10.0, "Hz"),
    )

    def __init__(self, cutoff_freq: float = None):
        super().__init__(cutoff_freq=cutoff_freq)
        self.cutoff_freq = self.params["cutoff_freq"]

    def _time_constants(self, sample_rate: int) -> Tuple[float, float]:
        if self.cutoff_freq >= sample_rate / 2:
            raise InvalidParameter(
                f"Cutoff {self.cutoff_freq} Hz must be below Nyquist ({sample_rate / 2} Hz)"
            )
        rc = 1.0 / (2 * math.pi * self.cutoff_freq)
        dt = 1.0 / sample_rate
        return rc, dt


class HighPassEffect(_OnePoleFilter):
    """First-order RC high-pass: y[n] = a * (y[n-1] + x[n] - x[n-1])."""

    effect_type = EffectType.HIGH_PASS
    display_name = "High-pass Filter"
    description = "Attenuate content below the cutoff"

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        rc, dt = self._time_constants(buffer.sample_rate)
        alpha = rc / (rc + dt)
        output = signal.lfilter([alpha, -alpha], [1.0, -alpha], _as_float64(buffer), axis=1)
        return SampleBuffer(output, buffer.sample_rate)


class LowPassEffect(_OnePoleFilter):
    """First-order RC low-pass: y[n] = y[n-1] + a * (x[n] - y[n-1])."""

    effect_type = EffectType.LOW_PASS
    display_name = "Low-pass Filter"
    description = "Attenuate content above the cutoff"

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        rc, dt = self._time_constants(buffer.sample_rate)
        alpha = dt / (rc + dt)
        output = signal.lfilter([alpha], [1.0, alpha - 1.0], _as_float64(buffer), axis=1)
        return SampleBuffer(output, buffer.sample_rate)


class NoiseReductionEffect(EffectBase):
    """
    Amplitude gate.

    Samples quieter than ``noise_floor`` are scaled by ``1 - reduction``;
    louder samples pass unchanged. No spectral processing is involved.
    """

    effect_type = EffectType.NOISE_REDUCTION
    display_name = "Noise Reduction"
    description = "Attenuate samples below a noise floor"
    PARAMETERS = (
        ParameterSpec("noise_floor", 0.01, 0.5, 0.1, 0.01),
        ParameterSpec("reduction", 0.1, 1.0, 0.8, 0.01),
    )

    def __init__(self, noise_floor: float = None, reduction: float = None):
        super().__init__(noise_floor=noise_floor, reduction=reduction)
        self.noise_floor = self.params["noise_floor"]
        self.reduction = self.params["reduction"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        data = _as_float64(buffer)
        quiet = np.abs(data) < self.noise_floor
        data[quiet] *= 1 - self.reduction
        return SampleBuffer(data, buffer.sample_rate)


class CompressorEffect(EffectBase):
    """
    Dynamic range compressor.

    Gain is computed from a smoothed envelope (separate attack and release
    rates), not from the instantaneous sample.
    """

    effect_type = EffectType.COMPRESSOR
    display_name = "Compressor"
    description = "Dynamic range compression"
    PARAMETERS = (
        ParameterSpec("threshold", 0.1, 1.0, 0.7, 0.01),
        ParameterSpec("ratio", 1.0, 20.0, 4.0, 0.1, ":1"),
        ParameterSpec("attack", 0.001, 0.1, 0.01, 0.001, "s"),
        ParameterSpec("release", 0.01, 1.0, 0.1, 0.01, "s"),
    )

    def __init__(
        self,
        threshold: float = None,
        ratio: float = None,
        attack: float = None,
        release: float = None
    ):
        super().__init__(threshold=threshold, ratio=ratio, attack=attack, release=release)
        self.threshold = self.params["threshold"]
        self.ratio = self.params["ratio"]
        self.attack = self.params["attack"]
        self.release = self.params["release"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        attack_samples = self.attack * buffer.sample_rate
        release_samples = self.release * buffer.sample_rate
        threshold = self.threshold
        ratio = self.ratio

        output = _as_float64(buffer)
        for ch in range(buffer.channel_count):
            samples = output[ch].tolist()
            envelope = 0.0

            for i, sample in enumerate(samples):
                level = abs(sample)
                if level > envelope:
                    envelope += (level - envelope) / attack_samples
                else:
                    envelope += (level - envelope) / release_samples

                if envelope > threshold:
                    gain = (threshold + (envelope - threshold) / ratio) / envelope
                    samples[i] = sample * gain

            output[ch] = samples

        return SampleBuffer(output, buffer.sample_rate)


class DistortionEffect(EffectBase):
    """
    Soft-clipping distortion.

    Drives the signal into tanh, then blends each sample with the previous
    output sample (one-pole tone control).
    """

    effect_type = EffectType.DISTORTION
    display_name = "Distortion"
    description = "Saturating soft clip with tone control"
    PARAMETERS = (
        ParameterSpec("amount", 1.0, 100.0, 50.0, 1.0),
        ParameterSpec("tone", 0.0, 1.0, 0.5, 0.01),
    )

    def __init__(self, amount: float = None, tone: float = None):
        super().__init__(amount=amount, tone=tone)
        self.amount = self.params["amount"]
        self.tone = self.params["tone"]

    def _process(self, buffer: SampleBuffer) -> SampleBuffer:
        driven = np.tanh(_as_float64(buffer) * self.amount)
        if buffer.frame_count == 0:
            return SampleBuffer(driven, buffer.sample_rate)

        # y[n] = tone * s[n] + (1 - tone) * y[n-1], with y[0] = s[0]
        blend = 1.0 - self.tone
        output = np.empty_like(driven)
        for ch, shaped in enumerate(driven):
            output[ch], _ = signal.lfilter(
                [self.tone], [1.0, -blend], shaped, zi=[blend * shaped[0]]
            )
        return SampleBuffer(output, buffer.sample_rate)


# Effect registry
EFFECT_REGISTRY: Dict[EffectType, Type[EffectBase]] = {
    EffectType.AMPLIFY: AmplifyEffect,
    EffectType.NORMALIZE: NormalizeEffect,
    EffectType.FADE_IN: FadeInEffect,
    EffectType.FADE_OUT: FadeOutEffect,
    EffectType.ECHO: EchoEffect,
    EffectType.REVERB: ReverbEffect,
    EffectType.CHANGE_SPEED: ChangeSpeedEffect,
    EffectType.CHANGE_PITCH: ChangePitchEffect,
    EffectType.HIGH_PASS: HighPassEffect,
    EffectType.LOW_PASS: LowPassEffect,
    EffectType.NOISE_REDUCTION: NoiseReductionEffect,
    EffectType.COMPRESSOR: CompressorEffect,
    EffectType.DISTORTION: DistortionEffect,
}

_unregistered = set(EffectType) - set(EFFECT_REGISTRY)
if _unregistered:
    raise RuntimeError(f"Effect types without an implementation: {sorted(_unregistered)}")


def get_effect_class(effect_type: Any) -> Optional[Type[EffectBase]]:
    """Resolve an effect name or EffectType to its class; None if unknown."""
    resolved = EffectType.parse(effect_type)
    return EFFECT_REGISTRY[resolved] if resolved is not None else None


def get_effect(effect_type: Any, **kwargs) -> Optional[EffectBase]:
    """
    Get an effect instance by type.

    Args:
        effect_type: Effect type name
        **kwargs: Effect parameters

    Returns:
        Effect instance, or None for unknown effect types

    Raises:
        InvalidParameter: if a parameter is unknown or out of range
    """
    effect_class = get_effect_class(effect_type)
    if effect_class is None:
        logger.warning(
            "unknown_effect_type",
            effect_type=str(effect_type),
            available=[t.value for t in EFFECT_REGISTRY]
        )
        return None

    return effect_class(**effect_class.validate_parameters(kwargs))


def apply_effect(
    effect_type: Any,
    buffer: SampleBuffer,
    params: Optional[Mapping[str, Any]] = None
) -> SampleBuffer:
    """
    Apply an effect by name.

    Unknown effect names leave the buffer unchanged (a warning is logged),
    so callers must not assume the result differs from the input.
    """
    effect = get_effect(effect_type, **dict(params or {}))
    if effect is None:
        return buffer
    return effect.process(buffer)


def parameter_table(effect_type: Any) -> List[Dict[str, Any]]:
    """Declared parameters of an effect; empty for unknown names."""
    effect_class = get_effect_class(effect_type)
    return effect_class.parameter_table() if effect_class else []


def catalog() -> List[Dict[str, Any]]:
    """Describe every effect and its parameters for UI generation."""
    return [
        {
            "id": effect_type.value,
            "name": effect_class.display_name,
            "description": effect_class.description,
            "parameters": effect_class.parameter_table(),
        }
        for effect_type, effect_class in EFFECT_REGISTRY.items()
    ]

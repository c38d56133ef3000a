"""
Tests for audio effects.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from sonedit.audio.effects import (
    EFFECT_REGISTRY,
    AmplifyEffect,
    ChangePitchEffect,
    ChangeSpeedEffect,
    CompressorEffect,
    DistortionEffect,
    EchoEffect,
    EffectType,
    FadeInEffect,
    FadeOutEffect,
    HighPassEffect,
    LowPassEffect,
    NoiseReductionEffect,
    NormalizeEffect,
    ReverbEffect,
    apply_effect,
    catalog,
    get_effect,
    parameter_table,
)
from sonedit.core.exceptions import InvalidParameter
from sonedit.signal_processing.analysis import peak_level
from sonedit.signal_processing.buffer import SampleBuffer


def constant(value, frames=8000, channels=1, sample_rate=8000):
    return SampleBuffer(np.full((channels, frames), value), sample_rate)


def impulse(frames=4000, sample_rate=8000):
    data = np.zeros((1, frames))
    data[0, 0] = 1.0
    return SampleBuffer(data, sample_rate)


class TestParameters:
    """Test parameter tables and validation."""

    def test_every_type_registered(self):
        assert set(EFFECT_REGISTRY) == set(EffectType)

    def test_catalog(self):
        entries = catalog()
        assert [e["id"] for e in entries] == [t.value for t in EffectType]
        compressor = next(e for e in entries if e["id"] == "compressor")
        assert [p["name"] for p in compressor["parameters"]] == [
            "threshold", "ratio", "attack", "release"
        ]

    def test_parameter_table(self):
        table = parameter_table("echo")
        assert table[2] == {
            "name": "repeat", "min": 1, "max": 10, "default": 3, "step": 1, "unit": ""
        }
        assert parameter_table("not_an_effect") == []

    def test_defaults(self):
        effect = EchoEffect()
        assert effect.delay == 0.3
        assert effect.decay == 0.5
        assert effect.repeat == 3
        assert isinstance(effect.repeat, int)

    def test_out_of_range(self):
        with pytest.raises(InvalidParameter):
            AmplifyEffect(gain=11.0)
        with pytest.raises(InvalidParameter):
            get_effect("amplify", gain=-0.5)

    def test_fractional_integer_parameter(self):
        with pytest.raises(InvalidParameter):
            EchoEffect(repeat=2.5)

    def test_non_numeric(self):
        with pytest.raises(InvalidParameter):
            AmplifyEffect(gain="loud")
        with pytest.raises(InvalidParameter):
            AmplifyEffect(gain=True)
        with pytest.raises(InvalidParameter):
            AmplifyEffect(gain=float("nan"))

    def test_unknown_parameter_name(self):
        with pytest.raises(InvalidParameter):
            get_effect("amplify", volume=2.0)

    def test_unknown_effect(self, stereo_buffer):
        assert get_effect("warp_drive") is None
        assert apply_effect("warp_drive", stereo_buffer) is stereo_buffer


class TestLevelEffects:
    """Test amplify, normalize, fades and the noise gate."""

    def test_amplify_clamps(self):
        output = AmplifyEffect(gain=4.0).process(constant(0.5))
        assert_allclose(output.channels, 1.0)

    def test_amplify_scales(self):
        output = apply_effect("amplify", constant(0.25), {"gain": 2.0})
        assert_allclose(output.channels, 0.5)

    def test_normalize(self, stereo_buffer):
        output = NormalizeEffect(target_peak=0.8).process(stereo_buffer)
        assert peak_level(output) == pytest.approx(0.8, abs=1e-6)

    def test_normalize_idempotent(self, stereo_buffer):
        effect = NormalizeEffect()
        once = effect.process(stereo_buffer)
        twice = effect.process(once)
        assert_allclose(twice.channels, once.channels, atol=1e-6)

    def test_normalize_silence_is_identity(self):
        silence = SampleBuffer.silence(0.5, 8000)
        assert NormalizeEffect().process(silence) is silence

    def test_fade_in(self):
        output = FadeInEffect(duration=0.5).process(constant(1.0))
        assert output.channels[0, 0] == 0.0
        assert output.channels[0, 2000] == pytest.approx(0.5)
        assert_allclose(output.channels[0, 4000:], 1.0)

    def test_fade_out(self):
        output = FadeOutEffect(duration=0.5).process(constant(1.0))
        assert_allclose(output.channels[0, :4000], 1.0)
        assert output.channels[0, 4000] == pytest.approx(1.0)
        assert output.channels[0, -1] == pytest.approx(1.0 / 4000, abs=1e-6)

    def test_fade_longer_than_buffer(self):
        output = FadeInEffect(duration=5.0).process(constant(1.0, frames=100))
        assert output.frame_count == 100
        assert output.channels[0, 50] == pytest.approx(0.5)

    def test_noise_gate(self):
        buffer = SampleBuffer(np.array([[0.05, 0.5, -0.05, -0.5]]), 8000)
        output = NoiseReductionEffect(noise_floor=0.1, reduction=0.8).process(buffer)
        assert_allclose(output.channels, [[0.01, 0.5, -0.01, -0.5]], rtol=1e-5)


class TestTimeEffects:
    """Test echo, reverb, speed and pitch."""

    def test_echo_extends_length(self, stereo_buffer):
        output = EchoEffect(delay=0.3, decay=0.5, repeat=3).process(stereo_buffer)
        # 4000 frames plus three 2400-frame delay periods
        assert output.frame_count == 11200
        assert output.channel_count == 2

    def test_echo_impulse(self):
        output = EchoEffect(delay=0.3, decay=0.5, repeat=3).process(impulse())
        taps = output.channels[0]
        assert taps[0] == 1.0
        assert taps[2400] == pytest.approx(0.5)
        assert taps[4800] == pytest.approx(0.25)
        assert taps[7200] == pytest.approx(0.125)
        assert np.count_nonzero(taps) == 4

    def test_reverb_dry(self, stereo_buffer):
        output = ReverbEffect(wet_level=0.0).process(stereo_buffer)
        assert_allclose(output.channels, stereo_buffer.channels)

    def test_reverb_first_reflection(self):
        output = ReverbEffect(room_size=0.5, damping=0.5, wet_level=1.0).process(impulse())
        wet = output.channels[0]
        # Only the 30 ms line (240 frames at 8 kHz) has reached this point
        assert wet[0] == 0.0
        assert wet[240] == pytest.approx(1.0 / 6, rel=1e-5)
        assert_allclose(wet[1:240], 0.0)

    def test_reverb_keeps_length(self, stereo_buffer):
        assert ReverbEffect().process(stereo_buffer).frame_count == stereo_buffer.frame_count

    def test_speed_unity_is_identity(self, stereo_buffer):
        assert ChangeSpeedEffect(speed_ratio=1.0).process(stereo_buffer) is stereo_buffer

    def test_speed_double(self, stereo_buffer):
        output = ChangeSpeedEffect(speed_ratio=2.0).process(stereo_buffer)
        assert output.frame_count == 2000
        assert_allclose(output.channels, stereo_buffer.channels[:, ::2])

    def test_speed_half(self, stereo_buffer):
        output = ChangeSpeedEffect(speed_ratio=0.5).process(stereo_buffer)
        assert output.frame_count == 8000

    def test_pitch_keeps_length(self, stereo_buffer):
        output = ChangePitchEffect(pitch_ratio=1.5).process(stereo_buffer)
        assert output.frame_count == stereo_buffer.frame_count
        assert output.channel_count == 2


class TestFilterEffects:
    """Test filters and dynamics."""

    def test_high_pass_removes_dc(self):
        output = HighPassEffect(cutoff_freq=1000.0).process(constant(0.5))
        assert np.max(np.abs(output.channels[0, -100:])) < 1e-3

    def test_low_pass_keeps_dc(self):
        output = LowPassEffect(cutoff_freq=1000.0).process(constant(0.5))
        assert_allclose(output.channels[0, -100:], 0.5, atol=1e-3)

    def test_cutoff_above_nyquist(self):
        with pytest.raises(InvalidParameter):
            LowPassEffect(cutoff_freq=5000.0).process(constant(0.5))

    def test_compressor_steady_state(self):
        effect = CompressorEffect(threshold=0.7, ratio=4.0, attack=0.001, release=0.1)
        output = effect.process(constant(0.9))
        # 0.9 * (0.7 + 0.2 / 4) / 0.9
        assert output.channels[0, -1] == pytest.approx(0.75, abs=1e-3)

    def test_compressor_below_threshold(self):
        output = CompressorEffect(threshold=0.7).process(constant(0.3, frames=1000))
        assert_allclose(output.channels, 0.3)

    def test_distortion_full_tone_is_tanh(self, stereo_buffer):
        output = DistortionEffect(amount=10.0, tone=1.0).process(stereo_buffer)
        assert_allclose(output.channels, np.tanh(stereo_buffer.channels * 10.0), rtol=1e-5)

    def test_distortion_bounded(self, stereo_buffer):
        assert peak_level(DistortionEffect(amount=100.0).process(stereo_buffer)) <= 1.0


@pytest.mark.parametrize("effect_type", list(EffectType))
def test_effect_never_mutates_input(effect_type, make_buffer):
    """Every effect reads a frozen input without touching it."""
    buffer = make_buffer(seed=5).freeze()
    before = buffer.channels.copy()

    output = apply_effect(effect_type, buffer)

    assert_array_equal(buffer.channels, before)
    assert output.sample_rate == buffer.sample_rate
    assert output.channel_count == buffer.channel_count


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

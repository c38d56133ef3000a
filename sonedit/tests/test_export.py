"""
Tests for export, decoding and mixdown.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from sonedit.audio import export
from sonedit.audio.decode import decode_audio
from sonedit.audio.export import (
    WAV_HEADER_SIZE,
    Encoder,
    encode_wav,
    export_buffer,
    pcm16,
    read_wav_header,
    register_encoder,
    supported_formats,
)
from sonedit.audio.mixer import AudioMixer, mixdown, pan_gains
from sonedit.core.config import settings
from sonedit.core.exceptions import DecodeFailure, UnsupportedFormat
from sonedit.editing.registry import Track, TrackId
from sonedit.signal_processing.buffer import SampleBuffer


def make_track(slot, buffer, **fields):
    return Track(id=TrackId(slot, 0), name=f"t{slot}", buffer=buffer, **fields)


class TestWavEncoding:
    """Test the byte-exact WAV writer."""

    def test_one_second_stereo_silence(self):
        silence = SampleBuffer.silence(1.0, 44100, channel_count=2)
        data = encode_wav(silence)

        assert len(data) == WAV_HEADER_SIZE + 176400
        assert data[:4] == b"RIFF"
        assert data[8:12] == b"WAVE"
        assert data[12:16] == b"fmt "
        assert data[36:40] == b"data"
        assert int.from_bytes(data[4:8], "little") == 36 + 176400
        assert int.from_bytes(data[40:44], "little") == 176400

        header = read_wav_header(data)
        assert header.channel_count == 2
        assert header.sample_rate == 44100
        assert header.bits_per_sample == 16
        assert header.block_align == 4
        assert header.byte_rate == 176400
        assert header.data_size == 176400
        assert header.format_tag == 1
        assert not any(data[WAV_HEADER_SIZE:])

    def test_pcm_quantization(self):
        buffer = SampleBuffer(np.array([[1.0, -1.0, 0.5, 2.0, -3.0]]), 8000)
        assert_array_equal(pcm16(buffer), [32767, -32767, 16384, 32767, -32767])

    def test_samples_are_interleaved(self):
        buffer = SampleBuffer(np.array([[0.5, 0.5], [-0.5, -0.5]]), 8000)
        samples = np.frombuffer(encode_wav(buffer)[WAV_HEADER_SIZE:], dtype='<i2')
        assert_array_equal(samples, [16384, -16384, 16384, -16384])

    def test_read_header_rejects_garbage(self):
        with pytest.raises(DecodeFailure):
            read_wav_header(b"not a wav file at all, definitely not one....")
        with pytest.raises(DecodeFailure):
            read_wav_header(b"RIFF")


class TestExportFormats:
    """Test the format allow-list and placeholder encoders."""

    def test_wav_export(self, stereo_buffer):
        exported = export_buffer(stereo_buffer, "wav")
        assert exported.format == "wav"
        assert exported.mime_type == "audio/wav"
        assert not exported.is_placeholder
        assert len(exported) == WAV_HEADER_SIZE + 4000 * 4

    def test_format_is_case_insensitive(self, stereo_buffer):
        assert export_buffer(stereo_buffer, "WAV").format == "wav"

    def test_placeholder_is_tagged(self, stereo_buffer):
        exported = export_buffer(stereo_buffer, "mp3")
        assert exported.format == "mp3"
        assert exported.mime_type == "audio/mpeg"
        assert exported.is_placeholder
        assert exported.data == encode_wav(stereo_buffer)

    def test_unknown_format(self, stereo_buffer):
        with pytest.raises(UnsupportedFormat):
            export_buffer(stereo_buffer, "aiff")

    def test_format_outside_allow_list(self, stereo_buffer, monkeypatch):
        monkeypatch.setattr(settings, "export_formats", ["wav"])
        assert supported_formats() == ["wav"]
        with pytest.raises(UnsupportedFormat):
            export_buffer(stereo_buffer, "flac")

    def test_register_encoder(self, stereo_buffer, monkeypatch):
        monkeypatch.setattr(export, "_ENCODERS", dict(export._ENCODERS))
        monkeypatch.setattr(export, "MIME_TYPES", dict(export.MIME_TYPES))

        class FakeOgg(Encoder):
            def encode(self, buffer):
                return b"OggS"

        register_encoder("ogg", FakeOgg(), mime_type="audio/x-ogg")
        exported = export_buffer(stereo_buffer, "ogg")

        assert exported.data == b"OggS"
        assert exported.mime_type == "audio/x-ogg"
        assert not exported.is_placeholder


class TestDecode:
    """Test decoding through soundfile."""

    def test_wav_round_trip(self, stereo_buffer):
        decoded = decode_audio(encode_wav(stereo_buffer))
        assert decoded.channel_count == 2
        assert decoded.frame_count == stereo_buffer.frame_count
        assert decoded.sample_rate == stereo_buffer.sample_rate
        assert_allclose(decoded.channels, stereo_buffer.channels, atol=1e-4)

    def test_decode_from_path(self, stereo_buffer, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(encode_wav(stereo_buffer))
        assert decode_audio(path).frame_count == 4000

    def test_garbage(self):
        with pytest.raises(DecodeFailure):
            decode_audio(b"\x00\x01garbage" * 20)

    def test_empty(self):
        with pytest.raises(DecodeFailure):
            decode_audio(b"")

    def test_missing_file(self, tmp_path):
        with pytest.raises(DecodeFailure):
            decode_audio(tmp_path / "missing.wav")


class TestMixdown:
    """Test rendering tracks to stereo."""

    @pytest.fixture
    def half(self):
        return SampleBuffer(np.full((1, 100), 0.5), 8000)

    def test_pan_law(self):
        assert pan_gains(0.0) == (1.0, 1.0)
        assert pan_gains(-1.0) == (1.0, 0.0)
        assert pan_gains(1.0) == (0.0, 1.0)
        assert pan_gains(0.5) == (0.5, 1.0)

    def test_hard_left(self, half):
        output = mixdown([make_track(0, half, pan=-1.0)], sample_rate=8000)
        assert output.channel_count == 2
        assert_allclose(output.channels[0], 0.5)
        assert_allclose(output.channels[1], 0.0)

    def test_volume(self, half):
        output = mixdown([make_track(0, half, volume=0.5)], sample_rate=8000)
        assert_allclose(output.channels, 0.25)

    def test_mute(self, half):
        tracks = [make_track(0, half), make_track(1, half, muted=True)]
        assert_allclose(mixdown(tracks, sample_rate=8000).channels, 0.5)

    def test_solo(self, half):
        loud = SampleBuffer(np.full((1, 100), 0.2), 8000)
        tracks = [make_track(0, half), make_track(1, loud, solo=True)]
        assert_allclose(mixdown(tracks, sample_rate=8000).channels, 0.2)

    def test_length_is_longest(self, half):
        longer = SampleBuffer(np.full((2, 300), 0.1), 8000)
        output = mixdown([make_track(0, half), make_track(1, longer)], sample_rate=8000)
        assert output.frame_count == 300
        assert_allclose(output.channels[:, :100], 0.6)
        assert_allclose(output.channels[:, 100:], 0.1)

    def test_clipping(self, half):
        tracks = [make_track(0, half, volume=2.0), make_track(1, half, volume=2.0)]
        assert_allclose(mixdown(tracks, sample_rate=8000).channels, 1.0)

    def test_audible_tracks(self, half):
        tracks = [make_track(0, half, solo=True), make_track(1, half), make_track(2, half, solo=True, muted=True)]
        audible = AudioMixer(sample_rate=8000).audible_tracks(tracks)
        assert [track.id.slot for track in audible] == [0]

    def test_resamples_to_mix_rate(self):
        low_rate = SampleBuffer(np.full((1, 100), 0.5), 4000)
        output = mixdown([make_track(0, low_rate)], sample_rate=8000)
        assert output.frame_count == 200

    def test_empty_mix(self):
        output = mixdown([], sample_rate=8000)
        assert output.channel_count == 2
        assert output.frame_count == 0

    def test_source_buffers_untouched(self, half):
        before = half.channels.copy()
        mixdown([make_track(0, half, volume=3.0)], sample_rate=8000)
        assert_array_equal(half.channels, before)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

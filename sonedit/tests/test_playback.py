"""
Tests for the tick-driven playback scheduler.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from sonedit.audio.playback import PlaybackScheduler, PlaybackState
from sonedit.core.exceptions import InvalidRange
from sonedit.signal_processing.buffer import SampleBuffer


@pytest.fixture
def short_buffer():
    """100 frames of constant 0.5."""
    return SampleBuffer(np.full((1, 100), 0.5), 8000)


@pytest.fixture
def finished_calls():
    return []


@pytest.fixture
def scheduler(finished_calls):
    return PlaybackScheduler(master_volume=1.0, on_finished=lambda: finished_calls.append(True))


class TestVolumeAndRate:
    """Test gain curve and clamping."""

    def test_gain_is_square_of_volume(self, short_buffer):
        scheduler = PlaybackScheduler(master_volume=0.5)
        scheduler.play(short_buffer)
        block = scheduler.advance(10)
        assert_allclose(block, 0.125)

    def test_volume_clamped(self):
        scheduler = PlaybackScheduler()
        assert scheduler.set_master_volume(2.0) == 1.0
        assert scheduler.set_master_volume(-1.0) == 0.0
        assert scheduler.applied_gain == 0.0

    def test_rate_clamped(self):
        scheduler = PlaybackScheduler()
        assert scheduler.set_playback_rate(10.0) == 4.0
        assert scheduler.set_playback_rate(0.1) == 0.25

    def test_rate_moves_cursor(self, scheduler, short_buffer):
        scheduler.set_playback_rate(2.0)
        scheduler.play(short_buffer)
        scheduler.advance(10)
        assert scheduler.position == pytest.approx(20 / 8000)

    def test_slow_rate_interpolates(self, scheduler):
        ramp = SampleBuffer(np.arange(100)[np.newaxis, :] / 100, 8000)
        scheduler.set_playback_rate(0.5)
        scheduler.play(ramp)
        block = scheduler.advance(4)
        assert_allclose(block[0], [0.0, 0.005, 0.01, 0.015], atol=1e-6)


class TestTransport:
    """Test play, pause, stop and the finished notification."""

    def test_output_shape(self, scheduler, make_buffer):
        scheduler.play(make_buffer(frames=500))
        block = scheduler.advance(64)
        assert block.shape == (2, 64)
        assert block.dtype == np.float32

    def test_finished_fires_once(self, scheduler, short_buffer, finished_calls):
        scheduler.play(short_buffer)

        scheduler.advance(60)
        assert finished_calls == []

        block = scheduler.advance(60)
        assert_allclose(block[0, :40], 0.5)
        assert_allclose(block[0, 40:], 0.0)
        assert finished_calls == [True]
        assert scheduler.state == PlaybackState.STOPPED

        assert scheduler.advance(60) is None
        assert finished_calls == [True]

    def test_exact_end_finishes(self, scheduler, short_buffer, finished_calls):
        scheduler.play(short_buffer)
        scheduler.advance(100)
        assert finished_calls == [True]

    def test_play_while_playing(self, scheduler, short_buffer):
        assert scheduler.play(short_buffer)
        scheduler.advance(10)
        assert scheduler.play(short_buffer) is False
        assert scheduler.position == pytest.approx(10 / 8000)

    def test_pause_and_resume(self, scheduler, short_buffer, finished_calls):
        scheduler.play(short_buffer)
        scheduler.advance(30)
        assert scheduler.pause()

        assert scheduler.advance(10) is None
        assert scheduler.state == PlaybackState.PAUSED

        assert scheduler.play(short_buffer)
        assert scheduler.position == pytest.approx(30 / 8000)
        assert finished_calls == []

    def test_stop_rewinds(self, scheduler, short_buffer, finished_calls):
        scheduler.play(short_buffer)
        scheduler.advance(30)
        assert scheduler.stop()
        assert scheduler.position == 0.0
        assert finished_calls == []
        assert scheduler.stop() is False

    def test_stop_after_finish_rewinds(self, scheduler, short_buffer, finished_calls):
        scheduler.play(short_buffer)
        scheduler.advance(120)
        assert finished_calls == [True]
        assert scheduler.position == pytest.approx(scheduler.end_position)

        assert scheduler.stop() is False
        assert scheduler.position == 0.0
        assert finished_calls == [True]

    def test_pause_when_stopped(self, scheduler):
        assert scheduler.pause() is False

    def test_start_and_duration(self, scheduler, short_buffer, finished_calls):
        scheduler.play(short_buffer, start_sec=20 / 8000, duration_sec=20 / 8000)
        assert scheduler.end_position == pytest.approx(40 / 8000)

        scheduler.advance(20)
        assert finished_calls == [True]

    def test_duration_past_end(self, scheduler, short_buffer):
        scheduler.play(short_buffer, duration_sec=10.0)
        assert scheduler.end_position == pytest.approx(100 / 8000)

    def test_negative_start(self, scheduler, short_buffer):
        with pytest.raises(InvalidRange):
            scheduler.play(short_buffer, start_sec=-1.0)
        assert scheduler.state == PlaybackState.STOPPED

    def test_on_position(self, short_buffer):
        positions = []
        scheduler = PlaybackScheduler(on_position=positions.append)
        scheduler.play(short_buffer)
        scheduler.advance(25)
        scheduler.advance(25)
        assert positions == pytest.approx([25 / 8000, 50 / 8000])


class TestSeek:
    """Test cursor moves."""

    def test_seek(self, scheduler, short_buffer):
        scheduler.play(short_buffer)
        assert scheduler.seek(40 / 8000) == pytest.approx(40 / 8000)

    def test_seek_clamps(self, scheduler, short_buffer):
        scheduler.play(short_buffer)
        assert scheduler.seek(10.0) == pytest.approx(scheduler.end_position)
        assert scheduler.seek(-1.0) == 0.0

    def test_seek_not_finite(self, scheduler, short_buffer):
        scheduler.play(short_buffer)
        with pytest.raises(InvalidRange):
            scheduler.seek(float("nan"))

    def test_seek_without_buffer(self, scheduler):
        assert scheduler.seek(1.0) == 0.0


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

"""
Shared fixtures for the test suite.
"""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from sonedit.api.deps import get_engine
from sonedit.api.main import app
from sonedit.audio.capture import SimulatedInputDevice
from sonedit.audio.engine import AudioEngine
from sonedit.signal_processing.buffer import SampleBuffer

# Low rate keeps the per-sample loops in the tests fast
SAMPLE_RATE = 8000


@pytest.fixture
def sample_rate():
    return SAMPLE_RATE


@pytest.fixture
def make_buffer():
    """Factory for random buffers in [-amplitude, amplitude]."""
    def _make(frames=4000, channels=2, sample_rate=SAMPLE_RATE, amplitude=0.5, seed=0):
        rng = np.random.default_rng(seed)
        return SampleBuffer(rng.uniform(-amplitude, amplitude, (channels, frames)), sample_rate)
    return _make


@pytest.fixture
def stereo_buffer(make_buffer):
    return make_buffer()


@pytest.fixture
def input_device():
    return SimulatedInputDevice(sample_rate=SAMPLE_RATE, channel_count=2)


@pytest.fixture
def engine(input_device):
    return AudioEngine(sample_rate=SAMPLE_RATE, input_device=input_device)


@pytest.fixture
def api_client(engine):
    """TestClient whose requests all share the ``engine`` fixture."""
    app.dependency_overrides[get_engine] = lambda: engine
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()

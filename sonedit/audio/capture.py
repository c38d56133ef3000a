"""
Recording from an input device into a sample buffer.

The accumulator keeps one list of chunks per channel while capturing and
only concatenates them when capture stops, so each delivered chunk costs
time proportional to its own size.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from sonedit.core.config import settings
from sonedit.core.exceptions import AlreadyCapturing, CaptureError, DeviceUnavailable
from sonedit.core.logging import get_logger
from sonedit.signal_processing.buffer import SampleBuffer, concatenate, match_channels

logger = get_logger(__name__)

ChunkCallback = Callable[[NDArray[np.float32]], None]


class CaptureState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"


class InputDevice(ABC):
    """
    Abstract audio input.

    Implementations deliver float32 chunks of shape (frames, channels) to the
    callback passed to ``open`` until ``close`` is called.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether an input device exists and can be opened."""
        pass

    @abstractmethod
    def request_permission(self) -> bool:
        """
        Ask for permission to record.

        Returns:
            True if recording is allowed
        """
        pass

    @abstractmethod
    def open(self, callback: ChunkCallback) -> None:
        """Start delivering chunks to ``callback``."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Stop delivering chunks and release the device."""
        pass

    @property
    @abstractmethod
    def sample_rate(self) -> int:
        pass

    @property
    @abstractmethod
    def channel_count(self) -> int:
        pass


class SoundDeviceInput(InputDevice):
    """Input from the system's default (or a named) device via PortAudio."""

    def __init__(
        self,
        device: Optional[str] = None,
        sample_rate: Optional[int] = None,
        channel_count: Optional[int] = None,
        chunk_frames: Optional[int] = None
    ) -> None:
        self.device = device
        self._sample_rate = sample_rate or settings.sample_rate
        self._channel_count = channel_count or settings.capture_channels
        self.chunk_frames = chunk_frames or settings.capture_chunk_frames
        self._stream = None

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channel_count(self) -> int:
        return self._channel_count

    def _query_input(self) -> Optional[Dict]:
        try:
            import sounddevice as sd
        except (ImportError, OSError) as e:
            logger.warning("sounddevice_unavailable", error=str(e))
            return None

        try:
            return sd.query_devices(self.device, kind='input')
        except (ValueError, sd.PortAudioError) as e:
            logger.warning("input_device_query_failed", device=self.device, error=str(e))
            return None

    def is_available(self) -> bool:
        info = self._query_input()
        return info is not None and info['max_input_channels'] > 0

    def request_permission(self) -> bool:
        # Desktop PortAudio has no permission prompt; opening the device is the check
        return self.is_available()

    def open(self, callback: ChunkCallback) -> None:
        import sounddevice as sd

        def _on_audio(indata, frames, time_info, status):
            if status:
                logger.warning("input_stream_status", status=str(status))
            callback(indata)

        try:
            self._stream = sd.InputStream(
                device=self.device,
                samplerate=self._sample_rate,
                channels=self._channel_count,
                blocksize=self.chunk_frames,
                dtype='float32',
                callback=_on_audio,
            )
            self._stream.start()
        except sd.PortAudioError as e:
            self._stream = None
            raise DeviceUnavailable(f"Could not open input device: {e}") from e

        logger.info(
            "input_stream_opened",
            device=self.device,
            sample_rate=self._sample_rate,
            channels=self._channel_count
        )

    def close(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
            logger.info("input_stream_closed", device=self.device)


class SimulatedInputDevice(InputDevice):
    """
    Input device driven by the caller, for tests and demos.

    ``emit`` synthesizes a sine chunk; ``push`` delivers arbitrary data.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        channel_count: int = 2,
        available: bool = True,
        permission_granted: bool = True,
        frequency: float = 440.0,
        amplitude: float = 0.5
    ) -> None:
        self._sample_rate = sample_rate
        self._channel_count = channel_count
        self.available = available
        self.permission_granted = permission_granted
        self.frequency = frequency
        self.amplitude = amplitude
        self._callback: Optional[ChunkCallback] = None
        self._frames_emitted = 0

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def channel_count(self) -> int:
        return self._channel_count

    @property
    def is_open(self) -> bool:
        return self._callback is not None

    def is_available(self) -> bool:
        return self.available

    def request_permission(self) -> bool:
        return self.permission_granted

    def open(self, callback: ChunkCallback) -> None:
        self._callback = callback
        self._frames_emitted = 0

    def close(self) -> None:
        self._callback = None

    def push(self, chunk: NDArray) -> None:
        """Deliver a chunk to the open callback; dropped when closed."""
        if self._callback is not None:
            self._callback(chunk)

    def emit(self, frames: int) -> NDArray[np.float32]:
        """Synthesize and deliver the next ``frames`` frames of a sine tone."""
        t = (self._frames_emitted + np.arange(frames)) / self._sample_rate
        tone = self.amplitude * np.sin(2 * np.pi * self.frequency * t)
        chunk = np.repeat(tone[:, np.newaxis], self._channel_count, axis=1).astype(np.float32)
        self._frames_emitted += frames
        self.push(chunk)
        return chunk


class CaptureAccumulator:
    """
    Collects device chunks into a buffer.

    States: IDLE -> CAPTURING (start_capture) -> IDLE (stop_capture).
    """

    def __init__(
        self,
        device: Optional[InputDevice] = None,
        on_capture_finished: Optional[Callable[[SampleBuffer], None]] = None
    ) -> None:
        self.device = device
        self.on_capture_finished = on_capture_finished
        self.state = CaptureState.IDLE
        self._chunks: List[List[NDArray[np.float32]]] = []
        self._frames = 0
        self._sample_rate = settings.sample_rate
        self._channel_count = settings.capture_channels

    @property
    def is_capturing(self) -> bool:
        return self.state == CaptureState.CAPTURING

    @property
    def frames_captured(self) -> int:
        return self._frames

    @property
    def duration(self) -> float:
        return self._frames / self._sample_rate

    def start_capture(self) -> None:
        """
        Open the device and begin accumulating.

        Raises:
            AlreadyCapturing: if a capture is in progress (it is left untouched)
            DeviceUnavailable: if there is no device or permission is denied
        """
        if self.is_capturing:
            raise AlreadyCapturing()

        if self.device is None or not self.device.is_available():
            raise DeviceUnavailable("No audio input device available")
        if not self.device.request_permission():
            raise DeviceUnavailable("Permission to record was denied")

        self._sample_rate = self.device.sample_rate
        self._channel_count = self.device.channel_count
        self._chunks = [[] for _ in range(self._channel_count)]
        self._frames = 0

        self.device.open(self.ingest_chunk)
        self.state = CaptureState.CAPTURING

        logger.info(
            "capture_started",
            sample_rate=self._sample_rate,
            channels=self._channel_count
        )

    def ingest_chunk(self, chunk: NDArray) -> None:
        """
        Append one delivered chunk.

        Accepts (channels, frames), (frames, channels) or mono 1-D data;
        a mono chunk is duplicated to every session channel. The samples
        are copied so the device may reuse its block.

        Raises:
            CaptureError: if the chunk's layout cannot be matched to the
                session's channel count
        """
        if not self.is_capturing:
            logger.debug("chunk_ignored_not_capturing")
            return

        data = np.asarray(chunk, dtype=np.float32)
        if data.ndim == 1:
            data = data[np.newaxis, :]
        elif data.ndim == 2 and data.shape[0] != self._channel_count:
            if data.shape[1] in (1, self._channel_count):
                data = data.T

        if data.ndim != 2 or data.shape[0] not in (1, self._channel_count):
            logger.warning("chunk_rejected", shape=list(np.shape(chunk)), channels=self._channel_count)
            raise CaptureError(
                f"Chunk of shape {np.shape(chunk)} does not match a {self._channel_count}-channel capture"
            )

        data = match_channels(data, self._channel_count)
        for ch in range(self._channel_count):
            self._chunks[ch].append(data[ch].copy())
        self._frames += data.shape[1]

    def stop_capture(self) -> Optional[SampleBuffer]:
        """
        Close the device and assemble the recording.

        Returns:
            The captured buffer, or None if no capture was running

        Raises:
            CaptureError: if the recording could not be assembled; the
                accumulator is idle afterwards either way
        """
        if not self.is_capturing:
            return None

        try:
            self.device.close()
            buffer = concatenate(self._chunks, self._sample_rate)
        except MemoryError as e:
            logger.error("capture_assembly_failed", frames=self._frames)
            raise CaptureError(f"Could not assemble {self._frames} captured frames") from e
        finally:
            self._chunks = []
            self.state = CaptureState.IDLE

        logger.info("capture_stopped", frames=buffer.frame_count, duration=buffer.duration)

        if self.on_capture_finished is not None:
            self.on_capture_finished(buffer)
        return buffer

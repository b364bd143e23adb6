"""Capture device contract and its PyAudio realization."""

import logging
from abc import ABC, abstractmethod
from threading import Event, Thread
from typing import Optional, Tuple

import pyaudio

from ..errors import DeviceUnavailable, PermissionDenied
from ..models.audio import CaptureConstraints
from .buffer import SliceBuffer

logger = logging.getLogger(__name__)

_PERMISSION_MARKERS = ("permission", "denied", "not allowed", "not permitted")


class CaptureDevice(ABC):
    """A microphone that can be asked to flush-and-continue with no sample loss."""

    sample_rate: int = 16000
    channels: int = 1

    @abstractmethod
    def open(self, constraints: CaptureConstraints) -> None:
        """Acquire the device.

        Raises:
            DeviceUnavailable: If no device matches the constraints
            PermissionDenied: If access to the device is refused
        """

    @abstractmethod
    def start_capture(self) -> None:
        """Begin (or resume) continuous capture."""

    @abstractmethod
    def stop_capture(self) -> None:
        """Stop capturing; every sample read so far stays in the buffer."""

    @abstractmethod
    def flush(self) -> Tuple[bytes, Optional[float]]:
        """Return the PCM captured since the previous flush, capture continues."""

    @abstractmethod
    def close(self) -> None:
        """Release the device. Safe to call more than once."""

    @property
    @abstractmethod
    def failure(self) -> Optional[Exception]:
        """Error that interrupted capture, if the device was lost."""


class PyAudioCaptureDevice(CaptureDevice):
    """Continuous PyAudio capture into a flushable buffer, read on a background thread."""

    def __init__(self, format: int = pyaudio.paInt16):
        self.format = format
        self.sample_rate = 16000
        self.channels = 1
        self.chunk_size = 1024
        self.device_index: Optional[int] = None
        self.device_label: Optional[str] = None

        self.buffer = SliceBuffer(self.sample_rate, self.channels)
        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_capturing = False
        self.total_chunks = 0
        self._failure: Optional[Exception] = None
        self._closed = False

    @property
    def failure(self) -> Optional[Exception]:
        return self._failure

    def open(self, constraints: CaptureConstraints) -> None:
        self.sample_rate = constraints.sample_rate
        self.channels = constraints.channels
        self.chunk_size = constraints.chunk_size
        self.buffer = SliceBuffer(self.sample_rate, self.channels)
        self._failure = None
        self._closed = False

        if constraints.noise_suppression or constraints.echo_cancellation:
            logger.debug("Noise suppression / echo cancellation are left to the OS audio stack with PyAudio")

        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            self.device_index = self.__resolve_device_index(constraints.device_id)
            self.stream = self.__open_audio_stream()
        except (DeviceUnavailable, PermissionDenied):
            self.__terminate()
            raise
        except OSError as e:
            self.__terminate()
            message = str(e)
            if any(marker in message.lower() for marker in _PERMISSION_MARKERS):
                raise PermissionDenied(f"Microphone access was denied: {message}") from e
            raise DeviceUnavailable(f"Selected microphone device is not available: {message}") from e

    def __resolve_device_index(self, device_id: Optional[str]) -> Optional[int]:
        if device_id is None:
            try:
                info = self.pyaudio_instance.get_default_input_device_info()
            except (IOError, OSError) as e:
                raise DeviceUnavailable(f"No default input device: {e}") from e
            self.device_label = info.get('name')
            return None

        for index in range(self.pyaudio_instance.get_device_count()):
            info = self.pyaudio_instance.get_device_info_by_index(index)
            if info.get('maxInputChannels', 0) < 1:
                continue
            if str(index) == str(device_id) or info.get('name') == device_id:
                self.device_label = info.get('name')
                return index

        raise DeviceUnavailable(f"No input device matches '{device_id}'")

    def __open_audio_stream(self):
        stream = self.pyaudio_instance.open(
            format=self.format,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            input_device_index=self.device_index,
            frames_per_buffer=self.chunk_size,
            start=False,
        )
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk, device={self.device_label}")
        return stream

    def start_capture(self) -> None:
        if self.is_capturing:
            logger.warning("Capture already in progress")
            return
        if self.stream is None:
            raise DeviceUnavailable("Capture device is not open")

        self.stop_event.clear()
        self.stream.start_stream()
        self.recording_thread = Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "AudioCaptureThread"
        self.recording_thread.start()
        self.is_capturing = True

    def stop_capture(self) -> None:
        if not self.is_capturing:
            return

        self.stop_event.set()
        if self.recording_thread and self.recording_thread.is_alive():
            self.recording_thread.join(timeout=2.0)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
        if self.stream is not None and self._failure is None:
            self.stream.stop_stream()
        self.is_capturing = False
        logger.debug(f"Capture stopped. Total chunks: {self.total_chunks}")

    def _record_continuously(self) -> None:
        """Internal method: continuous capture loop in background thread."""
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
                self.total_chunks += 1
                self.buffer.append(audio_chunk)
        except OSError as e:
            logger.error(f"Capture device lost: {e}")
            self._failure = e

    def flush(self) -> Tuple[bytes, Optional[float]]:
        return self.buffer.drain()

    def close(self) -> None:
        if self._closed:
            return
        self.stop_capture()
        self.__terminate()
        self._closed = True
        logger.info("Capture device released")

    def __terminate(self) -> None:
        if self.stream is not None:
            try:
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        if self.pyaudio_instance:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

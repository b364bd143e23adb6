"""Pytest configuration and fixtures for SliceScribe tests."""

import asyncio
import pytest
import tempfile
import time
import logging
from typing import Dict, List, Optional
from unittest.mock import Mock, patch
import numpy as np

from slicescribe.audio.capture import CaptureDevice
from slicescribe.audio.wav import encode_wav
from slicescribe.models.audio import AudioSlice
from slicescribe.models.transcription import TranscriptionRequest, TranscriptionResponse
from slicescribe.transcription.base import AbstractTranscriptionBackend


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    for marker in ("unit", "integration", "slow", "hardware"):
        config.addinivalue_line("markers", f"{marker}: {marker} tests")


def generate_pcm(pattern: str = "sine", duration_seconds: float = 1.0, sample_rate: int = 16000) -> bytes:
    """Generate 16-bit mono PCM test audio.

    Args:
        pattern: Type of audio pattern ('sine', 'noise', 'silence')
        duration_seconds: Duration of audio
        sample_rate: Sample rate in Hz
    """
    samples = int(duration_seconds * sample_rate)

    if pattern == "sine":
        t = np.linspace(0, duration_seconds, samples, False)
        wave_data = 0.5 * np.sin(2 * np.pi * 440 * t)
    elif pattern == "noise":
        wave_data = np.random.uniform(-1, 1, samples)
    elif pattern == "silence":
        wave_data = np.zeros(samples)
    else:
        raise ValueError(f"Unknown pattern: {pattern}")

    return (wave_data * 32767).astype(np.int16).tobytes()


class FakeCaptureDevice(CaptureDevice):
    """In-memory capture device; tests feed PCM and the slicer flushes it."""

    def __init__(self, open_error: Optional[Exception] = None, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self.open_error = open_error
        self.constraints = None
        self.capturing = False
        self.open_calls = 0
        self.close_calls = 0
        self._pending = bytearray()
        self._failure: Optional[Exception] = None

    @property
    def failure(self) -> Optional[Exception]:
        return self._failure

    def open(self, constraints) -> None:
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error
        self.constraints = constraints
        self._failure = None

    def start_capture(self) -> None:
        self.capturing = True

    def stop_capture(self) -> None:
        self.capturing = False

    def feed(self, pcm: bytes) -> None:
        self._pending.extend(pcm)

    def fail(self, error: Exception) -> None:
        self._failure = error

    def flush(self):
        data = bytes(self._pending)
        self._pending.clear()
        return data, (time.time() if data else None)

    def close(self) -> None:
        self.close_calls += 1


class ScriptedBackend(AbstractTranscriptionBackend):
    """Returns scripted outcomes per slice index and records every request.

    A script value is a text, a TranscriptionResponse, an exception to raise,
    or a list of those consumed one per attempt.
    """

    def __init__(self, script: Optional[Dict[int, object]] = None, default: str = ""):
        super().__init__()
        self.script = {
            index: list(outcome) if isinstance(outcome, list) else [outcome]
            for index, outcome in (script or {}).items()
        }
        self.default = default
        self.requests: List[TranscriptionRequest] = []
        self.blockers: Dict[int, object] = {}
        self.cleaned_up = False

    def attempts_for(self, slice_index: int) -> int:
        return sum(1 for request in self.requests if request.slice_index == slice_index)

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptionResponse:
        self.requests.append(request)
        blocker = self.blockers.get(request.slice_index)
        if blocker is not None:
            await blocker.wait()

        outcomes = self.script.get(request.slice_index)
        outcome = outcomes.pop(0) if outcomes else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, TranscriptionResponse):
            return outcome
        return TranscriptionResponse(success=True, text=outcome, slice_index=request.slice_index)

    def initialize(self) -> bool:
        return True

    async def cleanup(self) -> None:
        self.cleaned_up = True


class RecordingSleep:
    """Stand-in for asyncio.sleep that records delays and yields once."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def audio_test_data():
    """Factory for raw PCM test audio."""
    return generate_pcm


@pytest.fixture
def make_slice():
    """Factory for WAV-encoded AudioSlices."""
    def _make(slice_index: int, pattern: str = "sine", duration_seconds: float = 0.25) -> AudioSlice:
        pcm = generate_pcm(pattern, duration_seconds)
        return AudioSlice(
            slice_index=slice_index,
            audio_data=encode_wav(pcm, 16000, 1),
            captured_at=time.time(),
            duration_ms=int(duration_seconds * 1000),
        )
    return _make


@pytest.fixture
def fake_device():
    return FakeCaptureDevice()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('slicescribe.audio.capture.pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio
        mock_stream.start_stream.return_value = None
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'index': 0, 'name': 'Default Mic', 'maxInputChannels': 1,
        }
        mock_pyaudio_instance.get_device_count.return_value = 2
        mock_pyaudio_instance.get_device_info_by_index.side_effect = lambda index: [
            {'index': 0, 'name': 'Speakers', 'maxInputChannels': 0},
            {'index': 1, 'name': 'USB Mic', 'maxInputChannels': 1},
        ][index]

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def make_backend():
    """Factory for ScriptedBackend instances."""
    return ScriptedBackend


@pytest.fixture
def make_device():
    """Factory for FakeCaptureDevice instances."""
    return FakeCaptureDevice

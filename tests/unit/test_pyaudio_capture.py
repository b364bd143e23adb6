"""Unit tests for PyAudioCaptureDevice and SliceBuffer."""

import pytest
import time
import threading
from unittest.mock import patch

from slicescribe.audio.buffer import SliceBuffer
from slicescribe.audio.capture import PyAudioCaptureDevice
from slicescribe.errors import DeviceUnavailable, PermissionDenied
from slicescribe.models.audio import CaptureConstraints


def slow_read(chunk_size, exception_on_overflow=False):
    time.sleep(0.002)
    return b'\x01\x00' * chunk_size


@pytest.mark.unit
class TestSliceBuffer:
    """Test cases for SliceBuffer."""

    def test_drain_returns_everything_and_resets(self):
        buffer = SliceBuffer()
        buffer.append(b'\x01\x02')
        buffer.append(b'\x03\x04')

        data, started_at = buffer.drain()

        assert data == b'\x01\x02\x03\x04'
        assert started_at is not None
        assert buffer.drain() == (b'', None)

    def test_concurrent_appends_are_not_lost(self):
        buffer = SliceBuffer()
        drained = []

        def writer():
            for _ in range(500):
                buffer.append(b'\x00\x00')

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for thread in threads:
            thread.start()
        for _ in range(20):
            drained.append(buffer.drain()[0])
        for thread in threads:
            thread.join()
        drained.append(buffer.drain()[0])

        assert sum(len(chunk) for chunk in drained) == 4 * 500 * 2


@pytest.mark.unit
class TestPyAudioCaptureDevice:
    """Test cases for PyAudioCaptureDevice."""

    def test_open_default_device(self, mock_pyaudio):
        device = PyAudioCaptureDevice()
        device.open(CaptureConstraints(sample_rate=16000, chunk_size=512))

        kwargs = mock_pyaudio['instance'].open.call_args.kwargs
        assert kwargs['input'] is True
        assert kwargs['rate'] == 16000
        assert kwargs['frames_per_buffer'] == 512
        assert kwargs['input_device_index'] is None
        assert kwargs['start'] is False
        assert device.device_label == 'Default Mic'

    @pytest.mark.parametrize("device_id", ["USB Mic", "1"])
    def test_open_selected_device(self, mock_pyaudio, device_id):
        device = PyAudioCaptureDevice()
        device.open(CaptureConstraints(device_id=device_id))

        assert mock_pyaudio['instance'].open.call_args.kwargs['input_device_index'] == 1

    def test_output_only_device_does_not_match(self, mock_pyaudio):
        device = PyAudioCaptureDevice()
        with pytest.raises(DeviceUnavailable):
            device.open(CaptureConstraints(device_id="Speakers"))
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_permission_error_maps_to_permission_denied(self, mock_pyaudio):
        mock_pyaudio['instance'].open.side_effect = OSError("[Errno -9999] Permission denied")
        device = PyAudioCaptureDevice()

        with pytest.raises(PermissionDenied):
            device.open(CaptureConstraints())

    def test_other_open_error_maps_to_device_unavailable(self, mock_pyaudio):
        mock_pyaudio['instance'].open.side_effect = OSError("[Errno -9996] Invalid input device")
        device = PyAudioCaptureDevice()

        with pytest.raises(DeviceUnavailable):
            device.open(CaptureConstraints())

    def test_capture_fills_buffer_until_flushed(self, mock_pyaudio):
        mock_pyaudio['stream'].read.side_effect = slow_read
        device = PyAudioCaptureDevice()
        device.open(CaptureConstraints(chunk_size=256))

        device.start_capture()
        time.sleep(0.05)
        device.stop_capture()
        data, started_at = device.flush()

        assert len(data) > 0
        assert len(data) % 512 == 0
        assert started_at is not None
        mock_pyaudio['stream'].start_stream.assert_called_once()
        mock_pyaudio['stream'].stop_stream.assert_called_once()
        device.close()

    def test_read_error_is_reported_as_failure(self, mock_pyaudio):
        mock_pyaudio['stream'].read.side_effect = OSError("Stream closed")
        device = PyAudioCaptureDevice()
        device.open(CaptureConstraints())

        device.start_capture()
        device.recording_thread.join(timeout=1.0)

        assert isinstance(device.failure, OSError)
        device.close()

    def test_close_is_idempotent(self, mock_pyaudio):
        mock_pyaudio['stream'].read.side_effect = slow_read
        device = PyAudioCaptureDevice()
        device.open(CaptureConstraints())
        device.start_capture()

        device.close()
        device.close()

        mock_pyaudio['stream'].close.assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()
        assert device.is_capturing is False

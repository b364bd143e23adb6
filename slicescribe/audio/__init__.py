"""Audio capture, slicing and voice activity module."""

from .capture import CaptureDevice, PyAudioCaptureDevice
from .buffer import SliceBuffer
from .slicer import RecorderSlicer
from .vad import VoiceActivityGate
from .file_source import slice_wav_file

__all__ = [
    'CaptureDevice',
    'PyAudioCaptureDevice',
    'SliceBuffer',
    'RecorderSlicer',
    'VoiceActivityGate',
    'slice_wav_file',
]

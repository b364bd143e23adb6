"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AudioSlice:
    """One finalized, self-contained segment of captured audio."""
    slice_index: int
    audio_data: bytes  # WAV-encoded payload, empty if nothing was captured
    captured_at: float  # Unix timestamp when the slice was finalized
    duration_ms: int
    sample_rate: int = 16000
    channels: int = 1
    mime_type: str = "audio/wav"

    @property
    def is_empty(self) -> bool:
        return len(self.audio_data) == 0


@dataclass(frozen=True)
class CaptureConstraints:
    """Constraints used when acquiring the capture device."""
    device_id: Optional[str] = None
    sample_rate: int = 16000
    channels: int = 1
    chunk_size: int = 1024
    noise_suppression: bool = True
    echo_cancellation: bool = True

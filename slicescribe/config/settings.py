"""Typed views over configuration sections."""

from dataclasses import dataclass
from typing import Any, Optional

from ..models.audio import CaptureConstraints


@dataclass
class Preferences:
    """Per-user audio preferences."""
    device_id: Optional[str] = None
    slice_interval_ms: int = 5000

    @classmethod
    def from_config(cls, config: Any) -> "Preferences":
        device_id = config.get('audio.device_id')
        return cls(
            device_id=str(device_id) if device_id not in (None, "") else None,
            slice_interval_ms=int(config.get('audio.slice_interval_ms', 5000)),
        )


@dataclass
class VoiceActivitySettings:
    amplitude_threshold: float = 0.015
    ratio_threshold: float = 0.005

    @classmethod
    def from_config(cls, config: Any) -> "VoiceActivitySettings":
        return cls(
            amplitude_threshold=float(config.get('voice_activity.amplitude_threshold', 0.015)),
            ratio_threshold=float(config.get('voice_activity.ratio_threshold', 0.005)),
        )


@dataclass
class FinalizeSettings:
    """Timing of the stop/finalize protocol."""
    settle_delay_ms: int = 300
    poll_interval_ms: int = 500
    max_polls: int = 60
    release_grace_ms: int = 200

    @classmethod
    def from_config(cls, config: Any) -> "FinalizeSettings":
        return cls(
            settle_delay_ms=int(config.get('finalize.settle_delay_ms', 300)),
            poll_interval_ms=int(config.get('finalize.poll_interval_ms', 500)),
            max_polls=int(config.get('finalize.max_polls', 60)),
            release_grace_ms=int(config.get('finalize.release_grace_ms', 200)),
        )


def capture_constraints_from_config(config: Any, preferences: Optional[Preferences] = None) -> CaptureConstraints:
    """Capture constraints from the ``audio`` section and the user's device choice."""
    preferences = preferences or Preferences.from_config(config)
    return CaptureConstraints(
        device_id=preferences.device_id,
        sample_rate=int(config.get('audio.sample_rate', 16000)),
        channels=int(config.get('audio.channels', 1)),
        chunk_size=int(config.get('audio.chunk_size', 1024)),
        noise_suppression=bool(config.get('audio.noise_suppression', True)),
        echo_cancellation=bool(config.get('audio.echo_cancellation', True)),
    )

"""Session-related data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .slices import SliceStatus


class SessionPhase(Enum):
    """Recording session state machine."""
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


class FinalizeStatus(Enum):
    """How a finalization ended."""
    SAVED = "saved"
    NOTHING_TO_SAVE = "nothing_to_save"  # zero slices were produced
    SILENT = "silent"                    # slices settled but the transcript is empty
    SAVE_FAILED = "save_failed"
    FAILED = "failed"                    # timed out with an empty transcript


@dataclass
class FinalizeOutcome:
    """Result reported to the caller after stop."""
    status: FinalizeStatus
    transcript: str
    duration_seconds: float
    transcription_id: Optional[str] = None
    timed_out: bool = False
    abandoned_slices: List[int] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status in (FinalizeStatus.FAILED, FinalizeStatus.SAVE_FAILED)


@dataclass
class SessionSnapshot:
    """Point-in-time view of a dictation session."""
    phase: SessionPhase
    is_recording: bool
    is_paused: bool
    is_transcribing: bool
    elapsed_seconds: float
    slice_count: int
    transcript: str
    error: Optional[str]
    statuses: List[SliceStatus] = field(default_factory=list)

"""Data models for the SliceScribe application."""

from .audio import AudioSlice, CaptureConstraints
from .events import SessionEvent
from .session import FinalizeOutcome, FinalizeStatus, SessionPhase, SessionSnapshot
from .slices import SliceState, SliceStatus, TERMINAL_STATES
from .transcription import (
    SaveResult,
    TranscriptionPage,
    TranscriptionRecord,
    TranscriptionRequest,
    TranscriptionResponse,
    VocabularyEntry,
)

__all__ = [
    "AudioSlice",
    "CaptureConstraints",
    "SessionEvent",
    "FinalizeOutcome",
    "FinalizeStatus",
    "SessionPhase",
    "SessionSnapshot",
    "SliceState",
    "SliceStatus",
    "TERMINAL_STATES",
    "SaveResult",
    "TranscriptionPage",
    "TranscriptionRecord",
    "TranscriptionRequest",
    "TranscriptionResponse",
    "VocabularyEntry",
]

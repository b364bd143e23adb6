"""Transcription-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class VocabularyEntry:
    """A custom vocabulary word with optional usage context."""
    word: str
    context: Optional[str] = None


@dataclass
class TranscriptionRequest:
    """Request for transcribing a single slice."""
    audio_data: bytes
    mime_type: str
    slice_index: int
    sample_rate: int = 16000
    previous_context: Optional[str] = None
    vocabulary: List[VocabularyEntry] = field(default_factory=list)


@dataclass
class TranscriptionResponse:
    """Result of one transcription call."""
    success: bool
    text: str
    slice_index: int
    no_speech: bool = False
    duplicate: bool = False
    model: str = ""
    attempts: int = 1


@dataclass
class SaveResult:
    """Outcome of persisting a finished transcript."""
    success: bool
    id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class TranscriptionRecord:
    """A persisted transcript."""
    id: str
    text: str
    duration_seconds: float
    created_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "duration_seconds": self.duration_seconds,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TranscriptionRecord":
        return cls(
            id=data["id"],
            text=data["text"],
            duration_seconds=float(data["duration_seconds"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class TranscriptionPage:
    """One page of persisted transcripts plus the overall count."""
    items: List[TranscriptionRecord]
    total: int

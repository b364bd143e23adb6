"""Abstract base classes for transcription backends and duplicate validators."""

from abc import ABC, abstractmethod
from typing import Protocol
import logging

from ..models.transcription import TranscriptionRequest, TranscriptionResponse

logger = logging.getLogger(__name__)


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for transcription backends."""

    def __init__(self, language: str = "en-US"):
        """Initialize backend with language preference."""
        self.language = language

    @abstractmethod
    async def transcribe(self, request: TranscriptionRequest) -> TranscriptionResponse:
        """Transcribe one audio slice.

        Args:
            request: Slice payload, trailing context and vocabulary hints

        Returns:
            TranscriptionResponse with the (possibly empty) text

        Raises:
            TransientServiceError: For failures worth retrying
            PermanentServiceError: For failures that should end the slice
        """
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up backend resources."""
        pass


class DuplicateValidator(Protocol):
    """Delegated semantic check that keeps only genuinely new text."""

    async def validate(self, previous_context: str, new_text: str) -> str:
        """Return the new part of ``new_text`` or the duplicate sentinel."""
        ...

"""File-backed storage for finished transcripts."""

import json
import logging
import random
import string
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..models.transcription import SaveResult, TranscriptionPage, TranscriptionRecord


logger = logging.getLogger(__name__)


class TranscriptionStore:
    """Keeps one JSON file per saved transcript under ``<data_dir>/transcriptions``."""

    def __init__(self, data_dir: str = "./data"):
        """Initialize transcription store with data directory.

        Args:
            data_dir: Base directory for storing all data
        """
        self.data_dir = Path(data_dir)
        self.transcriptions_dir = self.data_dir / "transcriptions"
        self.logs_dir = self.data_dir / "logs"

        self._ensure_directories()

        logger.info(f"TranscriptionStore initialized with data_dir: {self.data_dir}")

    def _ensure_directories(self) -> None:
        """Ensure all required directories exist."""
        for directory in [self.data_dir, self.transcriptions_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Ensured directory exists: {directory}")

    def _new_id(self) -> str:
        """Timestamp-based id with a random suffix."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
        return f"{timestamp}_{random_suffix}"

    def _record_path(self, transcription_id: str) -> Path:
        return self.transcriptions_dir / f"{transcription_id}.json"

    def save_transcription(self, text: str, duration_seconds: float) -> SaveResult:
        """Persist a finished transcript.

        Args:
            text: Final transcript; surrounding whitespace is trimmed
            duration_seconds: Recording time excluding pauses

        Returns:
            SaveResult carrying the new id, or the failure reason
        """
        if not text or not text.strip():
            return SaveResult(success=False, error="Transcription text is required")

        transcription_id = self._new_id()
        while self._record_path(transcription_id).exists():
            transcription_id = self._new_id()

        record = TranscriptionRecord(
            id=transcription_id,
            text=text.strip(),
            duration_seconds=round(float(duration_seconds), 2),
            created_at=datetime.now(),
        )

        try:
            with open(self._record_path(transcription_id), 'w', encoding='utf-8') as f:
                json.dump(record.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Error saving transcription: {e}")
            return SaveResult(success=False, error=str(e))

        logger.info(f"Transcription saved: {transcription_id} ({len(record.text)} chars)")
        return SaveResult(success=True, id=transcription_id)

    def get_transcription(self, transcription_id: str) -> Optional[TranscriptionRecord]:
        path = self._record_path(transcription_id)
        if not path.exists():
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return TranscriptionRecord.from_dict(json.load(f))

    def _load_all(self) -> List[TranscriptionRecord]:
        records = []
        for path in self.transcriptions_dir.glob("*.json"):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    records.append(TranscriptionRecord.from_dict(json.load(f)))
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping unreadable transcription file {path}: {e}")
        return records

    def list_transcriptions(self, limit: int = 50, offset: int = 0) -> TranscriptionPage:
        """Newest first, paginated."""
        records = sorted(self._load_all(), key=lambda record: record.created_at, reverse=True)
        return TranscriptionPage(items=records[offset:offset + limit], total=len(records))

    def delete_transcription(self, transcription_id: str) -> bool:
        """Remove a transcript; returns False when it does not exist."""
        path = self._record_path(transcription_id)
        if not path.exists():
            logger.warning(f"Transcription not found: {transcription_id}")
            return False
        path.unlink()
        logger.info(f"Transcription deleted: {transcription_id}")
        return True

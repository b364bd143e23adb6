"""Custom vocabulary lookup with an explicit TTL cache."""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

import yaml

from ..models.transcription import VocabularyEntry

logger = logging.getLogger(__name__)

MAX_VOCABULARY_ENTRIES = 100


class VocabularyStore(Protocol):
    """Read-only access to a user's custom vocabulary."""

    def get_vocabulary(self, user_id: str) -> List[VocabularyEntry]:
        ...


class FileVocabularyStore:
    """Vocabulary kept in a YAML file.

    The file maps user ids to lists of ``{word, context}`` items; a ``default``
    list applies to users without their own entry::

        default:
          - word: Kubernetes
            context: container orchestration
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def get_vocabulary(self, user_id: str) -> List[VocabularyEntry]:
        if not self.path.exists():
            logger.debug(f"No vocabulary file at {self.path}")
            return []

        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        items = data.get(user_id, data.get("default", [])) or []
        entries = []
        for item in items:
            if isinstance(item, str):
                entries.append(VocabularyEntry(word=item))
            elif isinstance(item, dict) and item.get("word"):
                entries.append(VocabularyEntry(word=item["word"], context=item.get("context")))
        return entries


@dataclass
class _CacheEntry:
    words: List[VocabularyEntry]
    stored_at: float


class VocabularyCache:
    """Per-user vocabulary cache with a fixed time-to-live."""

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, user_id: str) -> Optional[List[VocabularyEntry]]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self.clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[user_id]
            return None
        return entry.words

    def put(self, user_id: str, words: List[VocabularyEntry]) -> None:
        self._entries[user_id] = _CacheEntry(words=list(words), stored_at=self.clock())

    def invalidate(self, user_id: str) -> None:
        """Drop a user's entry, e.g. after their dictionary was edited."""
        if self._entries.pop(user_id, None) is not None:
            logger.info(f"Invalidated vocabulary cache for user {user_id}")

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [user_id for user_id, entry in self._entries.items()
                   if now - entry.stored_at >= self.ttl_seconds]
        for user_id in expired:
            del self._entries[user_id]
        if expired:
            logger.debug(f"Purged {len(expired)} expired vocabulary cache entries")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


class VocabularySource:
    """Vocabulary hints for the worker: cache first, store on miss."""

    def __init__(self, store: VocabularyStore, cache: Optional[VocabularyCache] = None):
        self.store = store
        self.cache = cache or VocabularyCache()

    def entries_for(self, user_id: str) -> List[VocabularyEntry]:
        self.cache.purge_expired()
        words = self.cache.get(user_id)
        if words is None:
            words = self.store.get_vocabulary(user_id)
            self.cache.put(user_id, words)
            logger.info(f"Fetched and cached vocabulary for user {user_id} ({len(words)} words)")
        return words[:MAX_VOCABULARY_ENTRIES]

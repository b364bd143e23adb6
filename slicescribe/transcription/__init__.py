"""Transcription module for SliceScribe."""

from .base import AbstractTranscriptionBackend, DuplicateValidator
from .dedup import DUPLICATE_SENTINEL, OverlapRemover, remove_overlap, similarity_ratio
from .reassembly import SliceTextStore, join_fragments
from .vocabulary import FileVocabularyStore, VocabularyCache, VocabularySource
from .worker import SliceTranscriber, TranscriberSettings
from .http_backend import HttpTranscriptionBackend
from .google_backend import GoogleSpeechBackend
from .chatgpt_validator import ChatGPTDuplicateValidator

__all__ = [
    "AbstractTranscriptionBackend",
    "DuplicateValidator",
    "DUPLICATE_SENTINEL",
    "OverlapRemover",
    "remove_overlap",
    "similarity_ratio",
    "SliceTextStore",
    "join_fragments",
    "FileVocabularyStore",
    "VocabularyCache",
    "VocabularySource",
    "SliceTranscriber",
    "TranscriberSettings",
    "HttpTranscriptionBackend",
    "GoogleSpeechBackend",
    "ChatGPTDuplicateValidator",
]

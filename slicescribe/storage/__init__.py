"""Transcript persistence."""

from .file_manager import TranscriptionStore

__all__ = ['TranscriptionStore']

"""Session services."""

from .finalizer import SessionFinalizer
from .dictation_session import DictationSession

__all__ = ['SessionFinalizer', 'DictationSession']

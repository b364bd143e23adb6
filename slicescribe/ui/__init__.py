"""Terminal rendering with rich."""

from .history_view import render_history
from .live_view import LiveSessionView

__all__ = ['LiveSessionView', 'render_history']

"""Per-slice lifecycle records."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import InvalidSliceTransition


class SliceState(Enum):
    """Lifecycle state of one slice."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SliceState.COMPLETED, SliceState.ERROR, SliceState.SKIPPED})

_ALLOWED_TRANSITIONS = {
    SliceState.PENDING: {SliceState.PROCESSING, SliceState.SKIPPED},
    SliceState.PROCESSING: {SliceState.COMPLETED, SliceState.ERROR},
}


@dataclass
class SliceStatus:
    """Mutable status record for one slice, keyed by slice index."""
    slice_index: int
    state: SliceState = SliceState.PENDING
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def _move(self, target: SliceState) -> None:
        if target not in _ALLOWED_TRANSITIONS.get(self.state, set()):
            raise InvalidSliceTransition(
                f"slice {self.slice_index}: {self.state.value} -> {target.value}"
            )
        self.state = target

    def mark_processing(self) -> None:
        self._move(SliceState.PROCESSING)

    def mark_completed(self, text: str) -> None:
        self._move(SliceState.COMPLETED)
        self.text = text

    def mark_skipped(self) -> None:
        self._move(SliceState.SKIPPED)
        self.text = ""

    def mark_error(self, message: str) -> None:
        self._move(SliceState.ERROR)
        self.error = message

    def fail(self, message: str) -> None:
        """Move to error, passing through processing if still pending."""
        if self.state is SliceState.PENDING:
            self.mark_processing()
        self.mark_error(message)

    def to_dict(self) -> dict:
        return {
            "slice_index": self.slice_index,
            "status": self.state.value,
            "text": self.text,
            "error": self.error,
        }

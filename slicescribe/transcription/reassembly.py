"""Ordered reassembly of independently transcribed slices."""

import logging
from typing import Dict, Iterable, Iterator, Tuple

logger = logging.getLogger(__name__)


def join_fragments(fragments: Iterable[str]) -> str:
    """Concatenate fragments, adding one space only where neither side has whitespace.

    Empty fragments contribute nothing and never introduce spacing.
    """
    full_text = ""
    for fragment in fragments:
        if not fragment:
            continue
        needs_space = (
            len(full_text) > 0
            and not full_text[-1].isspace()
            and not fragment[0].isspace()
        )
        full_text += (" " if needs_space else "") + fragment
    return full_text


class SliceTextStore:
    """Resolved text per slice index; entries may arrive in any order."""

    def __init__(self):
        self._texts: Dict[int, str] = {}

    def set(self, slice_index: int, text: str) -> None:
        self._texts[slice_index] = text
        logger.debug(f"Stored text for slice {slice_index} ({len(text)} chars)")

    def get(self, slice_index: int) -> str:
        return self._texts.get(slice_index, "")

    def __contains__(self, slice_index: int) -> bool:
        return slice_index in self._texts

    def __len__(self) -> int:
        return len(self._texts)

    def items(self) -> Iterator[Tuple[int, str]]:
        """Entries sorted by slice index."""
        return iter(sorted(self._texts.items()))

    def reassemble(self) -> str:
        """The transcript: all stored texts ordered by slice index."""
        return join_fragments(text for _, text in self.items())

    def clear(self) -> None:
        self._texts.clear()

"""Overlap removal between consecutive slice transcripts.

Consecutive slices carry textual overlap: slice boundaries do not line up
with word boundaries and the remote model sees trailing context. Each raw
slice result is cleaned against the reference context through a funnel of
checks, cheapest first, each one short-circuiting on a match:

1. exact (case-insensitive) repeat of the reference -> empty
2. new text starts with the whole reference -> strip it
3. new text starts with the reference's tail -> strip the tail length
4. leading words match the reference's trailing words (>= 70%) -> strip them
5. bag-of-words similarity is logged, and a delegated validator gets the
   final say on paraphrased repeats
"""

import logging
import math
import re
from typing import Optional

from .base import DuplicateValidator

logger = logging.getLogger(__name__)

DUPLICATE_SENTINEL = "[DUPLICATE]"
SUFFIX_OVERLAP_CHARS = 50
WORD_WINDOW = 10
WORD_MATCH_RATIO = 0.7

_PUNCTUATION = re.compile(r"[^\w\s]")
_ANSWER_LABEL = re.compile(r"^(Output|Result|Cleaned transcription)[:\-]?\s*", re.IGNORECASE)


def remove_overlap(text: str, previous_context: Optional[str]) -> str:
    """Apply the string-level heuristics (tiers 1-4) to a raw slice result."""
    if not previous_context or not text:
        return text

    prev_lower = previous_context.lower().strip()
    text_stripped = text.strip()
    text_lower = text_stripped.lower()
    if not prev_lower:
        return text

    if text_lower == prev_lower:
        logger.debug("Removed exact duplicate")
        return ""

    if text_lower.startswith(prev_lower):
        logger.debug(f"Removed previous context prefix ({len(prev_lower)} chars)")
        return text_stripped[len(prev_lower):].strip()

    overlap_length = min(SUFFIX_OVERLAP_CHARS, int(len(prev_lower) * 0.5))
    if overlap_length > 0 and text_lower.startswith(prev_lower[-overlap_length:]):
        logger.debug(f"Removed overlapping suffix ({overlap_length} chars)")
        return text_stripped[overlap_length:].strip()

    prev_words = previous_context.split()
    text_words = text.split()
    if len(prev_words) >= 3:
        window = prev_words[-min(WORD_WINDOW, len(prev_words)):]
        overlap_count = sum(
            1 for idx, word in enumerate(window)
            if idx < len(text_words) and text_words[idx].lower() == word.lower()
        )
        if overlap_count >= math.ceil(len(window) * 7 / 10):
            logger.debug(f"Removed word-level overlap ({overlap_count} words)")
            return " ".join(text_words[overlap_count:])

    return text


def similarity_ratio(first: str, second: str) -> float:
    """Jaccard ratio of the lower-cased, punctuation-free word sets (0-1)."""
    if not first or not second:
        return 0.0

    words1 = set(_PUNCTUATION.sub("", first.lower()).split())
    words2 = set(_PUNCTUATION.sub("", second.lower()).split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def interpret_validation(raw: str) -> str:
    """Turn a validator answer into cleaned text; the sentinel means wholly duplicate."""
    if DUPLICATE_SENTINEL.lower() in raw.lower():
        return ""
    return _ANSWER_LABEL.sub("", raw.strip()).strip()


class OverlapRemover:
    """Runs the deduplication funnel for one workflow's thresholds."""

    def __init__(self,
                 validator: Optional[DuplicateValidator] = None,
                 similarity_threshold: float = 0.85,
                 min_validation_words: int = 3):
        """Initialize overlap remover.

        Args:
            validator: Optional delegated semantic check
            similarity_threshold: Ratio above which content is flagged as a likely repeat
            min_validation_words: Validation only runs on texts longer than this
        """
        self.validator = validator
        self.similarity_threshold = similarity_threshold
        self.min_validation_words = min_validation_words

    async def clean(self, text: str, previous_context: Optional[str]) -> str:
        cleaned = remove_overlap(text, previous_context)
        if not cleaned or not previous_context:
            return cleaned

        similarity = similarity_ratio(cleaned, previous_context)
        if similarity > self.similarity_threshold:
            logger.info(f"High similarity to previous context ({similarity:.1%}), likely duplicate")

        if self.validator is None or len(cleaned.split()) <= self.min_validation_words:
            return cleaned

        try:
            validated = interpret_validation(await self.validator.validate(previous_context, cleaned))
        except Exception as e:
            logger.warning(f"Duplicate validation failed, keeping heuristic result: {e}")
            return cleaned

        if not validated:
            logger.info("Validator marked slice text as a complete duplicate")
        else:
            logger.debug(f"Validation: '{cleaned}' -> '{validated}'")
        return validated

"""Slice transcription worker: one remote call per slice with retry and cancellation."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ..audio.vad import VoiceActivityGate
from ..errors import is_retryable
from ..events import TOPIC_ERROR, TOPIC_SLICE, TOPIC_TRANSCRIPT, SessionEventBus
from ..models.audio import AudioSlice
from ..models.slices import SliceState, SliceStatus
from ..models.transcription import TranscriptionRequest, VocabularyEntry
from .base import AbstractTranscriptionBackend
from .dedup import OverlapRemover
from .reassembly import SliceTextStore
from .vocabulary import VocabularySource

logger = logging.getLogger(__name__)


@dataclass
class TranscriberSettings:
    """Retry and context tuning for one workflow."""
    max_attempts: int = 2
    backoff_base_ms: int = 1000
    context_chars: int = 150
    similarity_threshold: float = 0.85

    @classmethod
    def realtime(cls) -> "TranscriberSettings":
        return cls()

    @classmethod
    def batch(cls) -> "TranscriberSettings":
        return cls(max_attempts=3, backoff_base_ms=1000, context_chars=100, similarity_threshold=0.90)

    @classmethod
    def from_config(cls, config: Any, mode: str = "realtime") -> "TranscriberSettings":
        """Read ``transcription.<mode>.*`` overrides on top of the mode's defaults."""
        base = cls.batch() if mode == "batch" else cls.realtime()
        prefix = f"transcription.{mode}"
        return cls(
            max_attempts=int(config.get(f"{prefix}.max_attempts", base.max_attempts)),
            backoff_base_ms=int(config.get(f"{prefix}.backoff_base_ms", base.backoff_base_ms)),
            context_chars=int(config.get(f"{prefix}.context_chars", base.context_chars)),
            similarity_threshold=float(
                config.get(f"{prefix}.similarity_threshold", base.similarity_threshold)
            ),
        )

    def backoff_seconds(self, attempt: int) -> float:
        """Linear backoff after the given (1-based) failed attempt."""
        return attempt * self.backoff_base_ms / 1000.0


class SliceTranscriber:
    """Transcribes slices independently and keeps per-slice status and text.

    Any number of ``process_slice`` coroutines may be pending at once. Each
    one only writes the status and text entries of its own slice index, and
    completion order does not matter: the transcript is always rebuilt in
    slice-index order.
    """

    def __init__(self,
                 backend: AbstractTranscriptionBackend,
                 gate: Optional[VoiceActivityGate] = None,
                 overlap_remover: Optional[OverlapRemover] = None,
                 settings: Optional[TranscriberSettings] = None,
                 bus: Optional[SessionEventBus] = None,
                 vocabulary: Optional[VocabularySource] = None,
                 user_id: str = "default",
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """Initialize slice transcriber.

        Args:
            backend: Remote transcription service
            gate: Voice activity gate run before any network call
            overlap_remover: Deduplication funnel applied to every raw result
            settings: Retry/context tuning, realtime defaults if omitted
            bus: Event channel for slice, transcript and error events
            vocabulary: Optional custom vocabulary hints
            user_id: Whose vocabulary to use
            sleep: Backoff sleep, replaceable in tests
        """
        self.backend = backend
        self.gate = gate or VoiceActivityGate()
        self.settings = settings or TranscriberSettings.realtime()
        self.overlap_remover = overlap_remover or OverlapRemover(
            similarity_threshold=self.settings.similarity_threshold
        )
        self.bus = bus
        self.vocabulary = vocabulary
        self.user_id = user_id
        self._sleep = sleep

        self.error: Optional[str] = None
        self._statuses: Dict[int, SliceStatus] = {}
        self._texts = SliceTextStore()
        self._active: Dict[int, asyncio.Task] = {}
        self._generation = 0

    # Queries

    @property
    def transcript(self) -> str:
        return self._texts.reassemble()

    @property
    def is_transcribing(self) -> bool:
        """True while any slice request is in flight."""
        return bool(self._active)

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def statuses(self) -> List[SliceStatus]:
        return [self._statuses[index] for index in sorted(self._statuses)]

    def status_of(self, slice_index: int) -> Optional[SliceStatus]:
        return self._statuses.get(slice_index)

    def all_settled(self, expected_count: int) -> bool:
        """True once every expected slice has a terminal status."""
        if len(self._statuses) < expected_count:
            return False
        return all(status.is_terminal for status in self._statuses.values())

    def trailing_context(self) -> str:
        """Tail of the transcript so far, passed along to aid spelling and continuity."""
        if self.settings.context_chars <= 0:
            return ""
        return self.transcript[-self.settings.context_chars:]

    # Slice lifecycle

    def register_slice(self, audio_slice: AudioSlice) -> SliceStatus:
        """Create the pending status for a newly emitted slice."""
        status = self._statuses.get(audio_slice.slice_index)
        if status is None:
            status = SliceStatus(slice_index=audio_slice.slice_index)
            self._statuses[audio_slice.slice_index] = status
            self._publish_slice(status)
        return status

    async def process_slice(self, audio_slice: AudioSlice) -> SliceStatus:
        """Gate, transcribe and clean one slice, then record its terminal state."""
        generation = self._generation
        index = audio_slice.slice_index
        status = self.register_slice(audio_slice)
        if status.state is not SliceState.PENDING:
            logger.debug(f"Slice {index} already {status.state.value}, not processing again")
            return status

        task = asyncio.current_task()
        self._active[index] = task
        try:
            if not self.gate.has_speech(audio_slice.audio_data):
                logger.debug(f"Slice {index} has no speech, skipping")
                status.mark_skipped()
                self._texts.set(index, "")
                self._publish_slice(status)
                return status

            status.mark_processing()
            self._publish_slice(status)
            text = await self._transcribe_with_retry(audio_slice)
        except asyncio.CancelledError:
            logger.info(f"Slice {index} request cancelled")
            raise
        except Exception as e:
            if self._owns(generation, status):
                logger.error(f"Slice {index} failed: {e}")
                status.fail(str(e))
                self._report_error(f"Slice {index} failed: {e}")
                self._publish_slice(status)
            return status
        finally:
            if self._active.get(index) is task:
                del self._active[index]

        if not self._owns(generation, status):
            return status

        status.mark_completed(text)
        self._texts.set(index, text)
        logger.info(f"Slice {index} completed: '{text}'")
        self._publish_slice(status)
        if self.bus is not None:
            self.bus.publish(TOPIC_TRANSCRIPT, "transcript_updated", transcript=self.transcript)
        return status

    async def transcribe_all(self, slices: Sequence[AudioSlice]) -> str:
        """Transcribe a finished recording slice by slice, in order.

        Each slice sees the transcript built from the slices before it.
        """
        if not slices:
            self._report_error("No audio slices to process")
            return ""

        for audio_slice in slices:
            self.register_slice(audio_slice)
        for audio_slice in slices:
            await self.process_slice(audio_slice)
        return self.transcript

    async def _transcribe_with_retry(self, audio_slice: AudioSlice) -> str:
        max_attempts = max(1, self.settings.max_attempts)
        attempt = 0
        while True:
            attempt += 1
            context = self.trailing_context()
            request = TranscriptionRequest(
                audio_data=audio_slice.audio_data,
                mime_type=audio_slice.mime_type,
                slice_index=audio_slice.slice_index,
                sample_rate=audio_slice.sample_rate,
                previous_context=context or None,
                vocabulary=self._vocabulary_entries(),
            )
            try:
                response = await self.backend.transcribe(request)
            except Exception as e:
                if not is_retryable(e) or attempt >= max_attempts:
                    raise
                delay = self.settings.backoff_seconds(attempt)
                logger.warning(
                    f"Slice {audio_slice.slice_index} attempt {attempt}/{max_attempts} failed ({e}), "
                    f"retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            if response.no_speech or response.duplicate or not response.text.strip():
                return ""
            return await self.overlap_remover.clean(response.text, context)

    def _vocabulary_entries(self) -> List[VocabularyEntry]:
        if self.vocabulary is None:
            return []
        try:
            return self.vocabulary.entries_for(self.user_id)
        except (OSError, ValueError) as e:
            logger.warning(f"Vocabulary lookup failed, continuing without it: {e}")
            return []

    # Cancellation

    def cancel_all(self) -> List[int]:
        """Abort every in-flight request.

        Cancelled slices are dropped from the status map here, so none stays
        in ``processing``; the cancelled workers themselves write nothing.
        """
        cancelled = sorted(self._active)
        for index in cancelled:
            self._active.pop(index).cancel()
            self._statuses.pop(index, None)
        if cancelled:
            logger.info(f"Cancelled {len(cancelled)} in-flight slice requests: {cancelled}")
        return cancelled

    def reset(self) -> None:
        """Cancel outstanding work and forget all slice state."""
        self.cancel_all()
        self._generation += 1
        self._statuses.clear()
        self._texts.clear()
        self.error = None

    def abandon_outstanding(self, reason: str) -> List[int]:
        """Cancel in-flight work and mark every unsettled slice as errored."""
        for index in list(self._active):
            self._active.pop(index).cancel()

        abandoned = []
        for status in self.statuses:
            if status.is_terminal:
                continue
            status.fail(reason)
            abandoned.append(status.slice_index)
            self._publish_slice(status)
        if abandoned:
            logger.warning(f"Abandoned slices {abandoned}: {reason}")
        return abandoned

    def _owns(self, generation: int, status: SliceStatus) -> bool:
        """Whether a worker may still write its result."""
        return (generation == self._generation
                and self._statuses.get(status.slice_index) is status
                and not status.is_terminal)

    # Events

    def _report_error(self, message: str) -> None:
        self.error = message
        if self.bus is not None:
            self.bus.publish(TOPIC_ERROR, "slice_error", message=message)

    def _publish_slice(self, status: SliceStatus) -> None:
        if self.bus is not None:
            self.bus.publish(TOPIC_SLICE, "slice_status", **status.to_dict())

"""Session Finalizer: waits for slices to settle, then saves the transcript once."""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Protocol, Union

from ..errors import FinalizationTimeout
from ..events import TOPIC_ERROR, TOPIC_SAVED, SessionEventBus
from ..models.session import FinalizeOutcome, FinalizeStatus
from ..models.transcription import SaveResult
from ..transcription.worker import SliceTranscriber

logger = logging.getLogger(__name__)

ABANDONED_REASON = "abandoned: finalization timed out"


class TranscriptSink(Protocol):
    """Storage collaborator receiving finished transcripts."""

    def save_transcription(self, text: str,
                           duration_seconds: float) -> Union[SaveResult, Awaitable[SaveResult]]:
        ...


class SessionFinalizer:
    """Bounded poll for slice convergence followed by a single save."""

    def __init__(self,
                 transcriber: SliceTranscriber,
                 store: TranscriptSink,
                 settle_delay_s: float = 0.3,
                 poll_interval_s: float = 0.5,
                 max_polls: int = 60,
                 bus: Optional[SessionEventBus] = None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.transcriber = transcriber
        self.store = store
        self.settle_delay_s = settle_delay_s
        self.poll_interval_s = poll_interval_s
        self.max_polls = max_polls
        self.bus = bus
        self._sleep = sleep

    @classmethod
    def from_settings(cls, transcriber: SliceTranscriber, store: TranscriptSink, settings,
                      bus: Optional[SessionEventBus] = None) -> "SessionFinalizer":
        return cls(
            transcriber,
            store,
            settle_delay_s=settings.settle_delay_ms / 1000.0,
            poll_interval_s=settings.poll_interval_ms / 1000.0,
            max_polls=settings.max_polls,
            bus=bus,
        )

    async def wait_for_slices(self, slice_count: int) -> bool:
        """Poll until all ``slice_count`` slices are terminal; False on timeout."""
        await self._sleep(self.settle_delay_s)
        for poll in range(self.max_polls):
            if self.transcriber.all_settled(slice_count):
                logger.debug(f"All {slice_count} slices settled after {poll} polls")
                return True
            await self._sleep(self.poll_interval_s)
        return self.transcriber.all_settled(slice_count)

    async def finalize(self, slice_count: int, duration_seconds: float) -> FinalizeOutcome:
        """Run the stop protocol for a session that produced ``slice_count`` slices.

        Args:
            slice_count: Slices produced, snapshotted when recording stopped
            duration_seconds: Recorded time excluding pauses

        Returns:
            FinalizeOutcome; only a timeout with no text counts as a failure
        """
        if slice_count == 0:
            logger.info("No slices were produced, nothing to save")
            return FinalizeOutcome(FinalizeStatus.NOTHING_TO_SAVE, "", duration_seconds)

        settled = await self.wait_for_slices(slice_count)
        abandoned = []
        if not settled:
            abandoned = self.transcriber.abandon_outstanding(ABANDONED_REASON)

        transcript = self.transcriber.transcript.strip()

        if not settled:
            timeout = FinalizationTimeout(
                f"Slices did not settle after {self.max_polls} polls "
                f"({self.max_polls * self.poll_interval_s:.1f}s)"
            )
            if not transcript:
                logger.error(f"{timeout}, transcript is empty")
                self._publish_error(str(timeout), fatal=True)
                return FinalizeOutcome(FinalizeStatus.FAILED, "", duration_seconds,
                                       timed_out=True, abandoned_slices=abandoned,
                                       error=str(timeout))
            logger.warning(f"{timeout}, saving partial transcript")
            self._publish_error(str(timeout), fatal=False)

        if not transcript:
            logger.info("Transcript is empty, nothing to save")
            return FinalizeOutcome(FinalizeStatus.SILENT, "", duration_seconds)

        outcome = await self._save(transcript, duration_seconds)
        outcome.timed_out = not settled
        outcome.abandoned_slices = abandoned
        return outcome

    async def _save(self, transcript: str, duration_seconds: float) -> FinalizeOutcome:
        try:
            result = self.store.save_transcription(transcript, duration_seconds)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Saving transcription failed: {e}", exc_info=True)
            self._publish_error(f"Failed to save transcription: {e}", fatal=True)
            return FinalizeOutcome(FinalizeStatus.SAVE_FAILED, transcript, duration_seconds,
                                   error=str(e))

        if not result.success:
            logger.error(f"Saving transcription failed: {result.error}")
            self._publish_error(f"Failed to save transcription: {result.error}", fatal=True)
            return FinalizeOutcome(FinalizeStatus.SAVE_FAILED, transcript, duration_seconds,
                                   error=result.error)

        logger.info(f"Transcription saved as {result.id} ({duration_seconds:.1f}s)")
        if self.bus is not None:
            self.bus.publish(TOPIC_SAVED, "transcription_saved", transcription_id=result.id,
                             transcript=transcript, duration_seconds=duration_seconds)
        return FinalizeOutcome(FinalizeStatus.SAVED, transcript, duration_seconds,
                               transcription_id=result.id)

    def _publish_error(self, message: str, fatal: bool) -> None:
        if self.bus is not None:
            self.bus.publish(TOPIC_ERROR, "finalize_error", message=message, fatal=fatal)

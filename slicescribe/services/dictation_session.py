"""Dictation session: recorder, workers and finalizer behind one state machine."""

import asyncio
import logging
from typing import Optional, Set

from ..audio.capture import CaptureDevice
from ..audio.slicer import RecorderSlicer
from ..config.settings import Preferences
from ..errors import CaptureError
from ..events import TOPIC_ERROR, TOPIC_STATE, SessionEventBus
from ..models.audio import AudioSlice, CaptureConstraints
from ..models.session import FinalizeOutcome, FinalizeStatus, SessionPhase, SessionSnapshot
from ..transcription.worker import SliceTranscriber
from .finalizer import SessionFinalizer

logger = logging.getLogger(__name__)


class DictationSession:
    """Runs one recording session at a time: ``idle -> recording <-> paused -> stopped``.

    Slices are dispatched to the transcriber the moment they are produced;
    the event loop is never blocked on a pending transcription.
    """

    def __init__(self,
                 device: CaptureDevice,
                 transcriber: SliceTranscriber,
                 finalizer: SessionFinalizer,
                 preferences: Optional[Preferences] = None,
                 constraints: Optional[CaptureConstraints] = None,
                 bus: Optional[SessionEventBus] = None,
                 release_grace_ms: int = 200):
        self.device = device
        self.transcriber = transcriber
        self.finalizer = finalizer
        self.preferences = preferences or Preferences()
        self.constraints = constraints or CaptureConstraints(device_id=self.preferences.device_id)
        self.bus = bus
        self.release_grace_ms = release_grace_ms

        self.phase = SessionPhase.IDLE
        self.error: Optional[str] = None
        self.slicer: Optional[RecorderSlicer] = None
        self.last_outcome: Optional[FinalizeOutcome] = None
        self._pending: Set[asyncio.Task] = set()

    @property
    def is_recording(self) -> bool:
        return self.phase in (SessionPhase.RECORDING, SessionPhase.PAUSED)

    async def start(self) -> None:
        """Acquire the device and begin a fresh session.

        Raises:
            DeviceUnavailable: If no capture device matches
            PermissionDenied: If access to the device is refused
        """
        if self.is_recording:
            logger.warning("Session already recording")
            return

        self._cancel_pending()
        if self.slicer is not None:
            await self.slicer.release()
        self.transcriber.reset()
        self.error = None
        self.last_outcome = None

        # Preferences are read once here and stay fixed for the session
        self.slicer = RecorderSlicer(
            self.device,
            on_slice=self._dispatch_slice,
            slice_interval_ms=self.preferences.slice_interval_ms,
            release_grace_ms=self.release_grace_ms,
            on_error=self._on_device_error,
        )
        try:
            await self.slicer.start(self.constraints)
        except CaptureError as e:
            self.error = str(e)
            logger.error(f"Could not start recording: {e}")
            self._publish_error(str(e), fatal=True)
            await self.slicer.release()
            raise

        self._set_phase(SessionPhase.RECORDING)

    def pause(self) -> None:
        if self.phase is not SessionPhase.RECORDING:
            logger.warning("Cannot pause: not recording")
            return
        self.slicer.pause()
        self._set_phase(SessionPhase.PAUSED)

    def resume(self) -> None:
        if self.phase is not SessionPhase.PAUSED:
            logger.warning("Cannot resume: not paused")
            return
        self.slicer.resume()
        self._set_phase(SessionPhase.RECORDING)

    async def stop(self) -> FinalizeOutcome:
        """Stop recording, wait for slices to settle and save the transcript."""
        if self.slicer is None or self.phase is SessionPhase.IDLE:
            logger.warning("No session to stop")
            return FinalizeOutcome(FinalizeStatus.NOTHING_TO_SAVE, "", 0.0)
        if self.last_outcome is not None:
            return self.last_outcome

        if self.slicer.is_recording:
            await self.slicer.stop()
        duration = self.slicer.elapsed_seconds
        slice_count = self.slicer.slice_count
        self._set_phase(SessionPhase.STOPPED)
        logger.info(f"Finalizing session: {slice_count} slices, {duration:.1f}s")

        outcome = await self.finalizer.finalize(slice_count, duration)
        self.last_outcome = outcome
        if outcome.is_error:
            self.error = outcome.error
        # Workers abandoned on timeout are already cancelled
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        return outcome

    async def close(self) -> None:
        """Tear down: cancel outstanding work, release the device, clear state."""
        self._cancel_pending()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self.slicer is not None:
            await self.slicer.release()
        self.transcriber.reset()
        self.slicer = None
        if self.phase is not SessionPhase.IDLE:
            self._set_phase(SessionPhase.IDLE)

    def snapshot(self) -> SessionSnapshot:
        slicer = self.slicer
        return SessionSnapshot(
            phase=self.phase,
            is_recording=self.is_recording,
            is_paused=self.phase is SessionPhase.PAUSED,
            is_transcribing=self.transcriber.is_transcribing,
            elapsed_seconds=slicer.elapsed_seconds if slicer else 0.0,
            slice_count=slicer.slice_count if slicer else 0,
            transcript=self.transcriber.transcript,
            error=self.error or self.transcriber.error,
            statuses=self.transcriber.statuses,
        )

    def _dispatch_slice(self, audio_slice: AudioSlice) -> None:
        self.transcriber.register_slice(audio_slice)
        task = asyncio.create_task(self.transcriber.process_slice(audio_slice))
        self._pending.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Slice task failed unexpectedly: {exc}", exc_info=exc)

    def _cancel_pending(self) -> None:
        for task in list(self._pending):
            task.cancel()

    def _on_device_error(self, error: Exception) -> None:
        self.error = str(error)
        self._publish_error(str(error), fatal=False)
        self._set_phase(SessionPhase.STOPPED)

    def _set_phase(self, phase: SessionPhase) -> None:
        self.phase = phase
        logger.info(f"Session state: {phase.value}")
        if self.bus is not None:
            self.bus.publish(TOPIC_STATE, "state_changed", phase=phase.value)

    def _publish_error(self, message: str, fatal: bool) -> None:
        if self.bus is not None:
            self.bus.publish(TOPIC_ERROR, "session_error", message=message, fatal=fatal)

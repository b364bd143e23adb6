"""Recorder/Slicer: turns continuous capture into fixed-interval audio slices."""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from ..errors import DeviceUnavailable
from ..models.audio import AudioSlice, CaptureConstraints
from .capture import CaptureDevice
from .wav import encode_wav, pcm_duration_ms

logger = logging.getLogger(__name__)


class RecorderSlicer:
    """Owns the capture device and emits a contiguous sequence of AudioSlices.

    Slices are emitted through ``on_slice`` the moment they are finalized, so
    downstream work on slice k overlaps with capturing slice k+1. Slice
    indices run 0..N-1 for the whole session regardless of pause/resume.
    """

    def __init__(self,
                 device: CaptureDevice,
                 on_slice: Callable[[AudioSlice], None],
                 slice_interval_ms: int = 5000,
                 release_grace_ms: int = 200,
                 on_error: Optional[Callable[[Exception], None]] = None):
        """Initialize recorder/slicer.

        Args:
            device: Capture device supporting flush-and-continue
            on_slice: Called on the event loop with every finalized slice
            slice_interval_ms: Boundary timer period
            release_grace_ms: Delay before releasing the device after stop
            on_error: Called when the device is lost mid-session
        """
        self.device = device
        self.on_slice = on_slice
        self.slice_interval_ms = slice_interval_ms
        self.release_grace_ms = release_grace_ms
        self.on_error = on_error

        self.is_recording = False
        self.is_paused = False
        self.slices: List[AudioSlice] = []

        self._next_index = 0
        self._elapsed = 0.0
        self._active_since: Optional[float] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._release_task: Optional[asyncio.Task] = None
        self._released = True

    @property
    def slice_count(self) -> int:
        return self._next_index

    @property
    def elapsed_seconds(self) -> float:
        """Recorded time, excluding paused spans."""
        elapsed = self._elapsed
        if self._active_since is not None:
            elapsed += time.monotonic() - self._active_since
        return elapsed

    async def start(self, constraints: CaptureConstraints) -> None:
        """Acquire the device and begin slicing.

        Raises:
            DeviceUnavailable: If no device matches the constraints
            PermissionDenied: If access to the device is refused
        """
        if self.is_recording:
            logger.warning("Recording already in progress")
            return

        if self._release_task is not None and not self._release_task.done():
            self._release_task.cancel()
            self._release_device()

        self.slices = []
        self._next_index = 0
        self._elapsed = 0.0

        self.device.open(constraints)
        self._released = False
        self.device.start_capture()

        self.is_recording = True
        self.is_paused = False
        self._active_since = time.monotonic()
        self._start_timer()
        logger.info(f"Recording started, slicing every {self.slice_interval_ms}ms")

    def pause(self) -> Optional[AudioSlice]:
        """Finalize the current slice and freeze capture and the boundary timer."""
        if not self.is_recording or self.is_paused:
            logger.warning("Cannot pause: not actively recording")
            return None

        self._stop_timer()
        self.device.stop_capture()
        self._freeze_elapsed()
        self.is_paused = True
        logger.info("Recording paused")
        return self._finalize_slice()

    def resume(self) -> None:
        """Restart capture and the boundary timer, keeping the slice counter."""
        if not self.is_recording or not self.is_paused:
            logger.warning("Cannot resume: recording is not paused")
            return

        self.device.start_capture()
        self.is_paused = False
        self._active_since = time.monotonic()
        self._start_timer()
        logger.info("Recording resumed")

    async def stop(self) -> Optional[AudioSlice]:
        """Finalize the in-flight partial slice and release the device after a grace delay."""
        if not self.is_recording:
            logger.warning("No recording in progress")
            return None

        self._stop_timer()
        final_slice = None
        if not self.is_paused:
            self.device.stop_capture()
            self._freeze_elapsed()
            pcm, _ = self.device.flush()
            if pcm:
                final_slice = self._emit_slice(pcm)

        self.is_recording = False
        self.is_paused = False
        self._release_task = asyncio.create_task(self._release_after_grace())
        logger.info(f"Recording stopped after {self.elapsed_seconds:.1f}s, {self.slice_count} slices")
        return final_slice

    async def release(self) -> None:
        """Tear down immediately: stop timers and release the device once."""
        self._stop_timer()
        if self._release_task is not None and self._release_task is not asyncio.current_task():
            self._release_task.cancel()
        if self.is_recording and not self.is_paused:
            self._freeze_elapsed()
        self.is_recording = False
        self.is_paused = False
        self._release_device()

    def _start_timer(self) -> None:
        self._timer_task = asyncio.create_task(self._run_boundary_timer())

    def _stop_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def _freeze_elapsed(self) -> None:
        if self._active_since is not None:
            self._elapsed += time.monotonic() - self._active_since
            self._active_since = None

    async def _run_boundary_timer(self) -> None:
        interval = self.slice_interval_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            if self.device.failure is not None:
                self._handle_device_loss()
                return
            self._finalize_slice()

    def _finalize_slice(self) -> AudioSlice:
        """Flush the device buffer into one slice; capture keeps running."""
        pcm, _ = self.device.flush()
        return self._emit_slice(pcm)

    def _emit_slice(self, pcm: bytes) -> AudioSlice:
        index = self._next_index
        self._next_index += 1

        if pcm:
            audio_data = encode_wav(pcm, self.device.sample_rate, self.device.channels)
            duration_ms = pcm_duration_ms(len(pcm), self.device.sample_rate, self.device.channels)
        else:
            # Index is still consumed so indices stay contiguous
            logger.warning(f"No audio captured for slice {index}, emitting empty slice")
            audio_data = b""
            duration_ms = self.slice_interval_ms

        audio_slice = AudioSlice(
            slice_index=index,
            audio_data=audio_data,
            captured_at=time.time(),
            duration_ms=duration_ms,
            sample_rate=self.device.sample_rate,
            channels=self.device.channels,
        )
        self.slices.append(audio_slice)
        logger.info(f"Finalized slice {index}: {len(audio_data)} bytes, {duration_ms}ms")

        try:
            self.on_slice(audio_slice)
        except Exception as e:
            logger.error(f"Slice callback failed for slice {index}: {e}", exc_info=True)
        return audio_slice

    def _handle_device_loss(self) -> None:
        failure = self.device.failure
        logger.error(f"Capture device lost mid-session: {failure}")
        self._timer_task = None
        self._freeze_elapsed()
        pcm, _ = self.device.flush()
        if pcm:
            self._emit_slice(pcm)
        self.is_recording = False
        self.is_paused = False
        self._release_device()
        if self.on_error:
            self.on_error(DeviceUnavailable(f"Capture device lost: {failure}"))

    async def _release_after_grace(self) -> None:
        await asyncio.sleep(self.release_grace_ms / 1000.0)
        self._release_device()

    def _release_device(self) -> None:
        if self._released:
            return
        self._released = True
        self.device.close()

"""Thread-safe capture buffer with flush-and-continue semantics."""

import logging
import threading
import time
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class SliceBuffer:
    """Accumulates PCM frames from the capture thread until the next slice boundary.

    ``drain`` swaps the accumulated bytes out under the lock, so frames that
    arrive while a slice is being finalized land in the next slice instead of
    being dropped.
    """

    def __init__(self, sample_rate: int = 16000, channels: int = 1):
        self.sample_rate = sample_rate
        self.channels = channels
        self.bytes_per_sample = 2  # 16-bit audio

        self._data = bytearray()
        self._lock = threading.Lock()
        self._first_frame_at: Optional[float] = None
        self.frame_counter = 0
        self.total_bytes = 0

    def append(self, frame: bytes) -> None:
        """Add one frame read from the device."""
        if not frame:
            return
        with self._lock:
            if self._first_frame_at is None:
                self._first_frame_at = time.time()
            self._data.extend(frame)
            self.frame_counter += 1
            self.total_bytes += len(frame)

    def drain(self) -> Tuple[bytes, Optional[float]]:
        """Return everything captured since the previous drain and reset.

        Returns:
            Tuple of (pcm_bytes, timestamp_of_first_frame or None)
        """
        with self._lock:
            data = bytes(self._data)
            started_at = self._first_frame_at
            self._data.clear()
            self._first_frame_at = None
        logger.debug(f"Drained {len(data)} bytes from slice buffer")
        return data, started_at

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._first_frame_at = None
            self.frame_counter = 0
            self.total_bytes = 0

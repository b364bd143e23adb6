"""Voice activity gate: local energy test run before any network call."""

import logging

import numpy as np

from ..errors import DecodeError
from .wav import decode_wav

logger = logging.getLogger(__name__)

DEFAULT_AMPLITUDE_THRESHOLD = 0.015
DEFAULT_RATIO_THRESHOLD = 0.005


class VoiceActivityGate:
    """Decides per slice whether it contains speech worth transcribing."""

    def __init__(self,
                 amplitude_threshold: float = DEFAULT_AMPLITUDE_THRESHOLD,
                 ratio_threshold: float = DEFAULT_RATIO_THRESHOLD):
        """Initialize the gate.

        Args:
            amplitude_threshold: RMS level, and per-sample absolute level, counted as speech
            ratio_threshold: Fraction of loud samples that is enough on its own
        """
        self.amplitude_threshold = amplitude_threshold
        self.ratio_threshold = ratio_threshold

    def has_speech(self, audio_data: bytes) -> bool:
        """Check an encoded slice payload.

        A zero-length payload never has speech. A payload that cannot be
        decoded is assumed to have speech so real audio is never dropped.
        """
        if not audio_data:
            return False

        try:
            samples = decode_wav(audio_data)
        except DecodeError as e:
            logger.warning(f"Failed to analyze audio slice, defaulting to has speech: {e}")
            return True

        return self.samples_have_speech(samples)

    def samples_have_speech(self, samples: np.ndarray) -> bool:
        """Check a buffer of normalized amplitude samples."""
        if samples.size == 0:
            return False

        samples = np.asarray(samples, dtype=np.float64)
        rms = float(np.sqrt(np.mean(np.square(samples))))
        loud = int(np.count_nonzero(np.abs(samples) >= self.amplitude_threshold))
        ratio = loud / samples.size

        logger.debug(f"VAD: rms={rms:.4f} ratio={ratio:.4f} samples={samples.size}")
        return rms >= self.amplitude_threshold or ratio >= self.ratio_threshold

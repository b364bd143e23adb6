"""Cut a recorded WAV file into AudioSlices for the batch workflow."""

import logging
import time
import wave
from pathlib import Path
from typing import List

from ..errors import DecodeError
from ..models.audio import AudioSlice
from .wav import SAMPLE_WIDTH, encode_wav, pcm_duration_ms

logger = logging.getLogger(__name__)


def slice_wav_file(filepath: str, slice_interval_ms: int = 5000) -> List[AudioSlice]:
    """Split a 16-bit PCM WAV file into consecutive, non-overlapping slices.

    Args:
        filepath: Path to the WAV file
        slice_interval_ms: Duration of each slice; the last one may be shorter

    Returns:
        Slices indexed 0..N-1 in file order
    """
    path = Path(filepath)
    try:
        with wave.open(str(path), 'rb') as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            frames = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as e:
        raise DecodeError(f"Cannot read {path}: {e}") from e

    if sample_width != SAMPLE_WIDTH:
        raise DecodeError(f"{path}: only 16-bit PCM is supported")

    frames_per_slice = max(1, int(sample_rate * slice_interval_ms / 1000))
    bytes_per_slice = frames_per_slice * channels * SAMPLE_WIDTH

    slices = []
    for index, offset in enumerate(range(0, len(frames), bytes_per_slice)):
        pcm = frames[offset:offset + bytes_per_slice]
        slices.append(AudioSlice(
            slice_index=index,
            audio_data=encode_wav(pcm, sample_rate, channels),
            captured_at=time.time(),
            duration_ms=pcm_duration_ms(len(pcm), sample_rate, channels),
            sample_rate=sample_rate,
            channels=channels,
        ))

    logger.info(f"Cut {path.name} into {len(slices)} slices of {slice_interval_ms}ms")
    return slices

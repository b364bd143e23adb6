"""WAV encoding and decoding for audio slices."""

import io
import wave

import numpy as np

from ..errors import DecodeError

SAMPLE_WIDTH = 2  # 16-bit PCM


def encode_wav(pcm: bytes, sample_rate: int, channels: int = 1) -> bytes:
    """Wrap raw 16-bit PCM into a self-contained WAV payload."""
    buffer = io.BytesIO()
    with wave.open(buffer, 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(SAMPLE_WIDTH)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buffer.getvalue()


def decode_wav(data: bytes) -> np.ndarray:
    """Decode a WAV payload to a single channel of normalized float samples.

    Raises:
        DecodeError: If the payload is not a 16-bit PCM WAV file.
    """
    try:
        with wave.open(io.BytesIO(data), 'rb') as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            frames = wf.readframes(wf.getnframes())
    except (wave.Error, EOFError) as e:
        raise DecodeError(f"Invalid WAV payload: {e}") from e

    if sample_width != SAMPLE_WIDTH:
        raise DecodeError(f"Unsupported sample width: {sample_width * 8} bits")

    # A truncated data chunk can end mid-frame
    frame_bytes = SAMPLE_WIDTH * max(channels, 1)
    frames = frames[:len(frames) - len(frames) % frame_bytes]
    try:
        samples = np.frombuffer(frames, dtype=np.int16)
        if channels > 1:
            samples = samples.reshape(-1, channels)[:, 0]
    except ValueError as e:
        raise DecodeError(f"Malformed PCM data: {e}") from e
    return samples.astype(np.float64) / 32768.0


def pcm_duration_ms(pcm_length: int, sample_rate: int, channels: int = 1) -> int:
    """Duration in milliseconds of a raw 16-bit PCM buffer."""
    bytes_per_second = sample_rate * channels * SAMPLE_WIDTH
    return int(pcm_length * 1000 / bytes_per_second)

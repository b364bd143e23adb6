"""Real hardware tests for slicing microphone audio.

These tests require an actual input device and verify that the PyAudio
capture device feeds the recorder/slicer with contiguous, decodable slices.

Run with: pytest tests/hardware/ -v -s -m hardware
"""

import asyncio

import pytest

from slicescribe.audio import PyAudioCaptureDevice, RecorderSlicer, VoiceActivityGate
from slicescribe.audio.wav import decode_wav
from slicescribe.errors import CaptureError
from slicescribe.models.audio import CaptureConstraints


@pytest.mark.hardware
@pytest.mark.slow
class TestRealMicrophone:
    """Tests that require real audio hardware to run."""

    def test_three_seconds_cut_into_slices(self):
        """Record ~3 seconds with a 1 second slice interval.

        Audio is captured regardless of ambient sound, so only the slice
        sequence and payloads are checked, not their content.
        """
        slices = []
        device = PyAudioCaptureDevice()
        slicer = RecorderSlicer(device, on_slice=slices.append, slice_interval_ms=1000, release_grace_ms=0)

        async def scenario():
            try:
                await slicer.start(CaptureConstraints())
            except CaptureError as e:
                pytest.skip(f"No usable microphone: {e}")
            await asyncio.sleep(3.2)
            await slicer.stop()
            await slicer.release()

        asyncio.run(scenario())

        print(f"\nRecorded {slicer.elapsed_seconds:.2f}s in {len(slices)} slices")
        assert [audio_slice.slice_index for audio_slice in slices] == list(range(len(slices)))
        assert len(slices) >= 3
        assert slicer.elapsed_seconds == pytest.approx(3.2, abs=0.5)

        gate = VoiceActivityGate()
        for audio_slice in slices:
            if audio_slice.is_empty:
                continue
            samples = decode_wav(audio_slice.audio_data)
            assert len(samples) > 0
            print(f"  slice {audio_slice.slice_index}: {audio_slice.duration_ms}ms, "
                  f"speech={gate.has_speech(audio_slice.audio_data)}")

"""Integration tests for a full dictation session.

Recorder/slicer, transcription workers and finalizer run together against an
in-memory capture device and a scripted transcription backend.
"""

import asyncio
from unittest.mock import Mock

import pytest

from slicescribe.config import Preferences
from slicescribe.errors import PermissionDenied
from slicescribe.events import TOPIC_ERROR, TOPIC_STATE, SessionEventBus
from slicescribe.models.session import FinalizeStatus, SessionPhase
from slicescribe.models.slices import SliceState
from slicescribe.models.transcription import SaveResult
from slicescribe.services import DictationSession, SessionFinalizer
from slicescribe.transcription.worker import SliceTranscriber


class EventLog:
    """Collects bus events; holds strong references to its listeners."""

    def __init__(self, bus: SessionEventBus):
        self.errors = []
        self.phases = []
        bus.subscribe(self.on_error, TOPIC_ERROR)
        bus.subscribe(self.on_state, TOPIC_STATE)

    def on_error(self, event):
        self.errors.append(event.metadata)

    def on_state(self, event):
        self.phases.append(event.metadata["phase"])


def build_session(device, backend, slice_interval_ms=60000, save_result=None):
    bus = SessionEventBus()
    store = Mock()
    store.save_transcription.return_value = save_result or SaveResult(success=True, id="rec1")
    transcriber = SliceTranscriber(backend, bus=bus)
    finalizer = SessionFinalizer(transcriber, store, settle_delay_s=0,
                                 poll_interval_s=0.01, max_polls=100, bus=bus)
    session = DictationSession(
        device,
        transcriber,
        finalizer,
        preferences=Preferences(slice_interval_ms=slice_interval_ms),
        bus=bus,
        release_grace_ms=0,
    )
    return session, store, EventLog(bus)


@pytest.mark.integration
class TestDictationSession:
    """End-to-end session flows."""

    def test_speech_silence_speech_is_saved_once(self, fake_device, make_backend, audio_test_data):
        backend = make_backend({0: "hello", 2: "there friend"})
        session, store, log = build_session(fake_device, backend)

        async def scenario():
            await session.start()
            fake_device.feed(audio_test_data("sine", 0.25))
            session.pause()
            session.resume()
            fake_device.feed(audio_test_data("silence", 0.25))
            session.pause()
            session.resume()
            fake_device.feed(audio_test_data("sine", 0.25))
            first = await session.stop()
            second = await session.stop()
            snapshot = session.snapshot()
            await session.close()
            return first, second, snapshot

        first, second, snapshot = asyncio.run(scenario())

        assert first.status is FinalizeStatus.SAVED
        assert first.transcript == "hello there friend"
        assert first.transcription_id == "rec1"
        assert second is first
        store.save_transcription.assert_called_once()
        assert store.save_transcription.call_args[0][0] == "hello there friend"

        assert [status.state for status in snapshot.statuses] == [
            SliceState.COMPLETED, SliceState.SKIPPED, SliceState.COMPLETED,
        ]
        # The silent slice never reached the service
        assert backend.attempts_for(1) == 0
        assert fake_device.close_calls == 1
        assert log.phases == ["recording", "paused", "recording", "paused", "recording", "stopped", "idle"]

    def test_transcript_follows_slice_order_not_completion_order(self, fake_device, make_backend, audio_test_data):
        backend = make_backend({0: "first part", 1: "second part"})
        session, store, _ = build_session(fake_device, backend)

        async def scenario():
            blocker = asyncio.Event()
            backend.blockers[0] = blocker
            await session.start()
            fake_device.feed(audio_test_data("sine", 0.25))
            session.pause()
            session.resume()
            fake_device.feed(audio_test_data("sine", 0.25))
            asyncio.get_running_loop().call_later(0.05, blocker.set)
            outcome = await session.stop()
            await session.close()
            return outcome

        outcome = asyncio.run(scenario())

        assert outcome.transcript == "first part second part"
        store.save_transcription.assert_called_once()

    def test_no_slices_means_nothing_saved(self, fake_device, make_backend):
        session, store, _ = build_session(fake_device, make_backend())

        async def scenario():
            await session.start()
            outcome = await session.stop()
            await session.close()
            return outcome

        outcome = asyncio.run(scenario())

        assert outcome.status is FinalizeStatus.NOTHING_TO_SAVE
        store.save_transcription.assert_not_called()

    def test_only_silence_is_not_saved(self, fake_device, make_backend, audio_test_data):
        backend = make_backend(default="should not be used")
        session, store, _ = build_session(fake_device, backend)

        async def scenario():
            await session.start()
            fake_device.feed(audio_test_data("silence", 0.5))
            outcome = await session.stop()
            await session.close()
            return outcome

        outcome = asyncio.run(scenario())

        assert outcome.status is FinalizeStatus.SILENT
        assert backend.requests == []
        store.save_transcription.assert_not_called()

    def test_permission_denied_on_start(self, make_device, make_backend):
        device = make_device(open_error=PermissionDenied("Microphone access denied"))
        session, store, log = build_session(device, make_backend())

        async def scenario():
            with pytest.raises(PermissionDenied):
                await session.start()

        asyncio.run(scenario())

        assert session.phase is SessionPhase.IDLE
        assert session.error == "Microphone access denied"
        assert log.errors == [{"message": "Microphone access denied", "fatal": True}]
        assert device.close_calls == 0

    def test_device_lost_mid_session(self, fake_device, make_backend, audio_test_data):
        backend = make_backend({0: "before the cable came out"})
        session, store, log = build_session(fake_device, backend, slice_interval_ms=20)

        async def scenario():
            await session.start()
            fake_device.feed(audio_test_data("sine", 0.25))
            fake_device.fail(OSError("device unplugged"))
            for _ in range(50):
                if session.phase is SessionPhase.STOPPED:
                    break
                await asyncio.sleep(0.01)
            outcome = await session.stop()
            await session.close()
            return outcome

        outcome = asyncio.run(scenario())

        assert log.errors and log.errors[0]["fatal"] is False
        assert "device unplugged" in log.errors[0]["message"]
        assert outcome.status is FinalizeStatus.SAVED
        assert outcome.transcript == "before the cable came out"
        assert fake_device.close_calls == 1

    def test_restart_clears_previous_session(self, fake_device, make_backend, audio_test_data):
        backend = make_backend({0: ["first session", "second session"]})
        session, store, _ = build_session(fake_device, backend)

        async def scenario():
            outcomes = []
            for _ in range(2):
                await session.start()
                fake_device.feed(audio_test_data("sine", 0.25))
                outcomes.append(await session.stop())
            await session.close()
            return outcomes

        first, second = asyncio.run(scenario())

        assert first.transcript == "first session"
        assert second.transcript == "second session"
        assert store.save_transcription.call_count == 2
        assert fake_device.open_calls == 2

"""Main application entry point for SliceScribe."""

import sys
import asyncio
import signal
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.live import Live

from . import __version__
from .audio import PyAudioCaptureDevice, VoiceActivityGate, slice_wav_file
from .config import (
    FinalizeSettings,
    Preferences,
    SliceScribeConfig,
    VoiceActivitySettings,
    capture_constraints_from_config,
)
from .errors import CaptureError
from .events import SessionEventBus
from .services import DictationSession, SessionFinalizer
from .storage import TranscriptionStore
from .transcription import (
    AbstractTranscriptionBackend,
    ChatGPTDuplicateValidator,
    FileVocabularyStore,
    GoogleSpeechBackend,
    HttpTranscriptionBackend,
    OverlapRemover,
    SliceTranscriber,
    TranscriberSettings,
    VocabularyCache,
    VocabularySource,
)
from .ui import LiveSessionView, render_history

logger = logging.getLogger(__name__)


class Application:
    """Builds the pipeline from configuration and runs the CLI commands."""

    def __init__(self, config_path: str, log_level: Optional[str] = None):
        self.config = SliceScribeConfig(config_path)
        log_level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, log_level)
        self.console = Console()
        self.bus = SessionEventBus()
        self.store = TranscriptionStore(self.config.get_data_directory())

    def create_backend(self) -> AbstractTranscriptionBackend:
        backend_name = self.config.get('transcription.backend', 'http')
        if backend_name == 'google':
            backend = GoogleSpeechBackend(
                credentials_path=self.config.get_google_credentials_path(),
                language=self.config.get('google_cloud.language', 'en-US'),
                use_enhanced=self.config.get('google_cloud.use_enhanced', True),
                enable_automatic_punctuation=self.config.get('google_cloud.enable_automatic_punctuation', True),
            )
        elif backend_name == 'http':
            endpoint_url = self.config.get('transcription.http.endpoint_url')
            if not endpoint_url:
                raise ValueError("transcription.http.endpoint_url is not configured")
            backend = HttpTranscriptionBackend(
                endpoint_url=endpoint_url,
                api_key=self.config.get_secret('transcription.http.api_key_env', 'SLICESCRIBE_API_KEY'),
                timeout_seconds=float(self.config.get('transcription.http.timeout_seconds', 30.0)),
                language=self.config.get('transcription.language', 'en-US'),
            )
        else:
            raise ValueError(f"Unknown transcription backend: {backend_name}")

        if not backend.initialize():
            raise RuntimeError(f"Failed to initialize {backend_name} transcription backend")
        logger.info(f"Using {backend_name} transcription backend")
        return backend

    def create_validator(self) -> Optional[ChatGPTDuplicateValidator]:
        provider = self.config.get('validation.provider', 'none')
        if provider in (None, 'none'):
            return None
        if provider != 'chatgpt':
            raise ValueError(f"Unknown validation provider: {provider}")

        api_key = self.config.get_secret('validation.api_key_env', 'OPENAI_API_KEY')
        if not api_key:
            logger.warning("No validator API key in environment, duplicate validation disabled")
            return None
        return ChatGPTDuplicateValidator(
            api_key=api_key,
            model=self.config.get('validation.model', 'gpt-4o-mini'),
        )

    def create_vocabulary(self) -> Optional[VocabularySource]:
        path = self.config.get('vocabulary.path')
        if not path:
            return None
        cache = VocabularyCache(ttl_seconds=float(self.config.get('vocabulary.cache_ttl_seconds', 300)))
        return VocabularySource(FileVocabularyStore(path), cache)

    def create_transcriber(self, backend: AbstractTranscriptionBackend, mode: str) -> SliceTranscriber:
        settings = TranscriberSettings.from_config(self.config, mode)
        vad = VoiceActivitySettings.from_config(self.config)
        return SliceTranscriber(
            backend,
            gate=VoiceActivityGate(vad.amplitude_threshold, vad.ratio_threshold),
            overlap_remover=OverlapRemover(
                validator=self.create_validator(),
                similarity_threshold=settings.similarity_threshold,
            ),
            settings=settings,
            bus=self.bus,
            vocabulary=self.create_vocabulary(),
            user_id=self.config.get('vocabulary.user_id', 'default'),
        )

    async def record(self, duration: Optional[float]) -> int:
        backend = self.create_backend()
        transcriber = self.create_transcriber(backend, 'realtime')
        finalize_settings = FinalizeSettings.from_config(self.config)
        preferences = Preferences.from_config(self.config)
        session = DictationSession(
            PyAudioCaptureDevice(),
            transcriber,
            SessionFinalizer.from_settings(transcriber, self.store, finalize_settings, bus=self.bus),
            preferences=preferences,
            constraints=capture_constraints_from_config(self.config, preferences),
            bus=self.bus,
            release_grace_ms=finalize_settings.release_grace_ms,
        )
        view = LiveSessionView()
        view.attach(self.bus)

        stop_requested = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, stop_requested.set)
        try:
            await session.start()
            with Live(view.render(), console=self.console, refresh_per_second=4, screen=False) as live:
                started = loop.time()
                while not stop_requested.is_set() and session.is_recording:
                    if duration and loop.time() - started >= duration:
                        break
                    try:
                        await asyncio.wait_for(stop_requested.wait(), timeout=0.25)
                    except asyncio.TimeoutError:
                        pass
                    live.update(view.render())

                outcome = await session.stop()
                live.update(view.render())
        except CaptureError as e:
            self.console.print(f"Cannot record: {e}", style="bold red")
            return 1
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            view.detach()
            await session.close()
            await backend.cleanup()

        if outcome.is_error:
            self.console.print(f"Finalization failed: {outcome.error}", style="bold red")
            return 1
        if outcome.transcription_id:
            self.console.print(f"Saved transcription {outcome.transcription_id}", style="green")
        else:
            self.console.print("Nothing to save", style="yellow")
        if outcome.transcript:
            self.console.print(outcome.transcript)
        return 0

    async def transcribe_file(self, filepath: str) -> int:
        slices = slice_wav_file(filepath, int(self.config.get('audio.slice_interval_ms', 5000)))
        backend = self.create_backend()
        try:
            transcriber = self.create_transcriber(backend, 'batch')
            transcript = await transcriber.transcribe_all(slices)
        finally:
            await backend.cleanup()

        if not transcript.strip():
            self.console.print(transcriber.error or "No speech detected", style="yellow")
            return 1 if transcriber.error else 0

        self.console.print(transcript)
        duration = sum(audio_slice.duration_ms for audio_slice in slices) / 1000.0
        result = self.store.save_transcription(transcript, duration)
        if not result.success:
            self.console.print(f"Failed to save transcription: {result.error}", style="bold red")
            return 1
        self.console.print(f"Saved transcription {result.id}", style="green")
        return 0

    def history(self, limit: int, offset: int) -> int:
        page = self.store.list_transcriptions(limit=limit, offset=offset)
        self.console.print(render_history(page, offset))
        return 0

    def delete(self, transcription_id: str) -> int:
        if not self.store.delete_transcription(transcription_id):
            self.console.print(f"Transcription not found: {transcription_id}", style="bold red")
            return 1
        self.console.print(f"Deleted transcription {transcription_id}", style="green")
        return 0


DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _make_handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(config, level: str = "INFO") -> None:
    """Route all loggers to the configured log file, and warnings to stdout."""
    log_file = Path(config.get('logging.file_path', 'data/logs/slicescribe.log'))
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # The file gets everything, the console only what needs attention
    handlers = [_make_handler(logging.FileHandler(log_file), logging.DEBUG, DETAILED_FORMAT)]
    if config.get('logging.console_output', True):
        handlers.append(_make_handler(logging.StreamHandler(sys.stdout), logging.WARNING, CONSOLE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info(f"SliceScribe {__version__} starting, level {level}, log file {log_file}")
    logger.info("=" * 50)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="SliceScribe - Slice-and-poll speech transcription",
    )

    parser.add_argument(
        "--config",
        type=str,
        default="slicescribe.yaml",
        help="Path to configuration YAML file (default: slicescribe.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, else INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"SliceScribe v{__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    record = subparsers.add_parser("record", help="Dictate from the microphone; Ctrl+C stops and saves")
    record.add_argument(
        "--duration",
        type=float,
        help="Stop automatically after this many seconds"
    )

    transcribe = subparsers.add_parser("transcribe", help="Transcribe a 16-bit PCM WAV file")
    transcribe.add_argument("file", help="Path to the WAV file")

    history = subparsers.add_parser("history", help="List saved transcriptions, newest first")
    history.add_argument("--limit", type=int, default=50)
    history.add_argument("--offset", type=int, default=0)

    delete = subparsers.add_parser("delete", help="Delete a saved transcription")
    delete.add_argument("id", help="Transcription id")

    return parser


def main(argv=None) -> None:
    """Main entry point for SliceScribe."""
    args = build_parser().parse_args(argv)

    try:
        app = Application(args.config, args.log_level)
        if args.command == "record":
            exit_code = asyncio.run(app.record(args.duration))
        elif args.command == "transcribe":
            exit_code = asyncio.run(app.transcribe_file(args.file))
        elif args.command == "history":
            exit_code = app.history(args.limit, args.offset)
        else:
            exit_code = app.delete(args.id)
    except KeyboardInterrupt:
        print("\nGoodbye!")
        exit_code = 130
    except Exception as e:
        print(f"Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()

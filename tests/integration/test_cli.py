"""Integration tests for the command line application."""

import asyncio
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from rich.console import Console

from slicescribe.audio.wav import encode_wav
from slicescribe.main import Application, build_parser, main


@pytest.fixture
def config_path(temp_data_dir):
    path = Path(temp_data_dir) / "slicescribe.yaml"
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump({
            "storage": {"data_directory": "data"},
            "logging": {"file_path": "data/logs/test.log", "console_output": False},
            "audio": {"slice_interval_ms": 500},
            "transcription": {"batch": {"backoff_base_ms": 0}},
        }, f)
    return str(path)


@pytest.fixture
def app(config_path):
    with patch('slicescribe.main.setup_logging'):
        application = Application(config_path)
    application.console = Console(record=True, width=120)
    return application


@pytest.mark.integration
class TestApplication:

    def test_transcribe_file_then_history_and_delete(self, app, temp_data_dir, audio_test_data, make_backend):
        wav_path = Path(temp_data_dir) / "speech.wav"
        pcm = audio_test_data("sine", 0.5) + audio_test_data("silence", 0.5)
        wav_path.write_bytes(encode_wav(pcm, 16000, 1))
        backend = make_backend({0: "hello world"})

        with patch.object(Application, 'create_backend', return_value=backend):
            exit_code = asyncio.run(app.transcribe_file(str(wav_path)))

        assert exit_code == 0
        assert backend.cleaned_up
        # The second slice is silent and skipped before any request
        assert [request.slice_index for request in backend.requests] == [0]

        page = app.store.list_transcriptions()
        assert page.total == 1
        record = page.items[0]
        assert record.text == "hello world"
        assert record.duration_seconds == pytest.approx(1.0)

        assert app.history(limit=10, offset=0) == 0
        assert record.id in app.console.export_text()

        assert app.delete(record.id) == 0
        assert app.delete(record.id) == 1
        assert app.store.list_transcriptions().total == 0

    def test_transcribe_silent_file_saves_nothing(self, app, temp_data_dir, audio_test_data, make_backend):
        wav_path = Path(temp_data_dir) / "silence.wav"
        wav_path.write_bytes(encode_wav(audio_test_data("silence", 1.0), 16000, 1))

        with patch.object(Application, 'create_backend', return_value=make_backend()):
            exit_code = asyncio.run(app.transcribe_file(str(wav_path)))

        assert exit_code == 0
        assert app.store.list_transcriptions().total == 0

    def test_validator_disabled_by_default(self, app):
        assert app.create_validator() is None
        assert app.create_vocabulary() is None

    def test_unknown_backend_is_rejected(self, app):
        app.config.set('transcription.backend', 'carrier-pigeon')
        with pytest.raises(ValueError):
            app.create_backend()


@pytest.mark.integration
class TestCommandLine:

    def test_parser_subcommands(self):
        args = build_parser().parse_args(["--config", "custom.yaml", "history", "--limit", "5"])

        assert args.config == "custom.yaml"
        assert args.command == "history"
        assert args.limit == 5
        assert args.offset == 0

    def test_main_runs_history(self, config_path):
        with patch('slicescribe.main.setup_logging'):
            with pytest.raises(SystemExit) as exc_info:
                main(["--config", config_path, "history"])

        assert exc_info.value.code == 0

    def test_main_reports_missing_config(self, temp_data_dir):
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(Path(temp_data_dir) / "absent.yaml"), "history"])

        assert exc_info.value.code == 1

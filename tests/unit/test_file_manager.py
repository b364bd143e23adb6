"""Unit tests for TranscriptionStore."""

import json
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from slicescribe.models.transcription import TranscriptionRecord
from slicescribe.storage.file_manager import TranscriptionStore


@pytest.mark.unit
class TestTranscriptionStore:
    """Test cases for TranscriptionStore class."""

    def test_initialization(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)

        assert store.data_dir == Path(temp_data_dir)
        assert store.transcriptions_dir == Path(temp_data_dir) / "transcriptions"
        assert store.transcriptions_dir.exists()
        assert store.logs_dir.exists()

    def test_initialization_default_path(self):
        with patch.object(Path, 'mkdir') as mock_mkdir:
            store = TranscriptionStore()

            assert store.data_dir == Path("./data")
            assert mock_mkdir.call_count >= 3

    def test_save_transcription(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)

        result = store.save_transcription("  hello there friend  ", 12.346)

        assert result.success
        assert len(result.id) == 20  # YYYYMMDD_HHMMSS_XXXX
        with open(store.transcriptions_dir / f"{result.id}.json") as f:
            data = json.load(f)
        assert data["text"] == "hello there friend"
        assert data["duration_seconds"] == 12.35

    def test_empty_text_is_rejected(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)

        result = store.save_transcription("   ", 3.0)

        assert not result.success
        assert result.error == "Transcription text is required"
        assert list(store.transcriptions_dir.glob("*.json")) == []

    def test_get_transcription(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)
        result = store.save_transcription("hello", 1.0)

        record = store.get_transcription(result.id)

        assert record.text == "hello"
        assert store.get_transcription("missing") is None

    def test_list_is_newest_first_and_paginated(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)
        base = datetime(2025, 1, 1, 12, 0, 0)
        for i in range(5):
            record = TranscriptionRecord(id=f"rec{i}", text=f"text {i}", duration_seconds=1.0,
                                         created_at=base + timedelta(minutes=i))
            with open(store.transcriptions_dir / f"rec{i}.json", 'w') as f:
                json.dump(record.to_dict(), f)

        page = store.list_transcriptions(limit=2, offset=1)

        assert page.total == 5
        assert [r.id for r in page.items] == ["rec3", "rec2"]

    def test_unreadable_files_are_skipped(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)
        store.save_transcription("good", 1.0)
        (store.transcriptions_dir / "broken.json").write_text("{not json")

        page = store.list_transcriptions()

        assert page.total == 1
        assert page.items[0].text == "good"

    def test_delete_transcription(self, temp_data_dir):
        store = TranscriptionStore(temp_data_dir)
        result = store.save_transcription("to delete", 1.0)

        assert store.delete_transcription(result.id) is True
        assert store.delete_transcription(result.id) is False
        assert store.list_transcriptions().total == 0

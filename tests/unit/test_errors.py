"""Unit tests for error classification."""

import pytest

from slicescribe.errors import (
    PermanentServiceError,
    TransientServiceError,
    is_retryable,
    service_error_from_message,
)


@pytest.mark.unit
class TestErrorClassification:

    @pytest.mark.parametrize("message", [
        "Network error: connection reset",
        "Request timeout",
        "upstream timed out",
        "Transcription failed (HTTP 503)",
        "The model is overloaded",
        "Please try again later",
    ])
    def test_retryable_messages(self, message):
        assert is_retryable(RuntimeError(message))
        assert isinstance(service_error_from_message(message), TransientServiceError)

    def test_non_retryable_message(self):
        error = service_error_from_message("Invalid audio format", status=400)

        assert isinstance(error, PermanentServiceError)
        assert error.status == 400
        assert not is_retryable(error)

    def test_status_503_is_transient(self):
        assert isinstance(service_error_from_message("Service Unavailable", status=503), TransientServiceError)

    def test_type_wins_over_message(self):
        assert not is_retryable(PermanentServiceError("timeout while validating key"))
        assert is_retryable(TransientServiceError("bad gateway"))

"""Error taxonomy for SliceScribe."""

import re
from typing import Optional


RETRYABLE_PATTERN = re.compile(
    r"network|timeout|timed out|503|overloaded|try again|temporarily unavailable|rate limit",
    re.IGNORECASE,
)


class SliceScribeError(Exception):
    """Base class for all SliceScribe errors."""


class CaptureError(SliceScribeError):
    """Capture device could not be used."""


class DeviceUnavailable(CaptureError):
    """No capture device matches the requested constraints, or it was lost."""


class PermissionDenied(CaptureError):
    """Access to the capture device was refused."""


class ServiceError(SliceScribeError):
    """A remote transcription or validation call failed."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class TransientServiceError(ServiceError):
    """Service failure that is worth retrying."""


class PermanentServiceError(ServiceError):
    """Service failure that terminates the affected slice."""


class DecodeError(SliceScribeError):
    """Audio payload could not be decoded."""


class FinalizationTimeout(SliceScribeError):
    """Slices did not settle within the finalization poll window."""


class InvalidSliceTransition(SliceScribeError):
    """A slice status was moved against its lifecycle."""


def is_retryable(error: BaseException) -> bool:
    """Return True if a failed attempt should be retried."""
    if isinstance(error, TransientServiceError):
        return True
    if isinstance(error, PermanentServiceError):
        return False
    return bool(RETRYABLE_PATTERN.search(str(error)))


def service_error_from_message(message: str, status: Optional[int] = None) -> ServiceError:
    """Build the service error type matching a failure message."""
    if (status is not None and status == 503) or RETRYABLE_PATTERN.search(message):
        return TransientServiceError(message, status=status)
    return PermanentServiceError(message, status=status)

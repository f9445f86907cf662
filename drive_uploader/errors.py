"""
Module containing the error types raised by the uploader.
"""
import re
from typing import Optional

import httpx

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_TRANSIENT_MESSAGES = (
    "fetch failed",
    "network",
    "econnreset",
    "connection reset",
    "timeout",
    "timed out",
)

_STATUS_IN_TEXT = re.compile(r"\b([1-5]\d{2})\b")


class UploadError(Exception):
    """Base class for all uploader errors."""


class ValidationError(UploadError, ValueError):
    """Invalid configuration or input, e.g. a bad chunk size."""


class HttpError(UploadError):
    """Non-2xx response from the storage service."""

    def __init__(self, status_code: int, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NetworkError(UploadError):
    """Transport failure: no response was received."""


class SessionError(UploadError):
    """Response is neither a finished item nor a valid upload session."""


class AuthError(UploadError):
    """Credentials could not be exchanged for an access token."""


def is_retryable_error(exception: BaseException) -> bool:
    """Check if an exception should trigger a retry.

    Checks are applied in priority order: transport failures, known
    transient messages, attached status codes, then a status code found
    in the error text.

    Args:
        exception: The exception to check

    Returns:
        True if the error is retryable, False otherwise
    """
    if isinstance(exception, (ValidationError, SessionError, AuthError)):
        return False

    if isinstance(exception, (NetworkError, httpx.TransportError)):
        return True

    message = str(exception).lower()
    if any(fragment in message for fragment in _TRANSIENT_MESSAGES):
        return True

    if isinstance(exception, HttpError):
        return exception.status_code in RETRYABLE_STATUS_CODES

    match = _STATUS_IN_TEXT.search(str(exception))
    if match:
        return int(match.group(1)) in RETRYABLE_STATUS_CODES

    return False

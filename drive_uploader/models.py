"""
Module containing data models for the uploader.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import SessionError


@dataclass
class UploadSession:
    """Server-issued handle for a resumable upload."""
    upload_url: Optional[str]
    expiration_date_time: Optional[str] = None
    next_expected_ranges: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Any, previous: Optional["UploadSession"] = None) -> "UploadSession":
        """Parse a session from a response body.

        Chunk responses usually omit ``uploadUrl``; in that case the URL of
        the previous session is carried over.

        Args:
            data: Decoded JSON body
            previous: Session being replaced, if any

        Returns:
            UploadSession object

        Raises:
            SessionError: If the body is not a valid upload session
        """
        if not isinstance(data, dict):
            raise SessionError(f"Upload session must be a JSON object, got {type(data).__name__}")

        ranges = data.get("nextExpectedRanges", [])
        if not isinstance(ranges, list) or not all(isinstance(r, str) for r in ranges):
            raise SessionError(f"Invalid nextExpectedRanges in upload session: {ranges!r}")

        upload_url = data.get("uploadUrl") or (previous.upload_url if previous else None)
        if not upload_url:
            raise SessionError("Upload session has no uploadUrl")

        return cls(
            upload_url=upload_url,
            expiration_date_time=data.get("expirationDateTime"),
            next_expected_ranges=list(ranges),
        )


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range of one chunk."""
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        return f"bytes {self.start}-{self.end}/{total}"


@dataclass(frozen=True)
class TransferProgress:
    """Progress report emitted after each chunk."""
    uploaded: int
    total: int
    percentage: str
    speed: float  # bytes/sec for the last chunk only
    eta: float  # seconds, may be inf or nan


class TransferState(Enum):
    """State of a resumable transfer."""
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class QueueStats:
    """Snapshot of a ConcurrencyQueue's counters."""
    success: int
    failed: int
    total: int

    @property
    def finished(self) -> int:
        return self.success + self.failed


RemoteItem = Dict[str, Any]

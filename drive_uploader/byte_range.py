"""
Module for computing the byte range of the next chunk of a resumable upload.
"""
from typing import Optional

from .errors import SessionError, ValidationError
from .models import ByteRange, UploadSession

# Chunk sizes must be multiples of 320 KiB and at most 50 MiB
CHUNK_GRANULARITY = 327680
MIN_CHUNK_SIZE = CHUNK_GRANULARITY
MAX_CHUNK_SIZE = 50 * 1024 * 1024

DEFAULT_CHUNK_SIZE = 5 * 1024 * 1024


def validate_chunk_size(chunk_size: int) -> None:
    """Raise ValidationError unless chunk_size is usable for chunked uploads."""
    if chunk_size < MIN_CHUNK_SIZE or chunk_size > MAX_CHUNK_SIZE:
        raise ValidationError(
            f"Chunk size is out of range. Must be between 320 KB and 50 MB. chunk_size: {chunk_size}"
        )
    if chunk_size % CHUNK_GRANULARITY != 0:
        raise ValidationError(
            f"Chunk size is not a multiple of 320 KB. chunk_size: {chunk_size}"
        )


def _parse_offset(value: str, expected: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise SessionError(f"Malformed expected range {expected!r}") from None


def compute_range(file_size: int, chunk_size: int,
                  session: Optional[UploadSession]) -> ByteRange:
    """Compute the next byte range to send.

    Only the first entry of ``next_expected_ranges`` is consulted; uploads
    always resume from the lowest outstanding offset.

    Args:
        file_size: Total size of the file in bytes
        chunk_size: Target chunk size in bytes
        session: Current upload session, or None before the first chunk

    Returns:
        ByteRange of at most chunk_size bytes that never passes end-of-file

    Raises:
        ValidationError: If chunk_size is invalid or the file is smaller than one chunk
        SessionError: If the expected range cannot be parsed or lies past end-of-file
    """
    validate_chunk_size(chunk_size)
    if file_size < chunk_size:
        raise ValidationError(
            f"File size is smaller than chunk size. file_size: {file_size}, chunk_size: {chunk_size}"
        )

    if session is None or not session.next_expected_ranges:
        return ByteRange(0, chunk_size - 1)

    expected = session.next_expected_ranges[0]
    start_str, _, end_str = expected.partition("-")

    start = _parse_offset(start_str.strip(), expected) if start_str.strip() else 0
    if end_str.strip():
        end = _parse_offset(end_str.strip(), expected)
    else:
        end = start + chunk_size - 1

    end = min(end, start + chunk_size - 1)
    end = min(end, file_size - 1)

    if end < start:
        raise SessionError(
            f"Expected range {expected!r} lies outside the file (size {file_size})"
        )

    return ByteRange(start, end)

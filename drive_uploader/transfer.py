"""
Module for transferring single files, either in one request or in chunks.
"""
import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Callable, Optional

from .byte_range import DEFAULT_CHUNK_SIZE, compute_range, validate_chunk_size
from .chunk_source import FileChunkSource
from .client import DriveClient
from .errors import SessionError
from .hashing import quick_xor_hash
from .models import ByteRange, RemoteItem, TransferProgress, TransferState, UploadSession
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_SMALL_FILE_THRESHOLD = 5 * 1024 * 1024

ProgressCallback = Callable[[TransferProgress], None]


def _as_item(body, name: str) -> RemoteItem:
    if not isinstance(body, dict):
        raise SessionError(f"Upload of {name} returned {type(body).__name__}, expected an item")
    return body


class ResumableTransferEngine:
    """Drives one file through an upload session, one chunk at a time.

    Chunks are sent strictly in order: the range of each chunk comes from the
    session returned for the previous one.
    """

    def __init__(self, client: DriveClient, local_path: Path, session: UploadSession,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 retry_policy: Optional[RetryPolicy] = None,
                 chunk_source: Optional[FileChunkSource] = None,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize the transfer.

        Args:
            client: Client used to PUT chunks
            local_path: File being uploaded
            session: Session issued for this file
            chunk_size: Target chunk size in bytes
            retry_policy: Policy wrapping each chunk PUT
            chunk_source: Reader for byte ranges of the file
            clock: Monotonic clock in seconds, used for speed figures
        """
        validate_chunk_size(chunk_size)
        if not session.upload_url:
            raise SessionError("Upload URL is not set")

        self.client = client
        self.local_path = Path(local_path)
        self.session = session
        self.chunk_size = chunk_size
        self.retry_policy = retry_policy or RetryPolicy()
        self.chunk_source = chunk_source or FileChunkSource()
        self._clock = clock

        self.file_size = self.local_path.stat().st_size
        self.state = TransferState.ACTIVE
        self.chunks_sent = 0

    async def _send_chunk(self, byte_range: ByteRange):
        async def put():
            data = await self.chunk_source.read_range(
                self.local_path, byte_range.start, byte_range.end
            )
            started = self._clock()
            status, body = await self.client.put_chunk(
                self.session.upload_url, data, byte_range, self.file_size
            )
            return status, body, self._clock() - started

        return await self.retry_policy.run(
            put,
            description=f"chunk {byte_range.content_range(self.file_size)} of {self.local_path.name}",
        )

    def _progress(self, byte_range: ByteRange, elapsed: float) -> TransferProgress:
        uploaded = byte_range.end + 1
        speed = byte_range.size / elapsed if elapsed > 0 else math.inf
        return TransferProgress(
            uploaded=uploaded,
            total=self.file_size,
            percentage=f"{uploaded / self.file_size * 100:.2f}",
            speed=speed,
            eta=(self.file_size - uploaded) / speed if speed else math.inf,
        )

    async def run(self, on_progress: Optional[ProgressCallback] = None) -> RemoteItem:
        """Send chunks until the service reports the finished item.

        Args:
            on_progress: Called after every chunk

        Returns:
            The final item descriptor
        """
        if self.state is not TransferState.ACTIVE:
            raise SessionError(f"Transfer of {self.local_path} is already {self.state.value}")

        try:
            while True:
                byte_range = compute_range(self.file_size, self.chunk_size, self.session)

                status, body, elapsed = await self._send_chunk(byte_range)
                self.chunks_sent += 1

                progress = self._progress(byte_range, elapsed)
                logger.debug(
                    f"{self.local_path.name}: {progress.uploaded}/{progress.total} bytes "
                    f"({progress.percentage}%)"
                )
                if on_progress:
                    on_progress(progress)

                if status in (200, 201):
                    item = _as_item(body, self.local_path.name)
                    self.state = TransferState.COMPLETED
                    logger.info(f"Uploaded {self.local_path.name} in {self.chunks_sent} chunks")
                    return item

                self.session = UploadSession.from_json(body, previous=self.session)
        except Exception:
            self.state = TransferState.FAILED
            raise


class FileUploader:
    """Uploads one local file, choosing single-shot or chunked transfer by size."""

    def __init__(self, client: DriveClient,
                 chunk_size: int = DEFAULT_CHUNK_SIZE,
                 small_file_threshold: int = DEFAULT_SMALL_FILE_THRESHOLD,
                 retry_policy: Optional[RetryPolicy] = None,
                 chunk_source: Optional[FileChunkSource] = None,
                 verify_hash: bool = False):
        validate_chunk_size(chunk_size)
        self.client = client
        self.chunk_size = chunk_size
        self.small_file_threshold = small_file_threshold
        self.retry_policy = retry_policy or RetryPolicy()
        self.chunk_source = chunk_source or FileChunkSource()
        self.verify_hash = verify_hash

    async def upload(self, local_path: Path, remote_dir: str,
                     on_progress: Optional[ProgressCallback] = None) -> RemoteItem:
        """Upload a file into remote_dir, replacing any existing item.

        Args:
            local_path: File to upload
            remote_dir: Remote directory
            on_progress: Progress callback for chunked transfers

        Returns:
            The uploaded item descriptor
        """
        local_path = Path(local_path)
        size = local_path.stat().st_size

        # Files smaller than one chunk cannot go through a session
        if size < max(self.small_file_threshold, self.chunk_size):
            item = await self.upload_small(local_path, remote_dir)
        else:
            item = await self.upload_large(local_path, remote_dir, on_progress)

        if self.verify_hash:
            await self._verify(local_path, item)
        return item

    async def upload_small(self, local_path: Path, remote_dir: str) -> RemoteItem:
        async def put():
            content = await self.chunk_source.read_all(local_path)
            return await self.client.upload_content(local_path, remote_dir, content)

        body = await self.retry_policy.run(put, description=f"upload of {local_path.name}")
        logger.info(f"Uploaded {local_path.name} in a single request")
        return _as_item(body, local_path.name)

    async def upload_large(self, local_path: Path, remote_dir: str,
                           on_progress: Optional[ProgressCallback] = None) -> RemoteItem:
        async def create():
            return await self.client.create_upload_session(local_path, remote_dir)

        session = await self.retry_policy.run(
            create, description=f"upload session for {local_path.name}"
        )
        engine = ResumableTransferEngine(
            self.client, local_path, session,
            chunk_size=self.chunk_size,
            retry_policy=self.retry_policy,
            chunk_source=self.chunk_source,
        )
        return await engine.run(on_progress)

    async def _verify(self, local_path: Path, item: RemoteItem) -> None:
        remote_hash = ((item.get("file") or {}).get("hashes") or {}).get("quickXorHash")
        if not remote_hash:
            logger.debug(f"No quickXorHash reported for {local_path.name}")
            return

        local_hash = await asyncio.to_thread(quick_xor_hash, local_path)
        if local_hash != remote_hash:
            logger.warning(
                f"QuickXorHash mismatch for {local_path.name}: "
                f"expected {local_hash}, got {remote_hash}"
            )
        else:
            logger.debug(f"QuickXorHash verified for {local_path.name}")

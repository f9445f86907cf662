"""
Module for coordinating single-file and directory uploads.
"""
import logging
from pathlib import Path
from typing import Optional

import httpx

from .auth import ClientCredentialsAuth
from .client import DriveClient
from .config import UploaderConfig
from .errors import AuthError, ValidationError
from .models import QueueStats, RemoteItem
from .retry import RetryPolicy
from .scanner import FileScanner
from .task_queue import ConcurrencyQueue, Task
from .transfer import FileUploader, ProgressCallback

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Uploads files and directory trees through a bounded queue."""

    def __init__(self, client: DriveClient, uploader: FileUploader,
                 max_concurrency: int = 4,
                 scanner: Optional[FileScanner] = None):
        """Initialize the upload coordinator.

        Args:
            client: Drive client, closed when the coordinator is closed
            uploader: Uploader used for every file
            max_concurrency: Files uploaded at once in directory mode
            scanner: File scanner for directory mode
        """
        if max_concurrency < 1:
            raise ValidationError("max_concurrency must be at least 1")
        self.client = client
        self.uploader = uploader
        self.max_concurrency = max_concurrency
        self.scanner = scanner or FileScanner()

    @classmethod
    def from_config(cls, config: UploaderConfig,
                    http_client: Optional[httpx.AsyncClient] = None) -> "UploadCoordinator":
        """Create a coordinator wired up from configuration.

        Args:
            config: Uploader configuration with credentials
            http_client: Optional shared HTTP client

        Returns:
            Configured UploadCoordinator instance
        """
        if not config.has_credentials:
            raise AuthError("CLIENT_ID, CLIENT_SECRET and TENANT_ID must be set")

        auth = ClientCredentialsAuth(
            config.client_id, config.client_secret, config.tenant_id,
            authority=config.authority,
            http_client=http_client,
        )
        client = DriveClient(
            auth,
            user_id=config.user_id,
            base_url=config.base_url,
            timeout=config.timeout,
            http_client=http_client,
        )
        uploader = FileUploader(
            client,
            chunk_size=config.chunk_size,
            small_file_threshold=config.small_file_threshold,
            retry_policy=RetryPolicy(config.max_retries, config.initial_delay, config.max_delay),
            verify_hash=config.verify_hash,
        )
        return cls(client, uploader, max_concurrency=config.max_concurrency)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.client.aclose()

    async def upload_file(self, local_path: Path, remote_dir: str,
                          on_progress: Optional[ProgressCallback] = None) -> RemoteItem:
        """Upload a single file; errors propagate to the caller.

        Args:
            local_path: File to upload
            remote_dir: Remote directory
            on_progress: Optional progress callback

        Returns:
            The uploaded item descriptor
        """
        local_path = Path(local_path)
        if not local_path.is_file():
            raise ValidationError(f"File not found: {local_path}")
        return await self.uploader.upload(local_path, remote_dir, on_progress)

    def _make_task(self, file_path: Path, remote_dir: str) -> Task:
        async def task():
            try:
                await self.uploader.upload(file_path, remote_dir)
            except Exception as e:
                logger.error(f"Error uploading {file_path} to {remote_dir}: {e}")
                raise
        return task

    async def upload_directory(self, local_dir: Path, remote_dir: str,
                               pattern: str = "*") -> QueueStats:
        """Upload every file under local_dir, mirroring sub-folders remotely.

        Failures are logged and counted; they do not stop the batch.

        Args:
            local_dir: Local directory to upload
            remote_dir: Remote directory that receives the tree
            pattern: Glob pattern for file names

        Returns:
            Final QueueStats for the batch
        """
        local_dir = Path(local_dir)
        if not local_dir.is_dir():
            raise ValidationError(f"{local_dir} is not a directory")

        files = self.scanner.scan_folder(local_dir, pattern)
        logger.info(f"Uploading {len(files)} files from {local_dir} to {remote_dir}")

        queue = ConcurrencyQueue(self.max_concurrency, len(files))
        for file_path in files:
            target = self.scanner.remote_dir_for(file_path, local_dir, remote_dir)
            queue.submit(self._make_task(file_path, target))

        await queue.wait_for_completion()

        stats = queue.stats()
        logger.info(
            f"Completed batch: {stats.success}/{stats.total} files uploaded successfully "
            f"({stats.failed} failed)"
        )
        return stats

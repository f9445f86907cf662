"""
Module for reading byte ranges from local files.
"""
import asyncio
from pathlib import Path


class FileChunkSource:
    """Reads inclusive byte ranges from a file.

    Every call reopens the file, so the same range can be read again when a
    chunk is retried.
    """

    @staticmethod
    def _read(path: Path, start: int, end: int) -> bytes:
        with open(path, 'rb') as f:
            f.seek(start)
            return f.read(end - start + 1)

    async def read_range(self, path: Path, start: int, end: int) -> bytes:
        # File I/O runs in a worker thread to keep the event loop free
        return await asyncio.to_thread(self._read, Path(path), start, end)

    async def read_all(self, path: Path) -> bytes:
        return await asyncio.to_thread(Path(path).read_bytes)

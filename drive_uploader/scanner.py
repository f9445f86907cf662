"""
Module for enumerating local files to upload.
"""
import logging
import posixpath
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


class FileScanner:
    """Scans local folders for files to upload."""

    def __init__(self, include_hidden: bool = False):
        """Initialize the file scanner.

        Args:
            include_hidden: Whether to include dot-files and files in dot-folders
        """
        self.include_hidden = include_hidden

    def _is_hidden(self, path: Path, base: Path) -> bool:
        return any(part.startswith('.') for part in path.relative_to(base).parts)

    def scan_folder(self, folder: Path, pattern: str = "*", recursive: bool = True) -> List[Path]:
        """Scan a folder for files matching the pattern.

        Args:
            folder: Path to the folder to scan
            pattern: Glob pattern to match file names against
            recursive: Whether to descend into sub-folders

        Returns:
            Sorted list of file paths found
        """
        if not folder.exists():
            logger.error(f"Folder does not exist: {folder}")
            return []

        try:
            candidates = folder.rglob(pattern) if recursive else folder.glob(pattern)
            files = [
                p for p in candidates
                if p.is_file() and (self.include_hidden or not self._is_hidden(p, folder))
            ]
        except OSError as e:
            logger.error(f"Error scanning folder {folder}: {e}")
            return []

        logger.debug(f"Found {len(files)} files in {folder}")
        return sorted(files)

    def get_relative_path(self, file_path: Path, base_path: Path) -> Path:
        """Get the relative path of a file from a base path.

        Args:
            file_path: Path to the file
            base_path: Base path to make relative to

        Returns:
            Relative path from base_path to file_path
        """
        try:
            return file_path.relative_to(base_path)
        except ValueError:
            logger.error(f"File {file_path} is not relative to {base_path}")
            return Path(file_path.name)

    def remote_dir_for(self, file_path: Path, base_path: Path, remote_root: str) -> str:
        """Remote directory that mirrors the file's location under base_path."""
        parent = self.get_relative_path(file_path, base_path).parent
        if parent == Path('.'):
            return remote_root
        return posixpath.join(remote_root or "/", parent.as_posix())

"""
Command-line interface for the drive uploader.
"""
import argparse
import asyncio
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional

from .config import UploaderConfig
from .coordinator import UploadCoordinator
from .errors import UploadError
from .models import TransferProgress

logger = logging.getLogger(__name__)

_BYTE_UNITS = ["B", "KB", "MB", "GB", "TB"]

_TIME_UNITS = [
    (604800, "w"),
    (86400, "d"),
    (3600, "h"),
    (60, "m"),
    (1, "s"),
]


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def format_bytes(num_bytes: float, with_whitespace: bool = False) -> str:
    """Format a byte count as e.g. "1.5MB"."""
    sep = " " if with_whitespace else ""
    if not math.isfinite(num_bytes):
        return f"?{sep}B"
    if num_bytes <= 0:
        return f"0{sep}B"

    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(_BYTE_UNITS) - 1:
        value /= 1024
        i += 1
    text = f"{value:.2f}".rstrip('0').rstrip('.')
    return f"{text}{sep}{_BYTE_UNITS[i]}"


def format_seconds(seconds: float) -> str:
    """Format seconds using at most two adjacent units: 30s, 1m40s, 3h23m, 1d.

    A remainder is only shown in the next smaller unit, so 86401 seconds is "1d".
    """
    if not math.isfinite(seconds):
        return "?"
    remaining = max(int(seconds), 0)
    if remaining == 0:
        return "0s"

    for i, (size, suffix) in enumerate(_TIME_UNITS):
        if remaining < size:
            continue
        parts = [f"{remaining // size}{suffix}"]
        remaining %= size
        if remaining and i + 1 < len(_TIME_UNITS):
            next_size, next_suffix = _TIME_UNITS[i + 1]
            if remaining >= next_size:
                parts.append(f"{remaining // next_size}{next_suffix}")
        return "".join(parts)
    return f"{remaining}s"


def log_progress(progress: TransferProgress) -> None:
    logger.info(
        f"Uploaded: {format_bytes(progress.uploaded)} / {format_bytes(progress.total)} "
        f"[{progress.percentage}%] [{format_bytes(progress.speed)}/s] "
        f"[ETA {format_seconds(progress.eta)}]"
    )


def create_config(args: argparse.Namespace) -> UploaderConfig:
    """Create the configuration from the config file, environment and arguments.

    Args:
        args: Command line arguments

    Returns:
        UploaderConfig instance
    """
    overrides = {
        "max_concurrency": getattr(args, "concurrency", None),
        "chunk_size": getattr(args, "chunk_size", None),
    }
    if getattr(args, "no_verify", False):
        overrides["verify_hash"] = False
    return UploaderConfig.from_sources(args.config, overrides)


async def _print_users(coordinator: UploadCoordinator, max_users: int) -> None:
    users = await coordinator.client.list_users(max_users)
    print(f"\nFound {len(users)} users in total:\n")
    print(f"{'Display Name':<30} | {'Email':<35} | Object ID")
    print("-" * 100)
    for user in users:
        name = user.get("displayName") or "N/A"
        email = user.get("mail") or user.get("userPrincipalName") or "N/A"
        print(f"{name:<30} | {email:<35} | {user.get('id')}")


async def handle_upload(args: argparse.Namespace) -> int:
    """Handle the upload command.

    Args:
        args: Command line arguments

    Returns:
        Process exit code
    """
    config = create_config(args)
    source = Path(args.path)
    if not source.exists():
        logger.error(f"File not found: {source}")
        return 1

    async with UploadCoordinator.from_config(config) as coordinator:
        if not config.user_id:
            logger.warning("USER_ID is not set; select a user from the list below")
            await _print_users(coordinator, 999)
            print("\nSet USER_ID to an Object ID or Email above and run again.")
            return 1

        if source.is_dir():
            stats = await coordinator.upload_directory(source, args.remote_dir, args.pattern)
            return 0 if stats.failed == 0 else 1

        item = await coordinator.upload_file(source, args.remote_dir, on_progress=log_progress)
        parent = (item.get("parentReference") or {}).get("path")
        print(f"Uploaded file: id={item.get('id')} name={item.get('name')} "
              f"size={item.get('size')} directory={parent}")
        return 0


async def handle_users(args: argparse.Namespace) -> int:
    """Handle the users command.

    Args:
        args: Command line arguments

    Returns:
        Process exit code
    """
    config = create_config(args)
    async with UploadCoordinator.from_config(config) as coordinator:
        await _print_users(coordinator, args.max_users)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Drive Uploader CLI")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to JSON config file")

    subparsers = parser.add_subparsers(dest='command', required=True)

    upload_parser = subparsers.add_parser('upload',
                                          help="Upload a file or directory")
    upload_parser.add_argument('path', type=str,
                               help="Local file or directory")
    upload_parser.add_argument('remote_dir', type=str,
                               help="Remote directory")
    upload_parser.add_argument('-j', '--concurrency', type=int,
                               help="Files uploaded at once for directories")
    upload_parser.add_argument('--chunk-size', type=int,
                               help="Chunk size in bytes (multiple of 327680)")
    upload_parser.add_argument('-p', '--pattern', type=str, default="*",
                               help="File pattern to match in directories")
    upload_parser.add_argument('--no-verify', action='store_true',
                               help="Skip QuickXorHash verification")

    users_parser = subparsers.add_parser('users',
                                         help="List users in the tenant")
    users_parser.add_argument('--max-users', type=int, default=999,
                              help="Maximum number of users to list")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    handlers = {
        'upload': handle_upload,
        'users': handle_users,
    }

    try:
        exit_code = asyncio.run(handlers[args.command](args))
    except UploadError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Upload interrupted by user")
        sys.exit(130)

    sys.exit(exit_code)


if __name__ == '__main__':
    main()

from .auth import AuthProvider, ClientCredentialsAuth, StaticTokenAuth
from .byte_range import compute_range
from .client import DriveClient
from .config import UploaderConfig
from .coordinator import UploadCoordinator
from .errors import (
    AuthError,
    HttpError,
    NetworkError,
    SessionError,
    UploadError,
    ValidationError,
)
from .models import ByteRange, QueueStats, TransferProgress, UploadSession
from .retry import RetryPolicy
from .task_queue import ConcurrencyQueue
from .transfer import FileUploader, ResumableTransferEngine

__version__ = "0.1.0"

__all__ = [
    "AuthProvider",
    "ClientCredentialsAuth",
    "StaticTokenAuth",
    "compute_range",
    "DriveClient",
    "UploaderConfig",
    "UploadCoordinator",
    "AuthError",
    "HttpError",
    "NetworkError",
    "SessionError",
    "UploadError",
    "ValidationError",
    "ByteRange",
    "QueueStats",
    "TransferProgress",
    "UploadSession",
    "RetryPolicy",
    "ConcurrencyQueue",
    "FileUploader",
    "ResumableTransferEngine",
]

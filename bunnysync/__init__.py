"""bunnysync - mirror a local directory onto a bunny.net storage zone."""

__version__ = "0.1.0"

from .api import BunnyStorageClient, StorageClientProtocol  # noqa: E402
from .exceptions import (  # noqa: E402
    AuthenticationError,
    BunnySyncError,
    ConfigError,
    InvalidResponseError,
    LocalDirectoryError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RemoteUnavailable,
    ServerError,
    StorageAPIError,
    TransferError,
)
from .utils import calculate_checksum, format_size  # noqa: E402

__all__ = [
    "__version__",
    "BunnyStorageClient",
    "StorageClientProtocol",
    "AuthenticationError",
    "BunnySyncError",
    "ConfigError",
    "InvalidResponseError",
    "LocalDirectoryError",
    "NetworkError",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "RemoteUnavailable",
    "ServerError",
    "StorageAPIError",
    "TransferError",
    "calculate_checksum",
    "format_size",
]

"""Custom exceptions for bunnysync."""

from typing import Optional


class BunnySyncError(Exception):
    """Base exception for all bunnysync errors."""


class ConfigError(BunnySyncError):
    """Configuration is missing or invalid (API key, region, config file)."""


class LocalDirectoryError(BunnySyncError, OSError):
    """The local root directory does not exist or cannot be read."""


class StorageAPIError(BunnySyncError):
    """Base exception for storage API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(StorageAPIError):
    """The access key was rejected (HTTP 401)."""


class PermissionDeniedError(StorageAPIError):
    """Access to the path is forbidden (HTTP 403)."""


class NotFoundError(StorageAPIError):
    """The requested object or directory does not exist (HTTP 404)."""


class RateLimitError(StorageAPIError):
    """Too many requests (HTTP 429)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = 429,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class ServerError(StorageAPIError):
    """The storage server failed (HTTP 5xx)."""


class NetworkError(StorageAPIError):
    """Connection, DNS or timeout failure before a response was received."""


class InvalidResponseError(StorageAPIError):
    """The server returned a response that could not be decoded."""


class RemoteUnavailable(BunnySyncError):
    """The remote listing could not be fetched.

    This is the one fatal condition of a sync run: no plan is computed
    against an incomplete view of the zone.
    """


class TransferError(BunnySyncError):
    """A single upload or delete failed after all retries."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path


def is_transient(exception: BaseException) -> bool:
    """Return True if a failed request is worth retrying.

    Network failures, rate limiting and server errors are transient;
    authentication, permission and other client errors are not.
    """
    return isinstance(exception, (NetworkError, RateLimitError, ServerError))

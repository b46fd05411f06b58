"""API client for bunny.net Edge Storage."""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Iterator
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from . import __version__
from .config import base_url_for_region
from .exceptions import (
    AuthenticationError,
    ConfigError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ServerError,
    StorageAPIError,
    is_transient,
)
from .models import StorageObject
from .utils import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TIMEOUT,
    MAX_RETRY_AFTER,
)

logger = logging.getLogger(__name__)

API_KEY_HEADER = "AccessKey"
USER_AGENT = f"bunnysync/{__version__}"


class StorageClientProtocol(Protocol):
    """Operations the sync engine needs from a storage backend.

    Paths are relative to the zone root and never start with a slash.
    """

    def iter_objects(self, prefix: str = "") -> Iterator[list[StorageObject]]:
        """Yield pages of objects below ``prefix``, recursing into directories."""
        ...

    def put_object(
        self, path: str, data: bytes, checksum: str | None = None
    ) -> None:
        """Store ``data`` at ``path``, replacing any existing object."""
        ...

    def delete_object(self, path: str) -> bool:
        """Delete ``path``; return False if it did not exist."""
        ...


class BunnyStorageClient:
    """Client for one bunny.net storage zone."""

    def __init__(
        self,
        api_key: str,
        zone: str,
        region: str | None = None,
        base_url: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the storage client.

        Args:
            api_key: Storage zone password (sent as the AccessKey header)
            zone: Storage zone name
            region: Region name used to pick the endpoint (default: "de")
            base_url: Explicit endpoint, overrides ``region``
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 1.0)
            timeout: Per-request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests to mock the API)

        Raises:
            ConfigError: If the API key or zone is missing, or the region is unknown
        """
        if not api_key:
            raise ConfigError(
                "API key not configured. "
                "Please set the BUNNYSYNC_API_KEY environment variable."
            )
        if not zone:
            raise ConfigError("Storage zone name is required")

        self._api_key = api_key
        self.zone = zone.strip("/")
        self.base_url = (base_url or base_url_for_region(region)).rstrip("/")
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport

        self._client: httpx.Client | None = None
        self._client_lock = threading.Lock()

    def __repr__(self) -> str:
        return f"BunnyStorageClient(zone={self.zone!r}, base_url={self.base_url!r})"

    def __enter__(self) -> BunnyStorageClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client (shared by worker threads)."""
        with self._client_lock:
            if self._client is None or self._client.is_closed:
                self._client = httpx.Client(
                    headers={API_KEY_HEADER: self._api_key, "User-Agent": USER_AGENT},
                    timeout=httpx.Timeout(self.timeout),
                    transport=self._transport,
                )
            return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _url(self, path: str) -> str:
        """Build the request URL for a zone-relative path.

        Examples:
            >>> client = BunnyStorageClient("key", "my-zone")
            >>> client._url("docs/read me.txt")
            'https://storage.bunnycdn.com/my-zone/docs/read%20me.txt'
        """
        quoted = quote(path.lstrip("/"), safe="/")
        return f"{self.base_url}/{quote(self.zone, safe='')}/{quoted}"

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _error_from_response(self, response: httpx.Response, path: str) -> Exception:
        """Map an unsuccessful response to a storage exception."""
        status_code = response.status_code

        if status_code == 401:
            return AuthenticationError("Remote unauthorized: check your API key", 401)
        if status_code == 403:
            return PermissionDeniedError(f"Forbidden: access denied to {path}", 403)
        if status_code == 404:
            return NotFoundError(f"Not found: {path} does not exist", 404)
        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(
                "Rate limit exceeded",
                retry_after=(
                    float(retry_after) if retry_after and retry_after.isdigit() else None
                ),
            )

        error_msg = f"Request for {path} failed with HTTP {status_code}"
        # Try to extract more details from response body
        try:
            if response.content:
                error_data = response.json()
                if isinstance(error_data, dict) and error_data.get("Message"):
                    error_msg = f"{error_msg}: {error_data['Message']}"
        except ValueError:
            pass

        if 500 <= status_code < 600:
            return ServerError(error_msg, status_code)
        return StorageAPIError(error_msg, status_code)

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Make a storage request with retry logic.

        Args:
            method: HTTP method
            path: Zone-relative path
            **kwargs: Additional arguments passed to httpx

        Returns:
            Successful response

        Raises:
            StorageAPIError: If the request fails after all retries
        """
        url = self._url(path)
        client = self._get_client()

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, url, **kwargs)
            except httpx.RequestError as e:
                error: Exception = NetworkError(f"Network error: {e}")
                cause: Exception = e
            else:
                if response.is_success:
                    return response
                error = self._error_from_response(response, path)
                cause = error

            if not is_transient(error) or attempt >= self.max_retries:
                if error is cause:
                    raise error
                raise error from cause

            if isinstance(error, RateLimitError) and error.retry_after is not None:
                delay = min(error.retry_after, MAX_RETRY_AFTER)
            else:
                delay = self._calculate_retry_delay(attempt)
            logger.debug(
                f"{method} {path} failed (attempt {attempt + 1}/"
                f"{self.max_retries + 1}), retrying in {delay:.1f}s: {error}"
            )
            time.sleep(delay)

        # Unreachable: the last attempt either returns or raises
        raise StorageAPIError(f"{method} {path} failed after all retry attempts")

    # =========================
    # Listing
    # =========================

    def list_directory(self, path: str = "") -> list[StorageObject]:
        """List the direct children of a directory.

        Args:
            path: Zone-relative directory path ("" for the zone root)

        Returns:
            Files and directories in the directory

        Raises:
            NotFoundError: If the directory does not exist
            InvalidResponseError: If the listing is not a JSON array of records
        """
        directory = path.strip("/")
        directory = f"{directory}/" if directory else ""
        response = self._request(
            "GET", directory, headers={"Accept": "application/json"}
        )

        try:
            records = response.json()
        except ValueError as e:
            raise InvalidResponseError(
                f"Invalid JSON listing for /{directory}", response.status_code
            ) from e
        if not isinstance(records, list):
            raise InvalidResponseError(
                f"Unexpected listing format for /{directory}", response.status_code
            )

        try:
            return [StorageObject.from_dict(record) for record in records]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidResponseError(
                f"Malformed listing record for /{directory}: {e}",
                response.status_code,
            ) from e

    def iter_objects(self, prefix: str = "") -> Iterator[list[StorageObject]]:
        """Iterate all objects below a prefix, one page per directory.

        Directory records are included in the page that lists them and
        their contents are fetched afterwards, so the caller sees a single
        logical listing regardless of how many requests it takes.

        Args:
            prefix: Zone-relative directory to start from ("" for the zone root)

        Yields:
            Lists of StorageObject, one per listed directory
        """
        pending = [prefix.strip("/")]
        seen: set[str] = set()

        while pending:
            directory = pending.pop()
            if directory in seen:
                continue
            seen.add(directory)

            records = self.list_directory(directory)
            logger.debug(f"Listed /{directory}: {len(records)} record(s)")
            for record in records:
                if record.is_directory:
                    pending.append(record.key)
            yield records

    # =========================
    # Upload / delete
    # =========================

    def put_object(self, path: str, data: bytes, checksum: str | None = None) -> None:
        """Upload an object, replacing any existing one.

        Args:
            path: Zone-relative object path
            data: File content
            checksum: Optional uppercase SHA-256 the server verifies on receipt
        """
        headers = {"Content-Type": "application/octet-stream"}
        if checksum:
            headers["Checksum"] = checksum.upper()
        self._request("PUT", path, content=data, headers=headers)

    def delete_object(self, path: str) -> bool:
        """Delete an object.

        Args:
            path: Zone-relative object path

        Returns:
            True if the object was deleted, False if it was already absent
        """
        try:
            self._request("DELETE", path)
        except NotFoundError:
            logger.debug(f"Delete of missing object {path} treated as success")
            return False
        return True

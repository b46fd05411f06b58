"""Utility functions for bunnysync."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# =============================================================================
# Constants for sync operations
# =============================================================================

# Read size used when fingerprinting local files (1 MB)
HASH_CHUNK_SIZE: int = 1024 * 1024

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# Upper bound for a server-requested Retry-After wait
MAX_RETRY_AFTER: float = 60.0  # seconds

# Per-request timeout for list/put/delete
DEFAULT_TIMEOUT: float = 30.0  # seconds

# Parallel upload/delete workers
DEFAULT_WORKERS: int = 4

# Config file read from the current directory; never synced
CONFIG_FILE_NAME: str = ".bunnysync"


# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp from the storage API.

    bunny.net reports ``LastChanged`` without a timezone
    (e.g. ``"2025-02-03T21:26:21.866"``); such values are UTC.

    Args:
        timestamp_str: ISO format timestamp string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not timestamp_str:
        return None

    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


# =============================================================================
# Fingerprint utilities
# =============================================================================


def calculate_checksum(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Calculate the SHA-256 checksum of a file.

    The digest is returned as uppercase hex, the format bunny.net uses for
    the ``Checksum`` field of storage objects and the ``Checksum`` upload
    header.

    Args:
        file_path: Path to the file
        chunk_size: Number of bytes read per iteration

    Returns:
        Uppercase hex SHA-256 digest
    """
    digest = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest().upper()


def checksum_bytes(data: bytes) -> str:
    """Calculate the uppercase hex SHA-256 checksum of in-memory data.

    Examples:
        >>> checksum_bytes(b"hello")[:16]
        '2CF24DBA5FB0A30E'
    """
    return hashlib.sha256(data).hexdigest().upper()


def checksums_match(first: Optional[str], second: Optional[str]) -> bool:
    """Compare two hex checksums case-insensitively.

    A missing checksum on either side never matches.
    """
    if not first or not second:
        return False
    return first.upper() == second.upper()

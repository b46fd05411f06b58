"""Sync operations wrapper over the storage client."""

import logging

from ..api import StorageClientProtocol
from ..utils import checksum_bytes
from .scanner import LocalFile

logger = logging.getLogger(__name__)


class SyncOperations:
    """Upload and delete operations used by the sync engine."""

    def __init__(self, client: StorageClientProtocol):
        """Initialize sync operations.

        Args:
            client: Storage client
        """
        self.client = client

    def upload_file(self, local_file: LocalFile, remote_path: str) -> int:
        """Upload a local file to remote storage.

        The content is read once and sent with its SHA-256 so the server
        rejects a corrupted transfer.

        Args:
            local_file: Local file to upload
            remote_path: Zone-relative destination path

        Returns:
            Number of bytes uploaded

        Raises:
            OSError: If the file can no longer be read
            StorageAPIError: If the upload fails after retries
        """
        data = local_file.path.read_bytes()
        if len(data) != local_file.size:
            logger.debug(
                f"{local_file.relative_path} changed size since scan "
                f"({local_file.size} -> {len(data)} bytes)"
            )
        self.client.put_object(remote_path, data, checksum=checksum_bytes(data))
        return len(data)

    def delete_remote(self, remote_path: str) -> bool:
        """Delete a remote file.

        Args:
            remote_path: Zone-relative path

        Returns:
            True if deleted, False if it was already gone
        """
        return self.client.delete_object(remote_path)

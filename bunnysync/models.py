"""Data models for bunny.net storage API responses."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .utils import parse_iso_timestamp


@dataclass
class StorageObject:
    """A file or directory record returned by a storage zone listing.

    Example listing record::

        {
            "Guid": "33ea1f9b-3012-4ddd-af33-24741c559ef0",
            "StorageZoneName": "my-storage-zone",
            "Path": "/my-storage-zone/",
            "ObjectName": "404.html",
            "Length": 11720,
            "LastChanged": "2025-02-03T21:26:21.866",
            "IsDirectory": false,
            "Checksum": "312341234ADFADSFASDF",
            "DateCreated": "2025-02-03T21:26:21.866"
        }
    """

    guid: str
    storage_zone_name: str
    path: str
    """Directory of the object, including the zone (e.g. "/my-zone/css/")"""

    object_name: str
    length: int
    last_changed: Optional[str]
    is_directory: bool
    checksum: Optional[str] = None
    """Uppercase hex SHA-256 of the content; None for directories"""

    date_created: Optional[str] = None
    content_type: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StorageObject":
        """Create a StorageObject from a listing record.

        Args:
            data: One element of the JSON array returned by a listing

        Returns:
            StorageObject instance

        Raises:
            KeyError: If a required field is missing
        """
        return cls(
            guid=data.get("Guid") or "",
            storage_zone_name=data.get("StorageZoneName") or "",
            path=data["Path"],
            object_name=data["ObjectName"],
            length=int(data.get("Length") or 0),
            last_changed=data.get("LastChanged"),
            is_directory=bool(data.get("IsDirectory", False)),
            checksum=data.get("Checksum") or None,
            date_created=data.get("DateCreated"),
            content_type=data.get("ContentType") or None,
        )

    @property
    def key(self) -> str:
        """Path of the object relative to the zone root, without leading slash.

        Examples:
            >>> StorageObject("", "zone", "/zone/css/", "site.css", 1, None,
            ...               False).key
            'css/site.css'
        """
        directory = self.path.strip("/")
        zone = self.storage_zone_name
        if zone and (directory == zone or directory.startswith(f"{zone}/")):
            directory = directory[len(zone) :]
        else:
            # Zone name unknown: the first path segment is always the zone
            directory = directory.partition("/")[2]
        directory = directory.strip("/")
        return f"{directory}/{self.object_name}" if directory else self.object_name

    @property
    def last_changed_at(self) -> Optional[datetime]:
        """``LastChanged`` parsed as an aware UTC datetime."""
        return parse_iso_timestamp(self.last_changed)

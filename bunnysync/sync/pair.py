"""Sync pair: a local directory mirrored onto a storage zone prefix."""

from dataclasses import dataclass, field
from pathlib import Path

ZONE_SCHEME = "zone://"


def is_zone(location: str) -> bool:
    """Check whether a location refers to a storage zone.

    Examples:
        >>> is_zone("zone://my-zone/site")
        True
        >>> is_zone("./site")
        False
    """
    return location.startswith(ZONE_SCHEME)


def parse_zone_url(location: str) -> tuple[str, str]:
    """Split ``zone://<zone>[/<prefix>]`` into zone name and prefix.

    Args:
        location: Zone URL

    Returns:
        Tuple of (zone, prefix); the prefix has no leading or trailing slash

    Raises:
        ValueError: If the location is not a zone URL or has no zone name

    Examples:
        >>> parse_zone_url("zone://my-zone/site/assets/")
        ('my-zone', 'site/assets')
        >>> parse_zone_url("zone://my-zone")
        ('my-zone', '')
    """
    if not is_zone(location):
        raise ValueError(f"Not a storage zone location: {location}")

    remainder = location[len(ZONE_SCHEME) :].strip("/")
    zone, _, prefix = remainder.partition("/")
    if not zone:
        raise ValueError(f"Missing storage zone name in {location}")

    segments = [part for part in prefix.split("/") if part]
    if any(part in (".", "..") for part in segments):
        raise ValueError(f"Relative segments are not allowed in {location}")
    return zone, "/".join(segments)


@dataclass
class SyncPair:
    """A local directory and the zone prefix it is mirrored to."""

    local: Path
    """Local root directory (source of truth)"""

    zone: str
    """Storage zone name"""

    prefix: str = ""
    """Directory inside the zone; "" for the zone root"""

    exclude: list[str] = field(default_factory=list)
    """Glob patterns matched against file names and relative paths"""

    exclude_dot_files: bool = False
    """Skip entries whose name starts with a dot"""

    follow_symlinks: bool = False
    """Follow symbolic links instead of skipping them"""

    def __post_init__(self) -> None:
        self.local = Path(self.local)
        self.prefix = self.prefix.strip("/")

    @classmethod
    def from_locations(cls, source: str, destination: str, **kwargs) -> "SyncPair":
        """Create a sync pair from a local path and a ``zone://`` URL.

        Args:
            source: Local directory
            destination: Zone URL, e.g. ``zone://my-zone/site``
            **kwargs: Additional SyncPair fields

        Returns:
            SyncPair instance

        Raises:
            ValueError: If the destination is not a zone URL or the source is one
        """
        if is_zone(source):
            raise ValueError(
                "Syncing from a storage zone to a local directory is not supported"
            )
        zone, prefix = parse_zone_url(destination)
        return cls(local=Path(source), zone=zone, prefix=prefix, **kwargs)

    def remote_path(self, relative_path: str) -> str:
        """Zone-relative path for a file relative to the sync root.

        Examples:
            >>> SyncPair(Path("."), "zone", "site").remote_path("css/a.css")
            'site/css/a.css'
            >>> SyncPair(Path("."), "zone").remote_path("a.css")
            'a.css'
        """
        return f"{self.prefix}/{relative_path}" if self.prefix else relative_path

    @property
    def remote_url(self) -> str:
        """Display form of the destination."""
        return f"{ZONE_SCHEME}{self.zone}/{self.prefix}".rstrip("/")

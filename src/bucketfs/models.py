"""bucketfs data models.

Provides typed dataclasses for object attributes, listing results and the
filesystem-level metadata derived from them.
"""

from __future__ import annotations

import stat as stat_module
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

FILE_MODE = 0o666
DIRECTORY_MODE = stat_module.S_IFDIR | 0o777


@dataclass(frozen=True)
class ObjectAttributes:
    """Attributes of a stored object as reported by the backend.

    Attributes:
        key: Object key within the bucket.
        size_bytes: Size of the object content in bytes.
        updated_at: Last modification timestamp (UTC).
        etag: Backend entity tag, if the backend reports one.
        content_type: MIME type, if the backend reports one.
    """

    key: str
    size_bytes: int
    updated_at: datetime
    etag: str | None = None
    content_type: str | None = None

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert attributes to dictionary for JSON serialization."""
        return {
            "key": self.key,
            "size_bytes": self.size_bytes,
            "updated_at": self.updated_at.isoformat(),
            "etag": self.etag,
            "content_type": self.content_type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ObjectAttributes:
        """Create attributes from dictionary."""
        updated_raw = data.get("updated_at")
        if isinstance(updated_raw, str):
            updated_at = datetime.fromisoformat(updated_raw)
        elif isinstance(updated_raw, datetime):
            updated_at = updated_raw
        else:
            updated_at = datetime.now(UTC)

        size_raw = data.get("size_bytes")
        size_bytes = int(size_raw) if size_raw is not None else 0

        etag_raw = data.get("etag")
        content_type_raw = data.get("content_type")

        return cls(
            key=str(data["key"]),
            size_bytes=size_bytes,
            updated_at=updated_at,
            etag=str(etag_raw) if etag_raw else None,
            content_type=str(content_type_raw) if content_type_raw else None,
        )


@dataclass(frozen=True)
class ListedEntry:
    """One result of a prefix listing.

    Either an object (``attributes`` set) or, for delimited listings, a common
    prefix that stands for an inferred sub-directory (``is_prefix`` True,
    ``key`` ends with the delimiter).
    """

    key: str
    is_prefix: bool = False
    attributes: ObjectAttributes | None = None


class EntryKind(str, Enum):
    """Kind of a filesystem entry derived from a listing."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class FileInfo:
    """Filesystem metadata for a path.

    Attributes:
        name: Entry name (last path component for listings, the full key for stat).
        size: Size in bytes (0 for inferred directories).
        mode: Synthetic permission bits; object stores have no permissions.
        mod_time: Last modification time (UTC); None for inferred directories.
        kind: FILE or DIRECTORY.
        sys: Raw backend attributes, if any.
    """

    name: str
    size: int
    mode: int
    mod_time: datetime | None
    kind: EntryKind = EntryKind.FILE
    sys: ObjectAttributes | None = None

    @property
    def is_dir(self) -> bool:
        """Return True for inferred directory entries."""
        return self.kind is EntryKind.DIRECTORY

    @classmethod
    def for_object(cls, name: str, attributes: ObjectAttributes) -> FileInfo:
        """Build a file entry from object attributes."""
        return cls(
            name=name,
            size=attributes.size_bytes,
            mode=FILE_MODE,
            mod_time=attributes.updated_at,
            kind=EntryKind.FILE,
            sys=attributes,
        )

    @classmethod
    def for_prefix(cls, name: str) -> FileInfo:
        """Build an inferred directory entry for a common prefix."""
        return cls(
            name=name,
            size=0,
            mode=DIRECTORY_MODE,
            mod_time=None,
            kind=EntryKind.DIRECTORY,
        )


@dataclass(frozen=True)
class ContentSummary:
    """Aggregate size/count information for a path.

    Object stores offer no cheap tree aggregation, so this reports the size of
    the single object at the path and zero for every count and quota.
    """

    length: int
    file_count: int = 0
    directory_count: int = 0
    quota: int = 0
    space_consumed: int = 0
    space_quota: int = 0


@dataclass(frozen=True)
class FsInfo:
    """Static filesystem identity."""

    name: str

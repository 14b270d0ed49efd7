"""Mapping between hierarchical filesystem paths and flat object keys.

A path maps 1:1 to a key: leading separators are stripped, repeated
separators collapse and "." segments are dropped. Paths that could alias or
escape another key are rejected:
- ".." segments
- Backslashes (Windows path separators)
- Null bytes
"""

from __future__ import annotations

from bucketfs.errors import InvalidPathError

SEPARATOR = "/"


def _is_unsafe(path: str) -> bool:
    """Check if a path contains sequences that cannot map to a unique key."""
    if "\x00" in path:
        return True

    if "\\" in path:
        return True

    segments = path.split(SEPARATOR)
    return any(segment == ".." for segment in segments)


def _normalize(path: str) -> str:
    if _is_unsafe(path):
        raise InvalidPathError(
            message="Invalid path: traversal or unsafe characters detected",
            key=path,
        )
    segments = [s for s in path.split(SEPARATOR) if s and s != "."]
    return SEPARATOR.join(segments)


def to_key(path: str) -> str:
    """Map a file path to its object key.

    Raises:
        InvalidPathError: If the path is empty, names the root, or is unsafe.
    """
    if not path:
        raise InvalidPathError(message="Invalid path: empty", key=path)
    key = _normalize(path)
    if not key:
        raise InvalidPathError(message="Invalid path: root is not an object", key=path)
    return key


def to_prefix(path: str) -> str:
    """Map a directory path to the key prefix of its children.

    The prefix ends with a separator so that "a" lists "a/x" but not "ab".
    The bucket root ("", "/" or ".") maps to the empty prefix.

    Raises:
        InvalidPathError: If the path is unsafe.
    """
    key = _normalize(path)
    if not key:
        return ""
    return key + SEPARATOR


def base_name(key: str) -> str:
    """Return the last component of a key or prefix (without trailing separator)."""
    return key.rstrip(SEPARATOR).rsplit(SEPARATOR, 1)[-1]

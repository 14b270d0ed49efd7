"""bucketfs local filesystem object store backend.

Emulates a flat object store inside a local directory for development and
testing, with the same guarantees the adapter relies on from a real store:
- Flat key space: keys map to files named by key hash, so "a" and "a/b" can
  coexist as objects
- Atomic finalize-on-close: writers stage into a temp file, move it to a
  content file of its own, then swap in the metadata that points at it
- Store-side existence precondition for no-overwrite writes (os.link fails if
  the target exists)

Layout:
    {base_dir}/{bucket}/
        {key_hash}.{uuid}.data  # content of one write
        {key_hash}.meta.json    # ObjectAttributes + content_file; presence marks existence

Environment Variables:
    BUCKETFS_BASE_DIR: Base directory for storage
        (default: tempfile.gettempdir() / bucketfs_objects)
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import uuid
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import IO

from bucketfs.backends.base import ObjectReader, ObjectStoreClient, ObjectWriter
from bucketfs.errors import (
    InvalidPathError,
    ObjectExistsError,
    ObjectNotFoundError,
    StorageBackendError,
)
from bucketfs.models import ListedEntry, ObjectAttributes

logger = logging.getLogger(__name__)

BUCKETFS_BASE_DIR_ENV = "BUCKETFS_BASE_DIR"

_METADATA_SUFFIX = ".meta.json"
_CONTENT_SUFFIX = ".data"
_TMP_SUFFIX = ".tmp"
_CONTENT_FILE_FIELD = "content_file"
_OPEN_ATTEMPTS = 3


def _key_hash(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class _FilesystemObjectWriter(ObjectWriter):
    """Writer staging into a temp file next to the final content file."""

    def __init__(self, store: FilesystemObjectStore, key: str, *, if_not_exists: bool) -> None:
        self._store = store
        self._key = key
        self._if_not_exists = if_not_exists
        self._tmp_path = store.bucket_dir / f"{_key_hash(key)}.{uuid.uuid4().hex}{_TMP_SUFFIX}"
        self._sha256 = hashlib.sha256()
        super().__init__(self._tmp_path.open("w+b"), location=store.location(key))

    def write(self, data: bytes | bytearray | memoryview) -> int:
        count = super().write(data)
        self._sha256.update(data)
        return count

    def _commit(self) -> None:
        self._buffer.close()
        self._store._publish(
            self._key,
            self._tmp_path,
            size_bytes=self.bytes_written,
            sha256=self._sha256.hexdigest(),
            if_not_exists=self._if_not_exists,
        )

    def _release(self) -> None:
        super()._release()
        self._tmp_path.unlink(missing_ok=True)


class FilesystemObjectStore(ObjectStoreClient):
    """Filesystem-based object store bound to one bucket directory."""

    def __init__(self, bucket: str, base_dir: str | Path | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            bucket: Bucket name; becomes a sub-directory of base_dir.
            base_dir: Base directory for storage. If None, uses
                BUCKETFS_BASE_DIR env var or OS temp directory.
        """
        if not bucket or "/" in bucket or bucket in (".", ".."):
            raise InvalidPathError(message=f"Invalid bucket name: {bucket!r}", bucket=bucket)

        if base_dir is None:
            base_dir = os.environ.get(BUCKETFS_BASE_DIR_ENV)

        if base_dir is None:
            base_dir = Path(tempfile.gettempdir()) / "bucketfs_objects"
        else:
            base_dir = Path(base_dir)

        self._bucket = bucket
        self._base_dir = base_dir.resolve()
        self._bucket_dir = self._base_dir / bucket
        try:
            self._bucket_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create bucket directory: {e}",
                bucket=bucket,
                cause=e,
            ) from e
        logger.debug("FilesystemObjectStore initialized with bucket_dir=%s", self._bucket_dir)

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def base_dir(self) -> Path:
        """Return the base directory path."""
        return self._base_dir

    @property
    def bucket_dir(self) -> Path:
        """Return the directory holding this bucket's objects."""
        return self._bucket_dir

    def location(self, key: str) -> str:
        return f"file://{self._bucket}/{key}"

    def _meta_path(self, key: str) -> Path:
        return self._bucket_dir / f"{_key_hash(key)}{_METADATA_SUFFIX}"

    def _new_content_path(self, key: str) -> Path:
        return self._bucket_dir / f"{_key_hash(key)}.{uuid.uuid4().hex}{_CONTENT_SUFFIX}"

    def _read_record(self, meta_file: Path) -> tuple[ObjectAttributes, Path] | None:
        """Read attributes and the content file they point at."""
        try:
            data = json.loads(meta_file.read_text(encoding="utf-8"))
            content_name = data[_CONTENT_FILE_FIELD]
            attributes = ObjectAttributes.from_dict(data)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Failed to read metadata %s: %s", meta_file, e)
            return None
        if not isinstance(content_name, str) or Path(content_name).name != content_name:
            logger.warning("Metadata %s names an invalid content file", meta_file)
            return None
        return attributes, self._bucket_dir / content_name

    def _write_tmp_metadata(self, key: str, attributes: ObjectAttributes, content: Path) -> Path:
        record = attributes.to_dict()
        record[_CONTENT_FILE_FIELD] = content.name
        tmp_file = self._bucket_dir / f"{_key_hash(key)}.meta.{uuid.uuid4().hex}{_TMP_SUFFIX}"
        tmp_file.write_text(json.dumps(record, indent=2), encoding="utf-8")
        return tmp_file

    def _publish(
        self,
        key: str,
        staged: Path,
        *,
        size_bytes: int,
        sha256: str,
        if_not_exists: bool,
    ) -> None:
        """Move a staged content file into place and record its metadata.

        The content lands under a name no other write uses, and only then is
        the metadata file swapped in. That swap is the single commit point:
        readers resolve content through the metadata, so size, etag and bytes
        always come from the same write. With ``if_not_exists`` the metadata
        is linked into place, which fails atomically if the key already exists.
        """
        attributes = ObjectAttributes(
            key=key,
            size_bytes=size_bytes,
            updated_at=datetime.now(UTC),
            etag=sha256,
        )
        meta_file = self._meta_path(key)
        content = self._new_content_path(key)
        tmp_meta: Path | None = None
        committed = False
        superseded: Path | None = None
        try:
            staged.replace(content)
            tmp_meta = self._write_tmp_metadata(key, attributes, content)
            if if_not_exists:
                try:
                    os.link(tmp_meta, meta_file)
                except FileExistsError as e:
                    raise ObjectExistsError(bucket=self._bucket, key=key) from e
            else:
                previous = self._read_record(meta_file)
                if previous is not None:
                    superseded = previous[1]
                tmp_meta.replace(meta_file)
            committed = True
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to publish object: {e}",
                bucket=self._bucket,
                key=key,
                cause=e,
            ) from e
        finally:
            if tmp_meta is not None:
                tmp_meta.unlink(missing_ok=True)
            if not committed:
                content.unlink(missing_ok=True)

        if superseded is not None and superseded != content:
            superseded.unlink(missing_ok=True)
        logger.debug("Stored object: bucket=%s key=%s size=%d", self._bucket, key, size_bytes)

    def _open_content(self, key: str) -> tuple[ObjectAttributes, IO[bytes]]:
        # A concurrent overwrite may unlink the content between reading the
        # metadata and opening the file; the metadata then names a newer one.
        meta_file = self._meta_path(key)
        for _ in range(_OPEN_ATTEMPTS):
            record = self._read_record(meta_file)
            if record is None:
                break
            attributes, content = record
            try:
                return attributes, content.open("rb")
            except FileNotFoundError:
                continue
            except OSError as e:
                raise StorageBackendError(
                    message=f"Failed to open object: {e}",
                    bucket=self._bucket,
                    key=key,
                    cause=e,
                ) from e
        raise ObjectNotFoundError(bucket=self._bucket, key=key)

    def open_reader(self, key: str) -> ObjectReader:
        attributes, body = self._open_content(key)
        return ObjectReader(body, location=self.location(key), size=attributes.size_bytes)

    def open_writer(self, key: str, *, if_not_exists: bool = False) -> ObjectWriter:
        try:
            return _FilesystemObjectWriter(self, key, if_not_exists=if_not_exists)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to open object for writing: {e}",
                bucket=self._bucket,
                key=key,
                cause=e,
            ) from e

    def attributes(self, key: str) -> ObjectAttributes:
        record = self._read_record(self._meta_path(key))
        if record is None:
            raise ObjectNotFoundError(bucket=self._bucket, key=key)
        return record[0]

    def delete(self, key: str) -> None:
        meta_file = self._meta_path(key)
        record = self._read_record(meta_file)
        try:
            meta_file.unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(bucket=self._bucket, key=key) from e
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to delete object: {e}",
                bucket=self._bucket,
                key=key,
                cause=e,
            ) from e
        if record is not None:
            record[1].unlink(missing_ok=True)
        logger.debug("Deleted object: bucket=%s key=%s", self._bucket, key)

    def _iter_attributes(self) -> Iterator[ObjectAttributes]:
        try:
            meta_files = list(self._bucket_dir.glob(f"*{_METADATA_SUFFIX}"))
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to list bucket directory: {e}",
                bucket=self._bucket,
                cause=e,
            ) from e
        for meta_file in meta_files:
            record = self._read_record(meta_file)
            if record is not None:
                yield record[0]

    def list_objects(self, prefix: str, *, delimiter: str | None = None) -> Iterator[ListedEntry]:
        matches = sorted(
            (a for a in self._iter_attributes() if a.key.startswith(prefix)),
            key=lambda a: a.key,
        )
        seen_prefixes: set[str] = set()
        for attributes in matches:
            if delimiter:
                rest = attributes.key[len(prefix) :]
                idx = rest.find(delimiter)
                if idx >= 0:
                    common = prefix + rest[: idx + len(delimiter)]
                    if common not in seen_prefixes:
                        seen_prefixes.add(common)
                        yield ListedEntry(key=common, is_prefix=True)
                    continue
            yield ListedEntry(key=attributes.key, attributes=attributes)

    def copy(self, src_key: str, dst_key: str) -> None:
        source, body = self._open_content(src_key)
        staged = self._bucket_dir / f"{_key_hash(dst_key)}.{uuid.uuid4().hex}{_TMP_SUFFIX}"
        try:
            with body:
                staged.write_bytes(body.read())
            self._publish(
                dst_key,
                staged,
                size_bytes=source.size_bytes,
                sha256=source.etag or "",
                if_not_exists=False,
            )
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to copy object: {e}",
                bucket=self._bucket,
                key=src_key,
                cause=e,
            ) from e
        finally:
            staged.unlink(missing_ok=True)

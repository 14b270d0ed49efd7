"""bucketfs object store client interface.

Provides the ObjectStoreClient interface that every storage backend implements,
plus the reader/writer handle types returned by its streaming methods.

A client is bound to exactly one bucket and is safe for concurrent use by
multiple threads; the filesystem adapter injects one long-lived client and
reuses it across calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from types import TracebackType
from typing import IO, Any

from bucketfs.errors import ObjectNotFoundError
from bucketfs.models import ListedEntry, ObjectAttributes

logger = logging.getLogger(__name__)


class ObjectReader:
    """Read handle bound to one object.

    Wraps the backend's body stream. The caller owns the handle and must
    close it; closing is idempotent.
    """

    def __init__(self, body: Any, *, location: str, size: int | None = None) -> None:
        self._body = body
        self.location = location
        self.size = size
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; ``-1`` reads to the end of the object."""
        if self._closed:
            raise ValueError(f"read from closed object reader {self.location}")
        if size is None or size < 0:
            return bytes(self._body.read())
        return bytes(self._body.read(size))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._body.close()

    def __enter__(self) -> ObjectReader:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class ObjectWriter(ABC):
    """Write handle bound to one object.

    Bytes are staged in a local buffer and become visible in the store only
    when ``close()`` commits them. ``abort()`` discards the staged bytes and
    leaves the store untouched. Leaving a ``with`` block by exception aborts.

    Subclasses provide the staging buffer and the commit/discard steps.
    """

    def __init__(self, buffer: IO[bytes], *, location: str) -> None:
        self._buffer = buffer
        self.location = location
        self.bytes_written = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def writable(self) -> bool:
        return True

    def write(self, data: bytes | bytearray | memoryview) -> int:
        if self._closed:
            raise ValueError(f"write to closed object writer {self.location}")
        written = self._buffer.write(data)
        count = written if written is not None else len(data)
        self.bytes_written += count
        return count

    def flush(self) -> None:
        if not self._closed:
            self._buffer.flush()

    def close(self) -> None:
        """Commit the staged bytes to the store. Idempotent.

        Raises:
            ObjectExistsError: If the writer was opened with a must-not-exist
                precondition and the key appeared before commit.
            StorageBackendError: If the backend rejects the commit.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._buffer.flush()
            self._buffer.seek(0)
            self._commit()
        finally:
            self._release()

    def abort(self) -> None:
        """Discard the staged bytes without touching the store. Idempotent."""
        if self._closed:
            return
        self._closed = True
        logger.debug("Aborted write to %s after %d bytes", self.location, self.bytes_written)
        self._release()

    def _release(self) -> None:
        self._buffer.close()

    @abstractmethod
    def _commit(self) -> None:
        """Publish the staged buffer (positioned at 0) to the store."""
        ...

    def __enter__(self) -> ObjectWriter:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()


class ObjectStoreClient(ABC):
    """Abstract base class for object store backends.

    Implementations:
    - S3ObjectStore: AWS S3 / MinIO / any S3-compatible endpoint (production)
    - FilesystemObjectStore: local directory emulation (dev/test)
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier (e.g., "s3", "filesystem")."""
        ...

    @property
    @abstractmethod
    def bucket(self) -> str:
        """Return the name of the bucket this client is bound to."""
        ...

    @abstractmethod
    def location(self, key: str) -> str:
        """Return a URL-style location for a key, used in error messages."""
        ...

    @abstractmethod
    def open_reader(self, key: str) -> ObjectReader:
        """Open a read stream positioned at the start of an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            StorageBackendError: If the backend cannot open the object.
        """
        ...

    @abstractmethod
    def open_writer(self, key: str, *, if_not_exists: bool = False) -> ObjectWriter:
        """Open a write stream that replaces the object when closed.

        Args:
            key: Destination key.
            if_not_exists: If True, the commit is conditioned on the key not
                existing; ``close()`` raises ObjectExistsError otherwise.
        """
        ...

    @abstractmethod
    def attributes(self, key: str) -> ObjectAttributes:
        """Fetch object attributes.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete exactly one object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def list_objects(self, prefix: str, *, delimiter: str | None = None) -> Iterator[ListedEntry]:
        """List objects whose key starts with ``prefix``.

        Args:
            prefix: Key prefix ("" lists the whole bucket).
            delimiter: If set, keys containing the delimiter after the prefix
                are collapsed into one common-prefix entry per sub-level.

        Yields:
            ListedEntry for each object and (delimited listings only) each
            common prefix, in key order.
        """
        ...

    @abstractmethod
    def copy(self, src_key: str, dst_key: str) -> None:
        """Server-side copy of ``src_key`` to ``dst_key``, replacing the destination.

        Raises:
            ObjectNotFoundError: If the source does not exist.
            StorageBackendError: If the copy fails; a retry resumes or restarts
                it and is idempotent at the destination.
        """
        ...

    def exists(self, key: str) -> bool:
        """Return True if an object exists at ``key``."""
        try:
            self.attributes(key)
            return True
        except ObjectNotFoundError:
            return False

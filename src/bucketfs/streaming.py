"""Context-aware streaming copies into and out of the object store.

Clients can always copy between streams themselves; these helpers provide a
copy that stops reading from its source as soon as the caller's context is
cancelled or its deadline passes, and that only publishes the destination
after the whole copy succeeded.
"""

from __future__ import annotations

import logging
from typing import IO, Any, Protocol

from bucketfs.backends.base import ObjectStoreClient, ObjectWriter
from bucketfs.context import Context
from bucketfs.errors import ContextError, ObjectExistsError, TransferError
from bucketfs.paths import to_key

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


class _Readable(Protocol):
    def read(self, size: int = ..., /) -> bytes: ...


class _Writable(Protocol):
    def write(self, data: bytes, /) -> Any: ...


class ContextAwareReader:
    """Reader decorator that fails fast once its context is done.

    Every read first consults the context; if it has fired, the read raises
    the context error and performs no I/O on the wrapped source. Otherwise the
    read is delegated unmodified.
    """

    def __init__(self, ctx: Context, source: _Readable) -> None:
        self._ctx = ctx
        self._source = source

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self._ctx.raise_if_done()
        return self._source.read(size)

    def read1(self, size: int = -1) -> bytes:
        self._ctx.raise_if_done()
        read1 = getattr(self._source, "read1", None)
        if read1 is None:
            return self._source.read(size)
        return bytes(read1(size))

    def readinto(self, buffer: bytearray | memoryview) -> int:
        """Fill ``buffer`` from the source; return the number of bytes read."""
        self._ctx.raise_if_done()
        readinto = getattr(self._source, "readinto", None)
        if readinto is not None:
            return int(readinto(buffer))
        view = memoryview(buffer).cast("B")
        data = self._source.read(len(view))
        view[: len(data)] = data
        return len(data)


class _PartialCopy(Exception):
    """Internal carrier for an I/O failure and the bytes copied before it."""

    def __init__(self, bytes_transferred: int, cause: Exception) -> None:
        super().__init__(str(cause))
        self.bytes_transferred = bytes_transferred
        self.cause = cause


def _copy(source: _Readable, destination: _Writable, chunk_size: int = COPY_CHUNK_SIZE) -> int:
    """Copy ``source`` to ``destination`` in chunks and return the byte count.

    A ContextError propagates with ``bytes_transferred`` set; any other
    failure is wrapped in _PartialCopy.
    """
    total = 0
    try:
        while True:
            chunk = source.read(chunk_size)
            if not chunk:
                return total
            destination.write(chunk)
            total += len(chunk)
    except ContextError as e:
        e.bytes_transferred = total
        raise
    except Exception as e:
        raise _PartialCopy(total, e) from e


class StreamUtil:
    """Streaming transfer helpers bound to one object store client."""

    def __init__(self, client: ObjectStoreClient) -> None:
        self._client = client

    @property
    def client(self) -> ObjectStoreClient:
        return self._client

    def stream_into_dfs(self, ctx: Context, source: _Readable, name: str, overwrite: bool) -> int:
        """Copy a byte stream into the object ``name``.

        Args:
            ctx: Cancellation/deadline signal observed before every source read.
            source: Stream to read from.
            name: Destination object key.
            overwrite: If False, the write is conditioned on ``name`` not
                existing yet.

        Returns:
            Number of bytes transferred.

        Raises:
            ObjectExistsError: If ``overwrite`` is False and ``name`` exists.
            OperationCancelledError, DeadlineExceededError: If the context
                fired mid-transfer. The destination is not published.
            TransferError: If copying or finalizing fails.
        """
        key = to_key(name)
        location = self._client.location(key)
        ctx_reader = ContextAwareReader(ctx, source)
        writer: ObjectWriter = self._client.open_writer(key, if_not_exists=not overwrite)

        try:
            n = _copy(ctx_reader, writer)
        except _PartialCopy as e:
            writer.abort()
            raise TransferError(
                "error copying from input stream to",
                location=location,
                bytes_transferred=e.bytes_transferred,
                bucket=self._client.bucket,
                key=key,
                cause=e.cause,
            ) from e.cause
        except BaseException:
            writer.abort()
            raise

        try:
            writer.close()
        except ObjectExistsError:
            raise
        except Exception as e:
            raise TransferError(
                "failed to finalize",
                location=location,
                bytes_transferred=n,
                bucket=self._client.bucket,
                key=key,
                cause=e,
            ) from e

        logger.debug("Streamed %d bytes into %s", n, location)
        return n

    def stream_from_dfs(self, ctx: Context, destination: IO[bytes] | _Writable, name: str) -> int:
        """Copy the object ``name`` into ``destination``.

        The source reader is always closed. ``destination`` is closed only
        after a complete, successful copy.

        Returns:
            Number of bytes transferred.

        Raises:
            ObjectNotFoundError: If ``name`` does not exist.
            OperationCancelledError, DeadlineExceededError: If the context
                fired mid-transfer.
            TransferError: If reading or closing the destination fails.
        """
        key = to_key(name)
        location = self._client.location(key)
        with self._client.open_reader(key) as reader:
            try:
                n = _copy(ContextAwareReader(ctx, reader), destination)
            except _PartialCopy as e:
                raise TransferError(
                    "failed to fully copy object",
                    location=location,
                    bytes_transferred=e.bytes_transferred,
                    bucket=self._client.bucket,
                    key=key,
                    cause=e.cause,
                ) from e.cause

        close = getattr(destination, "close", None)
        if close is not None:
            try:
                close()
            except Exception as e:
                raise TransferError(
                    "failed to close destination for",
                    location=location,
                    bytes_transferred=n,
                    bucket=self._client.bucket,
                    key=key,
                    cause=e,
                ) from e

        logger.debug("Streamed %d bytes from %s", n, location)
        return n

"""Hierarchical filesystem interface emulated on a flat object store.

ObjectFileSystem implements the filesystem contract (read/write/stat/list/
remove/rename/walk) by composing ObjectStoreClient primitives:
- Directories are inferred from key prefixes; they are never stored
- Writes replace whole objects; nothing is mutated in place
- Rename is a server-side copy (retried with backoff) followed by deleting
  the source
- POSIX-only capabilities (ownership, permissions, timestamps, walk) follow
  the configured UnimplementedPolicy; append is always rejected

Every operation takes a Context first and runs inside its own Session, so
the adapter keeps no mutable state between calls and is safe to share across
threads.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from os import PathLike
from typing import Any

from bucketfs.backends.base import ObjectReader, ObjectStoreClient, ObjectWriter
from bucketfs.context import Context
from bucketfs.errors import (
    ObjectNotFoundError,
    OperationNotImplementedError,
    StorageBackendError,
    TransferError,
)
from bucketfs.models import ContentSummary, FileInfo, FsInfo
from bucketfs.observability import is_tracing_enabled, set_span_attributes
from bucketfs.paths import SEPARATOR, base_name, to_key, to_prefix
from bucketfs.policy import Behaviour, UnimplementedPolicy
from bucketfs.retry import RetryPolicy, retry_call
from bucketfs.tracing import traced_fs_operation

logger = logging.getLogger(__name__)

WalkFunc = Callable[[str, FileInfo | None, Exception | None], Any]


class RenameMode(str, Enum):
    """What rename does with the source once the copy succeeded.

    MOVE: delete the source (true rename).
    COPY_ONLY: keep the source, leaving two identical objects. Kept for
        callers that depend on the historical duplicate-on-rename behaviour.
    """

    MOVE = "move"
    COPY_ONLY = "copy_only"


@dataclass(frozen=True)
class Session:
    """Per-call binding of the store client and a fresh transaction id.

    Created at the start of one operation and discarded at its end; never
    shared between calls.
    """

    tx_id: str
    client: ObjectStoreClient

    @property
    def bucket(self) -> str:
        return self.client.bucket


class ObjectFileSystem:
    """Filesystem adapter over one bucket of an object store."""

    def __init__(
        self,
        client: ObjectStoreClient,
        behaviour: Behaviour | str = Behaviour.REPORT,
        *,
        rename_mode: RenameMode | str = RenameMode.MOVE,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: Long-lived, thread-safe object store client.
            behaviour: Policy for operations with no object store equivalent.
            rename_mode: Whether rename deletes the source after copying.
            retry_policy: Retry settings for the rename copy.
        """
        self._client = client
        self._policy = UnimplementedPolicy(behaviour)
        self._rename_mode = RenameMode(rename_mode)
        self._retry_policy = retry_policy or RetryPolicy()

    @property
    def client(self) -> ObjectStoreClient:
        return self._client

    @property
    def backend_name(self) -> str:
        return self._client.backend_name

    @property
    def bucket(self) -> str:
        return self._client.bucket

    @property
    def behaviour(self) -> Behaviour:
        return self._policy.behaviour

    @property
    def rename_mode(self) -> RenameMode:
        return self._rename_mode

    @contextmanager
    def _session(self, ctx: Context, operation: str) -> Iterator[Session]:
        ctx.raise_if_done()
        session = Session(tx_id=uuid.uuid4().hex, client=self._client)
        if is_tracing_enabled():
            set_span_attributes({"bucketfs.tx_id": session.tx_id})
        logger.debug("%s: begin tx=%s bucket=%s", operation, session.tx_id, session.bucket)
        try:
            yield session
        except BaseException as e:
            logger.debug("%s: end tx=%s error=%s", operation, session.tx_id, type(e).__name__)
            raise
        logger.debug("%s: end tx=%s", operation, session.tx_id)

    @traced_fs_operation("user")
    def user(self, ctx: Context) -> str:
        """Return the current user. Object stores have none; governed by policy."""
        self._policy.unimplemented("User method")
        return ""

    @traced_fs_operation("read_file")
    def read_file(self, ctx: Context, path: str) -> bytes:
        """Read a whole object into memory.

        Raises:
            ObjectNotFoundError: If no object exists at the path.
        """
        key = to_key(path)
        with self._session(ctx, "read_file") as session:
            with session.client.open_reader(key) as reader:
                return reader.read()

    @traced_fs_operation("copy_to_local")
    def copy_to_local(self, ctx: Context, src: str, dst: str | PathLike[str]) -> None:
        """Copy the remote object ``src`` to the local file ``dst``.

        A straight byte copy: the context is checked once at the start only.
        """
        key = to_key(src)
        with self._session(ctx, "copy_to_local") as session:
            with session.client.open_reader(key) as reader, open(dst, "wb") as f:
                shutil.copyfileobj(reader, f)

    @traced_fs_operation("copy_to_remote")
    def copy_to_remote(self, ctx: Context, src: str | PathLike[str], dst: str) -> None:
        """Copy the local file ``src`` to the remote object ``dst``.

        The remote object is published only if the whole file was copied.
        """
        key = to_key(dst)
        with self._session(ctx, "copy_to_remote") as session:
            with open(src, "rb") as f, session.client.open_writer(key) as writer:
                shutil.copyfileobj(f, writer)

    @traced_fs_operation("close")
    def close(self, ctx: Context) -> None:
        """Nothing to release: the adapter owns no per-call resources."""
        return None

    @traced_fs_operation("get_content_summary")
    def get_content_summary(self, ctx: Context, path: str) -> ContentSummary:
        """Return the size of the single object at ``path``.

        No aggregation across a prefix is attempted.
        """
        key = to_key(path)
        with self._session(ctx, "get_content_summary") as session:
            attributes = session.client.attributes(key)
        return ContentSummary(length=attributes.size_bytes)

    @traced_fs_operation("open")
    def open(self, ctx: Context, path: str) -> ObjectReader:
        """Open an object for reading. The caller must close the reader."""
        key = to_key(path)
        with self._session(ctx, "open") as session:
            return session.client.open_reader(key)

    @traced_fs_operation("create")
    def create(self, ctx: Context, path: str) -> ObjectWriter:
        """Open an object for writing, replacing it on close.

        The caller must close the writer to publish the object.
        """
        key = to_key(path)
        with self._session(ctx, "create") as session:
            return session.client.open_writer(key)

    @traced_fs_operation("create_file")
    def create_file(
        self,
        ctx: Context,
        path: str,
        replication: int = 0,
        block_size: int = 0,
        perm: int = 0o666,
    ) -> ObjectWriter:
        """Same as create; replication, block size and permissions are ignored."""
        return self.create(ctx, path)

    @traced_fs_operation("append")
    def append(self, ctx: Context, path: str) -> ObjectWriter:
        """Always rejected, whatever the policy.

        Objects are replaced whole; appending would need a read-modify-write
        that races with other writers.

        Raises:
            OperationNotImplementedError: Always.
        """
        raise OperationNotImplementedError("append", "Append method not implemented")

    @traced_fs_operation("create_empty_file")
    def create_empty_file(self, ctx: Context, path: str) -> None:
        """Publish a zero-length object, e.g. a marker."""
        key = to_key(path)
        with self._session(ctx, "create_empty_file") as session:
            session.client.open_writer(key).close()

    @traced_fs_operation("mkdir")
    def mkdir(self, ctx: Context, path: str, perm: int = 0o777) -> None:
        """Directories are implicit; nothing to create."""
        return None

    @traced_fs_operation("mkdir_all")
    def mkdir_all(self, ctx: Context, path: str, perm: int = 0o777) -> None:
        """Directories are implicit; nothing to create."""
        return None

    @traced_fs_operation("chmod")
    def chmod(self, ctx: Context, path: str, perm: int) -> None:
        self._policy.unimplemented("chmod")

    @traced_fs_operation("chown")
    def chown(self, ctx: Context, path: str, user: str, group: str) -> None:
        self._policy.unimplemented("chown")

    @traced_fs_operation("chtimes")
    def chtimes(self, ctx: Context, path: str, atime: datetime, mtime: datetime) -> None:
        self._policy.unimplemented("chtimes")

    @traced_fs_operation("read_dir")
    def read_dir(self, ctx: Context, path: str) -> list[FileInfo]:
        """List one directory level.

        Objects directly under the directory become file entries; deeper keys
        collapse into one inferred directory entry per sub-directory. Entries
        are sorted by name. A missing directory lists as empty.
        """
        prefix = to_prefix(path)
        entries: list[FileInfo] = []
        with self._session(ctx, "read_dir") as session:
            for listed in session.client.list_objects(prefix, delimiter=SEPARATOR):
                if listed.is_prefix:
                    entries.append(FileInfo.for_prefix(base_name(listed.key)))
                elif listed.key == prefix or listed.attributes is None:
                    # Zero-byte directory marker objects stand for the directory itself.
                    continue
                else:
                    entries.append(FileInfo.for_object(base_name(listed.key), listed.attributes))
        entries.sort(key=lambda e: e.name)
        return entries

    @traced_fs_operation("remove")
    def remove(self, ctx: Context, path: str) -> None:
        """Delete exactly one object.

        Raises:
            ObjectNotFoundError: If no object exists at the path.
        """
        key = to_key(path)
        with self._session(ctx, "remove") as session:
            session.client.delete(key)

    @traced_fs_operation("remove_all")
    def remove_all(self, ctx: Context, path: str) -> None:
        """Delete the object at ``path`` and every object below it.

        Stops at the first deletion failure; objects already deleted stay
        deleted. A path with nothing at or below it is not an error.
        """
        prefix = to_prefix(path)
        with self._session(ctx, "remove_all") as session:
            keys = [e.key for e in session.client.list_objects(prefix) if not e.is_prefix]
            if prefix:
                exact = prefix.rstrip(SEPARATOR)
                if session.client.exists(exact):
                    keys.insert(0, exact)

            for key in keys:
                try:
                    session.client.delete(key)
                except ObjectNotFoundError:
                    logger.debug("remove_all: %s already gone tx=%s", key, session.tx_id)
            logger.debug("remove_all: deleted %d objects under %r", len(keys), prefix)

    @traced_fs_operation("rename")
    def rename(self, ctx: Context, oldpath: str, newpath: str) -> None:
        """Move an object by server-side copy, then delete the source.

        The copy is retried with backoff per the retry policy; the context is
        observed between attempts. The source is deleted only after a
        successful copy, and not at all under RenameMode.COPY_ONLY.

        Raises:
            ObjectNotFoundError: If the source does not exist (not retried).
            TransferError: If every copy attempt failed.
        """
        src = to_key(oldpath)
        dst = to_key(newpath)
        with self._session(ctx, "rename") as session:
            client = session.client
            if src == dst:
                client.attributes(src)
                return

            try:
                retry_call(
                    ctx,
                    lambda: client.copy(src, dst),
                    self._retry_policy,
                    description=f"rename copy {src} -> {dst}",
                )
            except StorageBackendError as e:
                raise TransferError(
                    "failed to copy",
                    location=client.location(src),
                    bucket=client.bucket,
                    key=src,
                    cause=e,
                ) from e

            if self._rename_mode is RenameMode.MOVE:
                client.delete(src)
            logger.debug("rename: %s -> %s mode=%s tx=%s", src, dst, self._rename_mode.value, session.tx_id)

    @traced_fs_operation("rename_with_overwrite_option")
    def rename_with_overwrite_option(
        self,
        ctx: Context,
        oldpath: str,
        newpath: str,
        overwrite: bool,
    ) -> None:
        """Same as rename.

        ``overwrite`` has no effect: the store copy always replaces the
        destination.
        """
        if not overwrite:
            logger.debug("rename_with_overwrite_option: overwrite=False is not enforced")
        self.rename(ctx, oldpath, newpath)

    @traced_fs_operation("stat")
    def stat(self, ctx: Context, path: str) -> FileInfo:
        """Return metadata for the object at ``path``. Never reports a directory.

        Raises:
            ObjectNotFoundError: If no object exists at the path.
        """
        key = to_key(path)
        with self._session(ctx, "stat") as session:
            attributes = session.client.attributes(key)
        return FileInfo.for_object(key, attributes)

    @traced_fs_operation("statfs")
    def statfs(self, ctx: Context) -> FsInfo:
        """Return the static filesystem identity."""
        return FsInfo(name=self.backend_name)

    @traced_fs_operation("walk")
    def walk(self, ctx: Context, root: str, walk_fn: WalkFunc) -> None:
        """Recursive tree walk; not implemented, governed by policy."""
        self._policy.unimplemented("walk")

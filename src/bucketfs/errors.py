"""bucketfs error types.

Provides typed exceptions for filesystem operations emulated on an object store.
Backend-specific failures (botocore ClientError, OSError) are translated into
these types at the backend boundary and chained with ``raise ... from``.

Taxonomy:
- ObjectNotFoundError: the mapped key does not exist
- ObjectExistsError: a no-overwrite write conflicts with an existing key
- OperationNotImplementedError / UnimplementedOperationFatal: POSIX-only capability
- TransferError: I/O failure during a stream copy, location embedded
- ContextError: the caller's cancellation/deadline signal fired
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for bucketfs operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket associated with the operation (if applicable).
        key: Object key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when the object mapped from a path does not exist."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class ObjectExistsError(ObjectStorageError):
    """Raised when a write that must not overwrite finds the key already present.

    The existing object is left untouched.
    """

    def __init__(
        self,
        message: str = "Object already exists",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class InvalidPathError(ObjectStorageError):
    """Raised when a path cannot be mapped to an object key.

    Covers empty paths, ".." segments, backslashes and NUL bytes.
    """

    def __init__(
        self,
        message: str = "Invalid path",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class OperationNotImplementedError(ObjectStorageError):
    """Raised for a filesystem capability that has no object store equivalent."""

    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(message or f"{operation} not implemented")
        self.operation = operation


class UnimplementedOperationFatal(ObjectStorageError):
    """Raised under the fail-fast policy for an unimplemented operation.

    This is an unrecoverable condition: callers are not expected to handle it,
    and top-level harnesses abort on it.
    """

    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(message or f"{operation} not implemented")
        self.operation = operation


class TransferError(ObjectStorageError):
    """Raised when a streaming copy into or out of the store fails.

    Attributes:
        location: URL-style location of the object (e.g. s3://bucket/key).
        bytes_transferred: Bytes moved before the failure.
        cause: Underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        location: str,
        bytes_transferred: int = 0,
        bucket: str | None = None,
        key: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(f"{message} {location}", bucket=bucket, key=key)
        self.location = location
        self.bytes_transferred = bytes_transferred
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class StorageBackendError(ObjectStorageError):
    """Raised when the backend cannot complete an operation.

    Indicates the backend itself failed (network, permission denied, disk I/O)
    rather than a logical error like object not found.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause


class ContextError(Exception):
    """Raised when an operation observes that its context is done.

    Attributes:
        bytes_transferred: Bytes moved by a stream copy before the context
            fired (0 outside of stream copies).
    """

    default_message = "context done"

    def __init__(self, message: str | None = None, *, bytes_transferred: int = 0) -> None:
        super().__init__(message or self.default_message)
        self.bytes_transferred = bytes_transferred


class OperationCancelledError(ContextError):
    """The context was cancelled by the caller."""

    default_message = "context canceled"


class DeadlineExceededError(ContextError):
    """The context deadline passed."""

    default_message = "context deadline exceeded"

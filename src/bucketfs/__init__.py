"""bucketfs - filesystem interface over a flat object store.

Presents hierarchical filesystem operations (read, write, stat, list,
remove, rename) on top of one object store bucket, with directories
inferred from key prefixes and cancellable streaming transfers.

Backends:
- S3ObjectStore: AWS S3 / S3-compatible (production)
- FilesystemObjectStore: Local directory emulation (dev/test)
"""

from bucketfs.backends import FilesystemObjectStore, ObjectStoreClient, S3ObjectStore
from bucketfs.config import ConfigError, Settings, build_filesystem, load_settings
from bucketfs.context import Context
from bucketfs.errors import (
    ContextError,
    DeadlineExceededError,
    InvalidPathError,
    ObjectExistsError,
    ObjectNotFoundError,
    ObjectStorageError,
    OperationCancelledError,
    OperationNotImplementedError,
    StorageBackendError,
    TransferError,
    UnimplementedOperationFatal,
)
from bucketfs.filesystem import ObjectFileSystem, RenameMode, Session
from bucketfs.models import ContentSummary, FileInfo, FsInfo
from bucketfs.policy import Behaviour, UnimplementedPolicy
from bucketfs.retry import RetryPolicy
from bucketfs.streaming import ContextAwareReader, StreamUtil

__all__ = [
    "ObjectFileSystem",
    "RenameMode",
    "Session",
    "StreamUtil",
    "ContextAwareReader",
    "Context",
    "Behaviour",
    "UnimplementedPolicy",
    "RetryPolicy",
    "ObjectStoreClient",
    "FilesystemObjectStore",
    "S3ObjectStore",
    "Settings",
    "ConfigError",
    "load_settings",
    "build_filesystem",
    "FileInfo",
    "FsInfo",
    "ContentSummary",
    "ObjectStorageError",
    "ObjectNotFoundError",
    "ObjectExistsError",
    "InvalidPathError",
    "OperationNotImplementedError",
    "UnimplementedOperationFatal",
    "TransferError",
    "StorageBackendError",
    "ContextError",
    "OperationCancelledError",
    "DeadlineExceededError",
]

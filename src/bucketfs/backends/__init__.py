"""bucketfs object store backends.

Backends:
- S3ObjectStore: AWS S3 / MinIO / S3-compatible (production)
- FilesystemObjectStore: Local directory emulation (dev/test)
"""

from bucketfs.backends.base import ObjectReader, ObjectStoreClient, ObjectWriter
from bucketfs.backends.filesystem import FilesystemObjectStore
from bucketfs.backends.s3 import S3ObjectStore

__all__ = [
    "ObjectStoreClient",
    "ObjectReader",
    "ObjectWriter",
    "FilesystemObjectStore",
    "S3ObjectStore",
]

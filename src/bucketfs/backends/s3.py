"""bucketfs S3-compatible object store backend.

Works against AWS S3, MinIO and other S3-compatible endpoints through boto3.
Credentials come from the boto3 default chain (environment, shared config,
instance profile).

- Writes are staged in a spooled temp file and uploaded on close, so a failed
  copy never publishes a partial object
- No-overwrite writes use the IfNoneMatch="*" conditional PUT
- Copies use the managed transfer copy, which switches to multipart copy for
  large objects and can be retried safely

Environment Variables:
    BUCKETFS_S3_ENDPOINT_URL: Custom endpoint (e.g. http://localhost:9000 for MinIO)
    BUCKETFS_S3_REGION: Region name passed to the client
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from bucketfs.backends.base import ObjectReader, ObjectStoreClient, ObjectWriter
from bucketfs.errors import ObjectExistsError, ObjectNotFoundError, StorageBackendError
from bucketfs.models import ListedEntry, ObjectAttributes

logger = logging.getLogger(__name__)

BUCKETFS_S3_ENDPOINT_URL_ENV = "BUCKETFS_S3_ENDPOINT_URL"
BUCKETFS_S3_REGION_ENV = "BUCKETFS_S3_REGION"

# Writes larger than this spill from memory to a temp file on disk.
SPOOL_MAX_BYTES = 8 * 1024 * 1024

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_PRECONDITION_CODES = frozenset({"PreconditionFailed", "412", "ConditionalRequestConflict"})


def _error_code(err: ClientError) -> str:
    return str(err.response.get("Error", {}).get("Code", ""))


def _is_not_found(err: Exception) -> bool:
    return isinstance(err, ClientError) and _error_code(err) in _NOT_FOUND_CODES


def _is_precondition_failed(err: Exception) -> bool:
    return isinstance(err, ClientError) and _error_code(err) in _PRECONDITION_CODES


def _strip_etag(etag: Any) -> str | None:
    if not isinstance(etag, str):
        return None
    return etag.strip('"')


class _S3ObjectWriter(ObjectWriter):
    """Writer that uploads its spooled buffer on close."""

    def __init__(self, store: S3ObjectStore, key: str, *, if_not_exists: bool) -> None:
        self._store = store
        self._key = key
        self._if_not_exists = if_not_exists
        super().__init__(
            tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES),
            location=store.location(key),
        )

    def _commit(self) -> None:
        self._store._upload(self._key, self._buffer, if_not_exists=self._if_not_exists)


class S3ObjectStore(ObjectStoreClient):
    """S3-compatible object store bound to one bucket."""

    def __init__(
        self,
        bucket: str,
        *,
        client: Any | None = None,
        endpoint_url: str | None = None,
        region_name: str | None = None,
    ) -> None:
        """Initialize the S3 backend.

        Args:
            bucket: Bucket name.
            client: Pre-built boto3 S3 client. If None, one is created from
                endpoint_url/region_name and the default credential chain.
            endpoint_url: Custom S3 endpoint URL.
            region_name: Region for the created client.
        """
        self._bucket = bucket
        if client is None:
            client = boto3.session.Session(region_name=region_name).client(
                "s3",
                region_name=region_name,
                endpoint_url=endpoint_url,
                config=BotoConfig(
                    signature_version="s3v4",
                    retries={"max_attempts": 5, "mode": "standard"},
                ),
            )
        self._client = client
        logger.debug("S3ObjectStore initialized: bucket=%s endpoint=%s", bucket, endpoint_url)

    @property
    def backend_name(self) -> str:
        return "s3"

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def client(self) -> Any:
        """Return the underlying boto3 client."""
        return self._client

    def location(self, key: str) -> str:
        return f"s3://{self._bucket}/{key}"

    def _backend_error(self, action: str, key: str | None, err: Exception) -> StorageBackendError:
        return StorageBackendError(
            message=f"Failed to {action}: {err}",
            bucket=self._bucket,
            key=key,
            cause=err,
        )

    def _upload(self, key: str, body: Any, *, if_not_exists: bool) -> None:
        try:
            if if_not_exists:
                self._client.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=body,
                    IfNoneMatch="*",
                )
            else:
                self._client.upload_fileobj(body, self._bucket, key)
        except ClientError as e:
            if _is_precondition_failed(e):
                raise ObjectExistsError(bucket=self._bucket, key=key) from e
            raise self._backend_error("upload object", key, e) from e
        except (BotoCoreError, S3UploadFailedError) as e:
            raise self._backend_error("upload object", key, e) from e
        logger.debug("Uploaded object: bucket=%s key=%s", self._bucket, key)

    def open_reader(self, key: str) -> ObjectReader:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=self._bucket, key=key) from e
            raise self._backend_error("read object", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("read object", key, e) from e
        return ObjectReader(resp["Body"], location=self.location(key), size=resp.get("ContentLength"))

    def open_writer(self, key: str, *, if_not_exists: bool = False) -> ObjectWriter:
        return _S3ObjectWriter(self, key, if_not_exists=if_not_exists)

    def attributes(self, key: str) -> ObjectAttributes:
        try:
            resp = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=self._bucket, key=key) from e
            raise self._backend_error("fetch attributes", key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("fetch attributes", key, e) from e

        updated_at = resp.get("LastModified")
        if not isinstance(updated_at, datetime):
            updated_at = datetime.now(UTC)
        return ObjectAttributes(
            key=key,
            size_bytes=int(resp.get("ContentLength", 0)),
            updated_at=updated_at,
            etag=_strip_etag(resp.get("ETag")),
            content_type=resp.get("ContentType"),
        )

    def delete(self, key: str) -> None:
        # DeleteObject succeeds for missing keys; check first so absence is reported.
        self.attributes(key)
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error("delete object", key, e) from e
        logger.debug("Deleted object: bucket=%s key=%s", self._bucket, key)

    def list_objects(self, prefix: str, *, delimiter: str | None = None) -> Iterator[ListedEntry]:
        kwargs: dict[str, Any] = {"Bucket": self._bucket, "Prefix": prefix}
        if delimiter:
            kwargs["Delimiter"] = delimiter

        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**kwargs):
                for obj in page.get("Contents", []):
                    updated_at = obj.get("LastModified")
                    if not isinstance(updated_at, datetime):
                        updated_at = datetime.now(UTC)
                    attributes = ObjectAttributes(
                        key=obj["Key"],
                        size_bytes=int(obj.get("Size", 0)),
                        updated_at=updated_at,
                        etag=_strip_etag(obj.get("ETag")),
                    )
                    yield ListedEntry(key=obj["Key"], attributes=attributes)
                for common in page.get("CommonPrefixes", []):
                    yield ListedEntry(key=common["Prefix"], is_prefix=True)
        except (ClientError, BotoCoreError) as e:
            raise self._backend_error(f"list prefix {prefix!r}", None, e) from e

    def copy(self, src_key: str, dst_key: str) -> None:
        try:
            self._client.copy(
                {"Bucket": self._bucket, "Key": src_key},
                self._bucket,
                dst_key,
            )
        except ClientError as e:
            if _is_not_found(e):
                raise ObjectNotFoundError(bucket=self._bucket, key=src_key) from e
            raise self._backend_error("copy object", src_key, e) from e
        except BotoCoreError as e:
            raise self._backend_error("copy object", src_key, e) from e
        logger.debug("Copied object: bucket=%s %s -> %s", self._bucket, src_key, dst_key)

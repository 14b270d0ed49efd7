"""Environment configuration and factory for bucketfs.

Environment variables:
    BUCKETFS_BUCKET: Bucket name (required unless passed explicitly)
    BUCKETFS_BACKEND: "s3" or "filesystem" (default: "s3")
    BUCKETFS_BEHAVIOUR: Unimplemented-operation policy (default: "report")
    BUCKETFS_RENAME_MODE: "move" or "copy_only" (default: "move")
    BUCKETFS_RENAME_MAX_ATTEMPTS: Rename copy attempts (default: 5)
    BUCKETFS_RENAME_BASE_SECONDS: First retry delay (default: 1.0)
    BUCKETFS_RENAME_CAP_SECONDS: Max retry delay (default: 8.0)
    BUCKETFS_BASE_DIR: Root directory for the filesystem backend
    BUCKETFS_S3_ENDPOINT_URL: Custom S3 endpoint (MinIO etc.)
    BUCKETFS_S3_REGION: S3 region

S3 credentials come from the boto3 default credential chain and are never
read here.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bucketfs.backends.base import ObjectStoreClient
from bucketfs.backends.filesystem import BUCKETFS_BASE_DIR_ENV, FilesystemObjectStore
from bucketfs.backends.s3 import (
    BUCKETFS_S3_ENDPOINT_URL_ENV,
    BUCKETFS_S3_REGION_ENV,
    S3ObjectStore,
)
from bucketfs.filesystem import ObjectFileSystem, RenameMode
from bucketfs.policy import Behaviour
from bucketfs.retry import DEFAULT_BASE_SECONDS, DEFAULT_CAP_SECONDS, MAX_ATTEMPTS, RetryPolicy

logger = logging.getLogger(__name__)

BUCKETFS_BUCKET_ENV = "BUCKETFS_BUCKET"
BUCKETFS_BACKEND_ENV = "BUCKETFS_BACKEND"
BUCKETFS_BEHAVIOUR_ENV = "BUCKETFS_BEHAVIOUR"
BUCKETFS_RENAME_MODE_ENV = "BUCKETFS_RENAME_MODE"
BUCKETFS_RENAME_MAX_ATTEMPTS_ENV = "BUCKETFS_RENAME_MAX_ATTEMPTS"
BUCKETFS_RENAME_BASE_SECONDS_ENV = "BUCKETFS_RENAME_BASE_SECONDS"
BUCKETFS_RENAME_CAP_SECONDS_ENV = "BUCKETFS_RENAME_CAP_SECONDS"

_ENV_FIELDS = {
    "bucket": BUCKETFS_BUCKET_ENV,
    "backend": BUCKETFS_BACKEND_ENV,
    "behaviour": BUCKETFS_BEHAVIOUR_ENV,
    "rename_mode": BUCKETFS_RENAME_MODE_ENV,
    "rename_max_attempts": BUCKETFS_RENAME_MAX_ATTEMPTS_ENV,
    "rename_base_seconds": BUCKETFS_RENAME_BASE_SECONDS_ENV,
    "rename_cap_seconds": BUCKETFS_RENAME_CAP_SECONDS_ENV,
    "base_dir": BUCKETFS_BASE_DIR_ENV,
    "s3_endpoint_url": BUCKETFS_S3_ENDPOINT_URL_ENV,
    "s3_region": BUCKETFS_S3_REGION_ENV,
}


class ConfigError(Exception):
    """Raised when bucketfs configuration is invalid."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.message = message
        self.errors = errors or []
        super().__init__(message)


class Settings(BaseModel):
    """Validated bucketfs settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    bucket: str = Field(default="", description="Bucket name")
    backend: Literal["s3", "filesystem"] = "s3"
    behaviour: Behaviour = Behaviour.REPORT
    rename_mode: RenameMode = RenameMode.MOVE
    rename_max_attempts: int = Field(default=MAX_ATTEMPTS, ge=1)
    rename_base_seconds: float = Field(default=DEFAULT_BASE_SECONDS, ge=0)
    rename_cap_seconds: float = Field(default=DEFAULT_CAP_SECONDS, ge=0)
    base_dir: str | None = None
    s3_endpoint_url: str | None = None
    s3_region: str | None = None

    @field_validator("behaviour", mode="before")
    @classmethod
    def parse_behaviour(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Behaviour.parse(v)
        return v

    @field_validator("backend", "rename_mode", mode="before")
    @classmethod
    def lower_case(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.rename_max_attempts,
            base_seconds=self.rename_base_seconds,
            cap_seconds=self.rename_cap_seconds,
        )


def _format_errors(err: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in err.errors()]


def load_settings(**overrides: Any) -> Settings:
    """Load settings from environment variables.

    Unset or blank variables fall back to defaults. Keyword overrides take
    precedence over the environment; None overrides are ignored.

    Raises:
        ConfigError: If any value fails validation.
    """
    values: dict[str, Any] = {}
    for field, env_var in _ENV_FIELDS.items():
        raw = os.environ.get(env_var)
        if raw is not None and raw.strip():
            values[field] = raw.strip()
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**values)
    except ValidationError as e:
        errors = _format_errors(e)
        raise ConfigError(f"Invalid bucketfs configuration: {'; '.join(errors)}", errors) from e
    except ValueError as e:
        raise ConfigError(f"Invalid bucketfs configuration: {e}") from e


def build_client(settings: Settings) -> ObjectStoreClient:
    """Construct the object store client selected by the settings.

    Raises:
        ConfigError: If no bucket is configured.
    """
    if not settings.bucket:
        raise ConfigError(f"Bucket name is required (set {BUCKETFS_BUCKET_ENV})")

    if settings.backend == "filesystem":
        return FilesystemObjectStore(settings.bucket, base_dir=settings.base_dir)
    return S3ObjectStore(
        settings.bucket,
        endpoint_url=settings.s3_endpoint_url,
        region_name=settings.s3_region,
    )


def build_filesystem(settings: Settings, client: ObjectStoreClient | None = None) -> ObjectFileSystem:
    """Construct the filesystem adapter, building the client if none is given."""
    if client is None:
        client = build_client(settings)
    logger.info(
        "bucketfs configured: backend=%s bucket=%s behaviour=%s rename_mode=%s",
        client.backend_name,
        client.bucket,
        settings.behaviour.value,
        settings.rename_mode.value,
    )
    return ObjectFileSystem(
        client,
        settings.behaviour,
        rename_mode=settings.rename_mode,
        retry_policy=settings.retry_policy,
    )

"""Pytest configuration and fixtures for bucketfs tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pytest

from bucketfs.backends.filesystem import FilesystemObjectStore
from bucketfs.context import Context
from bucketfs.filesystem import ObjectFileSystem
from bucketfs.policy import Behaviour
from bucketfs.retry import RetryPolicy

TEST_BUCKET = "test-bucket"

_BUCKETFS_ENV_VARS = (
    "BUCKETFS_BUCKET",
    "BUCKETFS_BACKEND",
    "BUCKETFS_BEHAVIOUR",
    "BUCKETFS_RENAME_MODE",
    "BUCKETFS_RENAME_MAX_ATTEMPTS",
    "BUCKETFS_RENAME_BASE_SECONDS",
    "BUCKETFS_RENAME_CAP_SECONDS",
    "BUCKETFS_BASE_DIR",
    "BUCKETFS_S3_ENDPOINT_URL",
    "BUCKETFS_S3_REGION",
    "BUCKETFS_OTEL_ENABLED",
    "BUCKETFS_OTEL_TEST_CAPTURE",
)


@pytest.fixture(autouse=True)
def clean_bucketfs_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove bucketfs environment variables so tests start from defaults.

    Tests that need a variable set it themselves with monkeypatch.
    """
    for name in _BUCKETFS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def temp_storage_dir() -> Any:
    """Create a temporary directory for storage tests."""
    with tempfile.TemporaryDirectory(prefix="bucketfs_test_storage_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_storage_dir: Path) -> FilesystemObjectStore:
    """Create a FilesystemObjectStore bound to a temp directory."""
    return FilesystemObjectStore(TEST_BUCKET, base_dir=temp_storage_dir)


@pytest.fixture
def ctx() -> Context:
    """Return a fresh background context."""
    return Context.background()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Retry policy with no delays so retry tests run instantly."""
    return RetryPolicy(max_attempts=5, base_seconds=0.0, cap_seconds=0.0)


@pytest.fixture
def fs(store: FilesystemObjectStore, fast_retry: RetryPolicy) -> ObjectFileSystem:
    """Create an ObjectFileSystem over the temp filesystem store (REPORT policy)."""
    return ObjectFileSystem(store, Behaviour.REPORT, retry_policy=fast_retry)


@pytest.fixture
def put_object(store: FilesystemObjectStore) -> Any:
    """Return a helper that writes an object directly through the store client."""

    def _put(key: str, data: bytes) -> None:
        with store.open_writer(key) as writer:
            writer.write(data)

    return _put

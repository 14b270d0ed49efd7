"""Tests for OpenTelemetry span emission by filesystem operations.

Spans carry the backend, the transaction id and the SHA256 of the path,
never the raw path.
"""

from __future__ import annotations

import hashlib
from typing import Any

import pytest

from bucketfs.context import Context
from bucketfs.errors import ObjectNotFoundError
from bucketfs.filesystem import ObjectFileSystem
from bucketfs.observability import (
    clear_test_spans,
    configure_tracing,
    get_env_bool,
    get_test_spans,
    is_tracing_enabled,
    reset_tracing,
)
from bucketfs.tracing import path_sha256


@pytest.fixture
def tracing(monkeypatch: Any) -> Any:
    """Enable in-memory span capture for one test."""
    monkeypatch.setenv("BUCKETFS_OTEL_ENABLED", "1")
    monkeypatch.setenv("BUCKETFS_OTEL_TEST_CAPTURE", "1")
    reset_tracing()
    assert configure_tracing() is True
    clear_test_spans()
    yield
    reset_tracing()


def _spans_named(name: str) -> list[Any]:
    return [s for s in get_test_spans() if s.name == name]


class TestEnvFlags:
    """Tests for tracing environment switches."""

    def test_disabled_by_default(self) -> None:
        assert is_tracing_enabled() is False
        assert configure_tracing() is False

    @pytest.mark.parametrize(("raw", "expected"), [("1", True), ("yes", True), ("0", False)])
    def test_get_env_bool(self, monkeypatch: Any, raw: str, expected: bool) -> None:
        monkeypatch.setenv("BUCKETFS_TEST_FLAG", raw)
        assert get_env_bool("BUCKETFS_TEST_FLAG") is expected


class TestOtelSpans:
    """Tests for span emission with tracing enabled."""

    def test_stat_emits_span_with_safe_attributes(
        self, tracing: None, fs: ObjectFileSystem, ctx: Context, put_object: Any
    ) -> None:
        put_object("tenant-42/secret-report.pdf", b"pdf")

        fs.stat(ctx, "tenant-42/secret-report.pdf")

        spans = _spans_named("bucketfs.fs.stat")
        assert len(spans) == 1
        attrs = dict(spans[0].attributes or {})

        assert attrs["storage.backend"] == "filesystem"
        assert attrs["bucketfs.path_sha256"] == path_sha256("tenant-42/secret-report.pdf")
        assert len(str(attrs["bucketfs.tx_id"])) == 32
        for value in attrs.values():
            assert "secret-report" not in str(value)

    def test_failed_operation_marks_error(
        self, tracing: None, fs: ObjectFileSystem, ctx: Context
    ) -> None:
        with pytest.raises(ObjectNotFoundError):
            fs.read_file(ctx, "missing")

        spans = _spans_named("bucketfs.fs.read_file")
        assert len(spans) == 1
        attrs = dict(spans[0].attributes or {})
        assert attrs["error"] is True
        assert attrs["error.type"] == "ObjectNotFoundError"

    def test_each_call_gets_its_own_transaction(
        self, tracing: None, fs: ObjectFileSystem, ctx: Context
    ) -> None:
        fs.create_empty_file(ctx, "a")
        fs.create_empty_file(ctx, "b")

        tx_ids = {
            dict(s.attributes or {})["bucketfs.tx_id"]
            for s in _spans_named("bucketfs.fs.create_empty_file")
        }
        assert len(tx_ids) == 2

    def test_statfs_span_has_no_path(
        self, tracing: None, fs: ObjectFileSystem, ctx: Context
    ) -> None:
        fs.statfs(ctx)

        spans = _spans_named("bucketfs.fs.statfs")
        assert len(spans) == 1
        assert "bucketfs.path_sha256" not in dict(spans[0].attributes or {})


def test_path_sha256() -> None:
    assert path_sha256("a/b") == hashlib.sha256(b"a/b").hexdigest()

"""Tests for context-aware streaming transfers (StreamUtil, ContextAwareReader)."""

from __future__ import annotations

import io
import os
from typing import Any

import pytest

from bucketfs.backends.filesystem import FilesystemObjectStore
from bucketfs.context import Context
from bucketfs.errors import (
    DeadlineExceededError,
    InvalidPathError,
    ObjectExistsError,
    ObjectNotFoundError,
    OperationCancelledError,
    TransferError,
)
from bucketfs.streaming import COPY_CHUNK_SIZE, ContextAwareReader, StreamUtil


class CapturingSink(io.BytesIO):
    """BytesIO that keeps its contents after close."""

    def __init__(self) -> None:
        super().__init__()
        self.captured: bytes | None = None

    def close(self) -> None:
        if not self.closed:
            self.captured = self.getvalue()
        super().close()


class CancellingSource:
    """Source that cancels the context after a number of reads."""

    def __init__(self, ctx: Context, data: bytes, cancel_after: int) -> None:
        self._ctx = ctx
        self._inner = io.BytesIO(data)
        self._cancel_after = cancel_after
        self.reads = 0
        self.bytes_read = 0

    def read(self, size: int = -1) -> bytes:
        chunk = self._inner.read(size)
        self.reads += 1
        self.bytes_read += len(chunk)
        if self.reads >= self._cancel_after:
            self._ctx.cancel()
        return chunk


class FailingSource:
    """Source that raises after returning some bytes."""

    def __init__(self, first: bytes) -> None:
        self._first = first
        self._served = False

    def read(self, size: int = -1) -> bytes:
        if not self._served:
            self._served = True
            return self._first
        raise OSError("connection reset")


class FailingSink:
    def write(self, data: bytes) -> int:
        raise OSError("disk full")


@pytest.fixture
def util(store: FilesystemObjectStore) -> StreamUtil:
    return StreamUtil(store)


class TestContextAwareReader:
    """Tests for the cancellable reader decorator."""

    def test_delegates_while_live(self, ctx: Context) -> None:
        reader = ContextAwareReader(ctx, io.BytesIO(b"abcdef"))

        assert reader.read(3) == b"abc"
        assert reader.read() == b"def"

    def test_cancelled_read_does_no_io(self) -> None:
        ctx = Context.background().with_cancel()
        source = io.BytesIO(b"abcdef")
        reader = ContextAwareReader(ctx, source)
        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            reader.read(3)
        assert source.tell() == 0

    def test_expired_deadline(self) -> None:
        ctx = Context.background().with_timeout(0)
        reader = ContextAwareReader(ctx, io.BytesIO(b"abc"))

        with pytest.raises(DeadlineExceededError):
            reader.read()

    def test_readinto_delegates_while_live(self, ctx: Context) -> None:
        reader = ContextAwareReader(ctx, io.BytesIO(b"abcdef"))
        buffer = bytearray(4)

        assert reader.readinto(buffer) == 4
        assert bytes(buffer) == b"abcd"
        assert reader.read1(10) == b"ef"

    def test_readinto_falls_back_to_read(self, ctx: Context) -> None:
        class ReadOnly:
            def __init__(self) -> None:
                self._inner = io.BytesIO(b"xyz")

            def read(self, size: int = -1) -> bytes:
                return self._inner.read(size)

        reader = ContextAwareReader(ctx, ReadOnly())
        buffer = bytearray(8)

        assert reader.readinto(buffer) == 3
        assert bytes(buffer[:3]) == b"xyz"

    def test_cancelled_readinto_does_no_io(self) -> None:
        ctx = Context.background().with_cancel()
        source = io.BytesIO(b"abcdef")
        reader = ContextAwareReader(ctx, source)
        buffer = bytearray(3)
        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            reader.readinto(buffer)
        with pytest.raises(OperationCancelledError):
            reader.read1(3)
        assert source.tell() == 0
        assert buffer == bytearray(3)


class TestStreamRoundtrip:
    """Tests for stream_into_dfs followed by stream_from_dfs."""

    @pytest.mark.parametrize("size", [0, 1, COPY_CHUNK_SIZE])
    def test_roundtrip(self, util: StreamUtil, ctx: Context, size: int) -> None:
        data = os.urandom(size)

        written = util.stream_into_dfs(ctx, io.BytesIO(data), "rt/object.bin", True)
        sink = CapturingSink()
        read = util.stream_from_dfs(ctx, sink, "rt/object.bin")

        assert written == size
        assert read == size
        assert sink.captured == data

    def test_multi_chunk_roundtrip(self, util: StreamUtil, ctx: Context) -> None:
        data = os.urandom(COPY_CHUNK_SIZE * 2 + 17)

        util.stream_into_dfs(ctx, io.BytesIO(data), "big.bin", True)
        sink = CapturingSink()
        util.stream_from_dfs(ctx, sink, "big.bin")

        assert sink.captured == data

    def test_destination_closed_after_success(self, util: StreamUtil, ctx: Context) -> None:
        util.stream_into_dfs(ctx, io.BytesIO(b"x"), "one", True)
        sink = CapturingSink()
        util.stream_from_dfs(ctx, sink, "one")

        assert sink.closed


class TestOverwrite:
    """Tests for the overwrite flag."""

    def test_overwrite_false_on_existing_key(
        self, util: StreamUtil, store: FilesystemObjectStore, ctx: Context
    ) -> None:
        util.stream_into_dfs(ctx, io.BytesIO(b"original"), "k", True)

        with pytest.raises(ObjectExistsError):
            util.stream_into_dfs(ctx, io.BytesIO(b"replacement"), "k", False)

        with store.open_reader("k") as reader:
            assert reader.read() == b"original"

    def test_overwrite_false_on_new_key(self, util: StreamUtil, ctx: Context) -> None:
        assert util.stream_into_dfs(ctx, io.BytesIO(b"fresh"), "new", False) == 5

    def test_overwrite_true_replaces(
        self, util: StreamUtil, store: FilesystemObjectStore, ctx: Context
    ) -> None:
        util.stream_into_dfs(ctx, io.BytesIO(b"original"), "k", True)
        util.stream_into_dfs(ctx, io.BytesIO(b"replacement"), "k", True)

        with store.open_reader("k") as reader:
            assert reader.read() == b"replacement"


class TestCancellation:
    """Tests for cancellation mid-transfer."""

    def test_cancel_mid_upload_stops_reading_and_publishes_nothing(
        self, util: StreamUtil, store: FilesystemObjectStore
    ) -> None:
        ctx = Context.background().with_cancel()
        data = b"\x00" * (COPY_CHUNK_SIZE * 8)
        source = CancellingSource(ctx, data, cancel_after=2)

        with pytest.raises(OperationCancelledError) as exc_info:
            util.stream_into_dfs(ctx, source, "cancelled.bin", True)

        assert source.reads == 2
        assert source.bytes_read == 2 * COPY_CHUNK_SIZE
        assert exc_info.value.bytes_transferred == 2 * COPY_CHUNK_SIZE
        assert not store.exists("cancelled.bin")

    def test_cancel_before_download(self, util: StreamUtil, ctx: Context) -> None:
        util.stream_into_dfs(ctx, io.BytesIO(b"data"), "k", True)
        cancelled = Context.background().with_cancel()
        cancelled.cancel()
        sink = CapturingSink()

        with pytest.raises(OperationCancelledError):
            util.stream_from_dfs(cancelled, sink, "k")
        assert not sink.closed


class TestFailures:
    """Tests for transfer error reporting."""

    def test_source_failure_wraps_transfer_error(
        self, util: StreamUtil, store: FilesystemObjectStore, ctx: Context
    ) -> None:
        with pytest.raises(TransferError) as exc_info:
            util.stream_into_dfs(ctx, FailingSource(b"12345"), "broken", True)

        err = exc_info.value
        assert err.location == "file://test-bucket/broken"
        assert "file://test-bucket/broken" in str(err)
        assert err.bytes_transferred == 5
        assert isinstance(err.cause, OSError)
        assert not store.exists("broken")

    def test_destination_failure_wraps_transfer_error(
        self, util: StreamUtil, ctx: Context
    ) -> None:
        util.stream_into_dfs(ctx, io.BytesIO(b"data"), "k", True)

        with pytest.raises(TransferError) as exc_info:
            util.stream_from_dfs(ctx, FailingSink(), "k")
        assert exc_info.value.location == "file://test-bucket/k"

    def test_download_missing_object(self, util: StreamUtil, ctx: Context) -> None:
        with pytest.raises(ObjectNotFoundError):
            util.stream_from_dfs(ctx, CapturingSink(), "missing")

    def test_upload_to_invalid_name(self, util: StreamUtil, ctx: Context) -> None:
        with pytest.raises(InvalidPathError):
            util.stream_into_dfs(ctx, io.BytesIO(b"x"), "../escape", True)

    def test_client_property(self, util: StreamUtil, store: Any) -> None:
        assert util.client is store

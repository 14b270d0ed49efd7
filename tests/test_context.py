"""Tests for the cancellation/deadline Context."""

from __future__ import annotations

import threading
import time

import pytest

from bucketfs.context import Context
from bucketfs.errors import ContextError, DeadlineExceededError, OperationCancelledError


class TestCancellation:
    """Tests for cancel propagation."""

    def test_background_is_live(self) -> None:
        ctx = Context.background()

        assert ctx.err() is None
        assert ctx.done() is False
        assert ctx.deadline is None
        assert ctx.remaining() is None
        ctx.raise_if_done()

    def test_cancel_sets_error(self) -> None:
        ctx = Context.background().with_cancel()
        ctx.cancel()

        assert isinstance(ctx.err(), OperationCancelledError)
        assert str(ctx.err()) == "context canceled"
        with pytest.raises(OperationCancelledError):
            ctx.raise_if_done()

    def test_cancel_is_idempotent(self) -> None:
        ctx = Context.background().with_cancel()
        ctx.cancel()
        ctx.cancel()

        assert ctx.done()

    def test_cancel_cascades_to_children(self) -> None:
        parent = Context.background().with_cancel()
        child = parent.with_cancel()
        grandchild = child.with_timeout(60)

        parent.cancel()

        assert child.done()
        assert grandchild.done()

    def test_child_cancel_does_not_affect_parent(self) -> None:
        parent = Context.background().with_cancel()
        child = parent.with_cancel()

        child.cancel()

        assert child.done()
        assert not parent.done()

    def test_child_of_cancelled_parent_starts_cancelled(self) -> None:
        parent = Context.background().with_cancel()
        parent.cancel()

        assert parent.with_cancel().done()


class TestDeadline:
    """Tests for deadlines and timeouts."""

    def test_expired_timeout(self) -> None:
        ctx = Context.background().with_timeout(0)

        assert isinstance(ctx.err(), DeadlineExceededError)
        assert ctx.remaining() == 0.0

    def test_child_deadline_never_later_than_parent(self) -> None:
        parent = Context.background().with_timeout(1)
        child = parent.with_timeout(3600)

        assert parent.deadline is not None
        assert child.deadline == parent.deadline

    def test_errors_share_base(self) -> None:
        assert issubclass(OperationCancelledError, ContextError)
        assert issubclass(DeadlineExceededError, ContextError)


class TestSleep:
    """Tests for context-aware sleep."""

    def test_sleep_completes_when_live(self) -> None:
        Context.background().sleep(0)

    def test_sleep_wakes_on_cancel(self) -> None:
        ctx = Context.background().with_cancel()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        start = time.monotonic()

        with pytest.raises(OperationCancelledError):
            ctx.sleep(30)

        assert time.monotonic() - start < 5
        timer.join()

    def test_sleep_bounded_by_deadline(self) -> None:
        ctx = Context.background().with_timeout(0.05)
        start = time.monotonic()

        with pytest.raises(DeadlineExceededError):
            ctx.sleep(30)

        assert time.monotonic() - start < 5

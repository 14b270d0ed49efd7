"""Cancellation and deadline signal passed to every bucketfs operation.

A Context is created by the caller (usually ``Context.background()`` or a
child with a timeout) and handed to each filesystem call as its first
argument. Operations consult ``err()`` at their I/O boundaries; the context
never interrupts a call on its own.

Cancelling a context cancels every child derived from it. A child's deadline
is never later than its parent's.
"""

from __future__ import annotations

import threading
import time
import weakref

from bucketfs.errors import ContextError, DeadlineExceededError, OperationCancelledError


class Context:
    """Cancellation/deadline signal.

    Thread-safe: ``cancel()`` may be called from any thread while another
    thread is blocked in an operation that observes the context.
    """

    def __init__(self, *, parent: Context | None = None, deadline: float | None = None) -> None:
        """Initialize a context.

        Args:
            parent: Context this one derives from; its cancellation and
                deadline are inherited.
            deadline: Absolute ``time.monotonic()`` value after which the
                context reports DeadlineExceededError.
        """
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)

        self._parent = parent
        self._deadline = deadline
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[Context] = weakref.WeakSet()

        if parent is not None:
            parent._adopt(self)

    @classmethod
    def background(cls) -> Context:
        """Return a new root context that is never cancelled and has no deadline."""
        return cls()

    @property
    def deadline(self) -> float | None:
        """Return the monotonic deadline, or None if the context has none."""
        return self._deadline

    def with_cancel(self) -> Context:
        """Derive a child context that can be cancelled independently."""
        return Context(parent=self)

    def with_timeout(self, seconds: float) -> Context:
        """Derive a child context whose deadline is ``seconds`` from now."""
        return Context(parent=self, deadline=time.monotonic() + seconds)

    def with_deadline(self, deadline: float) -> Context:
        """Derive a child context with an absolute monotonic deadline."""
        return Context(parent=self, deadline=deadline)

    def _adopt(self, child: Context) -> None:
        with self._lock:
            self._children.add(child)
        if self._cancelled.is_set():
            child.cancel()

    def cancel(self) -> None:
        """Cancel this context and all of its children. Idempotent."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    def remaining(self) -> float | None:
        """Return seconds left before the deadline, or None without one."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def err(self) -> ContextError | None:
        """Return the reason the context is done, or None if it is still live."""
        if self._cancelled.is_set():
            return OperationCancelledError()
        if self._deadline is not None and time.monotonic() >= self._deadline:
            return DeadlineExceededError()
        return None

    def done(self) -> bool:
        """Return True once the context is cancelled or past its deadline."""
        return self.err() is not None

    def raise_if_done(self) -> None:
        """Raise the context error if the context is done."""
        err = self.err()
        if err is not None:
            raise err

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds``, waking early if the context finishes.

        Raises:
            OperationCancelledError: If the context is cancelled during the wait.
            DeadlineExceededError: If the deadline passes during the wait.
        """
        self.raise_if_done()
        remaining = self.remaining()
        timeout = seconds if remaining is None else min(seconds, remaining)
        self._cancelled.wait(timeout)
        self.raise_if_done()

"""Bounded retry/backoff primitives for bucketfs.

Used by rename, whose server-side copy can be interrupted by transient
backend errors. The store's copy is idempotent at the destination, so a blind
retry is safe.

Design:
- 5 total attempts by default (1 initial + 4 retries)
- Exponential backoff: base * 2^retry_index, capped
- No jitter by default (deterministic for testing)
- The caller's context is observed between attempts: a cancelled or expired
  context stops retrying immediately

Backoff schedule (default base=1s, cap=8s):
  Retry 0: 1s
  Retry 1: 2s
  Retry 2: 4s
  Retry 3: 8s
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final, TypeVar

from bucketfs.context import Context
from bucketfs.errors import StorageBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS: Final[int] = 5
DEFAULT_BASE_SECONDS: Final[float] = 1.0
DEFAULT_CAP_SECONDS: Final[float] = 8.0


def compute_backoff_seconds(
    retry_index: int,
    base_seconds: float = DEFAULT_BASE_SECONDS,
    cap_seconds: float = DEFAULT_CAP_SECONDS,
    jitter: bool = False,
) -> float:
    """Compute backoff delay in seconds before a given retry.

    Args:
        retry_index: Zero-based retry index (0 = first retry after initial).
        base_seconds: Base delay in seconds.
        cap_seconds: Maximum delay cap in seconds.
        jitter: If True, add random jitter up to 10% of delay.

    Returns:
        Backoff delay in seconds.

    Example:
        >>> compute_backoff_seconds(0)
        1.0
        >>> compute_backoff_seconds(2)
        4.0
        >>> compute_backoff_seconds(10)
        8.0
    """
    if retry_index < 0:
        return 0.0

    delay = min(base_seconds * (2**retry_index), cap_seconds)

    if jitter:
        delay += delay * 0.1 * random.random()

    return float(delay)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry settings.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_seconds: Delay before the first retry.
        cap_seconds: Upper bound for any single delay.
        jitter: Add up to 10% random jitter to each delay.
    """

    max_attempts: int = MAX_ATTEMPTS
    base_seconds: float = DEFAULT_BASE_SECONDS
    cap_seconds: float = DEFAULT_CAP_SECONDS
    jitter: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got: {self.max_attempts}")
        if self.base_seconds < 0 or self.cap_seconds < 0:
            raise ValueError("backoff delays must be >= 0")

    def schedule(self) -> list[float]:
        """Return the delays slept between consecutive attempts."""
        return [
            compute_backoff_seconds(i, self.base_seconds, self.cap_seconds, jitter=False)
            for i in range(self.max_attempts - 1)
        ]


def retry_call(
    ctx: Context,
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    description: str,
    retry_on: tuple[type[Exception], ...] = (StorageBackendError,),
) -> T:
    """Call ``fn`` until it succeeds or the attempt budget is spent.

    Only exceptions matching ``retry_on`` are retried; anything else
    propagates immediately.

    Args:
        ctx: Context observed before every attempt and during every delay.
        fn: Zero-argument callable performing one attempt.
        policy: Retry settings.
        description: Operation label for log messages.
        retry_on: Exception types considered transient.

    Returns:
        The result of the first successful attempt.

    Raises:
        The last transient error once all attempts fail, or the context error
        if the context finishes first.
    """
    for attempt in range(policy.max_attempts):
        ctx.raise_if_done()
        try:
            return fn()
        except retry_on as e:
            if attempt + 1 >= policy.max_attempts:
                logger.warning(
                    "%s failed after %d attempts: %s", description, policy.max_attempts, e
                )
                raise
            delay = compute_backoff_seconds(
                attempt, policy.base_seconds, policy.cap_seconds, jitter=policy.jitter
            )
            logger.warning(
                "%s attempt %d/%d failed, retrying in %.1fs: %s",
                description,
                attempt + 1,
                policy.max_attempts,
                delay,
                e,
            )
            ctx.sleep(delay)

    raise AssertionError("unreachable: retry loop exited without result")

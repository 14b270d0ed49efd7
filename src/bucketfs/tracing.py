"""OpenTelemetry span decorator for filesystem adapter operations.

Every public ObjectFileSystem operation is wrapped in a
``bucketfs.fs.<operation>`` span when tracing is enabled.

Security:
    - Never export raw paths in span attributes (they may carry tenant or
      customer identifiers); only their SHA256 is recorded
    - No secrets or credentials in any span attribute
"""

from __future__ import annotations

import functools
import hashlib
from collections.abc import Callable
from typing import Any, TypeVar, cast

from bucketfs.observability import is_tracing_enabled

F = TypeVar("F", bound=Callable[..., Any])


def path_sha256(path: str) -> str:
    """Return the SHA256 hex digest of a path, used for span correlation."""
    return hashlib.sha256(path.encode("utf-8")).hexdigest()


def traced_fs_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace filesystem operations with OpenTelemetry.

    The wrapped method must take the context as its first argument after
    ``self``; if the next argument is a string it is treated as the path.

    Args:
        operation: Operation name (e.g., "stat", "rename").

    Returns:
        Decorated function that emits OTel spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, ctx: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, ctx, *args, **kwargs)

            from opentelemetry import trace

            tracer = trace.get_tracer("bucketfs.filesystem")
            with tracer.start_as_current_span(f"bucketfs.fs.{operation}") as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                if args and isinstance(args[0], str):
                    span.set_attribute("bucketfs.path_sha256", path_sha256(args[0]))

                try:
                    return func(self, ctx, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

        return cast(F, wrapper)

    return decorator

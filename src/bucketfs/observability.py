"""OpenTelemetry tracing setup for bucketfs.

bucketfs only emits spans. Whether they go anywhere is decided by the host
process: either it installs its own tracer provider, or it calls
configure_tracing() and lets the BUCKETFS_OTEL_* variables pick an exporter.

Environment Variables:
    BUCKETFS_OTEL_ENABLED: "1" turns span emission on (default: off)
    BUCKETFS_REQUIRE_OTEL: "1" makes a failed setup raise TracingConfigError
    BUCKETFS_OTEL_SERVICE_NAME: service.name resource attribute (default: "bucketfs")
    BUCKETFS_OTEL_EXPORTER: "otlp" or "console" (default: "otlp")
    BUCKETFS_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP/HTTP endpoint URL (optional)
    BUCKETFS_OTEL_TEST_CAPTURE: "1" keeps finished spans in memory for tests

Span attributes never carry raw paths, keys or credentials.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider

logger = logging.getLogger(__name__)

BUCKETFS_OTEL_ENABLED_ENV = "BUCKETFS_OTEL_ENABLED"

_TRUE_VALUES = frozenset({"1", "true", "yes"})
_FALSE_VALUES = frozenset({"0", "false", "no"})

_provider: TracerProvider | None = None
_configured = False
_memory_exporter: Any = None


class TracingConfigError(Exception):
    """Raised when tracing setup fails and BUCKETFS_REQUIRE_OTEL=1."""


def get_env_bool(key: str, default: bool = False) -> bool:
    """Read a boolean flag; unset or unrecognized values yield ``default``."""
    raw = os.environ.get(key, "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def is_tracing_enabled() -> bool:
    """Return True when BUCKETFS_OTEL_ENABLED is set."""
    return get_env_bool(BUCKETFS_OTEL_ENABLED_ENV)


@dataclass(frozen=True)
class TracingSettings:
    service_name: str
    exporter: str
    endpoint: str | None
    test_capture: bool
    required: bool

    @classmethod
    def from_env(cls) -> TracingSettings:
        return cls(
            service_name=os.environ.get("BUCKETFS_OTEL_SERVICE_NAME", "").strip() or "bucketfs",
            exporter=os.environ.get("BUCKETFS_OTEL_EXPORTER", "").strip().lower() or "otlp",
            endpoint=os.environ.get("BUCKETFS_OTEL_EXPORTER_OTLP_ENDPOINT", "").strip() or None,
            test_capture=get_env_bool("BUCKETFS_OTEL_TEST_CAPTURE"),
            required=get_env_bool("BUCKETFS_REQUIRE_OTEL"),
        )

    @property
    def exporter_label(self) -> str:
        return "in-memory" if self.test_capture else self.exporter


def _build_processor(settings: TracingSettings) -> SpanProcessor:
    global _memory_exporter

    from opentelemetry.sdk.trace.export import (
        BatchSpanProcessor,
        ConsoleSpanExporter,
        SimpleSpanProcessor,
    )

    if settings.test_capture:
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        _memory_exporter = InMemorySpanExporter()
        return SimpleSpanProcessor(_memory_exporter)

    if settings.exporter == "console":
        return SimpleSpanProcessor(ConsoleSpanExporter())

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

    if settings.endpoint:
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.endpoint))
    return BatchSpanProcessor(OTLPSpanExporter())


def configure_tracing() -> bool:
    """Install a tracer provider according to the environment.

    Safe to call repeatedly; the provider is installed at most once per
    process.

    Returns:
        True if tracing is enabled and a provider is in place.

    Raises:
        TracingConfigError: If setup fails and BUCKETFS_REQUIRE_OTEL=1.
    """
    global _provider, _configured

    if not is_tracing_enabled():
        _configured = True
        logger.debug("Tracing disabled (%s not set)", BUCKETFS_OTEL_ENABLED_ENV)
        return False

    settings = TracingSettings.from_env()
    if settings.test_capture and _memory_exporter is not None:
        return True
    if _configured and _provider is not None:
        return True
    _configured = True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider(resource=Resource.create({"service.name": settings.service_name}))
        provider.add_span_processor(_build_processor(settings))
        trace.set_tracer_provider(provider)
        _provider = provider
    except Exception as e:
        logger.error("Tracing setup failed: %s", e)
        if settings.required:
            raise TracingConfigError(f"Tracing is required but setup failed: {e}") from e
        return False

    logger.info(
        "Tracing configured: service=%s exporter=%s",
        settings.service_name,
        settings.exporter_label,
    )
    return True


def set_span_attributes(attributes: dict[str, Any]) -> None:
    """Set attributes on the current span, skipping None values."""
    from opentelemetry import trace

    span = trace.get_current_span()
    if not span.is_recording():
        return
    for key, value in attributes.items():
        if value is not None:
            span.set_attribute(key, value)


def get_test_spans() -> list[ReadableSpan]:
    """Return spans captured in memory; empty unless test capture is on."""
    if _memory_exporter is None:
        return []
    return list(_memory_exporter.get_finished_spans())


def clear_test_spans() -> None:
    if _memory_exporter is not None:
        _memory_exporter.clear()


def reset_tracing() -> None:
    """Forget the configured state between tests.

    A global TracerProvider cannot be replaced once set, so the in-memory
    exporter is kept (and emptied) for later configure_tracing() calls.
    """
    global _configured

    clear_test_spans()
    _configured = False

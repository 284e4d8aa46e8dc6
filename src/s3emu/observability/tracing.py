"""OpenTelemetry tracing configuration for s3emu.

Environment Variables:
    S3EMU_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    S3EMU_REQUIRE_OTEL: Set to "1" to fail if tracing cannot initialize
    S3EMU_OTEL_SERVICE_NAME: Service name for spans (default: "s3emu")
    S3EMU_OTEL_EXPORTER: Exporter type - "otlp" or "console" (default: "otlp")
    S3EMU_OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (optional)
    S3EMU_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")
    S3EMU_OTEL_RESOURCE_ATTRS: Comma-separated k=v pairs for resource attributes
    S3EMU_OTEL_TEST_CAPTURE: Set to "1" to use in-memory exporter for tests

The OTLP exporters are only imported when selected; install the "otlp" extra
to use them.
"""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
    from opentelemetry.sdk.trace.export import SpanExporter

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: Any = None  # InMemorySpanExporter when test capture is on


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and S3EMU_REQUIRE_OTEL=1."""

    pass


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def is_tracing_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return get_env_bool("S3EMU_OTEL_ENABLED", False)


def _parse_resource_attrs(attrs_str: str) -> dict[str, str]:
    """Parse comma-separated k=v resource attributes."""
    result: dict[str, str] = {}
    if not attrs_str:
        return result
    for pair in attrs_str.split(","):
        pair = pair.strip()
        if "=" in pair:
            k, v = pair.split("=", 1)
            result[k.strip()] = v.strip()
    return result


def _create_otlp_exporter(protocol: str, endpoint: str | None) -> Any:
    """Create OTLP exporter based on protocol."""
    kwargs: dict[str, Any] = {}
    if endpoint:
        kwargs["endpoint"] = endpoint

    if protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HTTPExporter,
        )

        return HTTPExporter(**kwargs)

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter as GRPCExporter,
    )

    return GRPCExporter(**kwargs)


def _create_console_exporter() -> SpanExporter:
    """Create console exporter for development."""
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ConsoleSpanExporter()


def configure_tracing() -> bool:
    """Configure OpenTelemetry tracing for s3emu.

    Idempotent - safe to call multiple times.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If S3EMU_REQUIRE_OTEL=1 and configuration fails.
    """
    global _tracer_provider, _is_configured, _test_exporter

    enabled = is_tracing_enabled()
    require_otel = get_env_bool("S3EMU_REQUIRE_OTEL", False)
    test_capture = get_env_bool("S3EMU_OTEL_TEST_CAPTURE", False)

    if not enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (S3EMU_OTEL_ENABLED not set)")
        return False

    # The global provider can only be installed once; reuse the capture exporter.
    if _test_exporter is not None and test_capture:
        return True

    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor

        service_name = _get_env_str("S3EMU_OTEL_SERVICE_NAME", "s3emu")
        exporter_type = _get_env_str("S3EMU_OTEL_EXPORTER", "otlp")
        endpoint = _get_env_str("S3EMU_OTEL_EXPORTER_OTLP_ENDPOINT", "")
        protocol = _get_env_str("S3EMU_OTEL_EXPORTER_OTLP_PROTOCOL", "grpc")
        resource_attrs_str = _get_env_str("S3EMU_OTEL_RESOURCE_ATTRS", "")

        resource_attrs = {"service.name": service_name}
        resource_attrs.update(_parse_resource_attrs(resource_attrs_str))
        resource = Resource.create(resource_attrs)

        provider = TracerProvider(resource=resource)

        if test_capture:
            from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
                InMemorySpanExporter,
            )

            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        elif exporter_type == "console":
            provider.add_span_processor(SimpleSpanProcessor(_create_console_exporter()))
        else:
            otlp_exporter = _create_otlp_exporter(protocol, endpoint or None)
            provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info(
            "OpenTelemetry tracing configured: service=%s, exporter=%s",
            service_name,
            exporter_type if not test_capture else "in-memory",
        )
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if require_otel:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False


def get_current_trace_id() -> str | None:
    """Get the current trace ID for logging correlation.

    Returns:
        Hex string of current trace ID, or None if no active span.
    """
    try:
        from opentelemetry import trace

        ctx = trace.get_current_span().get_span_context()
        if ctx is None or not ctx.is_valid:
            return None
        return format(ctx.trace_id, "032x")
    except ImportError:
        return None


def get_test_spans() -> list[ReadableSpan]:
    """Get captured spans from in-memory exporter (for testing).

    Returns:
        List of captured spans if S3EMU_OTEL_TEST_CAPTURE=1, else empty list.
    """
    if _test_exporter is not None and hasattr(_test_exporter, "get_finished_spans"):
        return list(_test_exporter.get_finished_spans())
    return []


def clear_test_spans() -> None:
    """Clear captured spans from in-memory exporter (for testing)."""
    if _test_exporter is not None and hasattr(_test_exporter, "clear"):
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    The OpenTelemetry TracerProvider cannot be replaced once set, so the
    capture exporter is kept and only its spans are cleared.
    """
    global _is_configured

    clear_test_spans()
    _is_configured = False

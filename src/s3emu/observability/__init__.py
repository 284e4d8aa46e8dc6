"""s3emu observability: OpenTelemetry tracing setup."""

from s3emu.observability.tracing import (
    TracingConfigError,
    clear_test_spans,
    configure_tracing,
    get_current_trace_id,
    get_test_spans,
    is_tracing_enabled,
    reset_tracing,
)

__all__ = [
    "TracingConfigError",
    "clear_test_spans",
    "configure_tracing",
    "get_current_trace_id",
    "get_test_spans",
    "is_tracing_enabled",
    "reset_tracing",
]

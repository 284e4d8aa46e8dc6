"""Tests for s3emu OpenTelemetry tracing setup.

Requirements:
- Tracing OFF by default, ON via S3EMU_OTEL_ENABLED=1
- Fail-closed only when S3EMU_REQUIRE_OTEL=1 and init fails
- Tests use in-memory exporter (no external collector required)
"""

from __future__ import annotations

from typing import Any
from unittest.mock import patch

import pytest

TRACING_ENV_VARS = [
    "S3EMU_OTEL_ENABLED",
    "S3EMU_REQUIRE_OTEL",
    "S3EMU_OTEL_SERVICE_NAME",
    "S3EMU_OTEL_EXPORTER",
    "S3EMU_OTEL_TEST_CAPTURE",
    "S3EMU_OTEL_EXPORTER_OTLP_ENDPOINT",
    "S3EMU_OTEL_EXPORTER_OTLP_PROTOCOL",
    "S3EMU_OTEL_RESOURCE_ATTRS",
]


@pytest.fixture(autouse=True)
def reset_tracing_env(monkeypatch: pytest.MonkeyPatch) -> Any:
    """Reset tracing environment and state before each test."""
    for var in TRACING_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    from s3emu.observability.tracing import reset_tracing

    reset_tracing()

    yield

    reset_tracing()


@pytest.fixture
def capture(monkeypatch: pytest.MonkeyPatch) -> None:
    """Enable tracing with the in-memory exporter."""
    monkeypatch.setenv("S3EMU_OTEL_ENABLED", "1")
    monkeypatch.setenv("S3EMU_OTEL_TEST_CAPTURE", "1")


class TestTracingConfiguration:
    """Tests for tracing configuration behavior."""

    def test_tracing_disabled_by_default(self) -> None:
        """Tracing should be OFF when S3EMU_OTEL_ENABLED is not set."""
        from s3emu.observability.tracing import configure_tracing, is_tracing_enabled

        assert configure_tracing() is False
        assert is_tracing_enabled() is False

    @pytest.mark.usefixtures("capture")
    def test_tracing_enabled_with_env_var(self) -> None:
        """Tracing should be ON when S3EMU_OTEL_ENABLED=1."""
        from s3emu.observability.tracing import configure_tracing

        assert configure_tracing() is True

    @pytest.mark.usefixtures("capture")
    def test_tracing_idempotent(self) -> None:
        """configure_tracing() should be idempotent."""
        from s3emu.observability.tracing import configure_tracing

        assert configure_tracing() == configure_tracing()

    def test_require_otel_fails_closed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """S3EMU_REQUIRE_OTEL=1 should fail if tracing init fails."""
        monkeypatch.setenv("S3EMU_OTEL_ENABLED", "1")
        monkeypatch.setenv("S3EMU_REQUIRE_OTEL", "1")

        from s3emu.observability import tracing

        with patch(
            "opentelemetry.sdk.trace.TracerProvider",
            side_effect=Exception("Simulated init failure"),
        ):
            tracing._is_configured = False
            tracing._tracer_provider = None

            with pytest.raises(tracing.TracingConfigError) as exc_info:
                tracing.configure_tracing()

        assert "configuration failed" in str(exc_info.value).lower()

    def test_init_failure_without_require_returns_false(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without S3EMU_REQUIRE_OTEL, an init failure disables tracing."""
        monkeypatch.setenv("S3EMU_OTEL_ENABLED", "1")

        from s3emu.observability import tracing

        with patch(
            "opentelemetry.sdk.trace.TracerProvider",
            side_effect=Exception("Simulated init failure"),
        ):
            tracing._is_configured = False
            tracing._tracer_provider = None

            assert tracing.configure_tracing() is False

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1", True), ("true", True), ("YES", True), ("0", False), ("", False), ("maybe", False)],
    )
    def test_env_bool_parsing(
        self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool
    ) -> None:
        from s3emu.observability.tracing import get_env_bool

        monkeypatch.setenv("S3EMU_OTEL_ENABLED", raw)

        assert get_env_bool("S3EMU_OTEL_ENABLED") is expected


class TestTraceIdHelpers:
    """Tests for trace ID helper functions."""

    @pytest.mark.usefixtures("capture")
    def test_get_current_trace_id_returns_none_without_span(self) -> None:
        """get_current_trace_id should return None when no active span."""
        from s3emu.observability.tracing import configure_tracing, get_current_trace_id

        configure_tracing()

        assert get_current_trace_id() is None

    @pytest.mark.usefixtures("capture")
    def test_get_current_trace_id_returns_hex_within_span(self) -> None:
        """get_current_trace_id should return hex trace ID within active span."""
        from opentelemetry import trace

        from s3emu.observability.tracing import configure_tracing, get_current_trace_id

        configure_tracing()
        tracer = trace.get_tracer("test")

        with tracer.start_as_current_span("test-span"):
            trace_id = get_current_trace_id()
            assert trace_id is not None
            assert len(trace_id) == 32
            int(trace_id, 16)


class TestSpanCapture:
    """Tests for the in-memory capture helpers."""

    @pytest.mark.usefixtures("capture")
    def test_spans_captured_and_cleared(self) -> None:
        from opentelemetry import trace

        from s3emu.observability.tracing import (
            clear_test_spans,
            configure_tracing,
            get_test_spans,
        )

        configure_tracing()
        clear_test_spans()

        with trace.get_tracer("test").start_as_current_span("captured"):
            pass

        assert [s.name for s in get_test_spans()] == ["captured"]

        clear_test_spans()
        assert get_test_spans() == []

    def test_storage_operations_work_without_tracing(self, engine: Any) -> None:
        """Storage operations run normally with tracing disabled."""
        stored = engine.objects.put_object("bucket", "key", None, None, b"data")

        assert engine.objects.get_object("bucket", "key").etag == stored.etag

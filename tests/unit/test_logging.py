"""Unit tests for structlog configuration and trace correlation."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider

from freight_discovery.logging import add_trace_context, configure_logging


@pytest.fixture
def restore_structlog() -> Generator[None, None, None]:
    yield
    structlog.reset_defaults()


class TestAddTraceContext:
    """Tests for the add_trace_context processor."""

    def test_no_active_span(self) -> None:
        event_dict: dict[str, Any] = {"event": "found_image"}
        result = add_trace_context(None, "info", event_dict)
        assert "trace_id" not in result
        assert "span_id" not in result

    def test_active_span(self) -> None:
        tracer = TracerProvider().get_tracer("test")

        with tracer.start_as_current_span("select") as span:
            result = add_trace_context(None, "info", {"event": "found_image"})
            ctx = span.get_span_context()

        assert result["trace_id"] == format(ctx.trace_id, "032x")
        assert result["span_id"] == format(ctx.span_id, "016x")
        assert len(result["trace_id"]) == 32
        assert len(result["span_id"]) == 16


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.usefixtures("restore_structlog")
    def test_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("LOUD")

    @pytest.mark.usefixtures("restore_structlog")
    @pytest.mark.parametrize("json_output", [True, False])
    def test_configures_processors(self, json_output: bool) -> None:
        configure_logging("debug", json_output=json_output)

        processors = structlog.get_config()["processors"]
        assert add_trace_context in processors

"""Unit tests for discovery metrics and tracing.

Spans are captured with an SDK TracerProvider and InMemorySpanExporter;
without an SDK configured every instrument is a no-op.
"""

from __future__ import annotations

from collections.abc import Generator

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from freight_discovery.metrics import (
    DiscoveryMetrics,
    get_discovery_metrics,
    set_discovery_metrics,
)


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def traced_metrics(exporter: InMemorySpanExporter) -> DiscoveryMetrics:
    """Return DiscoveryMetrics whose spans land in the in-memory exporter."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    metrics = DiscoveryMetrics()
    metrics._tracer = provider.get_tracer("test")
    return metrics


@pytest.fixture
def reset_default_metrics() -> Generator[None, None, None]:
    yield
    set_discovery_metrics(None)


class TestNaming:
    """Tests for metric and span naming."""

    def test_metric_names_have_prefix(self) -> None:
        names = [DiscoveryMetrics.OPERATIONS_TOTAL, DiscoveryMetrics.OPERATION_DURATION_SECONDS]
        for name in names:
            assert name.startswith("freight_discovery_")

    def test_span_names_have_prefix(self) -> None:
        spans = [
            DiscoveryMetrics.SPAN_LIST_TAGS,
            DiscoveryMetrics.SPAN_GET_MANIFEST,
            DiscoveryMetrics.SPAN_SELECT,
            DiscoveryMetrics.SPAN_CHART_INDEX,
        ]
        for name in spans:
            assert name.startswith("freight.discovery.")


class TestRecording:
    """Tests for counters and histograms without an SDK."""

    def test_record_operation(self) -> None:
        metrics = DiscoveryMetrics()
        metrics.record_operation("list_tags", "ghcr.io", success=True)
        metrics.record_operation("list_tags", "ghcr.io", success=False)

    def test_instruments_created_once(self) -> None:
        metrics = DiscoveryMetrics()
        assert metrics.operations_counter is metrics.operations_counter
        assert metrics.duration_histogram is metrics.duration_histogram

    def test_operation_timer_propagates_errors(self) -> None:
        metrics = DiscoveryMetrics()
        with pytest.raises(RuntimeError, match="boom"):
            with metrics.operation_timer("get_manifest", "ghcr.io"):
                raise RuntimeError("boom")


class TestCreateSpan:
    """Tests for DiscoveryMetrics.create_span."""

    def test_sets_attributes(
        self, traced_metrics: DiscoveryMetrics, exporter: InMemorySpanExporter
    ) -> None:
        with traced_metrics.create_span(
            DiscoveryMetrics.SPAN_SELECT, {"discovery.registry": "ghcr.io"}
        ) as span:
            span.set_attribute("discovery.found", True)

        (finished,) = exporter.get_finished_spans()
        assert finished.name == "freight.discovery.select"
        assert finished.attributes is not None
        assert finished.attributes["discovery.registry"] == "ghcr.io"
        assert finished.attributes["discovery.found"] is True

    def test_records_exception_and_reraises(
        self, traced_metrics: DiscoveryMetrics, exporter: InMemorySpanExporter
    ) -> None:
        with pytest.raises(ValueError, match="bad manifest"):
            with traced_metrics.create_span(DiscoveryMetrics.SPAN_GET_MANIFEST):
                raise ValueError("bad manifest")

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code == StatusCode.ERROR
        assert any(event.name == "exception" for event in finished.events)


class TestDefaultInstance:
    """Tests for the process-wide DiscoveryMetrics."""

    @pytest.mark.usefixtures("reset_default_metrics")
    def test_default_is_shared(self) -> None:
        assert get_discovery_metrics() is get_discovery_metrics()

    @pytest.mark.usefixtures("reset_default_metrics")
    def test_set_overrides_default(self) -> None:
        custom = DiscoveryMetrics(meter_name="custom")
        set_discovery_metrics(custom)
        assert get_discovery_metrics() is custom

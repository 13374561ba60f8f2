"""OpenTelemetry instrumentation for discovery operations.

Metrics Emitted:
    Counters:
        - freight_discovery_operations_total: Operations by type, status and registry

    Histograms:
        - freight_discovery_operation_duration_seconds: Operation duration distribution

Trace Spans:
    - freight.discovery.list_tags: Registry tag listing
    - freight.discovery.get_manifest: Manifest (and config blob) retrieval
    - freight.discovery.select: Full image selection
    - freight.discovery.chart_index: Helm index.yaml retrieval

Without a configured OpenTelemetry SDK all instruments are no-ops.

Example:
    >>> metrics = get_discovery_metrics()
    >>> with metrics.operation_timer("list_tags", "ghcr.io"):
    ...     tags = await client.get_tags()
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics, trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from opentelemetry.metrics import Counter, Histogram
    from opentelemetry.trace import Span, Tracer


class DiscoveryMetrics:
    """OpenTelemetry metrics collector for discovery operations.

    Label Conventions:
        - operation: list_tags, get_manifest, select, chart_index
        - status: success, failure
        - registry: Registry or index hostname
    """

    OPERATIONS_TOTAL = "freight_discovery_operations_total"
    OPERATION_DURATION_SECONDS = "freight_discovery_operation_duration_seconds"

    SPAN_LIST_TAGS = "freight.discovery.list_tags"
    SPAN_GET_MANIFEST = "freight.discovery.get_manifest"
    SPAN_SELECT = "freight.discovery.select"
    SPAN_CHART_INDEX = "freight.discovery.chart_index"

    def __init__(
        self,
        meter_name: str = "freight.discovery",
        meter_version: str = "1.0.0",
        tracer_name: str = "freight.discovery",
    ) -> None:
        self._meter = metrics.get_meter(meter_name, meter_version)
        self._tracer: Tracer = trace.get_tracer(tracer_name)
        self._operations_counter: Counter | None = None
        self._duration_histogram: Histogram | None = None

    @property
    def operations_counter(self) -> Counter:
        """Get or create the operations counter."""
        if self._operations_counter is None:
            self._operations_counter = self._meter.create_counter(
                self.OPERATIONS_TOTAL,
                unit="1",
                description="Total number of discovery operations by type, status, and registry",
            )
        return self._operations_counter

    @property
    def duration_histogram(self) -> Histogram:
        """Get or create the duration histogram."""
        if self._duration_histogram is None:
            self._duration_histogram = self._meter.create_histogram(
                self.OPERATION_DURATION_SECONDS,
                unit="s",
                description="Duration of discovery operations in seconds",
            )
        return self._duration_histogram

    def record_operation(self, operation: str, registry: str, *, success: bool) -> None:
        """Record completion of an operation.

        Args:
            operation: Operation type.
            registry: Registry or index hostname.
            success: Whether the operation succeeded.
        """
        self.operations_counter.add(
            1,
            attributes={
                "operation": operation,
                "registry": registry,
                "status": "success" if success else "failure",
            },
        )

    def record_duration(self, operation: str, registry: str, duration_seconds: float) -> None:
        """Record the duration of an operation."""
        self.duration_histogram.record(
            duration_seconds,
            attributes={"operation": operation, "registry": registry},
        )

    @contextmanager
    def operation_timer(self, operation: str, registry: str) -> Generator[None, None, None]:
        """Time an operation, recording duration and success/failure.

        Args:
            operation: Operation type.
            registry: Registry or index hostname.

        Yields:
            None
        """
        start_time = time.monotonic()
        success = False
        try:
            yield
            success = True
        finally:
            self.record_duration(operation, registry, time.monotonic() - start_time)
            self.record_operation(operation, registry, success=success)

    @contextmanager
    def create_span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[Span, None, None]:
        """Create a trace span, recording any exception raised inside it.

        Args:
            name: Span name (use SPAN_* constants).
            attributes: Optional span attributes.

        Yields:
            The created span.
        """
        with self._tracer.start_as_current_span(name) as span:
            if attributes:
                for key, value in attributes.items():
                    span.set_attribute(key, value)
            try:
                yield span
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                raise


_default_metrics: DiscoveryMetrics | None = None


def get_discovery_metrics() -> DiscoveryMetrics:
    """Get the default DiscoveryMetrics instance."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = DiscoveryMetrics()
    return _default_metrics


def set_discovery_metrics(metrics_instance: DiscoveryMetrics | None) -> None:
    """Set the default DiscoveryMetrics instance (for testing).

    Args:
        metrics_instance: DiscoveryMetrics instance or None to reset.
    """
    global _default_metrics
    _default_metrics = metrics_instance


__all__ = [
    "DiscoveryMetrics",
    "get_discovery_metrics",
    "set_discovery_metrics",
]

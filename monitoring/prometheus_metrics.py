"""
Prometheus Metrics Module for Probabilistic Scene Recognition.

Provides metrics instrumentation for the scene inference engine: evidence
ingress, model learning, update cycles and per-algorithm inference latency.

Usage:
    from monitoring import MetricsRegistry

    # Initialize metrics
    registry = MetricsRegistry()

    # Track manually
    with registry.timer("psm_inference_seconds", algorithm="powerset"):
        likelihood = scene.compute_likelihood()

    registry.count("psm_evidence_received_total")
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST,
    start_http_server,
)


logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of Prometheus metrics."""
    COUNTER = "counter"
    HISTOGRAM = "histogram"
    GAUGE = "gauge"


@dataclass
class MetricDefinition:
    """Definition for a Prometheus metric."""
    name: str
    description: str
    metric_type: MetricType
    labels: List[str] = field(default_factory=list)
    buckets: Optional[List[float]] = None  # For histograms


# =============================================================================
# METRIC DEFINITIONS
# =============================================================================

SCENE_RECOGNITION_METRICS = [
    # Ingress
    MetricDefinition(
        name="psm_evidence_received_total",
        description="Observations received by the inference engine",
        metric_type=MetricType.COUNTER,
    ),
    MetricDefinition(
        name="psm_evidence_integrated_total",
        description="Observations integrated into the scene model",
        metric_type=MetricType.COUNTER,
    ),
    MetricDefinition(
        name="psm_evidence_dropped_total",
        description="Observations dropped before integration",
        metric_type=MetricType.COUNTER,
        labels=["reason"]
    ),
    MetricDefinition(
        name="psm_scene_graphs_integrated_total",
        description="Example scene graphs learned by the model",
        metric_type=MetricType.COUNTER,
    ),
    MetricDefinition(
        name="psm_buffer_depth",
        description="Items waiting in an engine buffer",
        metric_type=MetricType.GAUGE,
        labels=["buffer"]
    ),

    # Update cycle
    MetricDefinition(
        name="psm_update_cycles_total",
        description="Completed inference update cycles",
        metric_type=MetricType.COUNTER,
        labels=["mode"]
    ),
    MetricDefinition(
        name="psm_update_cycle_seconds",
        description="Duration of one inference update cycle",
        metric_type=MetricType.HISTOGRAM,
        buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
    ),

    # Inference
    MetricDefinition(
        name="psm_inference_seconds",
        description="Likelihood computation time per scene",
        metric_type=MetricType.HISTOGRAM,
        labels=["algorithm"],
        buckets=[0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0]
    ),
    MetricDefinition(
        name="psm_scene_likelihood",
        description="Most recent likelihood of a scene",
        metric_type=MetricType.GAUGE,
        labels=["scene"]
    ),
]


# =============================================================================
# METRICS REGISTRY
# =============================================================================

class MetricsRegistry:
    """
    Registry for the scene recognition Prometheus metrics.

    Every instance owns its own CollectorRegistry, so several engines (or
    tests) can run side by side without duplicate metric names.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize the metrics registry."""
        self._registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        # Register all metrics
        self._register_all_metrics()

    @property
    def collector_registry(self) -> CollectorRegistry:
        """Get the underlying prometheus_client registry."""
        return self._registry

    def _register_all_metrics(self):
        """Register all defined metrics."""
        for metric_def in SCENE_RECOGNITION_METRICS:
            self._create_metric(metric_def)

    def _create_metric(self, definition: MetricDefinition):
        """Create a Prometheus metric from definition."""
        metric_class = {
            MetricType.COUNTER: Counter,
            MetricType.HISTOGRAM: Histogram,
            MetricType.GAUGE: Gauge,
        }[definition.metric_type]

        kwargs = {
            'name': definition.name,
            'documentation': definition.description,
            'labelnames': definition.labels,
            'registry': self._registry,
        }

        if definition.buckets and definition.metric_type == MetricType.HISTOGRAM:
            kwargs['buckets'] = definition.buckets

        self._metrics[definition.name] = metric_class(**kwargs)

    def get(self, name: str) -> Any:
        """Get a metric by name."""
        if name not in self._metrics:
            raise KeyError(f"Metric '{name}' not found")
        return self._metrics[name]

    def _child(self, name: str, labels: Dict[str, Any]) -> Any:
        # Unlabelled metrics reject .labels()
        metric = self.get(name)
        return metric.labels(**labels) if labels else metric

    def counter(self, name: str) -> Counter:
        """Get a counter metric."""
        return self.get(name)

    def histogram(self, name: str) -> Histogram:
        """Get a histogram metric."""
        return self.get(name)

    def gauge(self, name: str) -> Gauge:
        """Get a gauge metric."""
        return self.get(name)

    @contextmanager
    def timer(self, histogram_name: str, **labels):
        """
        Context manager for timing operations.

        Usage:
            with registry.timer("psm_update_cycle_seconds"):
                engine.update()
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self._child(histogram_name, labels).observe(duration)

    def count(self, counter_name: str, value: int = 1, **labels):
        """Increment a counter."""
        self._child(counter_name, labels).inc(value)

    def set_gauge(self, gauge_name: str, value: float, **labels):
        """Set a gauge value."""
        self._child(gauge_name, labels).set(value)

    def observe(self, histogram_name: str, value: float, **labels):
        """Observe a histogram value."""
        self._child(histogram_name, labels).observe(value)

    def sample(self, name: str, **labels) -> Optional[float]:
        """Read the current value of a metric sample from the registry."""
        return self._registry.get_sample_value(name, labels or None)

    def generate_metrics(self) -> bytes:
        """Generate metrics output for Prometheus scraping."""
        return generate_latest(self._registry)

    def get_content_type(self) -> str:
        """Get the content type for metrics response."""
        return CONTENT_TYPE_LATEST


# =============================================================================
# STANDALONE SERVER
# =============================================================================

def start_metrics_server(port: int = 9090, registry: Optional[MetricsRegistry] = None) -> MetricsRegistry:
    """
    Start a standalone HTTP server for Prometheus metrics.

    Args:
        port: Port to listen on (default: 9090)
        registry: MetricsRegistry instance (creates default if None)

    Returns:
        The registry being served
    """
    if registry is None:
        registry = MetricsRegistry()

    start_http_server(port, registry=registry.collector_registry)
    logger.info(f"Metrics server started on port {port}")
    return registry


__all__ = [
    'MetricType',
    'MetricDefinition',
    'MetricsRegistry',
    'SCENE_RECOGNITION_METRICS',
    'start_metrics_server',
]

"""
Monitoring Module for Probabilistic Scene Recognition.

This module provides Prometheus metrics instrumentation for the scene
inference engine.

Components:
- MetricsRegistry: Registry wrapping a prometheus_client CollectorRegistry
- SCENE_RECOGNITION_METRICS: Definitions of all exported metrics
- start_metrics_server: Standalone HTTP endpoint for scraping

Quick Start:
    from monitoring import MetricsRegistry, start_metrics_server

    registry = MetricsRegistry()
    start_metrics_server(9090, registry)

    engine = SceneInferenceEngine(config, transforms, metrics=registry)
"""

from monitoring.prometheus_metrics import (
    MetricsRegistry,
    MetricType,
    MetricDefinition,
    SCENE_RECOGNITION_METRICS,
    start_metrics_server,
)

__all__ = [
    # Core Registry
    "MetricsRegistry",
    "MetricType",
    "MetricDefinition",
    "SCENE_RECOGNITION_METRICS",

    # Server
    "start_metrics_server",
]

__version__ = "1.0.0"

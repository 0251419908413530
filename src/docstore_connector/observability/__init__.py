"""Logging and metrics helpers."""

from docstore_connector.observability._observable import ObservableMixin
from docstore_connector.observability.logging import (
    JsonFormatter,
    OperationContext,
    SamplingFilter,
    TextFormatter,
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    current_operation,
    operation_scope,
)
from docstore_connector.observability.metrics import (
    MetricsRecorder,
    NoopMetricsRecorder,
    PrometheusMetricsRecorder,
    configure_prometheus_metrics,
    get_metrics_recorder,
    render_prometheus_metrics,
    reset_metrics_recorder,
    set_metrics_recorder,
)

__all__ = [
    "JsonFormatter",
    "MetricsRecorder",
    "NoopMetricsRecorder",
    "OperationContext",
    "ObservableMixin",
    "PrometheusMetricsRecorder",
    "SamplingFilter",
    "TextFormatter",
    "bootstrap_logging",
    "bootstrap_logging_from_app_settings",
    "configure_prometheus_metrics",
    "current_operation",
    "get_metrics_recorder",
    "operation_scope",
    "render_prometheus_metrics",
    "reset_metrics_recorder",
    "set_metrics_recorder",
]

"""Operation metrics for the connector and its engines.

Recorders receive one call per finished operation. The process-wide recorder
is a no-op until :func:`configure_prometheus_metrics` (or
:func:`set_metrics_recorder`) installs another; a recorder passed to a
connector or engine directly takes precedence.

Prometheus series (``docstore`` prefix):

- ``docstore_operation_latency_seconds{resource, operation, status}``
- ``docstore_operation_throughput_total{resource, operation, status}``
- ``docstore_operation_errors_total{resource, operation, error_type}``
- ``docstore_cached_collections{resource}``
"""

from __future__ import annotations

import re
from typing import Any, Protocol

from docstore_connector.errors import MissingDependencyError

_UNSAFE_LABEL_CHARS = re.compile(r"[^a-z0-9_]+")

# Point reads on an embedded store are sub-millisecond; the tail covers a busy file lock.
_LATENCY_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


def _import_prometheus_client() -> Any:
    try:
        import prometheus_client
    except ImportError as exc:  # pragma: no cover - depends on optional extras
        raise MissingDependencyError(
            "Prometheus metrics require optional dependency 'prometheus-client'. "
            "Install with: pip install 'docstore-connector[metrics]'"
        ) from exc
    return prometheus_client


def _label(value: str, *, default: str = "unknown") -> str:
    return _UNSAFE_LABEL_CHARS.sub("_", value.strip().lower()).strip("_") or default


class MetricsRecorder(Protocol):
    """Receives operation outcomes from connectors and engines."""

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        """Record one finished operation."""
        ...

    def observe_error(self, *, resource: str, operation: str, error_type: str) -> None:
        """Record the exception type of a failed operation."""
        ...

    def observe_collections(self, *, resource: str, count: int) -> None:
        """Record how many collections a connector has cached."""
        ...


class NoopMetricsRecorder:
    """Discards everything."""

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        return None

    def observe_error(self, *, resource: str, operation: str, error_type: str) -> None:
        return None

    def observe_collections(self, *, resource: str, count: int) -> None:
        return None


class PrometheusMetricsRecorder:
    """Recorder exporting ``<prefix>_*`` series to a Prometheus registry.

    Recorders built on the same registry and prefix share their collectors, so
    several connectors in one process add to the same series.
    """

    def __init__(self, *, registry: Any | None = None, prefix: str = "docstore") -> None:
        self._client = _import_prometheus_client()
        self._registry = self._client.REGISTRY if registry is None else registry
        self._prefix = _label(prefix, default="docstore")

        self._latency = self._metric(
            "Histogram",
            "operation_latency_seconds",
            "Store operation latency in seconds.",
            ("resource", "operation", "status"),
            buckets=_LATENCY_BUCKETS,
        )
        self._throughput = self._metric(
            "Counter",
            "operation_throughput_total",
            "Store operations by outcome.",
            ("resource", "operation", "status"),
        )
        self._errors = self._metric(
            "Counter",
            "operation_errors_total",
            "Failed store operations by exception type.",
            ("resource", "operation", "error_type"),
        )
        self._collections = self._metric(
            "Gauge",
            "cached_collections",
            "Collections resolved and cached by a connector.",
            ("resource",),
        )

    def observe_operation(
        self,
        *,
        resource: str,
        operation: str,
        duration_seconds: float,
        success: bool,
    ) -> None:
        labels = {
            "resource": _label(resource),
            "operation": _label(operation),
            "status": "success" if success else "error",
        }
        self._latency.labels(**labels).observe(max(0.0, duration_seconds))
        self._throughput.labels(**labels).inc()

    def observe_error(self, *, resource: str, operation: str, error_type: str) -> None:
        self._errors.labels(
            resource=_label(resource),
            operation=_label(operation),
            error_type=_label(error_type),
        ).inc()

    def observe_collections(self, *, resource: str, count: int) -> None:
        self._collections.labels(resource=_label(resource)).set(max(0, count))

    def _metric(
        self,
        kind: str,
        suffix: str,
        documentation: str,
        labelnames: tuple[str, ...],
        **options: Any,
    ) -> Any:
        name = f"{self._prefix}_{suffix}"
        # prometheus_client has no public lookup; reuse what this registry already holds.
        existing = getattr(self._registry, "_names_to_collectors", {}).get(name)
        if existing is not None:
            return existing
        factory = getattr(self._client, kind)
        return factory(
            name,
            documentation,
            labelnames=labelnames,
            registry=self._registry,
            **options,
        )


_NOOP_RECORDER = NoopMetricsRecorder()
_process_recorder: MetricsRecorder = _NOOP_RECORDER


def get_metrics_recorder() -> MetricsRecorder:
    """Return the process-wide recorder."""
    return _process_recorder


def set_metrics_recorder(recorder: MetricsRecorder | None) -> MetricsRecorder:
    """Install ``recorder`` process-wide; ``None`` restores the no-op recorder."""
    global _process_recorder
    _process_recorder = recorder or _NOOP_RECORDER
    return _process_recorder


def reset_metrics_recorder() -> None:
    set_metrics_recorder(None)


def configure_prometheus_metrics(
    *,
    registry: Any | None = None,
    prefix: str = "docstore",
    set_default: bool = True,
) -> PrometheusMetricsRecorder:
    """Create a Prometheus recorder, installing it process-wide unless told not to."""
    recorder = PrometheusMetricsRecorder(registry=registry, prefix=prefix)
    if set_default:
        set_metrics_recorder(recorder)
    return recorder


def prometheus_content_type() -> str:
    return str(_import_prometheus_client().CONTENT_TYPE_LATEST)


def render_prometheus_metrics(*, registry: Any | None = None) -> bytes:
    """Render ``registry`` (default: the global one) in the text exposition format."""
    prometheus_client = _import_prometheus_client()
    return bytes(
        prometheus_client.generate_latest(
            prometheus_client.REGISTRY if registry is None else registry
        )
    )

"""Tests for Prometheus metrics recorder and exposition helpers."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from docstore_connector import Connector
from docstore_connector.observability.metrics import (
    NoopMetricsRecorder,
    PrometheusMetricsRecorder,
    configure_prometheus_metrics,
    get_metrics_recorder,
    prometheus_content_type,
    render_prometheus_metrics,
    reset_metrics_recorder,
    set_metrics_recorder,
)
from tests.fakes import FakeEngineFactory

prometheus_client = pytest.importorskip("prometheus_client")


@pytest.fixture(autouse=True)
def restore_default_recorder() -> Iterator[None]:
    yield
    reset_metrics_recorder()


def test_prometheus_metrics_registration_and_samples() -> None:
    registry = prometheus_client.CollectorRegistry()
    recorder = PrometheusMetricsRecorder(registry=registry)

    recorder.observe_operation(
        resource="SQLite",
        operation="find_one",
        duration_seconds=0.004,
        success=True,
    )
    recorder.observe_operation(
        resource="SQLite",
        operation="find_one",
        duration_seconds=0.010,
        success=False,
    )
    recorder.observe_error(
        resource="SQLite",
        operation="find_one",
        error_type="EngineTransientError",
    )
    recorder.observe_collections(resource="connector", count=3)

    assert registry.get_sample_value(
        "docstore_operation_throughput_total",
        {"resource": "sqlite", "operation": "find_one", "status": "success"},
    ) == 1.0
    assert registry.get_sample_value(
        "docstore_operation_throughput_total",
        {"resource": "sqlite", "operation": "find_one", "status": "error"},
    ) == 1.0
    assert registry.get_sample_value(
        "docstore_operation_errors_total",
        {"resource": "sqlite", "operation": "find_one", "error_type": "enginetransienterror"},
    ) == 1.0
    assert registry.get_sample_value(
        "docstore_operation_latency_seconds_count",
        {"resource": "sqlite", "operation": "find_one", "status": "success"},
    ) == 1.0
    assert registry.get_sample_value(
        "docstore_cached_collections",
        {"resource": "connector"},
    ) == 3.0


def test_recorders_share_collectors_in_one_registry() -> None:
    registry = prometheus_client.CollectorRegistry()
    first = PrometheusMetricsRecorder(registry=registry)
    second = PrometheusMetricsRecorder(registry=registry)

    first.observe_error(resource="connector", operation="get", error_type="InvalidKeyError")
    second.observe_error(resource="connector", operation="get", error_type="InvalidKeyError")

    assert registry.get_sample_value(
        "docstore_operation_errors_total",
        {"resource": "connector", "operation": "get", "error_type": "invalidkeyerror"},
    ) == 2.0


def test_default_recorder_switching() -> None:
    assert isinstance(get_metrics_recorder(), NoopMetricsRecorder)

    registry = prometheus_client.CollectorRegistry()
    recorder = configure_prometheus_metrics(registry=registry)

    assert get_metrics_recorder() is recorder
    assert isinstance(set_metrics_recorder(None), NoopMetricsRecorder)


def test_render_prometheus_metrics() -> None:
    registry = prometheus_client.CollectorRegistry()
    recorder = PrometheusMetricsRecorder(registry=registry, prefix="app")
    recorder.observe_collections(resource="connector", count=1)

    payload = render_prometheus_metrics(registry=registry)

    assert b"app_cached_collections" in payload
    assert prometheus_content_type().startswith("text/plain")


async def test_connector_reports_to_process_recorder() -> None:
    registry = prometheus_client.CollectorRegistry()
    configure_prometheus_metrics(registry=registry)

    async with Connector(
        path=":memory:",
        split_char="/",
        engine_factory=FakeEngineFactory(),
    ) as connector:
        await connector.set("users/1", {"a": 1})
        await connector.get("users/1")

    assert registry.get_sample_value(
        "docstore_operation_throughput_total",
        {"resource": "connector", "operation": "set", "status": "success"},
    ) == 1.0
    assert registry.get_sample_value(
        "docstore_operation_throughput_total",
        {"resource": "connector", "operation": "open", "status": "success"},
    ) == 1.0
    assert registry.get_sample_value(
        "docstore_cached_collections",
        {"resource": "connector"},
    ) == 1.0

"""Tests for the health status primitive."""

from __future__ import annotations

from time import perf_counter

from docstore_connector.health import HealthStatus


class TestHealthStatus:
    def test_ok_carries_details(self) -> None:
        status = HealthStatus.ok(perf_counter(), path="data/app.db")

        assert status.healthy is True
        assert status.message == "ok"
        assert status.latency_ms >= 0
        assert status.details == {"path": "data/app.db"}

    def test_from_exception_records_error_type(self) -> None:
        status = HealthStatus.from_exception(perf_counter(), RuntimeError("disk full"))

        assert status.healthy is False
        assert status.message == "disk full"
        assert status.details == {"error_type": "RuntimeError"}

    def test_to_dict_omits_empty_fields(self) -> None:
        status = HealthStatus(healthy=True, latency_ms=-1.0)

        assert status.to_dict() == {"healthy": True, "latency_ms": 0.0}

    def test_to_dict_includes_message_and_details(self) -> None:
        status = HealthStatus.unhealthy(perf_counter(), "store is failed", state="failed")

        payload = status.to_dict()

        assert payload["healthy"] is False
        assert payload["message"] == "store is failed"
        assert payload["details"] == {"state": "failed"}

"""Health primitive reported by engines and the connector."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any


@dataclass(slots=True)
class HealthStatus:
    """Represents a store health check result."""

    healthy: bool
    latency_ms: float
    message: str | None = None
    details: dict[str, str] | None = None

    @classmethod
    def ok(cls, started: float, **details: str) -> HealthStatus:
        """Healthy status timed from ``started`` (a ``perf_counter`` value)."""
        return cls(
            healthy=True,
            latency_ms=(perf_counter() - started) * 1000,
            message="ok",
            details=details or None,
        )

    @classmethod
    def unhealthy(cls, started: float, message: str, **details: str) -> HealthStatus:
        return cls(
            healthy=False,
            latency_ms=(perf_counter() - started) * 1000,
            message=message,
            details=details or None,
        )

    @classmethod
    def from_exception(cls, started: float, exc: BaseException, **details: str) -> HealthStatus:
        return cls.unhealthy(started, str(exc), error_type=type(exc).__name__, **details)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        payload: dict[str, Any] = {
            "healthy": self.healthy,
            "latency_ms": max(0.0, float(self.latency_ms)),
        }
        if self.message is not None:
            payload["message"] = self.message
        if self.details:
            payload["details"] = dict(self.details)
        return payload

"""Metrics helpers shared by engine collections and the connector."""

from __future__ import annotations

from collections.abc import Awaitable
from time import perf_counter
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from docstore_connector.observability.metrics import MetricsRecorder

T = TypeVar("T")


class ObservableMixin:
    """Mixin recording latency, throughput and errors per operation.

    Subclasses set ``_resource_name`` and may provide ``_metrics`` to override
    the process-level recorder.
    """

    _resource_name: str
    _metrics: MetricsRecorder | None

    def _metrics_recorder(self) -> MetricsRecorder:
        from docstore_connector.observability.metrics import get_metrics_recorder

        return get_metrics_recorder() if self._metrics is None else self._metrics

    def _observe_operation(self, operation: str, started: float, *, success: bool) -> None:
        self._metrics_recorder().observe_operation(
            resource=self._resource_name,
            operation=operation,
            duration_seconds=perf_counter() - started,
            success=success,
        )

    def _observe_error(self, operation: str, started: float, exc: BaseException) -> None:
        self._observe_operation(operation, started, success=False)
        self._metrics_recorder().observe_error(
            resource=self._resource_name,
            operation=operation,
            error_type=type(exc).__name__,
        )

    async def _observed(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` and record its outcome under ``operation``."""
        started = perf_counter()
        try:
            result = await awaitable
        except Exception as exc:
            self._observe_error(operation, started, exc)
            raise

        self._observe_operation(operation, started, success=True)
        return result

"""Named engine factories selected by ``ConnectorSettings.engine``."""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, Protocol

from docstore_connector.errors import UnknownEngineError

if TYPE_CHECKING:
    from docstore_connector.config.models import ConnectorSettings
    from docstore_connector.engine.base import DocumentEngine
    from docstore_connector.observability.metrics import MetricsRecorder


class EngineFactory(Protocol):
    """Async callable opening an engine from connector settings.

    ``metrics`` is the recorder of the connector that asked for the engine;
    ``None`` means the process-wide recorder.
    """

    def __call__(
        self,
        settings: ConnectorSettings,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> Awaitable[DocumentEngine]: ...


_ENGINE_FACTORIES: dict[str, EngineFactory] = {}
_BUILTIN_FACTORIES_REGISTERED = False


def register_engine(name: str, factory: EngineFactory) -> None:
    """Register an async factory that opens an engine from connector settings.

    Args:
        name: Value of ``ConnectorSettings.engine`` selecting this factory.
        factory: Async function taking settings (and the ``metrics`` keyword)
            and returning an open engine.
    """
    _ENGINE_FACTORIES[name] = factory


def reset_engine_factories() -> None:
    """Drop custom registrations; built-ins are registered again on next lookup."""
    global _BUILTIN_FACTORIES_REGISTERED
    _ENGINE_FACTORIES.clear()
    _BUILTIN_FACTORIES_REGISTERED = False


def _ensure_builtin_factories() -> None:
    """Register built-in engine factories once."""
    global _BUILTIN_FACTORIES_REGISTERED
    if _BUILTIN_FACTORIES_REGISTERED:
        return

    from docstore_connector.engine.mongodb import open_mongodb_engine
    from docstore_connector.engine.sqlite import open_sqlite_engine

    _ENGINE_FACTORIES.setdefault("sqlite", open_sqlite_engine)
    _ENGINE_FACTORIES.setdefault("mongodb", open_mongodb_engine)
    _BUILTIN_FACTORIES_REGISTERED = True


def get_engine_factory(name: str) -> EngineFactory:
    """Return the factory registered under ``name``."""
    _ensure_builtin_factories()
    try:
        return _ENGINE_FACTORIES[name]
    except KeyError:
        known = ", ".join(sorted(_ENGINE_FACTORIES))
        raise UnknownEngineError(f"Unknown engine '{name}' (registered: {known})") from None


async def open_engine(
    settings: ConnectorSettings,
    *,
    metrics: MetricsRecorder | None = None,
) -> DocumentEngine:
    """Open the engine named by ``settings.engine``."""
    factory = get_engine_factory(settings.engine)
    return await factory(settings, metrics=metrics)

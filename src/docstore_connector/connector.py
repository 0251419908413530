"""Key/value storage connector over an embedded document store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from time import perf_counter
from types import TracebackType
from typing import Any, ClassVar, Literal

from docstore_connector._version import PACKAGE_NAME, __version__
from docstore_connector.config.models import ConnectorSettings
from docstore_connector.documents import KEY_FIELD, stamp_key, strip_internal_fields
from docstore_connector.engine.base import DocumentEngine
from docstore_connector.engine.registry import EngineFactory, get_engine_factory
from docstore_connector.health import HealthStatus
from docstore_connector.lifecycle import (
    ConnectionState,
    ErrorListener,
    Readiness,
    ReadyListener,
)
from docstore_connector.observability._observable import ObservableMixin
from docstore_connector.observability.logging import operation_scope
from docstore_connector.observability.metrics import MetricsRecorder
from docstore_connector.routing import CollectionCache, RoutedKey

logger = logging.getLogger(__name__)

WriteCallback = Callable[[BaseException | None], object]
ReadCallback = Callable[[BaseException | None, dict[str, Any] | None], object]


class Connector(ObservableMixin):
    """Asynchronous ``set``/``get``/``delete`` over a document engine.

    Keys route to collections (see :mod:`docstore_connector.routing`). The store
    is opened by a task scheduled from the constructor, so the outcome always
    arrives after the caller had a chance to subscribe::

        connector = Connector(path="data/docs.db", split_char="/")
        connector.on("error", handle_error)
        await connector.wait_ready()

        await connector.set("users/42", {"name": "Ann"})
        await connector.get("users/42")  # {"name": "Ann"}

    Operations issued before readiness are not queued: a valid key raises
    :class:`~docstore_connector.errors.ConnectorNotReadyError`.

    Every operation also accepts ``callback=``. When given, the outcome goes to
    the callback exactly once (``callback(error)`` for writes,
    ``callback(error, document)`` for reads) instead of being raised.
    """

    _resource_name: ClassVar[str] = "connector"

    def __init__(
        self,
        settings: ConnectorSettings | Mapping[str, Any] | None = None,
        /,
        *,
        engine_factory: EngineFactory | None = None,
        metrics: MetricsRecorder | None = None,
        **options: Any,
    ) -> None:
        self.settings = _coerce_settings(settings, options)
        self.name = PACKAGE_NAME
        self.version = __version__
        self._metrics = metrics
        self._engine: DocumentEngine | None = None
        self._engine_factory = engine_factory or get_engine_factory(self.settings.engine)
        self._cache = CollectionCache(
            self.settings.default_collection,
            self.settings.split_char,
        )

        loop = asyncio.get_running_loop()
        self.readiness = Readiness(loop)
        self.readiness.mark_opening()
        self._open_task = loop.create_task(self._open(), name=f"{PACKAGE_NAME}:open")

    @property
    def is_ready(self) -> bool:
        return self.readiness.is_ready

    @property
    def state(self) -> ConnectionState:
        return self.readiness.state

    @property
    def collections(self) -> tuple[str, ...]:
        """Names of the collections resolved so far."""
        return tuple(self._cache)

    def on(self, event: Literal["ready", "error"], listener: Callable[..., object]) -> None:
        """Subscribe to the one-shot ``ready`` or ``error`` signal."""
        if event == "ready":
            self.readiness.on_ready(listener)
        elif event == "error":
            self.readiness.on_error(listener)
        else:
            raise ValueError(f"Unknown event '{event}', expected 'ready' or 'error'")

    def on_ready(self, listener: ReadyListener) -> None:
        self.readiness.on_ready(listener)

    def on_error(self, listener: ErrorListener) -> None:
        self.readiness.on_error(listener)

    async def wait_ready(self) -> None:
        """Wait for the store to open; raises the failure cause if it could not."""
        await self.readiness.wait()

    async def set(
        self,
        key: str,
        document: Mapping[str, Any],
        *,
        callback: WriteCallback | None = None,
    ) -> None:
        """Store ``document`` under ``key``, replacing any previous document."""
        try:
            await self._observed("set", self._set(key, document))
        except Exception as exc:
            if callback is None:
                raise
            callback(exc)
            return
        if callback is not None:
            callback(None)

    async def get(
        self,
        key: str,
        *,
        callback: ReadCallback | None = None,
    ) -> dict[str, Any] | None:
        """Return the document stored under ``key``, or ``None`` when absent."""
        try:
            document = await self._observed("get", self._get(key))
        except Exception as exc:
            if callback is None:
                raise
            callback(exc, None)
            return None
        if callback is not None:
            callback(None, document)
        return document

    async def delete(
        self,
        key: str,
        *,
        callback: WriteCallback | None = None,
    ) -> None:
        """Delete the document stored under ``key``; absent keys are not an error."""
        try:
            await self._observed("delete", self._delete(key))
        except Exception as exc:
            if callback is None:
                raise
            callback(exc)
            return
        if callback is not None:
            callback(None)

    async def health_check(self) -> HealthStatus:
        """Report connector state, delegating to the engine once ready."""
        started = perf_counter()
        if self._engine is None:
            return HealthStatus.unhealthy(
                started,
                f"store is {self.state.value}",
                state=self.state.value,
            )
        return await self._engine.health_check()

    async def close(self) -> None:
        """Release the engine. Not needed by hosts that live until process exit."""
        if not self._open_task.done():
            await asyncio.wait([self._open_task])
        await self._cache.wait_for_indexes()
        if self._engine is not None:
            await self._engine.close()
            logger.info("Store at %s closed", self.settings.path)

    async def __aenter__(self) -> Connector:
        await self.wait_ready()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _open(self) -> None:
        started = perf_counter()
        try:
            engine = await self._engine_factory(self.settings, metrics=self._metrics)
        except Exception as exc:
            self._observe_error("open", started, exc)
            logger.debug(
                "Store at %s failed to open: %s",
                self.settings.path,
                exc,
                extra={"engine": self.settings.engine},
            )
            self.readiness.fail(exc)
            return

        self._engine = engine
        self._observe_operation("open", started, success=True)
        logger.info(
            "Store at %s is ready",
            self.settings.path,
            extra={"engine": self.settings.engine},
        )
        self.readiness.resolve()

    def _route(self, key: str) -> RoutedKey:
        known = len(self._cache)
        routed = self._cache.resolve(self._engine, key)
        if len(self._cache) != known:
            logger.debug("Collection '%s' created", routed.collection_name)
            self._metrics_recorder().observe_collections(
                resource=self._resource_name,
                count=len(self._cache),
            )
        return routed

    async def _set(self, key: str, document: Mapping[str, Any]) -> None:
        with operation_scope("set", key):
            routed = self._route(key)
            await routed.collection.update_one(
                {KEY_FIELD: routed.id},
                stamp_key(document, routed.id),
                upsert=True,
            )

    async def _get(self, key: str) -> dict[str, Any] | None:
        with operation_scope("get", key):
            routed = self._route(key)
            stored = await routed.collection.find_one({KEY_FIELD: routed.id})
        if stored is None:
            return None
        return strip_internal_fields(stored)

    async def _delete(self, key: str) -> None:
        with operation_scope("delete", key):
            routed = self._route(key)
            await routed.collection.delete_one({KEY_FIELD: routed.id})


def _coerce_settings(
    settings: ConnectorSettings | Mapping[str, Any] | None,
    options: Mapping[str, Any],
) -> ConnectorSettings:
    if isinstance(settings, ConnectorSettings):
        if options:
            return ConnectorSettings.from_options(
                {**settings.model_dump(by_alias=False), **options}
            )
        return settings
    return ConnectorSettings.from_options({**(settings or {}), **options})


async def create_connector(
    settings: ConnectorSettings | Mapping[str, Any],
    *,
    engine_factory: EngineFactory | None = None,
    metrics: MetricsRecorder | None = None,
) -> Connector:
    """Build a connector and wait until its store is open."""
    connector = Connector(settings, engine_factory=engine_factory, metrics=metrics)
    await connector.wait_ready()
    return connector

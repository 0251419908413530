"""MongoDB document engine backed by the Motor async client.

Used when ``engine`` is ``"mongodb"``; ``path`` is then a MongoDB URI whose
path component names the database (``mongodb://host:27017/docs``).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from time import perf_counter
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from docstore_connector.engine.base import (
    IDENTITY_FIELD,
    EngineError,
    EngineOpenError,
    EngineOperationError,
    EngineTransientError,
)
from docstore_connector.errors import MissingDependencyError
from docstore_connector.health import HealthStatus
from docstore_connector.observability._observable import ObservableMixin

if TYPE_CHECKING:
    from docstore_connector.config.models import ConnectorSettings
    from docstore_connector.observability.metrics import MetricsRecorder

T = TypeVar("T")

# pymongo network failures, matched by name so pymongo is only needed at runtime.
_TRANSIENT_ERROR_NAMES = frozenset(
    {
        "AutoReconnect",
        "ConnectionFailure",
        "NetworkTimeout",
        "ServerSelectionTimeoutError",
        "ExecutionTimeout",
        "WTimeoutError",
    }
)


def _import_motor_asyncio() -> Any:
    try:
        from motor import motor_asyncio
    except ImportError as exc:  # pragma: no cover - exercised when extras are absent
        raise MissingDependencyError(
            "MongoDB engine requires optional dependency 'motor'. "
            "Install with: pip install 'docstore-connector[mongodb]'"
        ) from exc
    return motor_asyncio


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    return any(cls.__name__ in _TRANSIENT_ERROR_NAMES for cls in type(exc).__mro__)


def _translate_mongo_error(operation: str, collection: str | None, exc: Exception) -> EngineError:
    if isinstance(exc, EngineError):
        return exc
    if _is_transient(exc):
        return EngineTransientError(operation, collection, str(exc) or type(exc).__name__)
    return EngineOperationError(operation, collection, str(exc) or type(exc).__name__)


class MongoDbCollection(ObservableMixin):
    """Thin wrapper over a Motor collection."""

    _resource_name: ClassVar[str] = "mongodb"

    def __init__(self, handle: Any, name: str, *, metrics: MetricsRecorder | None = None) -> None:
        self.name = name
        self._handle = handle
        self._metrics = metrics

    async def ensure_index(self, field: str, *, unique: bool = False) -> None:
        await self._run("ensure_index", self._handle.create_index([(field, 1)], unique=unique))

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        document = await self._run("find_one", self._handle.find_one(query))
        if document is None:
            return None
        return dict(document)

    async def update_one(
        self,
        query: dict[str, Any],
        document: dict[str, Any],
        *,
        upsert: bool = False,
    ) -> int:
        replacement = {key: value for key, value in document.items() if key != IDENTITY_FIELD}
        replacement = {**query, **replacement}
        result = await self._run(
            "update_one",
            self._handle.replace_one(query, replacement, upsert=upsert),
        )
        return int(result.matched_count) + (0 if result.upserted_id is None else 1)

    async def delete_one(self, query: dict[str, Any]) -> int:
        result = await self._run("delete_one", self._handle.delete_one(query))
        return int(result.deleted_count)

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        started = perf_counter()
        try:
            result = await awaitable
        except Exception as exc:
            error = _translate_mongo_error(operation, self.name, exc)
            self._observe_error(operation, started, error)
            raise error from exc

        self._observe_operation(operation, started, success=True)
        return result


class MongoDbEngine(ObservableMixin):
    """Open MongoDB database used as a document store."""

    _resource_name: ClassVar[str] = "mongodb"

    def __init__(
        self,
        client: Any,
        database: Any,
        *,
        ping_timeout_seconds: float = 2.0,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._client = client
        self._database = database
        self.ping_timeout_seconds = ping_timeout_seconds
        self._metrics = metrics
        self._closed = False

    @classmethod
    async def open(
        cls,
        settings: ConnectorSettings,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> MongoDbEngine:
        """Connect to the URI in ``settings.path`` and verify it with a ping."""
        motor_asyncio = _import_motor_asyncio()
        client = motor_asyncio.AsyncIOMotorClient(
            settings.path,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
        try:
            database = client.get_default_database()
        except Exception as exc:
            client.close()
            raise EngineOpenError("open", None, f"URI does not name a database: {exc}") from exc

        engine = cls(
            client,
            database,
            ping_timeout_seconds=settings.ping_timeout_seconds,
            metrics=metrics,
        )
        try:
            await engine.ping()
        except EngineError as exc:
            client.close()
            raise EngineOpenError("open", None, str(exc)) from exc
        return engine

    @property
    def database_name(self) -> str:
        return str(getattr(self._database, "name", "<unknown>"))

    @property
    def is_open(self) -> bool:
        return not self._closed

    def collection(self, name: str) -> MongoDbCollection:
        return MongoDbCollection(self._database[name], name, metrics=self._metrics)

    async def ping(self) -> bool:
        """Run the MongoDB ping command."""
        started = perf_counter()
        try:
            await asyncio.wait_for(
                self._database.command("ping"),
                timeout=self.ping_timeout_seconds,
            )
        except Exception as exc:
            error = _translate_mongo_error("ping", None, exc)
            self._observe_error("ping", started, error)
            raise error from exc

        self._observe_operation("ping", started, success=True)
        return True

    async def health_check(self) -> HealthStatus:
        """Verify MongoDB liveness with a ping command."""
        started = perf_counter()
        try:
            await self.ping()
        except Exception as exc:
            return HealthStatus.from_exception(started, exc, database=self.database_name)
        return HealthStatus.ok(started, database=self.database_name)

    async def close(self) -> None:
        """Close the Motor client."""
        if self._closed:
            return
        started = perf_counter()
        try:
            self._client.close()
        except Exception as exc:
            self._observe_error("close", started, exc)
            raise
        finally:
            self._closed = True

        self._observe_operation("close", started, success=True)


async def open_mongodb_engine(
    settings: ConnectorSettings,
    *,
    metrics: MetricsRecorder | None = None,
) -> MongoDbEngine:
    """Factory used by the engine registry."""
    return await MongoDbEngine.open(settings, metrics=metrics)

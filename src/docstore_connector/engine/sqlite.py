"""Embedded single-file document engine backed by aiosqlite.

Every collection is a table holding one JSON document per row. The row id is
the engine identity (``_id``); field lookups and indexes go through
``json_extract`` so any top-level field can be matched and indexed.

Tables are named ``coll:<collection>`` and indexes ``idx:<collection>:<field>``.
The two prefixes keep collection names out of SQLite's reserved ``sqlite_``
namespace and stop a collection from sharing a name with another
collection's index.

The engine uses **one shared connection**. Statements that write (DDL included)
run under a single engine-wide lock so an implicit transaction opened by one
coroutine is never committed or rolled back by another.
"""

from __future__ import annotations

import asyncio
import json
import re
import sqlite3
from collections.abc import Awaitable, Callable
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar

from docstore_connector.engine.base import (
    IDENTITY_FIELD,
    EngineError,
    EngineOpenError,
    EngineOperationError,
    EngineTransientError,
    EngineValidationError,
)
from docstore_connector.errors import MissingDependencyError
from docstore_connector.health import HealthStatus
from docstore_connector.observability._observable import ObservableMixin

if TYPE_CHECKING:
    from docstore_connector.config.models import ConnectorSettings
    from docstore_connector.observability.metrics import MetricsRecorder

MEMORY_PATH = ":memory:"
TABLE_PREFIX = "coll:"
INDEX_PREFIX = "idx:"

T = TypeVar("T")

_FIELD_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TRANSIENT_MARKERS = ("locked", "busy")
_SCALAR_TYPES = (str, int, float, bool, type(None))


def _import_aiosqlite() -> Any:
    try:
        import aiosqlite
    except ImportError as exc:  # pragma: no cover - depends on the installation
        raise MissingDependencyError(
            "SQLite engine requires dependency 'aiosqlite'. "
            "Install with: pip install aiosqlite"
        ) from exc
    return aiosqlite


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _translate_sqlite_error(operation: str, collection: str | None, exc: Exception) -> EngineError:
    message = str(exc)
    if isinstance(exc, sqlite3.OperationalError) and any(
        marker in message.lower() for marker in _TRANSIENT_MARKERS
    ):
        return EngineTransientError(operation, collection, message)
    return EngineOperationError(operation, collection, message)


class SqliteCollection(ObservableMixin):
    """A table-backed collection. Storage is created on first use."""

    _resource_name: ClassVar[str] = "sqlite"

    def __init__(self, engine: SqliteEngine, name: str) -> None:
        self.name = name
        self._engine = engine
        self._metrics = engine._metrics
        self.table_name = f"{TABLE_PREFIX}{name}"
        self._table = _quote_identifier(self.table_name)
        self._created = False

    async def ensure_index(self, field: str, *, unique: bool = False) -> None:
        expression = self._field_expression(field, "ensure_index")
        # Field names never contain ":", so index names cannot collide across collections.
        index = _quote_identifier(f"{INDEX_PREFIX}{self.name}:{field}")
        kind = "UNIQUE INDEX" if unique else "INDEX"

        async def _create_index() -> None:
            async with self._engine.write_lock:
                await self._create_table()
                await self._write(
                    f"CREATE {kind} IF NOT EXISTS {index} ON {self._table} ({expression})"
                )

        await self._run("ensure_index", _create_index)

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        where, params = self._where(query, "find_one")

        async def _find() -> Any:
            await self._ensure_table()
            cursor = await self._engine.connection.execute(
                f"SELECT _id, document FROM {self._table} WHERE {where} LIMIT 1",
                params,
            )
            try:
                return await cursor.fetchone()
            finally:
                await cursor.close()

        row = await self._run("find_one", _find)
        if row is None:
            return None
        return {IDENTITY_FIELD: row[0], **json.loads(row[1])}

    async def update_one(
        self,
        query: dict[str, Any],
        document: dict[str, Any],
        *,
        upsert: bool = False,
    ) -> int:
        where, params = self._where(query, "update_one")
        body = {key: value for key, value in document.items() if key != IDENTITY_FIELD}
        replacement = self._dumps(body, "update_one")
        inserted = self._dumps({**query, **body}, "update_one") if upsert else None

        async def _update() -> int:
            async with self._engine.write_lock:
                await self._create_table()
                row_id = await self._first_row_id(where, params)
                if row_id is not None:
                    await self._write(
                        f"UPDATE {self._table} SET document = ? WHERE _id = ?",
                        (replacement, row_id),
                    )
                    return 1
                if inserted is None:
                    return 0
                await self._write(f"INSERT INTO {self._table} (document) VALUES (?)", (inserted,))
                return 1

        return await self._run("update_one", _update)

    async def delete_one(self, query: dict[str, Any]) -> int:
        where, params = self._where(query, "delete_one")

        async def _delete() -> int:
            async with self._engine.write_lock:
                await self._create_table()
                row_id = await self._first_row_id(where, params)
                if row_id is None:
                    return 0
                await self._write(f"DELETE FROM {self._table} WHERE _id = ?", (row_id,))
                return 1

        return await self._run("delete_one", _delete)

    async def count(self) -> int:
        """Return the number of documents in the collection."""

        async def _count() -> int:
            await self._ensure_table()
            cursor = await self._engine.connection.execute(f"SELECT COUNT(*) FROM {self._table}")
            try:
                row = await cursor.fetchone()
            finally:
                await cursor.close()
            return int(row[0])

        return await self._run("count", _count)

    async def _run(self, operation: str, action: Callable[[], Awaitable[T]]) -> T:
        started = perf_counter()
        try:
            result = await action()
        except sqlite3.Error as exc:
            error = _translate_sqlite_error(operation, self.name, exc)
            self._observe_error(operation, started, error)
            raise error from exc
        except Exception as exc:
            self._observe_error(operation, started, exc)
            raise

        self._observe_operation(operation, started, success=True)
        return result

    async def _ensure_table(self) -> None:
        if self._created:
            return
        async with self._engine.write_lock:
            await self._create_table()

    async def _create_table(self) -> None:
        # Caller holds the engine write lock.
        if self._created:
            return
        await self._write(
            f"CREATE TABLE IF NOT EXISTS {self._table} ("
            "_id INTEGER PRIMARY KEY AUTOINCREMENT, "
            "document TEXT NOT NULL)"
        )
        self._created = True

    async def _write(self, statement: str, params: tuple[Any, ...] = ()) -> None:
        # Caller holds the engine write lock.
        connection = self._engine.connection
        try:
            cursor = await connection.execute(statement, params)
            await cursor.close()
        except Exception:
            await connection.rollback()
            raise
        await connection.commit()

    async def _first_row_id(self, where: str, params: tuple[Any, ...]) -> int | None:
        cursor = await self._engine.connection.execute(
            f"SELECT _id FROM {self._table} WHERE {where} LIMIT 1",
            params,
        )
        try:
            row = await cursor.fetchone()
        finally:
            await cursor.close()
        return None if row is None else int(row[0])

    def _where(self, query: dict[str, Any], operation: str) -> tuple[str, tuple[Any, ...]]:
        if not query:
            return "1 = 1", ()

        clauses: list[str] = []
        params: list[Any] = []
        for field, value in query.items():
            if not isinstance(value, _SCALAR_TYPES):
                raise EngineValidationError(
                    operation,
                    self.name,
                    f"query value for '{field}' must be a scalar",
                )
            if field == IDENTITY_FIELD:
                clauses.append("_id IS ?")
            else:
                clauses.append(f"{self._field_expression(field, operation)} IS ?")
            params.append(value)
        return " AND ".join(clauses), tuple(params)

    def _field_expression(self, field: str, operation: str) -> str:
        if not _FIELD_PATTERN.match(field):
            raise EngineValidationError(operation, self.name, f"unsupported field name '{field}'")
        return f"json_extract(document, '$.{field}')"

    def _dumps(self, document: dict[str, Any], operation: str) -> str:
        try:
            return json.dumps(document, ensure_ascii=False, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise EngineValidationError(operation, self.name, str(exc)) from exc


class SqliteEngine(ObservableMixin):
    """Open SQLite document store."""

    _resource_name: ClassVar[str] = "sqlite"

    def __init__(
        self,
        connection: Any,
        path: str,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        self._connection: Any | None = connection
        self.path = path
        self._metrics = metrics
        self.write_lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        settings: ConnectorSettings,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> SqliteEngine:
        """Open (creating when missing) the database file at ``settings.path``."""
        aiosqlite = _import_aiosqlite()
        path = settings.path
        engine = cls(None, path, metrics=metrics)
        started = perf_counter()
        try:
            if path != MEMORY_PATH:
                Path(path).parent.mkdir(parents=True, exist_ok=True)
            connection = await aiosqlite.connect(path)
            try:
                # Reading the schema header rejects files that are not databases.
                cursor = await connection.execute("PRAGMA schema_version")
                await cursor.close()
            except Exception:
                await connection.close()
                raise
        except (OSError, sqlite3.Error) as exc:
            error = EngineOpenError("open", None, f"{path}: {exc}")
            engine._observe_error("open", started, error)
            raise error from exc

        engine._connection = connection
        engine._observe_operation("open", started, success=True)
        return engine

    @property
    def connection(self) -> Any:
        if self._connection is None:
            raise EngineOperationError("connection", None, "engine is closed")
        return self._connection

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def collection(self, name: str) -> SqliteCollection:
        return SqliteCollection(self, name)

    async def health_check(self) -> HealthStatus:
        """Probe the database with a trivial query."""
        started = perf_counter()
        try:
            cursor = await self.connection.execute("SELECT 1")
            await cursor.close()
        except Exception as exc:
            return HealthStatus.from_exception(started, exc, path=self.path)
        return HealthStatus.ok(started, path=self.path)

    async def close(self) -> None:
        """Close the underlying connection."""
        if self._connection is None:
            return
        started = perf_counter()
        try:
            await self._connection.close()
        except Exception as exc:
            self._observe_error("close", started, exc)
            raise
        finally:
            self._connection = None
        self._observe_operation("close", started, success=True)


async def open_sqlite_engine(
    settings: ConnectorSettings,
    *,
    metrics: MetricsRecorder | None = None,
) -> SqliteEngine:
    """Factory used by the engine registry."""
    return await SqliteEngine.open(settings, metrics=metrics)

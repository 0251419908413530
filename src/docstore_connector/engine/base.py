"""Document engine contract and typed errors."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from docstore_connector.errors import DocstoreConnectorError
from docstore_connector.health import HealthStatus

IDENTITY_FIELD = "_id"


class EngineError(DocstoreConnectorError):
    """Base exception for document engine operations."""

    def __init__(
        self,
        operation: str,
        collection: str | None,
        message: str,
    ) -> None:
        self.operation = operation
        self.collection = collection
        target = "<unknown>" if collection is None else collection
        super().__init__(f"Document {operation} failed for '{target}': {message}")


class EngineOpenError(EngineError):
    """Raised when the store cannot be opened at the configured path."""


class EngineValidationError(EngineError):
    """Raised when operation arguments cannot be stored or queried."""


class EngineTransientError(EngineError):
    """Raised for retryable failures such as a locked file or lost connection."""


class EngineOperationError(EngineError):
    """Raised for non-transient engine failures."""


@runtime_checkable
class DocumentCollection(Protocol):
    """Handle to one named collection inside an open engine.

    Documents returned by ``find_one`` carry the engine identity field ``_id``.
    ``update_one`` replaces the whole matched document; it never merges.
    """

    name: str

    async def ensure_index(self, field: str, *, unique: bool = False) -> None:
        """Create an ascending index on ``field`` when missing."""
        ...

    async def find_one(self, query: dict[str, Any]) -> dict[str, Any] | None:
        """Return the first document whose fields equal ``query``."""
        ...

    async def update_one(
        self,
        query: dict[str, Any],
        document: dict[str, Any],
        *,
        upsert: bool = False,
    ) -> int:
        """Replace the first match, inserting when ``upsert`` and nothing matched."""
        ...

    async def delete_one(self, query: dict[str, Any]) -> int:
        """Delete the first match and return the deleted count."""
        ...


@runtime_checkable
class DocumentEngine(Protocol):
    """An opened document store."""

    def collection(self, name: str) -> DocumentCollection:
        """Return a handle for ``name``; storage is created on first use."""
        ...

    async def health_check(self) -> HealthStatus:
        ...

    async def close(self) -> None:
        ...

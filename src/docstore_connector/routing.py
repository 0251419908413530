"""Key routing and the per-connector collection cache.

A key is either a bare id, stored in the default collection, or
``<collection><split_char><id>``. Any other shape is rejected before the
engine is touched.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from docstore_connector.documents import KEY_FIELD
from docstore_connector.errors import ConnectorNotReadyError, InvalidKeyError

if TYPE_CHECKING:
    from docstore_connector.engine.base import DocumentCollection, DocumentEngine

logger = logging.getLogger(__name__)


def split_key(key: str, split_char: str | None) -> tuple[str | None, str] | None:
    """Split ``key`` into ``(collection name, id)``.

    The collection name is ``None`` for single-part keys, meaning the default
    collection. Returns ``None`` for the empty key and for keys with more than
    one delimiter.
    """
    if key == "":
        return None
    if split_char is None:
        return None, key

    parts = key.split(split_char)
    if len(parts) == 1:
        return None, key
    if len(parts) == 2:
        return parts[0], parts[1]
    return None


@dataclass(frozen=True, slots=True)
class RoutedKey:
    """Resolved target of a key."""

    collection: DocumentCollection
    collection_name: str
    id: str


class CollectionCache:
    """Create-if-absent cache of collection handles.

    The first resolution of a name creates the handle, requests a unique
    ``ds_key`` index without waiting for it, and caches the handle. Entries are
    never evicted. The check-and-insert runs without yielding to the event loop,
    so two concurrent resolutions of a new name cannot both create it.
    """

    def __init__(self, default_collection: str, split_char: str | None = None) -> None:
        self.default_collection = default_collection
        self.split_char = split_char
        self._collections: dict[str, DocumentCollection] = {}
        self._index_tasks: set[asyncio.Task[None]] = set()

    def __contains__(self, name: object) -> bool:
        return name in self._collections

    def __iter__(self) -> Iterator[str]:
        return iter(self._collections)

    def __len__(self) -> int:
        return len(self._collections)

    def resolve(self, engine: DocumentEngine | None, key: str) -> RoutedKey:
        """Route ``key`` to a collection handle and document id.

        Raises:
            InvalidKeyError: The key has zero or more than two parts.
            ConnectorNotReadyError: The key is valid but no engine is open yet.
        """
        parsed = split_key(key, self.split_char)
        if parsed is None:
            raise InvalidKeyError(key)

        name, document_id = parsed
        collection_name = self.default_collection if name is None else name
        collection = self._collections.get(collection_name)
        if collection is None:
            if engine is None:
                raise ConnectorNotReadyError(
                    f"Cannot resolve key {key}: the store is not open"
                )
            collection = engine.collection(collection_name)
            self._collections[collection_name] = collection
            self._request_index(collection)
        return RoutedKey(collection=collection, collection_name=collection_name, id=document_id)

    async def wait_for_indexes(self) -> None:
        """Wait for index requests still in flight."""
        while self._index_tasks:
            await asyncio.gather(*self._index_tasks, return_exceptions=True)

    def _request_index(self, collection: DocumentCollection) -> None:
        task = asyncio.get_running_loop().create_task(
            collection.ensure_index(KEY_FIELD, unique=True),
            name=f"ensure-index:{collection.name}",
        )
        self._index_tasks.add(task)
        task.add_done_callback(self._index_done)

    def _index_done(self, task: asyncio.Task[None]) -> None:
        self._index_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # No caller awaits the index request; the log is the only report.
            logger.warning(
                "Index request on '%s' failed: %s",
                task.get_name().removeprefix("ensure-index:"),
                exc,
                extra={"operation": "ensure_index", "error_type": type(exc).__name__},
            )

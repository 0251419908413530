"""Document engines the connector can sit on."""

from docstore_connector.engine.base import (
    IDENTITY_FIELD,
    DocumentCollection,
    DocumentEngine,
    EngineError,
    EngineOpenError,
    EngineOperationError,
    EngineTransientError,
    EngineValidationError,
)
from docstore_connector.engine.mongodb import MongoDbCollection, MongoDbEngine, open_mongodb_engine
from docstore_connector.engine.registry import (
    EngineFactory,
    get_engine_factory,
    open_engine,
    register_engine,
    reset_engine_factories,
)
from docstore_connector.engine.sqlite import SqliteCollection, SqliteEngine, open_sqlite_engine

__all__ = [
    "IDENTITY_FIELD",
    "DocumentCollection",
    "DocumentEngine",
    "EngineError",
    "EngineFactory",
    "EngineOpenError",
    "EngineOperationError",
    "EngineTransientError",
    "EngineValidationError",
    "MongoDbCollection",
    "MongoDbEngine",
    "SqliteCollection",
    "SqliteEngine",
    "get_engine_factory",
    "open_engine",
    "open_mongodb_engine",
    "open_sqlite_engine",
    "register_engine",
    "reset_engine_factories",
]

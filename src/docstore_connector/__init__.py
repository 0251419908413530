"""Key/value storage connector for embedded document stores."""

from docstore_connector._version import __version__
from docstore_connector.config import (
    DEFAULT_COLLECTION,
    AppSettings,
    ConfigError,
    ConfigValidationError,
    ConnectorSettings,
    load_config,
)
from docstore_connector.connector import Connector, create_connector
from docstore_connector.documents import KEY_FIELD
from docstore_connector.engine import (
    DocumentCollection,
    DocumentEngine,
    EngineError,
    EngineOpenError,
    EngineOperationError,
    EngineTransientError,
    EngineValidationError,
    register_engine,
)
from docstore_connector.errors import (
    ConnectorNotReadyError,
    DocstoreConnectorError,
    InvalidKeyError,
    MissingDependencyError,
    UnknownEngineError,
)
from docstore_connector.health import HealthStatus
from docstore_connector.lifecycle import ConnectionState, Readiness
from docstore_connector.routing import CollectionCache, RoutedKey, split_key

__all__ = [
    "DEFAULT_COLLECTION",
    "KEY_FIELD",
    "AppSettings",
    "CollectionCache",
    "ConfigError",
    "ConfigValidationError",
    "ConnectionState",
    "Connector",
    "ConnectorNotReadyError",
    "ConnectorSettings",
    "DocstoreConnectorError",
    "DocumentCollection",
    "DocumentEngine",
    "EngineError",
    "EngineOpenError",
    "EngineOperationError",
    "EngineTransientError",
    "EngineValidationError",
    "HealthStatus",
    "InvalidKeyError",
    "MissingDependencyError",
    "Readiness",
    "RoutedKey",
    "UnknownEngineError",
    "__version__",
    "create_connector",
    "load_config",
    "register_engine",
    "split_key",
]

"""Custom exceptions for the document store connector."""


class DocstoreConnectorError(Exception):
    """Base exception for this package."""


class MissingDependencyError(DocstoreConnectorError):
    """Raised when an optional dependency is required but not installed."""


class UnknownEngineError(DocstoreConnectorError):
    """Raised when settings name an engine with no registered factory."""


class ConnectorNotReadyError(DocstoreConnectorError):
    """Raised when an operation needs the engine before the connector is ready."""


class InvalidKeyError(DocstoreConnectorError):
    """Raised when a key does not split into one or two parts."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid key {key}")

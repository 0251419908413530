"""Tests for unified exception hierarchy."""

from __future__ import annotations

import pytest

from docstore_connector.config.errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from docstore_connector.engine.base import (
    EngineError,
    EngineOpenError,
    EngineOperationError,
    EngineTransientError,
    EngineValidationError,
)
from docstore_connector.errors import (
    ConnectorNotReadyError,
    DocstoreConnectorError,
    InvalidKeyError,
    MissingDependencyError,
    UnknownEngineError,
)


class TestExceptionHierarchy:
    """Verify every package exception inherits from DocstoreConnectorError."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigError(),
            ConfigFileNotFoundError("missing.json"),
            ConfigValidationError([]),
            PlaceholderResolutionError("${VAR}", "key.path"),
            MissingDependencyError("motor"),
            UnknownEngineError("tingo"),
            ConnectorNotReadyError("not open"),
            InvalidKeyError("a/b/c"),
            EngineOpenError("open", None, "denied"),
        ],
    )
    def test_is_docstore_connector_error(self, error: Exception) -> None:
        assert isinstance(error, DocstoreConnectorError)

    @pytest.mark.parametrize(
        "error_type",
        [EngineOpenError, EngineValidationError, EngineTransientError, EngineOperationError],
    )
    def test_engine_errors_share_base(self, error_type: type[EngineError]) -> None:
        error = error_type("find_one", "users", "disk I/O error")

        assert isinstance(error, EngineError)
        assert error.operation == "find_one"
        assert error.collection == "users"
        assert str(error) == "Document find_one failed for 'users': disk I/O error"

    def test_engine_error_without_collection(self) -> None:
        error = EngineOpenError("open", None, "unable to open database file")

        assert str(error) == "Document open failed for '<unknown>': unable to open database file"

    def test_invalid_key_message_carries_key(self) -> None:
        error = InvalidKeyError("a/b/c")

        assert str(error) == "Invalid key a/b/c"
        assert error.key == "a/b/c"

    def test_catch_config_error_with_base(self) -> None:
        with pytest.raises(DocstoreConnectorError):
            raise ConfigError("test")

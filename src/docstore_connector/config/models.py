"""Typed configuration models with Pydantic validation."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from docstore_connector.config.errors import ConfigValidationError

DEFAULT_COLLECTION = "deepstream_docs"
DEFAULT_ENGINE = "sqlite"


class ServiceSettings(BaseModel):
    """Service identification used by log formatters."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Service name")
    version: str = Field(default="0.0.0", min_length=1, description="Service version")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log output format")
    sampling: float | None = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Optional sampling ratio for low-severity logs",
    )


class ConnectorSettings(BaseModel):
    """Connector options.

    ``path`` is a database file (or ``:memory:``) for the SQLite engine and a
    MongoDB URI naming the database for the MongoDB engine. Host applications
    may pass the camelCase spellings ``splitChar`` and ``defaultCollection``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str = Field(..., min_length=1, description="Store location")
    split_char: str | None = Field(
        default=None,
        alias="splitChar",
        description="Delimiter between collection name and id, disabled when unset",
    )
    default_collection: str = Field(
        default=DEFAULT_COLLECTION,
        min_length=1,
        alias="defaultCollection",
        description="Collection used for keys without a collection part",
    )
    engine: str = Field(default=DEFAULT_ENGINE, min_length=1, description="Engine factory name")
    server_selection_timeout_ms: int = Field(
        default=2000,
        ge=1,
        description="MongoDB server selection timeout in milliseconds",
    )
    ping_timeout_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Timeout for the open/health ping in seconds",
    )

    @field_validator("split_char", mode="before")
    @classmethod
    def _empty_split_char_disables_splitting(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("default_collection", mode="before")
    @classmethod
    def _empty_default_collection_uses_builtin(cls, value: Any) -> Any:
        if value in ("", None):
            return DEFAULT_COLLECTION
        return value

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> ConnectorSettings:
        """Validate host-supplied options, raising ``ConfigValidationError``."""
        try:
            return cls.model_validate(dict(options))
        except ValidationError as exc:
            raise ConfigValidationError.from_pydantic(exc) from exc

    @classmethod
    def from_env(cls, prefix: str = "DOCSTORE_") -> ConnectorSettings:
        """Build settings from environment variables.

        Expected variables:
        - DOCSTORE_PATH
        - DOCSTORE_SPLIT_CHAR
        - DOCSTORE_DEFAULT_COLLECTION
        - DOCSTORE_ENGINE
        - DOCSTORE_SERVER_SELECTION_TIMEOUT_MS
        - DOCSTORE_PING_TIMEOUT_SECONDS
        """

        def env(name: str) -> str | None:
            return os.getenv(f"{prefix}{name}")

        options: dict[str, Any] = {
            "path": env("PATH"),
            "split_char": env("SPLIT_CHAR"),
            "default_collection": env("DEFAULT_COLLECTION"),
            "engine": env("ENGINE") or DEFAULT_ENGINE,
            "server_selection_timeout_ms": int(env("SERVER_SELECTION_TIMEOUT_MS") or 2000),
            "ping_timeout_seconds": float(env("PING_TIMEOUT_SECONDS") or 2.0),
        }
        return cls.from_options(options)


class AppSettings(BaseModel):
    """Root application settings."""

    model_config = ConfigDict(frozen=True)

    service: ServiceSettings
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    connector: ConnectorSettings

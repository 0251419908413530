"""Configuration loading and validation module."""

from docstore_connector.config.errors import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigValidationError,
    PlaceholderResolutionError,
)
from docstore_connector.config.loader import deep_merge, load_config
from docstore_connector.config.models import (
    DEFAULT_COLLECTION,
    AppSettings,
    ConnectorSettings,
    LoggingSettings,
    ServiceSettings,
)

__all__ = [
    "DEFAULT_COLLECTION",
    "AppSettings",
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigValidationError",
    "ConnectorSettings",
    "LoggingSettings",
    "PlaceholderResolutionError",
    "ServiceSettings",
    "deep_merge",
    "load_config",
]

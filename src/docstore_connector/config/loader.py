"""Layered ``appsettings`` loading for hosts that configure the connector from files.

Layers, later ones winning key by key:

1. ``<config_dir>/appsettings.json`` (required)
2. ``<config_dir>/appsettings.<env>.json`` (optional)

``${VAR}`` / ``${VAR:-fallback}`` placeholders are resolved after merging, so an
environment file may override a placeholder with a literal.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterator
from functools import reduce
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from docstore_connector.config.errors import ConfigFileNotFoundError, ConfigValidationError
from docstore_connector.config.models import AppSettings
from docstore_connector.config.placeholders import resolve_placeholders

BASE_FILE = "appsettings.json"
CONFIG_DIR_VAR = "DOCSTORE_CONFIG_DIR"
ENV_VAR = "DOCSTORE_ENV"
DEFAULT_CONFIG_DIR = "config"
DEFAULT_ENV = "development"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``override``, merging nested mappings."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def load_json_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigFileNotFoundError(str(path))
    return json.loads(path.read_text(encoding="utf-8"))


def config_layers(config_dir: Path, env: str) -> Iterator[Path]:
    """Yield the files that make up the configuration, base first."""
    yield config_dir / BASE_FILE
    env_file = config_dir / f"appsettings.{env}.json"
    if env_file.is_file():
        yield env_file


def load_config(
    *,
    config_dir: Path | str | None = None,
    env: str | None = None,
    strict_placeholders: bool = True,
) -> AppSettings:
    """Load and validate :class:`AppSettings`.

    Args:
        config_dir: Directory holding the files. Defaults to ``DOCSTORE_CONFIG_DIR``
            or ``config``.
        env: Environment layer to apply. Defaults to ``DOCSTORE_ENV`` or
            ``development``.
        strict_placeholders: Raise for placeholders naming unset variables
            without a fallback. When False they are left verbatim.

    Raises:
        ConfigFileNotFoundError: The base file is missing.
        PlaceholderResolutionError: A placeholder cannot be resolved.
        ConfigValidationError: The merged document is not valid settings.
    """
    directory = Path(config_dir or os.getenv(CONFIG_DIR_VAR, DEFAULT_CONFIG_DIR))
    environment = env or os.getenv(ENV_VAR, DEFAULT_ENV)

    merged = reduce(deep_merge, map(load_json_file, config_layers(directory, environment)), {})
    resolved = resolve_placeholders(merged, strict=strict_placeholders)

    try:
        return AppSettings.model_validate(resolved)
    except ValidationError as exc:
        raise ConfigValidationError.from_pydantic(exc) from exc

"""Environment variable placeholder resolution for appsettings files.

Supports ``${VAR}`` and ``${VAR:-fallback}``. The fallback is used when the
variable is unset, which keeps local store paths out of the environment.
"""

from __future__ import annotations

import os
import re
from typing import Any

from docstore_connector.config.errors import PlaceholderResolutionError

PLACEHOLDER_PATTERN = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<fallback>[^}]*))?\}")


def resolve_placeholders(
    data: dict[str, Any],
    *,
    strict: bool = True,
    _path: str = "",
) -> dict[str, Any]:
    """Return a copy of ``data`` with placeholders substituted.

    Raises:
        PlaceholderResolutionError: If strict=True and a placeholder without
            fallback names an unset variable.
    """
    return {
        key: _resolve_node(value, f"{_path}.{key}" if _path else key, strict)
        for key, value in data.items()
    }


def _resolve_node(value: Any, path: str, strict: bool) -> Any:
    if isinstance(value, dict):
        return resolve_placeholders(value, strict=strict, _path=path)
    if isinstance(value, list):
        return [_resolve_node(item, f"{path}[{i}]", strict) for i, item in enumerate(value)]
    if not isinstance(value, str):
        return value

    def replace_match(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group("name"))
        if env_value is not None:
            return env_value

        fallback = match.group("fallback")
        if fallback is not None:
            return fallback
        if strict:
            raise PlaceholderResolutionError(match.group(0), path)
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(replace_match, value)

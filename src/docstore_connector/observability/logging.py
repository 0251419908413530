"""Structured logging bootstrap and per-operation log context.

The connector binds the operation and key it is serving with
:func:`operation_scope`; both formatters stamp them onto every record emitted
inside the scope, including records from tasks spawned there (index requests).
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import random
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TextIO

if TYPE_CHECKING:
    from docstore_connector.config.models import AppSettings

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_STANDARD_RECORD_KEYS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}
_CONTEXT_FIELDS = ("store_operation", "store_key")
_RESERVED_FIELDS = frozenset({"service", "env", *_CONTEXT_FIELDS})


@dataclass(frozen=True, slots=True)
class OperationContext:
    """Connector operation in progress for the current task."""

    operation: str
    key: str

    def as_fields(self) -> dict[str, str]:
        return {"store_operation": self.operation, "store_key": self.key}


_OPERATION_CTX: contextvars.ContextVar[OperationContext | None] = contextvars.ContextVar(
    "docstore_operation",
    default=None,
)


def current_operation() -> OperationContext | None:
    """Return the operation bound by the innermost :func:`operation_scope`."""
    return _OPERATION_CTX.get()


@contextmanager
def operation_scope(operation: str, key: str) -> Iterator[OperationContext]:
    """Bind ``operation`` and ``key`` to log records for the current context."""
    context = OperationContext(operation=operation, key=key)
    token = _OPERATION_CTX.set(context)
    try:
        yield context
    finally:
        _OPERATION_CTX.reset(token)


class SamplingFilter(logging.Filter):
    """Keeps every WARNING and above, and a random share of the rest."""

    def __init__(self, sampling: float) -> None:
        super().__init__()
        self._sampling = sampling

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.WARNING or random.random() < self._sampling


class JsonFormatter(logging.Formatter):
    """One JSON object per record: service, env, operation context and extras."""

    def __init__(self, *, service: str, env: str) -> None:
        super().__init__()
        self._service = service
        self._env = env

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _format_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self._service,
            "env": self._env,
            **_context_fields(),
            **_extract_extra_fields(record),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


class TextFormatter(logging.Formatter):
    """Human-readable line followed by ``key=value`` pairs."""

    def __init__(self, *, service: str, env: str) -> None:
        super().__init__("%(asctime)s %(levelname)s %(name)s %(message)s")
        self._service = service
        self._env = env

    def format(self, record: logging.LogRecord) -> str:
        fields = {
            "service": self._service,
            "env": self._env,
            **_context_fields(),
            **_extract_extra_fields(record),
        }
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"{super().format(record)} {pairs}"


def bootstrap_logging(
    *,
    service: str,
    env: str | None = None,
    level: str = "INFO",
    log_format: str = "json",
    sampling: float | None = None,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Attach a stream handler with the requested formatter to ``logger``.

    Args:
        service: Service name stamped on every record.
        env: Deployment environment. Defaults to ``DOCSTORE_ENV`` or ``development``.
        level: Logger level name.
        log_format: ``"json"`` or ``"text"``.
        sampling: Share of records below WARNING to keep; ``None`` keeps all.
        logger: Logger to configure. Defaults to the root logger.
        stream: Output stream. Defaults to stderr.
        force: Remove handlers already attached to ``logger`` first.
    """
    target_logger = logger or logging.getLogger()
    if force:
        for existing in list(target_logger.handlers):
            target_logger.removeHandler(existing)

    formatter_type = TextFormatter if log_format == "text" else JsonFormatter
    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        formatter_type(
            service=service,
            env=env if env is not None else os.getenv("DOCSTORE_ENV", "development"),
        )
    )
    if sampling is not None and sampling < 1.0:
        handler.addFilter(SamplingFilter(sampling))

    target_logger.addHandler(handler)
    target_logger.setLevel(level.upper())
    # Non-root loggers would otherwise print twice through the root handlers.
    target_logger.propagate = target_logger is logging.getLogger()
    return target_logger


def bootstrap_logging_from_app_settings(
    app_settings: AppSettings,
    *,
    env: str | None = None,
    logger: logging.Logger | None = None,
    stream: TextIO | None = None,
    force: bool = True,
) -> logging.Logger:
    """Bootstrap logging from the ``service`` and ``logging`` sections."""
    return bootstrap_logging(
        service=app_settings.service.name,
        env=env,
        level=app_settings.logging.level,
        log_format=app_settings.logging.format,
        sampling=app_settings.logging.sampling,
        logger=logger,
        stream=stream,
        force=force,
    )


def _context_fields() -> dict[str, str]:
    context = _OPERATION_CTX.get()
    return {} if context is None else context.as_fields()


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_RECORD_KEYS
        and key not in _RESERVED_FIELDS
        and not key.startswith("_")
    }


def _format_timestamp(created: float) -> str:
    timestamp = datetime.fromtimestamp(created, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")

"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from docstore_connector import Connector, EngineOpenError
from docstore_connector.config import AppSettings
from docstore_connector.observability.logging import (
    bootstrap_logging,
    bootstrap_logging_from_app_settings,
    current_operation,
    operation_scope,
)
from tests.fakes import FakeEngineFactory


def test_json_logs_include_required_fields() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.required_fields")

    bootstrap_logging(
        service="docstore-host",
        env="production",
        level="INFO",
        log_format="json",
        logger=logger,
        stream=stream,
    )

    logger.info("Store at %s is ready", "data/app.db", extra={"engine": "sqlite"})

    payload = json.loads(stream.getvalue().strip())

    assert payload["service"] == "docstore-host"
    assert payload["env"] == "production"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "tests.logging.required_fields"
    assert payload["message"] == "Store at data/app.db is ready"
    assert payload["engine"] == "sqlite"
    assert payload["timestamp"].endswith("Z")


def test_json_logs_include_exception() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.exception")
    bootstrap_logging(service="svc", env="dev", logger=logger, stream=stream)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failed")

    payload = json.loads(stream.getvalue().strip())
    assert "RuntimeError: boom" in payload["exception"]


def test_text_format_appends_service_env_and_extras() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.text")

    bootstrap_logging(
        service="docstore-host",
        env="staging",
        log_format="text",
        logger=logger,
        stream=stream,
    )
    logger.warning("Index request failed", extra={"operation": "ensure_index"})

    line = stream.getvalue().strip()
    assert "WARNING tests.logging.text Index request failed" in line
    assert "service=docstore-host env=staging" in line
    assert line.endswith("operation=ensure_index")


def test_sampling_zero_drops_info_but_keeps_warning() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.sampling")

    bootstrap_logging(
        service="svc",
        env="staging",
        level="INFO",
        log_format="json",
        sampling=0.0,
        logger=logger,
        stream=stream,
    )

    logger.info("dropped")
    logger.warning("kept")

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["message"] for line in lines] == ["kept"]


def test_env_defaults_to_docstore_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCSTORE_ENV", "qa")
    stream = StringIO()
    logger = logging.getLogger("tests.logging.env")

    bootstrap_logging(service="svc", logger=logger, stream=stream)
    logger.info("hello")

    assert json.loads(stream.getvalue())["env"] == "qa"


def test_bootstrap_from_app_settings() -> None:
    settings = AppSettings.model_validate(
        {
            "service": {"name": "docstore-host"},
            "logging": {"level": "DEBUG", "format": "text"},
            "connector": {"path": "data/app.db"},
        }
    )
    stream = StringIO()
    logger = logging.getLogger("tests.logging.app_settings")

    configured = bootstrap_logging_from_app_settings(
        settings,
        env="test",
        logger=logger,
        stream=stream,
    )
    configured.debug("debug enabled")

    assert configured.level == logging.DEBUG
    assert "debug enabled service=docstore-host env=test" in stream.getvalue()


async def test_connector_logs_open_outcome(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="docstore_connector.connector")

    ready = Connector(path="data/ok.db", engine_factory=FakeEngineFactory())
    await ready.wait_ready()

    failing = Connector(
        path="/unopenable",
        engine_factory=FakeEngineFactory(error=EngineOpenError("open", None, "denied")),
    )
    with pytest.raises(EngineOpenError):
        await failing.wait_ready()

    messages = [(record.levelno, record.getMessage()) for record in caplog.records]
    assert (logging.INFO, "Store at data/ok.db is ready") in messages
    assert any(
        level == logging.DEBUG and message.startswith("Store at /unopenable failed to open")
        for level, message in messages
    )
    assert not any(
        record.levelno >= logging.WARNING
        for record in caplog.records
        if record.name == "docstore_connector.connector"
    )


def test_operation_scope_is_stamped_on_records() -> None:
    stream = StringIO()
    logger = logging.getLogger("tests.logging.operation_scope")
    bootstrap_logging(service="svc", env="dev", logger=logger, stream=stream)

    with operation_scope("get", "users/42") as context:
        assert current_operation() is context
        logger.info("inside")
    logger.info("outside")

    inside, outside = (json.loads(line) for line in stream.getvalue().splitlines())
    assert inside["store_operation"] == "get"
    assert inside["store_key"] == "users/42"
    assert "store_key" not in outside
    assert current_operation() is None


async def test_index_failure_warning_carries_triggering_key() -> None:
    stream = StringIO()
    logger = logging.getLogger("docstore_connector.routing")
    bootstrap_logging(service="svc", env="dev", log_format="text", logger=logger, stream=stream)
    factory = FakeEngineFactory()
    factory.engine.collection("users").index_error = RuntimeError("index build failed")

    try:
        async with Connector(path=":memory:", split_char="/", engine_factory=factory) as connector:
            await connector.set("users/42", {"name": "Ann"})
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    line = stream.getvalue().strip()
    assert "WARNING docstore_connector.routing Index request on 'users' failed" in line
    assert "store_operation=set store_key=users/42" in line
    assert "operation=ensure_index error_type=RuntimeError" in line

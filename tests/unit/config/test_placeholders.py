"""Unit tests for recursive placeholder resolution."""

from __future__ import annotations

import pytest

from docstore_connector.config.errors import PlaceholderResolutionError
from docstore_connector.config.placeholders import resolve_placeholders


def test_resolve_placeholders_recurses_through_nested_lists_and_dicts(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("X", "ok")

    resolved = resolve_placeholders(
        {
            "items": [
                {"v": "${X}"},
                ["${X}", {"nested": "pre-${X}-post"}],
            ],
            "other": 42,
        }
    )

    assert resolved == {
        "items": [
            {"v": "ok"},
            ["ok", {"nested": "pre-ok-post"}],
        ],
        "other": 42,
    }


def test_fallback_is_used_when_variable_is_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DOCSTORE_MISSING", raising=False)

    resolved = resolve_placeholders({"path": "${DOCSTORE_MISSING:-data/store.db}"})

    assert resolved == {"path": "data/store.db"}


def test_empty_fallback_is_allowed(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DOCSTORE_MISSING", raising=False)

    resolved = resolve_placeholders({"splitChar": "${DOCSTORE_MISSING:-}"})

    assert resolved == {"splitChar": ""}


def test_variable_wins_over_fallback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DOCSTORE_SET", "/srv/app.db")

    resolved = resolve_placeholders({"path": "${DOCSTORE_SET:-data/store.db}"})

    assert resolved == {"path": "/srv/app.db"}


def test_resolve_placeholders_reports_nested_path_in_lists() -> None:
    with pytest.raises(PlaceholderResolutionError) as exc_info:
        resolve_placeholders({"items": [{"deep": "${MISSING_ENV}"}]})

    assert "items[0].deep" in str(exc_info.value)


def test_resolve_placeholders_keeps_unresolved_when_non_strict() -> None:
    resolved = resolve_placeholders(
        {"items": [{"deep": "${MISSING_ENV}"}, ["${MISSING_ENV}"]]},
        strict=False,
    )

    assert resolved == {"items": [{"deep": "${MISSING_ENV}"}, ["${MISSING_ENV}"]]}

"""Bookkeeping fields added to stored documents and removed on read."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from docstore_connector.engine.base import IDENTITY_FIELD

KEY_FIELD = "ds_key"
INTERNAL_FIELDS = frozenset({IDENTITY_FIELD, KEY_FIELD})


def stamp_key(document: Mapping[str, Any], document_id: str) -> dict[str, Any]:
    """Return a copy of ``document`` carrying ``ds_key``; the input is untouched."""
    return {**document, KEY_FIELD: document_id}


def strip_internal_fields(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return the caller-visible fields of a stored document."""
    return {key: value for key, value in document.items() if key not in INTERNAL_FIELDS}

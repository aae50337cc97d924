"""Helpers to load and validate the headline catalog JSON schema."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from .errors import CatalogError


def default_schema_path() -> Path:
    """Return the path to the schema shipped alongside the package."""
    return Path(__file__).resolve().parent / "catalog_schema.json"


@lru_cache(maxsize=1)
def load_schema() -> Dict[str, Any]:
    """Load and cache the packaged catalog schema as a dictionary."""
    return json.loads(default_schema_path().read_text(encoding="utf-8"))


def format_errors(errors: Iterable[ValidationError]) -> str:
    """Turn jsonschema errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.absolute_path) or "<root>"
        parts.append(f"{location}: {err.message}")
    return "; ".join(parts)


def validate_catalog_payload(
    payload: Any, schema: Optional[Dict[str, Any]] = None
) -> list[Dict[str, Any]]:
    """
    Validate a decoded catalog document.

    Raises CatalogError with a readable message if validation fails.
    """
    validator = Draft202012Validator(schema or load_schema())
    errors = sorted(
        validator.iter_errors(payload),
        key=lambda err: [str(piece) for piece in err.absolute_path],
    )
    if errors:
        raise CatalogError(f"Catalog validation failed: {format_errors(errors)}")
    return payload

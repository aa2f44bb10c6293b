"""Helpers to load and validate the JSON shapes returned by the story model."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"


def schema_path(name: str) -> Path:
    """Return the path of a packaged response schema, e.g. "stories"."""
    return SCHEMAS_DIR / f"{name}.json"


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    """Load and cache a response schema as a dictionary."""
    return json.loads(schema_path(name).read_text(encoding="utf-8"))


def format_errors(errors: Iterable[ValidationError]) -> str:
    """Turn jsonschema errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.absolute_path) or "<root>"
        parts.append(f"{location}: {err.message}")
    return "; ".join(parts)


def validate_payload(
    payload: Any, name: str, schema: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Validate a parsed model response against the named schema.

    Raises ValueError with a readable message if validation fails.
    """
    schema_dict = schema or load_schema(name)
    validator = Draft202012Validator(schema_dict)
    errors = list(validator.iter_errors(payload))
    if errors:
        raise ValueError(f"{name} response failed validation: {format_errors(errors)}")
    return payload

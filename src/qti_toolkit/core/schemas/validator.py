"""
Schema Validation Utilities

Validates JSON-syntax items and test wrappers against the bundled
JSON Schema definitions before they are modelled.

- `validate_item()` checks one item object
- `validate_test()` checks an ``assessmentTest`` wrapper (items excluded)
- Schemas are loaded lazily from ``*.schema.json`` next to this module
- Every violation is collected; the first one names the error
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema


# Load schemas lazily
_SCHEMAS: dict[str, dict] = {}


def _load_schema(name: str) -> dict:
    """Load a schema from the schemas directory."""
    if name not in _SCHEMAS:
        schema_path = Path(__file__).parent / f"{name}.schema.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")
        with open(schema_path, "r", encoding="utf-8") as f:
            _SCHEMAS[name] = json.load(f)
    return _SCHEMAS[name]


class ValidationError(Exception):
    """Raised when data fails schema validation."""

    def __init__(self, message: str, path: str = "", errors: list[str] | None = None):
        super().__init__(message)
        self.path = path
        self.errors = errors or []


def _format_path(parts) -> str:
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def _validate(data: Any, schema_name: str) -> None:
    if not isinstance(data, dict):
        raise ValidationError(
            f"Expected an object, got {type(data).__name__}",
            path="",
        )
    schema = _load_schema(schema_name)
    validator = jsonschema.Draft7Validator(schema)
    violations = sorted(validator.iter_errors(data), key=lambda e: list(map(str, e.absolute_path)))
    if not violations:
        return
    first = violations[0]
    path = _format_path(first.absolute_path)
    messages = [
        f"{_format_path(v.absolute_path) or '<root>'}: {v.message}" for v in violations
    ]
    raise ValidationError(
        f"Schema validation failed at {path or '<root>'}: {first.message}",
        path=path,
        errors=messages,
    )


def validate_item(data: dict[str, Any]) -> None:
    """
    Validate a JSON-syntax item against the item schema.

    Args:
        data: Decoded item object

    Raises:
        ValidationError: If data is invalid
    """
    _validate(data, "item")


def validate_test(data: dict[str, Any]) -> None:
    """
    Validate a JSON-syntax ``assessmentTest`` wrapper.

    The ``items`` array is only checked for being a list of objects;
    each item is validated separately with `validate_item`.

    Raises:
        ValidationError: If data is invalid
    """
    _validate(data, "test")

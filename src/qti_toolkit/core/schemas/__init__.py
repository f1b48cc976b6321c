"""JSON Schema definitions and validation for JSON-syntax documents."""

from .validator import ValidationError, validate_item, validate_test

__all__ = ["ValidationError", "validate_item", "validate_test"]

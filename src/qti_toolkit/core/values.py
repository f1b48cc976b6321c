"""
Module: values

Purpose:
    Coerce declared and submitted values to Python values according to a
    declaration's base type. Shared by the parser (to check declared
    correct responses) and the scoring engine (to compare responses).

Key Functions:
    - coerce_value(): Coerce one value, raising ValueCoercionError
    - is_valid_value(): Boolean form of coerce_value
    - format_value(): Render a coerced value back to text

Dependencies:
    - math (std)
    - .models.enums: BaseType
"""

from __future__ import annotations

import math
from typing import Any, Optional

from .models.enums import BaseType


class ValueCoercionError(ValueError):
    """Raised when a value does not fit the declared base type."""
    pass


def coerce_value(value: Any, base_type: Optional[BaseType]) -> Any:
    """
    Coerce ``value`` to the Python representation of ``base_type``.

    Strings are trimmed. Numbers are accepted as numbers or numeric text,
    booleans as bools or ``true``/``false``. Points and directed pairs
    become tuples; unordered pairs become sorted tuples. An undeclared
    base type is treated as string.

    Args:
        value: Raw text from a document or a submitted response value
        base_type: Declared base type, or None

    Returns:
        The coerced value

    Raises:
        ValueCoercionError: If ``value`` does not fit ``base_type``

    Example:
        >>> coerce_value(" 3 ", BaseType.INTEGER)
        3
        >>> coerce_value("A B", BaseType.PAIR)
        ('A', 'B')
    """
    if base_type is None or base_type in (BaseType.STRING, BaseType.URI, BaseType.FILE):
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        raise ValueCoercionError(f"expected text, got {type(value).__name__}")

    if base_type is BaseType.IDENTIFIER:
        if not isinstance(value, str):
            raise ValueCoercionError(f"expected identifier, got {type(value).__name__}")
        text = value.strip()
        if not text or any(ch.isspace() for ch in text):
            raise ValueCoercionError(f"invalid identifier {value!r}")
        return text

    if base_type is BaseType.INTEGER:
        if isinstance(value, bool):
            raise ValueCoercionError("expected integer, got bool")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                raise ValueCoercionError(f"invalid integer {value!r}") from None
        raise ValueCoercionError(f"expected integer, got {type(value).__name__}")

    if base_type in (BaseType.FLOAT, BaseType.DURATION):
        if isinstance(value, bool):
            raise ValueCoercionError("expected number, got bool")
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            try:
                number = float(value.strip())
            except ValueError:
                raise ValueCoercionError(f"invalid number {value!r}") from None
        else:
            raise ValueCoercionError(f"expected number, got {type(value).__name__}")
        if not math.isfinite(number):
            raise ValueCoercionError(f"number must be finite: {value!r}")
        return number

    if base_type is BaseType.BOOLEAN:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1"):
                return True
            if lowered in ("false", "0"):
                return False
        raise ValueCoercionError(f"invalid boolean {value!r}")

    if base_type in (BaseType.POINT, BaseType.PAIR, BaseType.DIRECTED_PAIR):
        parts = _two_parts(value)
        if base_type is BaseType.POINT:
            try:
                return (int(parts[0]), int(parts[1]))
            except ValueError:
                raise ValueCoercionError(f"invalid point {value!r}") from None
        if base_type is BaseType.PAIR:
            return tuple(sorted(parts))
        return parts

    raise ValueCoercionError(f"unsupported base type {base_type}")


def _two_parts(value: Any) -> tuple:
    if isinstance(value, str):
        parts = value.split()
    elif isinstance(value, (list, tuple)):
        parts = [str(p).strip() for p in value]
    else:
        raise ValueCoercionError(f"expected a pair, got {type(value).__name__}")
    if len(parts) != 2:
        raise ValueCoercionError(f"expected two parts, got {value!r}")
    return (parts[0], parts[1])


def is_valid_value(value: Any, base_type: Optional[BaseType]) -> bool:
    """Return True when ``value`` coerces to ``base_type``."""
    try:
        coerce_value(value, base_type)
    except ValueCoercionError:
        return False
    return True


def format_value(value: Any) -> str:
    """Render a coerced value as document text."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, tuple):
        return " ".join(str(part) for part in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)

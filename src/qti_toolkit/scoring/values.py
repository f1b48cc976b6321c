"""
Module: scoring.values

Purpose:
    Normalise submitted responses and declared correct values into
    comparable tuples according to a declaration's cardinality and base
    type.

Key Functions:
    - normalize_response(): Submitted value -> tuple of coerced values
    - declared_values(): Declared correct values -> tuple of coerced values
    - comparison_key(): Value used for equality (case folding for strings)

Key Classes:
    - ResponseShapeError: Submitted response does not fit the declaration
"""

from __future__ import annotations

from typing import Any, Tuple

from qti_toolkit.core.models import BaseType, Cardinality, ResponseDeclaration, ResponseValue
from qti_toolkit.core.values import ValueCoercionError, coerce_value


class ResponseShapeError(ValueError):
    """Submitted response does not fit the declared cardinality or base type."""
    pass


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalize_response(response: ResponseValue, declaration: ResponseDeclaration) -> Tuple[Any, ...]:
    """
    Coerce a submitted response to a tuple of typed values.

    ``None``, blank strings and empty sequences become an empty tuple.
    Blank entries inside a sequence are ignored.

    Raises:
        ResponseShapeError: Several values for a single declaration, a
            record declaration, or a value that does not fit the base type

    Example:
        >>> decl = ResponseDeclaration("RESPONSE", Cardinality.MULTIPLE, BaseType.IDENTIFIER)
        >>> normalize_response(["A", " C "], decl)
        ('A', 'C')
    """
    if declaration.cardinality is Cardinality.RECORD:
        raise ResponseShapeError("record responses are not supported")

    if isinstance(response, (list, tuple, set, frozenset)):
        raw = [value for value in response if not _is_blank(value)]
    elif _is_blank(response):
        raw = []
    else:
        raw = [response]

    if declaration.cardinality is Cardinality.SINGLE and len(raw) > 1:
        raise ResponseShapeError(
            f"{len(raw)} values submitted for single-cardinality response {declaration.identifier!r}"
        )

    values = []
    for value in raw:
        try:
            values.append(coerce_value(value, declaration.base_type))
        except ValueCoercionError as e:
            raise ResponseShapeError(f"response {declaration.identifier!r}: {e}") from None
    return tuple(values)


def declared_values(declaration: ResponseDeclaration) -> Tuple[Any, ...]:
    """Declared correct values, coerced where they fit the base type."""
    values = []
    for raw in declaration.correct_response:
        try:
            values.append(coerce_value(raw, declaration.base_type))
        except ValueCoercionError:
            values.append(raw.strip())
    return tuple(values)


def comparison_key(value: Any, base_type, case_sensitive_strings: bool) -> Any:
    """Key under which two values compare equal for match-correct."""
    if isinstance(value, str) and base_type in (None, BaseType.STRING) and not case_sensitive_strings:
        return value.casefold()
    return value

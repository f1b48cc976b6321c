"""
Module: enums

Purpose:
    Closed vocabularies used throughout the document model: surface
    syntax, specification version, declaration cardinality and base
    type, interaction kinds and semantic diagnostic codes.

Key Classes:
    - Format: Surface syntax of a document (markup or JSON)
    - SpecVersion: QTI specification version
    - Cardinality: Response declaration cardinality
    - BaseType: Response declaration base type
    - InteractionKind: Kind tag of an interaction variant
    - DiagnosticCode: Semantic warning codes attached to items

Dependencies:
    - enum (std)

Used By:
    - qti_toolkit.core.models: All model dataclasses
    - qti_toolkit.parsing: Attribute interpretation
    - qti_toolkit.scoring: Response coercion
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class Format(str, Enum):
    """Surface syntax a document is authored in."""

    MARKUP = "xml"
    STRUCTURED = "json"

    def __str__(self) -> str:
        return self.value


class SpecVersion(str, Enum):
    """QTI specification version. V2_1 is only ever authored as markup."""

    V2_1 = "2.1"
    V3_0 = "3.0"

    def __str__(self) -> str:
        return self.value


class Cardinality(str, Enum):
    """How many values a response may hold and whether order matters."""

    SINGLE = "single"
    MULTIPLE = "multiple"
    ORDERED = "ordered"
    RECORD = "record"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional[Cardinality]:
        """Return the member for ``raw`` or None when unrecognised."""
        if raw is None:
            return None
        try:
            return cls(raw.strip())
        except ValueError:
            return None


class BaseType(str, Enum):
    """Type of each value in a response."""

    IDENTIFIER = "identifier"
    STRING = "string"
    FLOAT = "float"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    POINT = "point"
    PAIR = "pair"
    DIRECTED_PAIR = "directedPair"
    DURATION = "duration"
    FILE = "file"
    URI = "uri"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional[BaseType]:
        """Return the member for ``raw`` or None when unrecognised."""
        if raw is None:
            return None
        try:
            return cls(raw.strip())
        except ValueError:
            return None

    @property
    def is_numeric(self) -> bool:
        return self in (BaseType.FLOAT, BaseType.INTEGER, BaseType.DURATION)


class InteractionKind(str, Enum):
    """Kind tag for each interaction variant."""

    CHOICE = "choice"
    MULTIPLE_RESPONSE = "multipleResponse"
    TEXT_ENTRY = "textEntry"
    EXTENDED_TEXT = "extendedText"
    HOTTEXT = "hottext"
    SLIDER = "slider"
    ORDER = "order"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Author-facing name of the kind."""
        return _KIND_LABELS[self]


_KIND_LABELS = {
    InteractionKind.CHOICE: "Multiple Choice",
    InteractionKind.MULTIPLE_RESPONSE: "Multiple Response",
    InteractionKind.TEXT_ENTRY: "Fill in the Blank",
    InteractionKind.EXTENDED_TEXT: "Extended Text",
    InteractionKind.HOTTEXT: "Hottext Selection",
    InteractionKind.SLIDER: "Slider",
    InteractionKind.ORDER: "Order Interaction",
    InteractionKind.UNKNOWN: "Unsupported Interaction",
}


class DiagnosticCode(str, Enum):
    """Codes for semantic warnings. Warnings never block rendering or scoring."""

    MISSING_IDENTIFIER = "missing-identifier"
    DANGLING_RESPONSE_IDENTIFIER = "dangling-response-identifier"
    DUPLICATE_DECLARATION = "duplicate-declaration"
    NUMERIC_ATTRIBUTE_DEFAULTED = "numeric-attribute-defaulted"
    UNKNOWN_CARDINALITY = "unknown-cardinality"
    UNKNOWN_BASE_TYPE = "unknown-base-type"
    CARDINALITY_VIOLATION = "cardinality-violation"
    VALUE_TYPE_MISMATCH = "value-type-mismatch"
    DUPLICATE_ITEM_BODY = "duplicate-item-body"

    def __str__(self) -> str:
        return self.value

"""
Module: declarations

Purpose:
    Response and outcome declarations. A ResponseDeclaration states the
    shape (cardinality, base type) and the correct value(s) of a
    response; its optional Mapping assigns per-value weights for the
    map-response template.

Key Classes:
    - MapEntry: One key/weight pair of a mapping
    - Mapping: Weighted value mapping with bounds
    - ResponseDeclaration: Declared response shape and correct values
    - OutcomeDeclaration: Declared outcome variable (e.g. SCORE)

Dependencies:
    - dataclasses (std)
    - .content: Attributes, UnknownContent
    - .enums: BaseType, Cardinality
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from .content import Attributes, UnknownContent
from .enums import BaseType, Cardinality


@dataclass(frozen=True, slots=True)
class MapEntry:
    """A single ``mapKey -> mappedValue`` pair."""

    map_key: str
    mapped_value: float = 0.0
    case_sensitive: bool = False
    attributes: Attributes = ()


@dataclass(frozen=True, slots=True)
class Mapping:
    """
    Per-value weights used by the map-response template.

    Attributes:
        entries: Mapping entries in source order
        default_value: Weight for submitted values with no entry
        lower_bound: Optional floor for the mapped total
        upper_bound: Optional ceiling for the mapped total
        attributes: Original attributes of the mapping element
    """

    entries: Tuple[MapEntry, ...] = ()
    default_value: float = 0.0
    lower_bound: Optional[float] = None
    upper_bound: Optional[float] = None
    attributes: Attributes = ()

    def lookup(self, key: str) -> Optional[MapEntry]:
        """Return the first entry matching ``key``, honouring case sensitivity."""
        for entry in self.entries:
            if entry.case_sensitive:
                if entry.map_key == key:
                    return entry
            elif entry.map_key.casefold() == key.casefold():
                return entry
        return None

    @property
    def positive_total(self) -> float:
        return sum(e.mapped_value for e in self.entries if e.mapped_value > 0)

    @property
    def positive_max(self) -> float:
        return max((e.mapped_value for e in self.entries if e.mapped_value > 0), default=0.0)


@dataclass(frozen=True, slots=True)
class ResponseDeclaration:
    """
    Declared shape and correct value(s) of one response variable.

    Attributes:
        identifier: Unique within the item; referenced by interactions
        cardinality: single, multiple, ordered or record
        base_type: Type of each value, or None when undeclared/unknown
        correct_response: Raw trimmed correct values in source order
        mapping: Optional weights for map-response scoring
        attributes: Original attributes of the declaration element
        extras: Unmodelled children (e.g. areaMapping), kept verbatim

    Invariants:
        - single cardinality holds at most one correct value (violations
          are reported as warnings by the parser, not rejected here)
    """

    identifier: str
    cardinality: Cardinality = Cardinality.SINGLE
    base_type: Optional[BaseType] = None
    correct_response: Tuple[str, ...] = ()
    mapping: Optional[Mapping] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()

    @property
    def has_correct_response(self) -> bool:
        return bool(self.correct_response)


@dataclass(frozen=True, slots=True)
class OutcomeDeclaration:
    """Declared outcome variable such as ``SCORE``."""

    identifier: str
    cardinality: Cardinality = Cardinality.SINGLE
    base_type: Optional[BaseType] = None
    default_value: Tuple[str, ...] = ()
    normal_maximum: Optional[float] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()

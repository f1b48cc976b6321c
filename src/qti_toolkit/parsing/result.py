"""
Module: parsing.result

Purpose:
    The ParseResult returned by every parse: modelled items, syntax-level
    errors, the document-wide unsupported tally and, for test documents,
    the test wrapper metadata.

Key Classes:
    - ParseResult
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from qti_toolkit.core.models import (
    AssessmentTest,
    Diagnostic,
    Format,
    ItemDocument,
    SpecVersion,
    UnsupportedElement,
)

NO_ITEMS_FOUND = "No assessment items found"
NESTED_TOO_DEEPLY = "document is nested too deeply"


def nested_too_deeply(position: int) -> str:
    """Error for an item whose content exceeds the interpreter's nesting limit."""
    return f"Item {position + 1}: content is nested too deeply"


@dataclass(frozen=True)
class ParseResult:
    """
    Outcome of parsing one document. Never carries an exception.

    Attributes:
        items: Items that were modelled, in document order
        errors: Syntax-level failures, ``line L, column C: message`` where
            a position is known
        unsupported: Unsupported constructs aggregated across the document
        format: Syntax the document was read as
        version: Specification version the document was read as
        test: Test wrapper metadata when the document is an assessmentTest
    """

    items: Tuple[ItemDocument, ...]
    errors: Tuple[str, ...]
    unsupported: Tuple[UnsupportedElement, ...]
    format: Format
    version: SpecVersion
    test: Optional[AssessmentTest] = None

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def warnings(self) -> Tuple[Diagnostic, ...]:
        return tuple(w for item in self.items for w in item.warnings)

    @property
    def item_ids(self) -> Tuple[str, ...]:
        return tuple(item.identifier for item in self.items)

    def item(self, identifier: str) -> Optional[ItemDocument]:
        for item in self.items:
            if item.identifier == identifier:
                return item
        return None

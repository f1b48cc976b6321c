"""
Module: parsing.markup

Purpose:
    Markup front end. Locates items inside whatever container wraps them
    (a single item, a bare sequence of items, an assessmentTest, or an
    unknown wrapper), builds each clean item through the shared
    ItemBuilder and assembles the ParseResult.

Key Functions:
    - read_markup(): Build the span tree and locate items and containers
    - parse_markup(): Full markup parse

Key Classes:
    - MarkupReading: Span tree plus located items/containers

Dependencies:
    - .markup_tree: Span-tracking tree builder
    - .builder: ItemBuilder, UnsupportedTally
    - .source: from_markup

Used By:
    - parsing.parser: Markup dispatch
    - editing.locator: Item boundaries for splices
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from qti_toolkit.config import EngineConfig
from qti_toolkit.core.models import (
    AssessmentSection,
    AssessmentTest,
    Format,
    ItemDocument,
    SpecVersion,
    TestPart,
    UnknownContent,
)
from qti_toolkit.core.vocabulary import ITEM_TAG, SECTION_TAG, TEST_PART_TAG, TEST_TAG
from .builder import ItemBuilder, UnsupportedTally
from .markup_tree import MarkupDocument, MarkupElement, build_tree
from .result import NESTED_TOO_DEEPLY, NO_ITEMS_FOUND, ParseResult, nested_too_deeply
from .source import from_markup

logger = logging.getLogger(__name__)


@dataclass
class MarkupReading:
    """
    Span tree of a markup document with its items and containers located.

    Attributes:
        document: The span tree with syntax issues
        items: Item elements in document order
        test: The assessmentTest element, if any
        sections: assessmentSection elements in document order
        wrappers: Unknown container-level elements
    """

    document: MarkupDocument
    items: List[MarkupElement] = field(default_factory=list)
    test: Optional[MarkupElement] = None
    sections: List[MarkupElement] = field(default_factory=list)
    wrappers: List[MarkupElement] = field(default_factory=list)

    @property
    def source(self) -> str:
        return self.document.source

    def is_clean(self, element: MarkupElement) -> bool:
        """True when no syntax issue falls inside ``element``."""
        return not self.document.issues_within(element.start, max(element.end, element.start + 1))


def read_markup(text: str) -> MarkupReading:
    """Build the span tree for ``text`` and locate items and containers."""
    reading = MarkupReading(build_tree(text))
    _collect(reading.document.roots, reading)
    return reading


def _collect(elements, reading: MarkupReading) -> None:
    stack = list(reversed(elements))
    while stack:
        element = stack.pop()
        name = element.local_name
        if name == ITEM_TAG:
            reading.items.append(element)
            continue
        if name == TEST_TAG:
            if reading.test is None:
                reading.test = element
        elif name == SECTION_TAG:
            reading.sections.append(element)
        elif name != TEST_PART_TAG:
            reading.wrappers.append(element)
        stack.extend(reversed(list(element.elements())))


def _contains_item(element: MarkupElement) -> bool:
    return any(el.local_name == ITEM_TAG for el in element.iter())


def parse_markup(text: str, version: SpecVersion, config: EngineConfig) -> ParseResult:
    """
    Parse markup text. Never raises.

    An item with a syntax issue inside its span is not modelled; its
    siblings still are. Issues outside any item are reported but block
    nothing.
    """
    reading = read_markup(text)
    document = reading.document
    errors = [document.format_issue(issue) for issue in document.issues]
    tally = UnsupportedTally()
    for wrapper in reading.wrappers:
        tally.add(wrapper.local_name)

    items: List[ItemDocument] = []
    identifiers: Dict[int, str] = {}
    for position, element in enumerate(reading.items):
        identifiers[id(element)] = element.get("identifier") or f"item-{position + 1}"
        if not reading.is_clean(element):
            logger.debug(f"Skipping item {position + 1}: syntax errors inside its span")
            continue
        builder = ItemBuilder(Format.MARKUP, version, config)
        try:
            item, item_errors = builder.build(from_markup(element, text), position)
        except RecursionError:
            errors.append(nested_too_deeply(position))
            continue
        errors.extend(item_errors)
        if item is not None:
            items.append(item)
            identifiers[id(element)] = item.identifier
            tally.merge(item.unsupported_elements)

    if not reading.items:
        errors.append(NO_ITEMS_FOUND)

    test = None
    if reading.test is not None:
        try:
            test = _test_metadata(reading.test, identifiers, text)
        except RecursionError:
            errors.append(f"assessmentTest: {NESTED_TOO_DEEPLY}")

    logger.debug(
        f"Parsed markup: {len(items)}/{len(reading.items)} items, "
        f"{len(errors)} errors, {len(tally)} unsupported kinds"
    )
    return ParseResult(
        items=tuple(items),
        errors=tuple(errors),
        unsupported=tally.entries(),
        format=Format.MARKUP,
        version=version,
        test=test,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Test wrapper metadata
# ─────────────────────────────────────────────────────────────────────────────


def _extra(element: MarkupElement, text: str) -> UnknownContent:
    return UnknownContent(element.tag, text[element.start:element.end], Format.MARKUP)


def _test_metadata(element: MarkupElement, identifiers: Dict[int, str], text: str) -> AssessmentTest:
    parts = []
    extras = []
    for child in element.elements():
        name = child.local_name
        if name == TEST_PART_TAG:
            parts.append(_test_part(child, identifiers, text))
        elif name not in (ITEM_TAG, SECTION_TAG) and not _contains_item(child):
            extras.append(_extra(child, text))
    return AssessmentTest(
        identifier=element.get("identifier", "") or "",
        title=element.get("title", "") or "",
        parts=tuple(parts),
        attributes=element.attribute_pairs(),
        extras=tuple(extras),
    )


def _test_part(element: MarkupElement, identifiers: Dict[int, str], text: str) -> TestPart:
    sections: List[AssessmentSection] = []
    extras = []
    for child in element.elements():
        if child.local_name == SECTION_TAG:
            sections.extend(_sections(child, identifiers, text))
        elif child.local_name != ITEM_TAG and not _contains_item(child):
            extras.append(_extra(child, text))
    return TestPart(
        identifier=element.get("identifier", "") or "",
        sections=tuple(sections),
        attributes=element.attribute_pairs(),
        extras=tuple(extras),
    )


def _sections(element: MarkupElement, identifiers: Dict[int, str], text: str) -> List[AssessmentSection]:
    """The section itself followed by its nested sections, flattened."""
    own_items = []
    nested: List[AssessmentSection] = []
    extras = []
    for child in element.elements():
        name = child.local_name
        if name == ITEM_TAG:
            own_items.append(identifiers.get(id(child), ""))
        elif name == SECTION_TAG:
            nested.extend(_sections(child, identifiers, text))
        elif not _contains_item(child):
            extras.append(_extra(child, text))
    section = AssessmentSection(
        identifier=element.get("identifier", "") or "",
        title=element.get("title", "") or "",
        item_identifiers=tuple(own_items),
        attributes=element.attribute_pairs(),
        extras=tuple(extras),
    )
    return [section] + nested

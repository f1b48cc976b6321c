"""
Module: editing.locator

Purpose:
    Locate the spans an edit touches and apply splices. Markup spans come
    from the span-tracking tree builder, JSON spans from the span-tracking
    scanner; either way the edit replaces only the located range and every
    other byte of the document is kept.

Key Classes:
    - Splice: One (start, end, replacement) text edit

Key Functions:
    - apply_splices(): Apply non-overlapping splices to a text
    - item_identifier(): Identifier the builder assigns to an item element
    - find_markup_item(), find_json_item(): Item span by identifier
    - json_insert_members(), json_array_insert(): JSON container splices
    - dump_json(): JSON text indented to sit at a given column

Dependencies:
    - qti_toolkit.parsing: Span trees
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from qti_toolkit.parsing.json_spans import JsonNode
from qti_toolkit.parsing.markup import MarkupReading
from qti_toolkit.parsing.markup_tree import MarkupElement, line_indent


@dataclass(frozen=True)
class Splice:
    """Replace ``text[start:end]`` with ``replacement``."""

    start: int
    end: int
    replacement: str


def apply_splices(text: str, splices: Iterable[Splice]) -> str:
    """
    Apply splices right to left so earlier offsets stay valid.

    Splices must not overlap. Insertions at the same offset land in the
    order given.
    """
    ordered = sorted(enumerate(splices), key=lambda pair: (pair[1].start, pair[1].end, pair[0]))
    for _, splice in reversed(ordered):
        text = text[:splice.start] + splice.replacement + text[splice.end:]
    return text


def item_identifier(identifier: Optional[str], position: int) -> str:
    """Identifier as the builder reports it, including the positional fallback."""
    identifier = (identifier or "").strip()
    return identifier or f"item-{position + 1}"


# ─────────────────────────────────────────────────────────────────────────────
# Markup
# ─────────────────────────────────────────────────────────────────────────────


def find_markup_item(reading: MarkupReading, item_id: str) -> Optional[MarkupElement]:
    for position, element in enumerate(reading.items):
        if item_identifier(element.get("identifier"), position) == item_id:
            return element
    return None


def tag_prefix(element: MarkupElement) -> str:
    """Namespace prefix of ``element`` including the colon, or ``""``."""
    return element.tag[: len(element.tag) - len(element.local_name)]


def attributes_end(element: MarkupElement) -> int:
    """Offset just past the last attribute (or the tag name)."""
    if element.attributes:
        return element.attributes[-1].end
    return element.name_end


def removal_start(text: str, start: int) -> int:
    """Extend ``start`` back over the indentation and line break before it."""
    while start > 0 and text[start - 1] in " \t":
        start -= 1
    if start > 0 and text[start - 1] == "\n":
        start -= 1
    if start > 0 and text[start - 1] == "\r":
        start -= 1
    return start


def child_indent(text: str, element: MarkupElement, unit: str) -> str:
    """Indentation for a new child line of ``element``."""
    for child in element.elements():
        return line_indent(text, child.start)
    return line_indent(text, element.start) + unit


# ─────────────────────────────────────────────────────────────────────────────
# JSON
# ─────────────────────────────────────────────────────────────────────────────


def find_json_item(items: Sequence[JsonNode], item_id: str) -> Optional[JsonNode]:
    for position, node in enumerate(items):
        raw = node.value.get("identifier")
        if item_identifier(raw if isinstance(raw, str) else None, position) == item_id:
            return node
    return None


def dump_json(value: Any, base_indent: str, unit: str) -> str:
    """``json.dumps`` output whose continuation lines start at ``base_indent``."""
    return json.dumps(value, indent=unit, ensure_ascii=False).replace("\n", "\n" + base_indent)


def _member_separator(text: str, container: JsonNode, first_start: int) -> Tuple[str, str]:
    """(separator, indent) used between entries of ``container``."""
    if "\n" in text[container.start:container.end]:
        indent = line_indent(text, first_start)
        return "\n" + indent, indent
    return " ", line_indent(text, container.start)


def json_insert_members(
    text: str, obj: JsonNode, members: List[Tuple[str, str]], unit: str
) -> Splice:
    """
    Append members (key, value JSON text) to object ``obj`` as one splice.
    Value text may span lines; it is expected to already be indented for
    the member column.
    """
    rendered = [f"{json.dumps(key)}: {value}" for key, value in members]
    if obj.members:
        separator, _ = _member_separator(text, obj, obj.members[0].key_start)
        last = obj.members[-1].value
        return Splice(last.end, last.end, "".join("," + separator + r for r in rendered))
    indent = line_indent(text, obj.start)
    inner = ("," + "\n" + indent + unit).join(rendered)
    return Splice(obj.start + 1, obj.end - 1, "\n" + indent + unit + inner + "\n" + indent)


def member_indent(text: str, obj: JsonNode, unit: str) -> str:
    """Column at which members of ``obj`` start."""
    if obj.members and "\n" in text[obj.start:obj.end]:
        return line_indent(text, obj.members[0].key_start)
    return line_indent(text, obj.start) + unit


def item_indent(text: str, array: JsonNode, unit: str) -> str:
    """Column at which entries of ``array`` start."""
    if array.items and "\n" in text[array.start:array.end]:
        return line_indent(text, array.items[0].start)
    return line_indent(text, array.start) + unit


def json_array_insert(text: str, array: JsonNode, index: int, entries: List[str], unit: str) -> Splice:
    """
    Insert JSON entry texts into ``array`` so they land at ``index``.
    """
    if not array.items:
        indent = line_indent(text, array.start)
        inner = (",\n" + indent + unit).join(entries)
        return Splice(array.start + 1, array.end - 1, "\n" + indent + unit + inner + "\n" + indent)
    separator, _ = _member_separator(text, array, array.items[0].start)
    joined = ("," + separator).join(entries)
    if index <= 0:
        first = array.items[0]
        return Splice(first.start, first.start, joined + "," + separator)
    anchor = array.items[min(index, len(array.items)) - 1]
    return Splice(anchor.end, anchor.end, "," + separator + joined)

"""
Module: parsing.structured

Purpose:
    JSON front end. Decodes the document, locates item objects (a single
    item, a top-level array of items, or an assessmentTest with an
    ``items`` array), validates each against the item schema and
    translates it into SourceElements for the shared ItemBuilder.

JSON Shape:
    Item:   {"@type": "assessmentItem", "identifier", "title",
             "responseDeclaration": {...} | [...],
             "outcomeDeclaration": {...} | [...],
             "itemBody": {"content": [node, ...]},
             "responseProcessing": {"template": url}}
    Node:   {"@type": "p" | "paragraph" | "text" | <interaction> | ...,
             "text" | "children" | "prompt" | "choices" | "content",
             "attributes": {...}}
    Test:   {"@type": "assessmentTest", "testParts": [...], "items": [...]}

    Members outside the vocabulary are kept verbatim as unknown content.

Key Functions:
    - read_structured(): Locate items and containers in a span tree
    - parse_structured(): Full JSON parse
    - attribute_text(): JSON scalar to attribute text

Dependencies:
    - json (std)
    - qti_toolkit.core.schemas: jsonschema validation
    - .json_spans, .builder, .source
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from qti_toolkit.config import EngineConfig
from qti_toolkit.core.models import (
    AssessmentSection,
    AssessmentTest,
    Attributes,
    Format,
    ItemDocument,
    SpecVersion,
    TestPart,
    UnknownContent,
)
from qti_toolkit.core.schemas import ValidationError, validate_item, validate_test
from qti_toolkit.core.vocabulary import INTERACTION_TAGS, ITEM_TAG, STATIC_TAGS, TEST_TAG
from .builder import ItemBuilder, UnsupportedTally
from .json_spans import JsonMember, JsonNode, scan_json
from .result import NESTED_TOO_DEEPLY, NO_ITEMS_FOUND, ParseResult, nested_too_deeply
from .source import SourceElement

logger = logging.getLogger(__name__)

# Members promoted to attributes, in emission order.
ITEM_KEYS = ("identifier", "title", "adaptive", "timeDependent")
DECLARATION_KEYS = ("identifier", "cardinality", "baseType")
OUTCOME_KEYS = ("identifier", "cardinality", "baseType", "normalMaximum", "normalMinimum")
MAPPING_KEYS = ("lowerBound", "upperBound", "defaultValue")
MAP_ENTRY_KEYS = ("mapKey", "mappedValue", "caseSensitive")
PROCESSING_KEYS = ("template", "templateLocation")
INTERACTION_KEYS = ("responseIdentifier", "shuffle", "maxChoices", "minChoices")
CHOICE_KEYS = ("identifier", "fixed")
HOTTEXT_KEYS = ("identifier",)
TEST_KEYS = ("identifier", "title")
PART_KEYS = ("identifier", "navigationMode", "submissionMode")
SECTION_KEYS = ("identifier", "title", "visible")
NODE_KEYS = ("text", "children")

# Interactions with no prompt; a "prompt" member on them is unknown.
PROMPTLESS_TAGS = ("textEntryInteraction",)

PARAGRAPH_ALIAS = "paragraph"


@dataclass
class StructuredReading:
    """
    Span tree of a JSON document with its items located.

    Attributes:
        root: Root node
        items: Item object nodes in document order
        collection: The array holding the items, if any
        test: The assessmentTest object, if any
        strays: Array entries that are not items
    """

    root: JsonNode
    items: List[JsonNode] = field(default_factory=list)
    collection: Optional[JsonNode] = None
    test: Optional[JsonNode] = None
    strays: List[JsonNode] = field(default_factory=list)


def is_item_object(node: JsonNode) -> bool:
    if node.kind != "object":
        return False
    kind = node.value.get("@type")
    return kind == ITEM_TAG or (kind is None and "itemBody" in node.value)


def read_structured(text: str) -> StructuredReading:
    """
    Scan ``text`` and locate items.

    Raises:
        JsonSpanError: If ``text`` is not valid JSON
    """
    root = scan_json(text)
    reading = StructuredReading(root)
    if root.kind == "array":
        reading.collection = root
    elif root.kind == "object" and root.value.get("@type") == TEST_TAG:
        reading.test = root
        items = root.get("items")
        if items is not None and items.kind == "array":
            reading.collection = items
    elif is_item_object(root):
        reading.items.append(root)
        return reading
    else:
        reading.strays.append(root)
        return reading

    if reading.collection is not None:
        for node in reading.collection.items:
            (reading.items if is_item_object(node) else reading.strays).append(node)
    return reading


def parse_structured(text: str, config: EngineConfig) -> ParseResult:
    """Parse JSON text. Never raises."""
    try:
        json.loads(text)
    except json.JSONDecodeError as e:
        return _failed(f"line {e.lineno}, column {e.colno}: {e.msg}")
    except RecursionError:
        return _failed(NESTED_TOO_DEEPLY)

    reading = read_structured(text)
    errors: List[str] = []
    tally = UnsupportedTally()
    for stray in reading.strays:
        if stray.kind == "object":
            tally.add(str(stray.value.get("@type") or "object"))
        else:
            errors.append(f"Found a JSON {stray.kind} where an assessment item was expected")

    test = None
    if reading.test is not None:
        try:
            if config.validate_structured:
                validate_test(reading.test.value)
            test = _test_metadata(reading.test, text, tally)
        except ValidationError as e:
            errors.append(f"assessmentTest: {e}")
        except RecursionError:
            errors.append(f"assessmentTest: {NESTED_TOO_DEEPLY}")

    items: List[ItemDocument] = []
    for position, node in enumerate(reading.items):
        if config.validate_structured:
            try:
                validate_item(node.value)
            except ValidationError as e:
                errors.append(f"Item {position + 1}: {e}")
                continue
            except RecursionError:
                errors.append(nested_too_deeply(position))
                continue
        builder = ItemBuilder(Format.STRUCTURED, SpecVersion.V3_0, config)
        try:
            item, item_errors = builder.build(item_source(node, text), position)
        except RecursionError:
            errors.append(nested_too_deeply(position))
            continue
        errors.extend(item_errors)
        if item is not None:
            items.append(item)
            tally.merge(item.unsupported_elements)

    if not reading.items:
        errors.append(NO_ITEMS_FOUND)

    logger.debug(f"Parsed JSON: {len(items)}/{len(reading.items)} items, {len(errors)} errors")
    return ParseResult(
        items=tuple(items),
        errors=tuple(errors),
        unsupported=tally.entries(),
        format=Format.STRUCTURED,
        version=SpecVersion.V3_0,
        test=test,
    )


def _failed(message: str) -> ParseResult:
    return ParseResult((), (message,), (), Format.STRUCTURED, SpecVersion.V3_0)


# ─────────────────────────────────────────────────────────────────────────────
# JSON to SourceElement
# ─────────────────────────────────────────────────────────────────────────────


def attribute_text(value: Any) -> str:
    """Render a JSON scalar as attribute text (``true``, ``1.5``, ...)."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or value is None or isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"))


def _attributes(obj: dict, keys: Sequence[str]) -> Attributes:
    if not isinstance(obj, dict):
        return ()
    pairs = []
    seen = set()
    for key in keys:
        value = obj.get(key)
        if key in obj and value is not None and not isinstance(value, (dict, list)):
            pairs.append((key, attribute_text(value)))
            seen.add(key)
    extra = obj.get("attributes")
    if isinstance(extra, dict):
        for key, value in extra.items():
            if key not in seen and value is not None:
                pairs.append((key, attribute_text(value)))
                seen.add(key)
    return tuple(pairs)


def _member_unknown(member: JsonMember, text: str) -> SourceElement:
    return SourceElement(member.key, raw=member.value.raw(text), syntax=Format.STRUCTURED, member=True)


def _one_or_many(node: JsonNode) -> List[JsonNode]:
    nodes = list(node.items) if node.kind == "array" else [node]
    return [n for n in nodes if n.kind == "object"]


def _value_elements(node: Optional[JsonNode]) -> List[SourceElement]:
    if node is None:
        return []
    value = node.value
    if isinstance(value, dict):
        value = value.get("value")
    if value is None:
        values = []
    elif isinstance(value, list):
        values = value
    else:
        values = [value]
    return [SourceElement("value", children=[attribute_text(v)]) for v in values]


def item_source(node: JsonNode, text: str) -> SourceElement:
    """Translate an item object into a SourceElement."""
    children: List[SourceElement] = []
    for member in node.members:
        key = member.key
        if key in ("@type", "attributes") or key in ITEM_KEYS:
            continue
        if key == "responseDeclaration":
            children.extend(_declaration(n, text) for n in _one_or_many(member.value))
        elif key == "outcomeDeclaration":
            children.extend(_outcome(n, text) for n in _one_or_many(member.value))
        elif key == "itemBody":
            children.append(_body(member.value, text))
        elif key == "responseProcessing":
            children.append(_processing(member.value, text))
        else:
            children.append(_member_unknown(member, text))
    return SourceElement(
        ITEM_TAG, _attributes(node.value, ITEM_KEYS), children, node.raw(text), Format.STRUCTURED
    )


def _declaration(node: JsonNode, text: str) -> SourceElement:
    children: List[SourceElement] = []
    for member in node.members:
        key = member.key
        if key in ("attributes",) or key in DECLARATION_KEYS:
            continue
        if key == "correctResponse":
            children.append(SourceElement("correctResponse", children=_value_elements(member.value)))
        elif key == "mapping":
            children.append(_mapping(member.value))
        else:
            children.append(_member_unknown(member, text))
    return SourceElement(
        "responseDeclaration", _attributes(node.value, DECLARATION_KEYS), children,
        node.raw(text), Format.STRUCTURED,
    )


def _mapping(node: JsonNode) -> SourceElement:
    obj = node.value if node.kind == "object" else {}
    entries = obj.get("mapEntries", obj.get("mapEntry", []))
    if not isinstance(entries, list):
        entries = []
    children = [
        SourceElement("mapEntry", _attributes(entry, MAP_ENTRY_KEYS))
        for entry in entries if isinstance(entry, dict)
    ]
    return SourceElement("mapping", _attributes(obj, MAPPING_KEYS), children)


def _outcome(node: JsonNode, text: str) -> SourceElement:
    children: List[SourceElement] = []
    for member in node.members:
        key = member.key
        if key in ("attributes",) or key in OUTCOME_KEYS:
            continue
        if key == "defaultValue":
            children.append(SourceElement("defaultValue", children=_value_elements(member.value)))
        else:
            children.append(_member_unknown(member, text))
    return SourceElement(
        "outcomeDeclaration", _attributes(node.value, OUTCOME_KEYS), children,
        node.raw(text), Format.STRUCTURED,
    )


def _processing(node: JsonNode, text: str) -> SourceElement:
    rules = [
        _member_unknown(member, text)
        for member in node.members
        if member.key not in PROCESSING_KEYS and member.key != "attributes"
    ]
    return SourceElement(
        "responseProcessing", _attributes(node.value, PROCESSING_KEYS), rules,
        node.raw(text), Format.STRUCTURED,
    )


def _body(node: JsonNode, text: str) -> SourceElement:
    content = node.get("content")
    children = [_node(n, text) for n in content.items] if content is not None and content.kind == "array" else []
    children.extend(_unknown_members(node, ("content",), text))
    return SourceElement("itemBody", _attributes(node.value, ()), children, node.raw(text), Format.STRUCTURED)


def _unknown_members(node: JsonNode, known: Sequence[str], text: str) -> List[SourceElement]:
    return [
        _member_unknown(member, text)
        for member in node.members
        if member.key not in known and member.key not in ("@type", "attributes")
    ]


def _children(node: JsonNode, text: str, known: Sequence[str] = ()) -> list:
    """Content of a static node: leading ``text``, ``children``, then unknown members."""
    children: list = []
    value = node.value.get("text")
    if isinstance(value, str) and value:
        children.append(value)
    nested = node.get("children")
    if nested is not None and nested.kind == "array":
        children.extend(_node(n, text) for n in nested.items)
    children.extend(_unknown_members(node, tuple(known) + NODE_KEYS, text))
    return children


def _node(node: JsonNode, text: str):
    """Translate one body node; text nodes become plain strings."""
    if node.kind == "string":
        return node.value
    if node.kind != "object":
        return SourceElement("#value", raw=node.raw(text), syntax=Format.STRUCTURED)
    obj = node.value
    kind = obj.get("@type") or ""
    if kind == "text":
        return obj.get("text") or ""
    tag = "p" if kind == PARAGRAPH_ALIAS else kind
    raw = node.raw(text)
    if tag in INTERACTION_TAGS:
        return _interaction(node, tag, text)
    if tag == "hottext":
        return SourceElement(
            tag, _attributes(obj, HOTTEXT_KEYS), _children(node, text, HOTTEXT_KEYS), raw, Format.STRUCTURED
        )
    if tag in STATIC_TAGS:
        return SourceElement(tag, _attributes(obj, ()), _children(node, text), raw, Format.STRUCTURED)
    return SourceElement(tag or "object", raw=raw, syntax=Format.STRUCTURED)


def _choice(node: JsonNode, text: str) -> SourceElement:
    label = node.value.get("text")
    children: list = [label] if isinstance(label, str) and label else []
    children.extend(_unknown_members(node, CHOICE_KEYS + ("text",), text))
    return SourceElement(
        "simpleChoice", _attributes(node.value, CHOICE_KEYS), children, node.raw(text), Format.STRUCTURED
    )


def _interaction(node: JsonNode, tag: str, text: str) -> SourceElement:
    obj = node.value
    known = INTERACTION_KEYS + ("choices", "content", "extras")
    children: list = []
    prompt = obj.get("prompt")
    if isinstance(prompt, str) and tag not in PROMPTLESS_TAGS:
        known += ("prompt",)
        children.append(SourceElement("prompt", children=[prompt] if prompt else []))
    choices = node.get("choices")
    if choices is not None and choices.kind == "array":
        for choice in choices.items:
            if choice.kind == "object":
                children.append(_choice(choice, text))
            else:
                children.append(SourceElement("#value", raw=choice.raw(text), syntax=Format.STRUCTURED))
    for key in ("content", "extras"):
        nodes = node.get(key)
        if nodes is not None and nodes.kind == "array":
            children.extend(_node(n, text) for n in nodes.items)
    children.extend(_unknown_members(node, known, text))
    return SourceElement(tag, _attributes(obj, INTERACTION_KEYS), children, node.raw(text), Format.STRUCTURED)


# ─────────────────────────────────────────────────────────────────────────────
# Test wrapper metadata
# ─────────────────────────────────────────────────────────────────────────────


def _extras(node: JsonNode, known: Sequence[str], text: str, tally: UnsupportedTally) -> tuple:
    extras = []
    for member in node.members:
        if member.key in known or member.key in ("@type", "attributes"):
            continue
        tally.add(member.key)
        extras.append(UnknownContent(member.key, member.value.raw(text), Format.STRUCTURED))
    return tuple(extras)


def _objects(node: Optional[JsonNode]) -> List[JsonNode]:
    if node is None or node.kind != "array":
        return []
    return [n for n in node.items if n.kind == "object"]


def _test_metadata(node: JsonNode, text: str, tally: UnsupportedTally) -> AssessmentTest:
    parts = []
    part_list = node.get("testParts")
    for part in _objects(part_list):
        sections = []
        section_list = part.get("assessmentSections")
        for section in _objects(section_list):
            ids = section.value.get("assessmentItems") or []
            sections.append(AssessmentSection(
                identifier=str(section.value.get("identifier", "")),
                title=str(section.value.get("title", "")),
                item_identifiers=tuple(i for i in ids if isinstance(i, str)),
                attributes=_attributes(section.value, SECTION_KEYS),
                extras=_extras(section, SECTION_KEYS + ("assessmentItems",), text, tally),
            ))
        parts.append(TestPart(
            identifier=str(part.value.get("identifier", "")),
            sections=tuple(sections),
            attributes=_attributes(part.value, PART_KEYS),
            extras=_extras(part, PART_KEYS + ("assessmentSections",), text, tally),
        ))
    return AssessmentTest(
        identifier=str(node.value.get("identifier", "")),
        title=str(node.value.get("title", "")),
        parts=tuple(parts),
        attributes=_attributes(node.value, TEST_KEYS),
        extras=_extras(node, TEST_KEYS + ("testParts", "items"), text, tally),
    )

"""
Module: editing.serializer

Purpose:
    Full serialization of ItemDocuments to either surface syntax, and
    conversion between the two. Stored attributes are re-emitted verbatim,
    body text nodes exactly, interactions are regenerated from their fields
    and unknown fragments are written back byte for byte. Unknown
    fragments written in the other syntax cannot be carried across a
    conversion and are dropped with a warning.

Key Functions:
    - serialize(): Items (and optional test wrapper) to text
    - convert(): Raw text in one syntax to the other
    - json_value(): Typed JSON value for attribute or value text

Key Classes:
    - ConversionError: Source text cannot be converted

Dependencies:
    - json (std), html (std)
    - qti_toolkit.parsing: Re-parse for convert()

Used By:
    - editing.templates: JSON templates
    - qti_toolkit.cli: convert subcommand
"""

from __future__ import annotations

import dataclasses
import json
import logging
import uuid
from html import escape, unescape
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from qti_toolkit.config import DEFAULT_CONFIG, EngineConfig
from qti_toolkit.core.models import (
    AssessmentTest,
    Attributes,
    BaseType,
    Cardinality,
    ChoiceInteraction,
    ContentNode,
    ElementNode,
    ExtendedTextInteraction,
    Format,
    HottextInteraction,
    HottextNode,
    Interaction,
    ItemDocument,
    MultipleResponseInteraction,
    OrderInteraction,
    OutcomeDeclaration,
    ResponseDeclaration,
    SliderInteraction,
    SpecVersion,
    TextEntryInteraction,
    TextNode,
    UnknownContent,
    UnknownInteraction,
    text_of,
)
from qti_toolkit.core.vocabulary import (
    ITEM_TAG,
    SECTION_TAG,
    TEST_PART_TAG,
    TEST_TAG,
    XSI_NAMESPACE,
    namespace_for,
    schema_location_for,
)
from qti_toolkit.parsing import parse
from qti_toolkit.parsing.structured import (
    CHOICE_KEYS,
    DECLARATION_KEYS,
    HOTTEXT_KEYS,
    INTERACTION_KEYS,
    ITEM_KEYS,
    MAP_ENTRY_KEYS,
    MAPPING_KEYS,
    OUTCOME_KEYS,
    PARAGRAPH_ALIAS,
    PART_KEYS,
    PROCESSING_KEYS,
    SECTION_KEYS,
    TEST_KEYS,
    attribute_text,
)

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# Attributes written as JSON numbers/booleans when the text round-trips.
TYPED_ATTRIBUTES = frozenset({
    "adaptive", "timeDependent", "shuffle", "fixed", "caseSensitive",
    "maxChoices", "minChoices", "normalMaximum", "normalMinimum",
    "lowerBound", "upperBound", "defaultValue", "mappedValue",
    "step", "stepLabel", "expectedLength", "expectedLines", "visible",
})


class ConversionError(Exception):
    """Source text has errors and cannot be converted."""
    pass


def serialize(
    items: Sequence[ItemDocument],
    format: Union[Format, str],
    *,
    version: Optional[SpecVersion] = None,
    test: Optional[AssessmentTest] = None,
    config: Optional[EngineConfig] = None,
) -> str:
    """
    Serialize items to document text.

    Args:
        items: Items in document order
        format: Target syntax
        version: When given, markup roots without a namespace declaration
            get the namespace of this version
        test: Test wrapper metadata; items are placed into its sections
        config: Engine configuration (indentation unit)

    Returns:
        Document text that parses back to the same items

    Example:
        >>> result = parse(text)
        >>> serialize(result.items, result.format, test=result.test)
    """
    config = config or DEFAULT_CONFIG
    fmt = Format(str(format).lower())
    if fmt is Format.STRUCTURED:
        return _JsonWriter().document(items, test)
    return _MarkupWriter(config.indent, version).document(items, test)


def json_value(text: str, base_type: Optional[BaseType]) -> Any:
    """Typed JSON value for value text when the round trip is exact."""
    if base_type is None or not (base_type.is_numeric or base_type is BaseType.BOOLEAN):
        return text
    return _typed(text, boolean=base_type is BaseType.BOOLEAN)


def _typed(text: str, boolean: Optional[bool] = None) -> Any:
    try:
        candidate = json.loads(text)
    except ValueError:
        return text
    if not isinstance(candidate, (bool, int, float)) or attribute_text(candidate) != text:
        return text
    if boolean is not None and isinstance(candidate, bool) != boolean:
        return text
    return candidate


def _dropped(fragment: UnknownContent, target: Format) -> None:
    logger.warning(
        f"Dropping {fragment.tag!r}: written in {fragment.syntax.name.lower()} syntax, "
        f"cannot be carried into {target.name.lower()} output"
    )


# ─────────────────────────────────────────────────────────────────────────────
# Markup
# ─────────────────────────────────────────────────────────────────────────────


def _start_tag(tag: str, attributes: Attributes, close: bool = False) -> str:
    rendered = "".join(f' {name}="{escape(value)}"' for name, value in attributes)
    return f"<{tag}{rendered}{'/' if close else ''}>"


def _with_namespace(attributes: Attributes, version: Optional[SpecVersion]) -> Attributes:
    if version is None or any(name == "xmlns" for name, _ in attributes):
        return attributes
    namespace = namespace_for(version)
    return (
        ("xmlns", namespace),
        ("xmlns:xsi", XSI_NAMESPACE),
        ("xsi:schemaLocation", f"{namespace} {schema_location_for(version)}"),
    ) + tuple(attributes)


class _MarkupWriter:
    def __init__(self, unit: str, version: Optional[SpecVersion]):
        self.unit = unit
        self.version = version

    def document(self, items: Sequence[ItemDocument], test: Optional[AssessmentTest]) -> str:
        if test is None:
            body = "\n\n".join(self.item(item, namespaced=True) for item in items)
        else:
            body = self.test(test, items)
        return f"{XML_DECLARATION}\n{body}\n"

    # Test wrapper ─────────────────────────────────────────────────────────

    def test(self, test: AssessmentTest, items: Sequence[ItemDocument]) -> str:
        unit = self.unit
        remaining = list(items)

        def take(identifier: str) -> Optional[ItemDocument]:
            for position, item in enumerate(remaining):
                if item.identifier == identifier:
                    return remaining.pop(position)
            return None

        placed: Dict[int, List[ItemDocument]] = {}
        sections = test.sections
        for index, section in enumerate(sections):
            placed[index] = [i for i in (take(ident) for ident in section.item_identifiers) if i]
        if sections:
            placed[len(sections) - 1].extend(remaining)
            remaining = []

        lines = [_start_tag(TEST_TAG, _with_namespace(test.attributes, self.version))]
        lines.extend(unit + raw for raw in self.raw_extras(test.extras))
        index = 0
        for part in test.parts:
            lines.append(unit + _start_tag(TEST_PART_TAG, part.attributes))
            lines.extend(unit * 2 + raw for raw in self.raw_extras(part.extras))
            for section in part.sections:
                lines.append(unit * 2 + _start_tag(SECTION_TAG, section.attributes))
                lines.extend(unit * 3 + raw for raw in self.raw_extras(section.extras))
                lines.extend(self.item(item) for item in placed[index])
                lines.append(f"{unit * 2}</{SECTION_TAG}>")
                index += 1
            lines.append(f"{unit}</{TEST_PART_TAG}>")
        lines.extend(self.item(item) for item in remaining)
        lines.append(f"</{TEST_TAG}>")
        return "\n".join(lines)

    def raw_extras(self, extras: Sequence[UnknownContent]) -> List[str]:
        kept = []
        for extra in extras:
            if extra.syntax is Format.MARKUP:
                kept.append(extra.raw)
            else:
                _dropped(extra, Format.MARKUP)
        return kept

    # Items ────────────────────────────────────────────────────────────────

    def item(self, item: ItemDocument, namespaced: bool = False) -> str:
        unit = self.unit
        attributes = _with_namespace(item.attributes, self.version) if namespaced else item.attributes
        lines = [_start_tag(ITEM_TAG, attributes)]
        for declaration in item.response_declarations:
            lines.append(self.response_declaration(declaration, unit))
        for outcome in item.outcome_declarations:
            lines.append(self.outcome_declaration(outcome, unit))
        lines.append(unit + _start_tag("itemBody", item.body_attributes) + self.nodes(item.body) + "</itemBody>")
        processing = item.response_processing
        if processing is not None:
            rules = self.raw_extras(processing.rules)
            if rules:
                lines.append(unit + _start_tag("responseProcessing", processing.attributes))
                lines.extend(unit * 2 + raw for raw in rules)
                lines.append(f"{unit}</responseProcessing>")
            else:
                lines.append(unit + _start_tag("responseProcessing", processing.attributes, close=True))
        lines.extend(unit + raw for raw in self.raw_extras(item.extras))
        lines.append(f"</{ITEM_TAG}>")
        return "\n".join(lines)

    def values(self, tag: str, values: Sequence[str], indent: str) -> List[str]:
        if not values:
            return []
        inner = indent + self.unit
        lines = [f"{indent}<{tag}>"]
        lines.extend(f"{inner}<value>{escape(v, quote=False)}</value>" for v in values)
        lines.append(f"{indent}</{tag}>")
        return lines

    def response_declaration(self, declaration: ResponseDeclaration, indent: str) -> str:
        inner = indent + self.unit
        children = self.values("correctResponse", declaration.correct_response, inner)
        mapping = declaration.mapping
        if mapping is not None:
            if mapping.entries:
                children.append(inner + _start_tag("mapping", mapping.attributes))
                children.extend(
                    inner + self.unit + _start_tag("mapEntry", entry.attributes, close=True)
                    for entry in mapping.entries
                )
                children.append(f"{inner}</mapping>")
            else:
                children.append(inner + _start_tag("mapping", mapping.attributes, close=True))
        children.extend(inner + raw for raw in self.raw_extras(declaration.extras))
        return self.wrap("responseDeclaration", declaration.attributes, children, indent)

    def outcome_declaration(self, outcome: OutcomeDeclaration, indent: str) -> str:
        inner = indent + self.unit
        children = self.values("defaultValue", outcome.default_value, inner)
        children.extend(inner + raw for raw in self.raw_extras(outcome.extras))
        return self.wrap("outcomeDeclaration", outcome.attributes, children, indent)

    @staticmethod
    def wrap(tag: str, attributes: Attributes, children: List[str], indent: str) -> str:
        if not children:
            return indent + _start_tag(tag, attributes, close=True)
        return "\n".join([indent + _start_tag(tag, attributes)] + children + [f"{indent}</{tag}>"])

    # Content ──────────────────────────────────────────────────────────────

    def nodes(self, nodes: Sequence[ContentNode]) -> str:
        return "".join(self.node(node) for node in nodes)

    def element(self, tag: str, attributes: Attributes, inner: str) -> str:
        if not inner:
            return _start_tag(tag, attributes, close=True)
        return f"{_start_tag(tag, attributes)}{inner}</{tag}>"

    def node(self, node: ContentNode) -> str:
        if isinstance(node, TextNode):
            return escape(node.text, quote=False)
        if isinstance(node, ElementNode):
            return self.element(node.tag, node.attributes, self.nodes(node.children))
        if isinstance(node, HottextNode):
            return self.element("hottext", node.attributes, self.nodes(node.content))
        if isinstance(node, UnknownContent):
            return "".join(self.raw_extras([node]))
        if isinstance(node, Interaction):
            return self.interaction(node)
        raise TypeError(f"Unexpected content node: {type(node).__name__}")

    def interaction(self, interaction: Interaction) -> str:
        if isinstance(interaction, UnknownInteraction):
            if interaction.syntax is Format.MARKUP:
                return interaction.raw
            _dropped(UnknownContent(interaction.tag, interaction.raw, interaction.syntax), Format.MARKUP)
            return ""

        parts: List[str] = []
        prompt = getattr(interaction, "prompt", None)
        if prompt is not None:
            parts.append(f"<prompt>{self.nodes(prompt)}</prompt>")
        if isinstance(interaction, (ChoiceInteraction, MultipleResponseInteraction, OrderInteraction)):
            parts.extend(
                self.element(
                    "simpleChoice",
                    choice.attributes,
                    self.nodes(choice.content) + "".join(self.raw_extras(choice.extras)),
                )
                for choice in interaction.choices
            )
        elif isinstance(interaction, HottextInteraction):
            parts.append(self.nodes(interaction.content))
        elif not isinstance(interaction, (TextEntryInteraction, ExtendedTextInteraction, SliderInteraction)):
            raise TypeError(f"Unexpected interaction: {type(interaction).__name__}")
        parts.extend(self.raw_extras(interaction.extras))
        return self.element(interaction.TAG, interaction.attributes, "".join(parts))


# ─────────────────────────────────────────────────────────────────────────────
# JSON
# ─────────────────────────────────────────────────────────────────────────────


def _json_attributes(target: Dict[str, Any], attributes: Attributes, keys: Sequence[str]) -> Dict[str, Any]:
    """Known keys become members, the rest go into an ``attributes`` object."""
    extra: Dict[str, Any] = {}
    for name, value in attributes:
        typed = _typed(value) if name in TYPED_ATTRIBUTES else value
        if name in keys and name not in target:
            target[name] = typed
        elif name not in extra:
            extra[name] = typed
    if extra:
        target["attributes"] = extra
    return target


class _JsonWriter:
    """
    Builds the JSON object tree. Unknown fragments are stored as unique
    placeholder strings and swapped for their raw text after dumping, so
    they are written back exactly as they were read.
    """

    def __init__(self) -> None:
        self._token = uuid.uuid4().hex
        self._raw: Dict[str, str] = {}

    def slot(self, raw: str) -> str:
        key = f"@@raw-{self._token}-{len(self._raw)}@@"
        self._raw[key] = raw
        return key

    def fill(self, text: str) -> str:
        for key, raw in self._raw.items():
            text = text.replace(json.dumps(key), raw, 1)
        return text

    def document(self, items: Sequence[ItemDocument], test: Optional[AssessmentTest]) -> str:
        objects = [self.item(item) for item in items]
        if test is not None:
            root: Any = self.test(test, objects)
        elif len(objects) == 1:
            root = objects[0]
        else:
            root = objects
        return self.fill(json.dumps(root, indent=2, ensure_ascii=False)) + "\n"

    def member_extras(self, target: Dict[str, Any], extras: Sequence[UnknownContent]) -> None:
        for extra in extras:
            if extra.syntax is not Format.STRUCTURED:
                _dropped(extra, Format.STRUCTURED)
            elif extra.tag in target:
                logger.warning(f"Dropping duplicate member {extra.tag!r}")
            else:
                target[extra.tag] = self.slot(extra.raw)

    # Test wrapper ─────────────────────────────────────────────────────────

    def test(self, test: AssessmentTest, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        root = _json_attributes({"@type": TEST_TAG}, test.attributes, TEST_KEYS)
        parts = []
        for part in test.parts:
            part_obj = _json_attributes({}, part.attributes, PART_KEYS)
            sections = []
            for section in part.sections:
                section_obj = _json_attributes({}, section.attributes, SECTION_KEYS)
                section_obj["assessmentItems"] = list(section.item_identifiers)
                self.member_extras(section_obj, section.extras)
                sections.append(section_obj)
            part_obj["assessmentSections"] = sections
            self.member_extras(part_obj, part.extras)
            parts.append(part_obj)
        root["testParts"] = parts
        self.member_extras(root, test.extras)
        root["items"] = items
        return root

    # Items ────────────────────────────────────────────────────────────────

    def item(self, item: ItemDocument) -> Dict[str, Any]:
        obj = _json_attributes({"@type": ITEM_TAG}, item.attributes, ITEM_KEYS)
        declarations = [self.response_declaration(d) for d in item.response_declarations]
        if declarations:
            obj["responseDeclaration"] = declarations[0] if len(declarations) == 1 else declarations
        outcomes = [self.outcome_declaration(o) for o in item.outcome_declarations]
        if outcomes:
            obj["outcomeDeclaration"] = outcomes[0] if len(outcomes) == 1 else outcomes
        body = _json_attributes({}, item.body_attributes, ())
        content, members = self.split_members(item.body)
        body["content"] = self.nodes(content)
        self.member_extras(body, members)
        obj["itemBody"] = body
        processing = item.response_processing
        if processing is not None:
            rp = _json_attributes({}, processing.attributes, PROCESSING_KEYS)
            self.member_extras(rp, processing.rules)
            obj["responseProcessing"] = rp
        self.member_extras(obj, item.extras)
        return obj

    @staticmethod
    def value_holder(values: Sequence[str], base_type: Optional[BaseType], single: bool) -> Dict[str, Any]:
        typed = [json_value(v, base_type) for v in values]
        return {"value": typed[0] if single and len(typed) == 1 else typed}

    def response_declaration(self, declaration: ResponseDeclaration) -> Dict[str, Any]:
        obj = _json_attributes({}, declaration.attributes, DECLARATION_KEYS)
        if declaration.correct_response:
            obj["correctResponse"] = self.value_holder(
                declaration.correct_response,
                declaration.base_type,
                declaration.cardinality is Cardinality.SINGLE,
            )
        mapping = declaration.mapping
        if mapping is not None:
            mapping_obj = _json_attributes({}, mapping.attributes, MAPPING_KEYS)
            if mapping.entries:
                mapping_obj["mapEntries"] = [
                    _json_attributes({}, entry.attributes, MAP_ENTRY_KEYS) for entry in mapping.entries
                ]
            obj["mapping"] = mapping_obj
        self.member_extras(obj, declaration.extras)
        return obj

    def outcome_declaration(self, outcome: OutcomeDeclaration) -> Dict[str, Any]:
        obj = _json_attributes({}, outcome.attributes, OUTCOME_KEYS)
        if outcome.default_value:
            obj["defaultValue"] = self.value_holder(
                outcome.default_value, outcome.base_type, outcome.cardinality is Cardinality.SINGLE
            )
        self.member_extras(obj, outcome.extras)
        return obj

    # Content ──────────────────────────────────────────────────────────────

    def nodes(self, nodes: Sequence[ContentNode]) -> List[Any]:
        result = []
        for node in nodes:
            rendered = self.node(node)
            if rendered is not None:
                result.append(rendered)
        return result

    @staticmethod
    def split_members(nodes: Sequence[ContentNode]) -> Tuple[List[ContentNode], List[UnknownContent]]:
        """Separate unknown object members from the ordinary content list."""
        plain: List[ContentNode] = []
        members: List[UnknownContent] = []
        for node in nodes:
            if isinstance(node, UnknownContent) and node.member:
                members.append(node)
            else:
                plain.append(node)
        return plain, members

    def with_children(self, obj: Dict[str, Any], nodes: Sequence[ContentNode]) -> Dict[str, Any]:
        children, members = self.split_members(nodes)
        if len(children) == 1 and isinstance(children[0], TextNode):
            obj["text"] = children[0].text
        elif children:
            obj["children"] = self.nodes(children)
        self.member_extras(obj, members)
        return obj

    def unknown(self, fragment: UnknownContent) -> Optional[Any]:
        if fragment.tag == "#text":
            return {"@type": "text", "text": unescape(fragment.raw)}
        if fragment.syntax is not Format.STRUCTURED:
            _dropped(fragment, Format.STRUCTURED)
            return None
        return self.slot(fragment.raw)

    def node(self, node: ContentNode) -> Optional[Any]:
        if isinstance(node, TextNode):
            return {"@type": "text", "text": node.text}
        if isinstance(node, ElementNode):
            name = node.local_name
            obj = {"@type": PARAGRAPH_ALIAS if name == "p" else name}
            return self.with_children(_json_attributes(obj, node.attributes, ()), node.children)
        if isinstance(node, HottextNode):
            obj = _json_attributes({"@type": "hottext"}, node.attributes, HOTTEXT_KEYS)
            return self.with_children(obj, node.content)
        if isinstance(node, UnknownContent):
            return self.unknown(node)
        if isinstance(node, Interaction):
            return self.interaction(node)
        raise TypeError(f"Unexpected content node: {type(node).__name__}")

    def interaction(self, interaction: Interaction) -> Optional[Any]:
        if isinstance(interaction, UnknownInteraction):
            return self.unknown(UnknownContent(interaction.tag, interaction.raw, interaction.syntax))

        obj = _json_attributes({"@type": interaction.TAG}, interaction.attributes, INTERACTION_KEYS)
        prompt = getattr(interaction, "prompt", None)
        if prompt is not None:
            obj["prompt"] = text_of(prompt)
        if isinstance(interaction, (ChoiceInteraction, MultipleResponseInteraction, OrderInteraction)):
            choices = []
            for choice in interaction.choices:
                choice_obj = _json_attributes({}, choice.attributes, CHOICE_KEYS)
                if choice.text:
                    choice_obj["text"] = choice.text
                self.member_extras(choice_obj, choice.extras)
                choices.append(choice_obj)
            obj["choices"] = choices
        elif isinstance(interaction, HottextInteraction):
            obj["content"] = self.nodes(interaction.content)
        elif not isinstance(interaction, (TextEntryInteraction, ExtendedTextInteraction, SliderInteraction)):
            raise TypeError(f"Unexpected interaction: {type(interaction).__name__}")
        plain, members = self.split_members(interaction.extras)
        extras = self.nodes(plain)
        if extras:
            obj["extras"] = extras
        self.member_extras(obj, members)
        return obj


# ─────────────────────────────────────────────────────────────────────────────
# Conversion
# ─────────────────────────────────────────────────────────────────────────────


def _is_namespace_attribute(name: str) -> bool:
    return name == "xmlns" or name.startswith("xmlns:") or name.startswith("xsi:")


def _strip_namespaces(attributes: Attributes) -> Attributes:
    return tuple((name, value) for name, value in attributes if not _is_namespace_attribute(name))


def convert(
    raw_text: str,
    target_format: Union[Format, str],
    *,
    config: Optional[EngineConfig] = None,
) -> str:
    """
    Convert a document to the other syntax.

    The result is always a version 3.0 document; namespace declarations
    are dropped going to JSON and added going to markup.

    Raises:
        ConversionError: If the source text has syntax errors
    """
    config = config or DEFAULT_CONFIG
    target = Format(str(target_format).lower())
    result = parse(raw_text, config=config)
    if result.errors:
        raise ConversionError(f"Cannot convert a document with errors: {result.errors[0]}")
    if result.format is target:
        return raw_text

    items = result.items
    test = result.test
    if target is Format.STRUCTURED:
        items = [dataclasses.replace(i, attributes=_strip_namespaces(i.attributes)) for i in items]
        if test is not None:
            test = dataclasses.replace(test, attributes=_strip_namespaces(test.attributes))
    logger.info(f"Converting {len(items)} items from {result.format.name.lower()} to {target.name.lower()}")
    return serialize(items, target, version=SpecVersion.V3_0, test=test, config=config)

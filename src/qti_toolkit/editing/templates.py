"""
Module: editing.templates

Purpose:
    Minimal, valid starter items for every supported interaction kind,
    plus the blank starter document. Output parses with no errors and no
    unsupported elements in either syntax.

Key Functions:
    - generate(): Starter item text for an interaction kind
    - new_item_id(): Fresh unique item identifier
    - blank_document(): Starter document for a new file

Key Classes:
    - TemplateError: Unknown kind or impossible format/version pair

Dependencies:
    - qti_toolkit.core.vocabulary: Namespaces and template URLs
    - qti_toolkit.parsing: Re-reads the markup for JSON output
    - .serializer: JSON output via serialize()
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from html import escape
from typing import Callable, Dict, Union

from qti_toolkit.core.models import (
    ElementNode,
    Format,
    HottextInteraction,
    InteractionKind,
    ItemDocument,
    SpecVersion,
    TextNode,
)
from qti_toolkit.core.vocabulary import (
    MATCH_CORRECT,
    XSI_NAMESPACE,
    namespace_for,
    schema_location_for,
    template_url,
)
from qti_toolkit.parsing import parse
from .serializer import XML_DECLARATION, serialize

logger = logging.getLogger(__name__)

SUPPORTED_KINDS = (
    InteractionKind.CHOICE,
    InteractionKind.MULTIPLE_RESPONSE,
    InteractionKind.TEXT_ENTRY,
    InteractionKind.EXTENDED_TEXT,
    InteractionKind.HOTTEXT,
    InteractionKind.SLIDER,
    InteractionKind.ORDER,
)

BLANK_ITEM_ID = "sample-item"


class TemplateError(Exception):
    """Template cannot be generated for the requested kind/format/version."""
    pass


def new_item_id() -> str:
    """
    Unique item identifier.

    Example:
        >>> new_item_id()  # doctest: +SKIP
        'item-3f2a9c1b7d4e'
    """
    return f"item-{uuid.uuid4().hex[:12]}"


# ─────────────────────────────────────────────────────────────────────────────
# Markup building blocks
# ─────────────────────────────────────────────────────────────────────────────


def _declaration(cardinality: str, base_type: str, values=()) -> str:
    if not values:
        return (
            f'  <responseDeclaration identifier="RESPONSE" cardinality="{cardinality}" '
            f'baseType="{base_type}"/>'
        )
    lines = "\n".join(f"      <value>{escape(v)}</value>" for v in values)
    return (
        f'  <responseDeclaration identifier="RESPONSE" cardinality="{cardinality}" baseType="{base_type}">\n'
        f"    <correctResponse>\n{lines}\n    </correctResponse>\n"
        f"  </responseDeclaration>"
    )


def _choices(labels: Dict[str, str]) -> str:
    return "\n".join(
        f'        <simpleChoice identifier="{ident}">{escape(text)}</simpleChoice>'
        for ident, text in labels.items()
    )


_FOUR_OPTIONS = {"ChoiceA": "Option A", "ChoiceB": "Option B", "ChoiceC": "Option C", "ChoiceD": "Option D"}


def _choice() -> tuple:
    body = (
        "      <p>Enter your question text here.</p>\n"
        '      <choiceInteraction responseIdentifier="RESPONSE" shuffle="false" maxChoices="1">\n'
        "        <prompt>Select the correct answer:</prompt>\n"
        f"{_choices(_FOUR_OPTIONS)}\n"
        "      </choiceInteraction>"
    )
    return "Multiple Choice Question", _declaration("single", "identifier", ("ChoiceA",)), body


def _multiple_response() -> tuple:
    body = (
        "      <p>Enter your question text here.</p>\n"
        '      <choiceInteraction responseIdentifier="RESPONSE" shuffle="false" maxChoices="0">\n'
        "        <prompt>Select all correct answers:</prompt>\n"
        f"{_choices(_FOUR_OPTIONS)}\n"
        "      </choiceInteraction>"
    )
    return (
        "Multiple Response Question",
        _declaration("multiple", "identifier", ("ChoiceA", "ChoiceC")),
        body,
    )


def _text_entry() -> tuple:
    body = (
        "      <p>Complete the sentence: The capital of France is "
        '<textEntryInteraction responseIdentifier="RESPONSE" expectedLength="10"/>.</p>'
    )
    return "Fill in the Blank", _declaration("single", "string", ("Paris",)), body


def _extended_text() -> tuple:
    body = (
        "      <p>Explain your understanding of the topic in detail:</p>\n"
        '      <extendedTextInteraction responseIdentifier="RESPONSE" expectedLines="5"/>'
    )
    return "Extended Text Response", _declaration("single", "string"), body


def _hottext() -> tuple:
    body = (
        "      <p>Select the correct word in the following sentence:</p>\n"
        '      <hottextInteraction responseIdentifier="RESPONSE" maxChoices="1">\n'
        '        <p>The <hottext identifier="H1">sun</hottext> is a '
        '<hottext identifier="H2">star</hottext> that provides '
        '<hottext identifier="H3">light</hottext> to Earth.</p>\n'
        "      </hottextInteraction>"
    )
    return "Hottext Selection", _declaration("single", "identifier", ("H2",)), body


def _slider() -> tuple:
    body = (
        "      <p>Use the slider to select your answer (0-100):</p>\n"
        '      <sliderInteraction responseIdentifier="RESPONSE" lowerBound="0" upperBound="100" '
        'step="1" stepLabel="true"/>'
    )
    return "Slider Question", _declaration("single", "integer", ("50",)), body


def _order() -> tuple:
    labels = {"ChoiceA": "First item", "ChoiceB": "Second item", "ChoiceC": "Third item"}
    body = (
        "      <p>Arrange the following items in the correct order:</p>\n"
        '      <orderInteraction responseIdentifier="RESPONSE" shuffle="true">\n'
        "        <prompt>Drag to reorder:</prompt>\n"
        f"{_choices(labels)}\n"
        "      </orderInteraction>"
    )
    return (
        "Order Interaction",
        _declaration("ordered", "identifier", ("ChoiceA", "ChoiceB", "ChoiceC")),
        body,
    )


_BUILDERS: Dict[InteractionKind, Callable[[], tuple]] = {
    InteractionKind.CHOICE: _choice,
    InteractionKind.MULTIPLE_RESPONSE: _multiple_response,
    InteractionKind.TEXT_ENTRY: _text_entry,
    InteractionKind.EXTENDED_TEXT: _extended_text,
    InteractionKind.HOTTEXT: _hottext,
    InteractionKind.SLIDER: _slider,
    InteractionKind.ORDER: _order,
}


def _markup_item(version: SpecVersion, item_id: str, title: str, declaration: str, body: str) -> str:
    namespace = namespace_for(version)
    return (
        f"{XML_DECLARATION}\n"
        f'<assessmentItem xmlns="{namespace}"\n'
        f'                xmlns:xsi="{XSI_NAMESPACE}"\n'
        f'                xsi:schemaLocation="{namespace} {schema_location_for(version)}"\n'
        f'                identifier="{escape(item_id)}"\n'
        f'                title="{escape(title)}"\n'
        f'                adaptive="false"\n'
        f'                timeDependent="false">\n'
        f"{declaration}\n"
        f'  <outcomeDeclaration identifier="SCORE" cardinality="single" baseType="float">\n'
        f"    <defaultValue>\n"
        f"      <value>0</value>\n"
        f"    </defaultValue>\n"
        f"  </outcomeDeclaration>\n"
        f"  <itemBody>\n"
        f"    <div>\n"
        f"{body}\n"
        f"    </div>\n"
        f"  </itemBody>\n"
        f'  <responseProcessing template="{template_url(version, MATCH_CORRECT)}"/>\n'
        f"</assessmentItem>\n"
    )


def _without_layout(nodes) -> tuple:
    """Drop whitespace-only text between block-level nodes."""
    return tuple(n for n in nodes if not (isinstance(n, TextNode) and not n.text.strip()))


def _compact(item: ItemDocument) -> ItemDocument:
    body = _without_layout(item.body)
    if len(body) == 1 and isinstance(body[0], ElementNode) and body[0].local_name == "div":
        body = _without_layout(body[0].children)
    body = tuple(
        replace(node, content=_without_layout(node.content)) if isinstance(node, HottextInteraction) else node
        for node in body
    )
    return replace(item, body=body)


def _structured(markup: str) -> str:
    """JSON form of a markup template without its indentation or wrapper div."""
    items = [_compact(item) for item in parse(markup, Format.MARKUP).items]
    return serialize(items, Format.STRUCTURED)


def _check_pair(fmt: Format, version: SpecVersion) -> None:
    if fmt is Format.STRUCTURED and version is SpecVersion.V2_1:
        raise TemplateError("JSON syntax is only defined for version 3.0")


def generate(
    kind: Union[InteractionKind, str],
    new_id: str,
    format: Union[Format, str] = Format.MARKUP,
    version: Union[SpecVersion, str] = SpecVersion.V3_0,
) -> str:
    """
    Generate a minimal item of ``kind``.

    Args:
        kind: Interaction kind, e.g. ``"choice"`` or ``InteractionKind.SLIDER``
        new_id: Identifier of the new item (see new_item_id())
        format: Target syntax
        version: Target version; JSON requires 3.0

    Returns:
        Item text that parses with no errors and no unsupported elements

    Raises:
        TemplateError: If ``kind`` is not a supported interaction kind, or
            JSON is requested at version 2.1

    Example:
        >>> text = generate("slider", new_item_id())
    """
    try:
        kind = InteractionKind(str(kind))
        fmt = Format(str(format).lower())
        version = SpecVersion(str(version))
    except ValueError as e:
        raise TemplateError(str(e)) from None
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise TemplateError(f"No template for interaction kind {kind.value!r}")
    _check_pair(fmt, version)
    if not new_id or any(ch.isspace() for ch in new_id):
        raise TemplateError(f"Invalid item identifier {new_id!r}")

    title, declaration, body = builder()
    markup = _markup_item(version, new_id, title, declaration, body)
    logger.debug(f"Generated {kind.value} item {new_id!r} ({fmt.value}, {version.value})")
    if fmt is Format.STRUCTURED:
        return _structured(markup)
    return markup


def blank_document(
    format: Union[Format, str] = Format.MARKUP,
    version: Union[SpecVersion, str] = SpecVersion.V3_0,
) -> str:
    """
    Starter document for a new file: one multiple-choice item.

    Raises:
        TemplateError: If JSON is requested at version 2.1
    """
    fmt = Format(str(format).lower())
    version = SpecVersion(str(version))
    _check_pair(fmt, version)
    title, declaration, body = _choice()
    markup = _markup_item(version, BLANK_ITEM_ID, f"New QTI {version.value} Item", declaration, body)
    if fmt is Format.STRUCTURED:
        return _structured(markup)
    return markup

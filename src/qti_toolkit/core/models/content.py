"""
Module: content

Purpose:
    Static content nodes of an item body. Recognised XHTML-like elements
    become ElementNode trees; anything outside the vocabulary is kept as
    UnknownContent carrying its raw source fragment verbatim so that a
    serialize-without-edit reproduces it exactly.

Key Classes:
    - TextNode: Character data (entity-decoded)
    - ElementNode: Recognised static element with children
    - UnknownContent: Unrecognised fragment, raw source verbatim
    - HottextNode: Selectable span inside a hottext interaction

Key Functions:
    - get_attribute(): Look up an attribute in an attribute tuple
    - text_of(): Flatten content nodes to plain text

Dependencies:
    - dataclasses (std)
    - .enums: Format

Used By:
    - core.models.interactions
    - core.models.items
    - parsing.builder, editing.serializer
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional, Tuple, Union

from .enums import Format

if TYPE_CHECKING:
    from .interactions import Interaction


# Attributes are kept in source order as (name, value) pairs so the
# serializer can re-emit them exactly.
Attributes = Tuple[Tuple[str, str], ...]


def get_attribute(attributes: Attributes, name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Return the value of attribute ``name`` or ``default``.

    Names are matched on their local part, so ``xml:lang`` is found
    by ``"xml:lang"`` and a prefixed ``qti:identifier`` by ``"identifier"``.
    """
    for key, value in attributes:
        if key == name:
            return value
    for key, value in attributes:
        if ":" in key and key.rsplit(":", 1)[1] == name and ":" not in name:
            return value
    return default


@dataclass(frozen=True, slots=True)
class TextNode:
    """Character data with entities decoded."""

    text: str


@dataclass(frozen=True, slots=True)
class ElementNode:
    """A recognised static content element (paragraph, image, table cell, ...)."""

    tag: str
    attributes: Attributes = ()
    children: Tuple[ContentNode, ...] = ()

    @property
    def local_name(self) -> str:
        return self.tag.rsplit(":", 1)[-1]


@dataclass(frozen=True, slots=True)
class UnknownContent:
    """
    A fragment the engine does not model.

    Attributes:
        tag: Element name (markup) or ``@type``/key name (JSON)
        raw: Source text of the fragment, byte-for-byte
        syntax: Which surface syntax ``raw`` is written in
        member: JSON object member kept under its key ``tag`` rather
            than as an entry of a content list
    """

    tag: str
    raw: str
    syntax: Format = Format.MARKUP
    member: bool = False


@dataclass(frozen=True, slots=True)
class HottextNode:
    """A selectable span inside a hottext interaction."""

    identifier: str
    content: Tuple[ContentNode, ...] = ()
    attributes: Attributes = ()

    @property
    def text(self) -> str:
        return text_of(self.content)


ContentNode = Union[TextNode, ElementNode, UnknownContent, HottextNode, "Interaction"]


def text_of(nodes: Iterable[ContentNode], *, include_interactions: bool = False) -> str:
    """
    Flatten content nodes to plain text.

    Unknown fragments contribute nothing. Interactions are skipped unless
    ``include_interactions`` is set, in which case their prompt and choice
    text is included.

    Args:
        nodes: Content nodes to flatten
        include_interactions: Whether to descend into interactions

    Returns:
        Concatenated text of all text-bearing nodes
    """
    from .interactions import Interaction, HottextInteraction

    parts = []
    for node in nodes:
        if isinstance(node, TextNode):
            parts.append(node.text)
        elif isinstance(node, ElementNode):
            parts.append(text_of(node.children, include_interactions=include_interactions))
        elif isinstance(node, HottextNode):
            parts.append(node.text)
        elif isinstance(node, Interaction) and include_interactions:
            prompt = getattr(node, "prompt", None)
            if prompt:
                parts.append(text_of(prompt))
            if isinstance(node, HottextInteraction):
                parts.append(text_of(node.content))
            for choice in getattr(node, "choices", ()):
                parts.append(choice.text)
    return "".join(parts)

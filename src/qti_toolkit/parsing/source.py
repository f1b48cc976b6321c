"""
Module: parsing.source

Purpose:
    A syntax-neutral view of one source element: tag, attribute pairs,
    children (elements or decoded text) and the raw source fragment.
    Both front ends translate into this view so that a single builder
    produces the document model for markup and JSON alike.

Key Classes:
    - SourceElement: Neutral element view

Key Functions:
    - from_markup(): Convert a MarkupElement subtree
    - text_content(): Concatenated text of a SourceElement

Dependencies:
    - qti_toolkit.core.models: Attributes, Format
    - .markup_tree: MarkupElement, MarkupText
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from qti_toolkit.core.models import Attributes, Format, get_attribute
from .markup_tree import MarkupElement, MarkupText


@dataclass(eq=False)
class SourceElement:
    """
    One element as seen by the item builder.

    Attributes:
        tag: Element name, or ``@type``/member key for JSON
        attributes: Attribute pairs in source order
        children: Child elements and text strings
        raw: Verbatim source fragment of the whole element
        syntax: Surface syntax ``raw`` is written in
        member: A JSON member outside the vocabulary, kept under its key
    """

    tag: str
    attributes: Attributes = ()
    children: List[Union[SourceElement, str]] = field(default_factory=list)
    raw: str = ""
    syntax: Format = Format.MARKUP
    member: bool = False

    @property
    def local_name(self) -> str:
        return self.tag.rsplit(":", 1)[-1]

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return get_attribute(self.attributes, name, default)

    def elements(self) -> Iterator[SourceElement]:
        for child in self.children:
            if isinstance(child, SourceElement):
                yield child


def _convert_shallow(element: MarkupElement, source: str) -> SourceElement:
    return SourceElement(
        tag=element.tag,
        attributes=element.attribute_pairs(),
        raw=source[element.start:element.end],
        syntax=Format.MARKUP,
    )


def from_markup(element: MarkupElement, source: str) -> SourceElement:
    """
    Convert a markup subtree. Adjacent text runs (split by comments or
    CDATA sections) are merged into one string.
    """
    root = _convert_shallow(element, source)
    stack = [(element, root)]
    while stack:
        markup, converted = stack.pop()
        children = converted.children
        for child in markup.children:
            if isinstance(child, MarkupText):
                if children and isinstance(children[-1], str):
                    children[-1] += child.text
                else:
                    children.append(child.text)
            else:
                nested = _convert_shallow(child, source)
                children.append(nested)
                stack.append((child, nested))
    return root


def text_content(element: SourceElement) -> str:
    """All text inside ``element``, in order."""
    parts = []
    stack: List[Union[SourceElement, str]] = [element]
    while stack:
        current = stack.pop()
        if isinstance(current, str):
            parts.append(current)
        else:
            stack.extend(reversed(current.children))
    return "".join(parts)

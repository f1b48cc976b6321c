"""
Module: interactions

Purpose:
    The closed set of interaction variants. Each variant is a frozen
    dataclass carrying only the fields meaningful to its kind; the
    original attributes are kept alongside so the serializer can re-emit
    them unchanged. UnknownInteraction holds the tag and raw fragment of
    any interaction outside the vocabulary and never invents fields.

Key Classes:
    - Interaction: Marker base for all variants
    - Choice: One option of a choice/order interaction
    - ChoiceInteraction, MultipleResponseInteraction
    - TextEntryInteraction, ExtendedTextInteraction
    - HottextInteraction, SliderInteraction, OrderInteraction
    - UnknownInteraction

Key Functions:
    - interaction_kind(): Kind tag for an interaction

Dependencies:
    - dataclasses (std)
    - .content, .enums

Used By:
    - parsing.builder: Constructs variants
    - editing.serializer: Emits variants
    - scoring.engine: Dispatches on variants
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

from .content import Attributes, ContentNode, ElementNode, HottextNode, UnknownContent, text_of
from .enums import Format, InteractionKind


class Interaction:
    """Marker base class; concrete variants below are the only subclasses."""

    __slots__ = ()

    KIND: ClassVar[InteractionKind] = InteractionKind.UNKNOWN
    TAG: ClassVar[str] = ""


@dataclass(frozen=True, slots=True)
class Choice:
    """
    One option of a choice or order interaction.

    Attributes:
        identifier: Value submitted when this option is selected
        content: Option content (usually a single TextNode)
        is_fixed: Whether the option keeps its position under shuffle
        attributes: Original attributes of the option element
        extras: Unknown JSON members of the option
    """

    identifier: str
    content: Tuple[ContentNode, ...] = ()
    is_fixed: bool = False
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()

    @property
    def text(self) -> str:
        return text_of(self.content)


@dataclass(frozen=True, slots=True)
class ChoiceInteraction(Interaction):
    """Single-selection choice list (maxChoices == 1)."""

    KIND: ClassVar[InteractionKind] = InteractionKind.CHOICE
    TAG: ClassVar[str] = "choiceInteraction"

    response_identifier: Optional[str] = None
    choices: Tuple[Choice, ...] = ()
    shuffle: bool = False
    max_choices: int = 1
    min_choices: int = 0
    prompt: Optional[Tuple[ContentNode, ...]] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class MultipleResponseInteraction(Interaction):
    """Multi-selection choice list (maxChoices != 1, 0 meaning unlimited)."""

    KIND: ClassVar[InteractionKind] = InteractionKind.MULTIPLE_RESPONSE
    TAG: ClassVar[str] = "choiceInteraction"

    response_identifier: Optional[str] = None
    choices: Tuple[Choice, ...] = ()
    shuffle: bool = False
    max_choices: int = 0
    min_choices: int = 0
    prompt: Optional[Tuple[ContentNode, ...]] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class TextEntryInteraction(Interaction):
    """Inline short-answer box."""

    KIND: ClassVar[InteractionKind] = InteractionKind.TEXT_ENTRY
    TAG: ClassVar[str] = "textEntryInteraction"

    response_identifier: Optional[str] = None
    expected_length: Optional[int] = None
    pattern_mask: Optional[str] = None
    placeholder: Optional[str] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class ExtendedTextInteraction(Interaction):
    """Free-text answer; always scored manually."""

    KIND: ClassVar[InteractionKind] = InteractionKind.EXTENDED_TEXT
    TAG: ClassVar[str] = "extendedTextInteraction"

    response_identifier: Optional[str] = None
    expected_lines: Optional[int] = None
    expected_length: Optional[int] = None
    prompt: Optional[Tuple[ContentNode, ...]] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class HottextInteraction(Interaction):
    """Passage with selectable hottext spans."""

    KIND: ClassVar[InteractionKind] = InteractionKind.HOTTEXT
    TAG: ClassVar[str] = "hottextInteraction"

    response_identifier: Optional[str] = None
    content: Tuple[ContentNode, ...] = ()
    max_choices: int = 0
    min_choices: int = 0
    prompt: Optional[Tuple[ContentNode, ...]] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()

    @property
    def hottexts(self) -> Tuple[HottextNode, ...]:
        """All hottext spans in document order."""
        found = []
        stack = list(reversed(self.content))
        while stack:
            node = stack.pop()
            if isinstance(node, HottextNode):
                found.append(node)
            elif isinstance(node, ElementNode):
                stack.extend(reversed(node.children))
        return tuple(found)


@dataclass(frozen=True, slots=True)
class SliderInteraction(Interaction):
    """Numeric slider between two bounds."""

    KIND: ClassVar[InteractionKind] = InteractionKind.SLIDER
    TAG: ClassVar[str] = "sliderInteraction"

    response_identifier: Optional[str] = None
    lower_bound: float = 0.0
    upper_bound: float = 100.0
    step: float = 1.0
    step_label: bool = False
    orientation: Optional[str] = None
    prompt: Optional[Tuple[ContentNode, ...]] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class OrderInteraction(Interaction):
    """Put the choices into the correct sequence."""

    KIND: ClassVar[InteractionKind] = InteractionKind.ORDER
    TAG: ClassVar[str] = "orderInteraction"

    response_identifier: Optional[str] = None
    choices: Tuple[Choice, ...] = ()
    shuffle: bool = False
    orientation: Optional[str] = None
    prompt: Optional[Tuple[ContentNode, ...]] = None
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class UnknownInteraction(Interaction):
    """An interaction outside the vocabulary, kept verbatim."""

    KIND: ClassVar[InteractionKind] = InteractionKind.UNKNOWN

    tag: str = ""
    raw: str = ""
    syntax: Format = Format.MARKUP

    @property
    def response_identifier(self) -> None:
        return None


def interaction_kind(interaction: Interaction) -> InteractionKind:
    """Return the kind tag of ``interaction``."""
    return interaction.KIND

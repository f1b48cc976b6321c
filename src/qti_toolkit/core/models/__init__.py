"""
Core Models Package

Immutable data models for assessment items. Every model is a frozen
dataclass derived from raw text by the parser; nothing here has
behaviour beyond derived views.

| Model | Role |
|-------|------|
| `ItemDocument` | One assessment item |
| `ResponseDeclaration` | Declared response shape and correct values |
| `Interaction` variants | Closed union of interaction kinds |
| `UnsupportedElement` | Tally entry for unmodelled constructs |
| `ItemScore` / `TotalScore` | Scoring verdicts |
"""

from .enums import (
    BaseType,
    Cardinality,
    DiagnosticCode,
    Format,
    InteractionKind,
    SpecVersion,
)
from .content import (
    Attributes,
    ContentNode,
    ElementNode,
    HottextNode,
    TextNode,
    UnknownContent,
    get_attribute,
    text_of,
)
from .interactions import (
    Choice,
    ChoiceInteraction,
    ExtendedTextInteraction,
    HottextInteraction,
    Interaction,
    MultipleResponseInteraction,
    OrderInteraction,
    SliderInteraction,
    TextEntryInteraction,
    UnknownInteraction,
    interaction_kind,
)
from .declarations import MapEntry, Mapping, OutcomeDeclaration, ResponseDeclaration
from .items import (
    AssessmentSection,
    AssessmentTest,
    Diagnostic,
    ItemDocument,
    ResponseProcessing,
    TestPart,
    UnsupportedElement,
)
from .scores import ItemScore, ResponseValue, TotalScore

__all__ = [
    "BaseType",
    "Cardinality",
    "DiagnosticCode",
    "Format",
    "InteractionKind",
    "SpecVersion",
    "Attributes",
    "ContentNode",
    "ElementNode",
    "HottextNode",
    "TextNode",
    "UnknownContent",
    "get_attribute",
    "text_of",
    "Choice",
    "ChoiceInteraction",
    "ExtendedTextInteraction",
    "HottextInteraction",
    "Interaction",
    "MultipleResponseInteraction",
    "OrderInteraction",
    "SliderInteraction",
    "TextEntryInteraction",
    "UnknownInteraction",
    "interaction_kind",
    "MapEntry",
    "Mapping",
    "OutcomeDeclaration",
    "ResponseDeclaration",
    "AssessmentSection",
    "AssessmentTest",
    "Diagnostic",
    "ItemDocument",
    "ResponseProcessing",
    "TestPart",
    "UnsupportedElement",
    "ItemScore",
    "ResponseValue",
    "TotalScore",
]

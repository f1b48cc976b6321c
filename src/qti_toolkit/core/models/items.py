"""
Module: items

Purpose:
    The ItemDocument - one assessment item as a typed, immutable
    projection of its raw text - plus the supporting diagnostic,
    unsupported-element and response-processing records, and the
    assessment test metadata returned alongside item lists.

Key Classes:
    - Diagnostic: Semantic warning attached to an item
    - UnsupportedElement: Aggregated tally entry for one unknown kind
    - ResponseProcessing: Template reference or opaque rule set
    - ItemDocument: One assessment item
    - AssessmentTest, TestPart, AssessmentSection: Test wrapper metadata

Dependencies:
    - dataclasses (std)
    - .content, .declarations, .enums, .interactions

Used By:
    - parsing.builder: Constructs ItemDocuments
    - editing.serializer: Regenerates text from ItemDocuments
    - scoring.engine: Reads declarations and response processing

Design Notes:
    Raw text is the single source of truth. An ItemDocument is never
    mutated; edits go through text splices and a fresh parse.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from .content import Attributes, ContentNode, ElementNode, UnknownContent, text_of
from .declarations import OutcomeDeclaration, ResponseDeclaration
from .enums import Cardinality, DiagnosticCode, Format, InteractionKind, SpecVersion
from .interactions import ExtendedTextInteraction, Interaction, UnknownInteraction

SCORE_OUTCOME = "SCORE"
DEFAULT_RESPONSE_IDENTIFIER = "RESPONSE"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A semantic warning. Never blocks rendering or scoring."""

    code: DiagnosticCode
    message: str

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


@dataclass(frozen=True, slots=True)
class UnsupportedElement:
    """
    Tally entry for one unsupported construct kind.

    Repeated occurrences of the same kind collapse into one entry with
    an incrementing count.
    """

    kind: str
    count: int
    description: str

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError(f"count must be positive: {self.count}")

    def to_dict(self) -> dict:
        return {"kind": self.kind, "count": self.count, "description": self.description}


@dataclass(frozen=True, slots=True)
class ResponseProcessing:
    """
    Response processing of an item.

    Attributes:
        template: Template URL when one is referenced
        rules: Explicit rules, opaque and kept verbatim
        attributes: Original attributes of the element
    """

    template: Optional[str] = None
    rules: Tuple[UnknownContent, ...] = ()
    attributes: Attributes = ()

    @property
    def is_custom(self) -> bool:
        return self.template is None


@dataclass(frozen=True, slots=True)
class ItemDocument:
    """
    One assessment item.

    Attributes:
        identifier: Item identifier (generated when missing, with a warning)
        title: Author-facing title
        format: Surface syntax the item was parsed from
        spec_version: QTI version of the source document
        response_declarations: Declarations in source order
        outcome_declarations: Outcome declarations in source order
        body: Content of the item body
        response_processing: Template/rules, or None when absent
        unsupported_elements: Tally of constructs in this item the engine
            does not model
        warnings: Semantic diagnostics
        attributes: Original root attributes, re-emitted verbatim
        body_attributes: Original attributes of the item body
        extras: Unmodelled item-level children, kept verbatim

    Invariants:
        - Every interaction's response identifier should name a declaration;
          violations are reported in ``warnings``
    """

    identifier: str
    title: str
    format: Format
    spec_version: SpecVersion
    response_declarations: Tuple[ResponseDeclaration, ...] = ()
    outcome_declarations: Tuple[OutcomeDeclaration, ...] = ()
    body: Tuple[ContentNode, ...] = ()
    response_processing: Optional[ResponseProcessing] = None
    unsupported_elements: Tuple[UnsupportedElement, ...] = ()
    warnings: Tuple[Diagnostic, ...] = ()
    attributes: Attributes = ()
    body_attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()

    # ─────────────────────────────────────────────────────────────────────────
    # Derived views
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def interactions(self) -> Tuple[Interaction, ...]:
        """All interactions in body order, including nested ones."""
        return tuple(_iter_interactions(self.body))

    @property
    def primary_interaction(self) -> Optional[Interaction]:
        """First supported interaction, else the first interaction of any kind."""
        interactions = self.interactions
        for interaction in interactions:
            if not isinstance(interaction, UnknownInteraction):
                return interaction
        return interactions[0] if interactions else None

    @property
    def kind(self) -> InteractionKind:
        primary = self.primary_interaction
        return primary.KIND if primary is not None else InteractionKind.UNKNOWN

    @property
    def prompt(self) -> str:
        """Body text without interactions, whitespace collapsed."""
        return " ".join(text_of(self.body).split())

    @property
    def requires_free_text(self) -> bool:
        return any(isinstance(i, ExtendedTextInteraction) for i in self.interactions)

    def declaration(self, identifier: str) -> Optional[ResponseDeclaration]:
        """Return the response declaration named ``identifier``."""
        for decl in self.response_declarations:
            if decl.identifier == identifier:
                return decl
        return None

    def outcome(self, identifier: str) -> Optional[OutcomeDeclaration]:
        for decl in self.outcome_declarations:
            if decl.identifier == identifier:
                return decl
        return None

    @property
    def primary_declaration(self) -> Optional[ResponseDeclaration]:
        """
        Declaration scored for this item.

        The primary interaction's declaration, else ``RESPONSE``, else the
        first declaration.
        """
        primary = self.primary_interaction
        rid = getattr(primary, "response_identifier", None) if primary is not None else None
        for candidate in (rid, DEFAULT_RESPONSE_IDENTIFIER):
            if candidate:
                decl = self.declaration(candidate)
                if decl is not None:
                    return decl
        return self.response_declarations[0] if self.response_declarations else None

    @property
    def declared_max_score(self) -> Optional[float]:
        """
        Maximum score as declared by the item, or None.

        Resolution order: SCORE normalMaximum, mapping upperBound, then the
        positive mapped values (summed for multiple/ordered, largest for
        single).
        """
        score = self.outcome(SCORE_OUTCOME)
        if score is not None and score.normal_maximum is not None and score.normal_maximum > 0:
            return score.normal_maximum
        decl = self.primary_declaration
        if decl is None or decl.mapping is None:
            return None
        mapping = decl.mapping
        if mapping.upper_bound is not None and mapping.upper_bound > 0:
            return mapping.upper_bound
        if decl.cardinality in (Cardinality.MULTIPLE, Cardinality.ORDERED):
            total = mapping.positive_total
        else:
            total = mapping.positive_max
        return total if total > 0 else None


def _iter_interactions(nodes) -> Iterator[Interaction]:
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        if isinstance(node, Interaction):
            yield node
        elif isinstance(node, ElementNode):
            stack.extend(reversed(node.children))


# ─────────────────────────────────────────────────────────────────────────────
# Assessment test wrapper
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AssessmentSection:
    """A section of a test; lists the identifiers of the items it holds."""

    identifier: str
    title: str = ""
    item_identifiers: Tuple[str, ...] = ()
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class TestPart:
    """A part of a test, grouping sections."""

    __test__ = False  # not a pytest class

    identifier: str
    sections: Tuple[AssessmentSection, ...] = ()
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()


@dataclass(frozen=True, slots=True)
class AssessmentTest:
    """Metadata of an ``assessmentTest`` wrapper. Items are returned separately."""

    identifier: str
    title: str = ""
    parts: Tuple[TestPart, ...] = ()
    attributes: Attributes = ()
    extras: Tuple[UnknownContent, ...] = ()

    @property
    def sections(self) -> Tuple[AssessmentSection, ...]:
        return tuple(section for part in self.parts for section in part.sections)

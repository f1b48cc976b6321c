"""
Module: parsing.builder

Purpose:
    Build ItemDocuments from syntax-neutral SourceElements. This is the
    one place that interprets the vocabulary: declarations, interactions,
    static content and response processing. Unknown constructs become
    Unknown nodes and are tallied; semantic problems become warnings.

Key Classes:
    - ItemBuilder: Builds one ItemDocument from an item element
    - UnsupportedTally: Aggregates unsupported constructs by kind

Dependencies:
    - qti_toolkit.core.models: Model dataclasses
    - qti_toolkit.core.vocabulary: Recognised tags and descriptions
    - qti_toolkit.core.values: Base-type checks for declared values
    - .source: SourceElement

Used By:
    - parsing.markup: Markup front end
    - parsing.structured: JSON front end
"""

from __future__ import annotations

import dataclasses
import logging
import math
from html import escape
from typing import Dict, Iterable, List, Optional, Tuple

from qti_toolkit.config import EngineConfig
from qti_toolkit.core.models import (
    BaseType,
    Cardinality,
    Choice,
    ChoiceInteraction,
    ContentNode,
    Diagnostic,
    DiagnosticCode,
    ElementNode,
    ExtendedTextInteraction,
    Format,
    HottextInteraction,
    HottextNode,
    Interaction,
    ItemDocument,
    MapEntry,
    Mapping,
    MultipleResponseInteraction,
    OrderInteraction,
    OutcomeDeclaration,
    ResponseDeclaration,
    ResponseProcessing,
    SliderInteraction,
    SpecVersion,
    TextEntryInteraction,
    TextNode,
    UnknownContent,
    UnknownInteraction,
    UnsupportedElement,
)
from qti_toolkit.core.models.items import DEFAULT_RESPONSE_IDENTIFIER
from qti_toolkit.core.values import is_valid_value
from qti_toolkit.core.vocabulary import STATIC_TAGS, describe_unsupported, is_interaction_tag
from .source import SourceElement, text_content

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Item"


class UnsupportedTally:
    """
    Counts unsupported constructs by kind, preserving first-seen order.

    Example:
        >>> tally = UnsupportedTally()
        >>> tally.add("matchInteraction"); tally.add("matchInteraction")
        >>> tally.entries()[0].count
        2
    """

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}

    def add(self, kind: str, count: int = 1) -> None:
        self._counts[kind] = self._counts.get(kind, 0) + count

    def merge(self, entries: Iterable[UnsupportedElement]) -> None:
        for entry in entries:
            self.add(entry.kind, entry.count)

    def entries(self) -> Tuple[UnsupportedElement, ...]:
        return tuple(
            UnsupportedElement(kind, count, describe_unsupported(kind))
            for kind, count in self._counts.items()
        )

    def __len__(self) -> int:
        return len(self._counts)


def parse_bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() == "true"


class ItemBuilder:
    """
    Builds one ItemDocument. Create a fresh builder per item.

    Args:
        fmt: Surface syntax of the source
        version: Specification version of the document
        config: Engine configuration

    Example:
        >>> item, errors = ItemBuilder(Format.MARKUP, SpecVersion.V3_0, config).build(element, 0)
    """

    def __init__(self, fmt: Format, version: SpecVersion, config: EngineConfig):
        self.format = fmt
        self.version = version
        self.config = config
        self._warnings: List[Diagnostic] = []
        self._tally = UnsupportedTally()
        self._interaction_builders = {
            "choiceInteraction": self._choice_interaction,
            "textEntryInteraction": self._text_entry_interaction,
            "extendedTextInteraction": self._extended_text_interaction,
            "hottextInteraction": self._hottext_interaction,
            "sliderInteraction": self._slider_interaction,
            "orderInteraction": self._order_interaction,
        }

    def build(self, element: SourceElement, position: int) -> Tuple[Optional[ItemDocument], List[str]]:
        """
        Build the item at ``position`` (0-based) in its document.

        Returns:
            (item, errors): item is None when the element cannot be
            modelled, in which case errors explains why
        """
        identifier = (element.get("identifier") or "").strip()
        if not identifier:
            identifier = f"item-{position + 1}"
            self._warn(
                DiagnosticCode.MISSING_IDENTIFIER,
                f"Item {position + 1} has no identifier; using {identifier!r}",
            )
        title = element.get("title") or UNTITLED

        declarations: List[ResponseDeclaration] = []
        outcomes: List[OutcomeDeclaration] = []
        extras: List[UnknownContent] = []
        body: Optional[Tuple[ContentNode, ...]] = None
        body_attributes = ()
        processing: Optional[ResponseProcessing] = None

        for child in element.children:
            if isinstance(child, str):
                if child.strip():
                    extras.append(self._stray_text(child))
                continue
            name = child.local_name
            if name == "responseDeclaration":
                declarations.append(self._response_declaration(child))
            elif name == "outcomeDeclaration":
                outcomes.append(self._outcome_declaration(child))
            elif name == "itemBody" and body is None:
                body = self._content(child.children)
                body_attributes = child.attributes
            elif name == "itemBody":
                self._warn(DiagnosticCode.DUPLICATE_ITEM_BODY, f"Item {identifier!r} has more than one itemBody")
                extras.append(self._unknown(child))
            elif name == "responseProcessing" and processing is None:
                processing = self._response_processing(child)
            else:
                extras.append(self._unknown(child))

        if body is None:
            return None, [f"Item {identifier!r}: No itemBody found"]

        self._check_duplicates(declarations)
        item = ItemDocument(
            identifier=identifier,
            title=title,
            format=self.format,
            spec_version=self.version,
            response_declarations=tuple(declarations),
            outcome_declarations=tuple(outcomes),
            body=body,
            response_processing=processing,
            attributes=element.attributes,
            body_attributes=body_attributes,
            extras=tuple(extras),
        )
        self._check_references(item)
        logger.debug(
            f"Built item {identifier!r}: {len(item.interactions)} interactions, "
            f"{len(self._warnings)} warnings, {len(self._tally)} unsupported kinds"
        )
        return dataclasses.replace(
            item,
            unsupported_elements=self._tally.entries(),
            warnings=tuple(self._warnings),
        ), []

    # ─────────────────────────────────────────────────────────────────────────
    # Diagnostics
    # ─────────────────────────────────────────────────────────────────────────

    def _warn(self, code: DiagnosticCode, message: str) -> None:
        self._warnings.append(Diagnostic(code, message))

    def _unknown(self, element: SourceElement) -> UnknownContent:
        self._tally.add(element.local_name)
        return UnknownContent(element.tag, element.raw, element.syntax, member=element.member)

    def _stray_text(self, text: str) -> UnknownContent:
        return UnknownContent("#text", escape(text.strip(), quote=False), self.format)

    def _check_duplicates(self, declarations: List[ResponseDeclaration]) -> None:
        seen = set()
        for decl in declarations:
            if decl.identifier in seen:
                self._warn(
                    DiagnosticCode.DUPLICATE_DECLARATION,
                    f"Response declaration {decl.identifier!r} is declared more than once",
                )
            seen.add(decl.identifier)

    def _check_references(self, item: ItemDocument) -> None:
        declared = {decl.identifier for decl in item.response_declarations}
        for interaction in item.interactions:
            if isinstance(interaction, UnknownInteraction):
                continue
            rid = interaction.response_identifier
            if not rid:
                self._warn(
                    DiagnosticCode.DANGLING_RESPONSE_IDENTIFIER,
                    f"{interaction.TAG} has no responseIdentifier",
                )
            elif rid not in declared:
                self._warn(
                    DiagnosticCode.DANGLING_RESPONSE_IDENTIFIER,
                    f"{interaction.TAG} references undeclared response {rid!r}",
                )

    # ─────────────────────────────────────────────────────────────────────────
    # Numeric attributes
    # ─────────────────────────────────────────────────────────────────────────

    def _number(self, element: SourceElement, name: str, default, *, integer: bool = False):
        """Parse a numeric attribute; absent means ``default``, unparseable warns."""
        raw = element.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            value = int(raw.strip()) if integer else float(raw.strip())
        except ValueError:
            value = None
        if value is None or (not integer and not math.isfinite(value)):
            self._warn(
                DiagnosticCode.NUMERIC_ATTRIBUTE_DEFAULTED,
                f"{element.local_name} {name}={raw!r} is not a number; using {default}",
            )
            return default
        return value

    # ─────────────────────────────────────────────────────────────────────────
    # Declarations and processing
    # ─────────────────────────────────────────────────────────────────────────

    def _cardinality(self, element: SourceElement) -> Cardinality:
        raw = element.get("cardinality")
        cardinality = Cardinality.parse(raw)
        if cardinality is None:
            if raw is not None:
                self._warn(
                    DiagnosticCode.UNKNOWN_CARDINALITY,
                    f"{element.local_name} cardinality {raw!r} is not recognised; assuming single",
                )
            cardinality = Cardinality.SINGLE
        return cardinality

    def _base_type(self, element: SourceElement) -> Optional[BaseType]:
        raw = element.get("baseType")
        base_type = BaseType.parse(raw)
        if base_type is None and raw is not None:
            self._warn(
                DiagnosticCode.UNKNOWN_BASE_TYPE,
                f"{element.local_name} baseType {raw!r} is not recognised",
            )
        return base_type

    @staticmethod
    def _values(element: SourceElement) -> Tuple[str, ...]:
        return tuple(
            text_content(child).strip()
            for child in element.elements()
            if child.local_name == "value"
        )

    def _response_declaration(self, element: SourceElement) -> ResponseDeclaration:
        identifier = (element.get("identifier") or "").strip()
        if not identifier:
            identifier = DEFAULT_RESPONSE_IDENTIFIER
            self._warn(
                DiagnosticCode.MISSING_IDENTIFIER,
                f"responseDeclaration has no identifier; assuming {identifier!r}",
            )
        cardinality = self._cardinality(element)
        base_type = self._base_type(element)

        correct: Tuple[str, ...] = ()
        mapping: Optional[Mapping] = None
        extras: List[UnknownContent] = []
        for child in element.elements():
            name = child.local_name
            if name == "correctResponse":
                correct = self._values(child)
            elif name == "mapping":
                mapping = self._mapping(child)
            else:
                extras.append(self._unknown(child))

        if cardinality is Cardinality.SINGLE and len(correct) > 1:
            self._warn(
                DiagnosticCode.CARDINALITY_VIOLATION,
                f"Response {identifier!r} is single but declares {len(correct)} correct values",
            )
        for value in correct:
            if not is_valid_value(value, base_type):
                self._warn(
                    DiagnosticCode.VALUE_TYPE_MISMATCH,
                    f"Correct value {value!r} of {identifier!r} is not a valid {base_type or 'value'}",
                )

        return ResponseDeclaration(
            identifier=identifier,
            cardinality=cardinality,
            base_type=base_type,
            correct_response=correct,
            mapping=mapping,
            attributes=element.attributes,
            extras=tuple(extras),
        )

    def _mapping(self, element: SourceElement) -> Mapping:
        entries = []
        for child in element.elements():
            if child.local_name != "mapEntry":
                # mapping holds only mapEntry children
                self._tally.add(child.local_name)
                continue
            entries.append(MapEntry(
                map_key=child.get("mapKey", "") or "",
                mapped_value=self._number(child, "mappedValue", 0.0),
                case_sensitive=parse_bool(child.get("caseSensitive")),
                attributes=child.attributes,
            ))
        return Mapping(
            entries=tuple(entries),
            default_value=self._number(element, "defaultValue", 0.0),
            lower_bound=self._number(element, "lowerBound", None),
            upper_bound=self._number(element, "upperBound", None),
            attributes=element.attributes,
        )

    def _outcome_declaration(self, element: SourceElement) -> OutcomeDeclaration:
        default: Tuple[str, ...] = ()
        extras: List[UnknownContent] = []
        for child in element.elements():
            if child.local_name == "defaultValue":
                default = self._values(child)
            else:
                extras.append(self._unknown(child))
        return OutcomeDeclaration(
            identifier=(element.get("identifier") or "").strip(),
            cardinality=self._cardinality(element),
            base_type=self._base_type(element),
            default_value=default,
            normal_maximum=self._number(element, "normalMaximum", None),
            attributes=element.attributes,
            extras=tuple(extras),
        )

    @staticmethod
    def _response_processing(element: SourceElement) -> ResponseProcessing:
        template = (element.get("template") or "").strip() or None
        rules = tuple(
            UnknownContent(child.tag, child.raw, child.syntax, member=child.member)
            for child in element.elements()
        )
        return ResponseProcessing(template=template, rules=rules, attributes=element.attributes)

    # ─────────────────────────────────────────────────────────────────────────
    # Content
    # ─────────────────────────────────────────────────────────────────────────

    def _content(self, children, hottext: bool = False) -> Tuple[ContentNode, ...]:
        nodes: List[ContentNode] = []
        for child in children:
            if isinstance(child, str):
                if child:
                    nodes.append(TextNode(child))
                continue
            nodes.append(self._node(child, hottext))
        return tuple(nodes)

    def _node(self, element: SourceElement, hottext: bool) -> ContentNode:
        if element.member:
            return self._unknown(element)
        name = element.local_name
        builder = self._interaction_builders.get(name)
        if builder is not None:
            return builder(element)
        if is_interaction_tag(name):
            self._tally.add(name)
            return UnknownInteraction(tag=element.tag, raw=element.raw, syntax=element.syntax)
        if hottext and name == "hottext":
            return HottextNode(
                identifier=element.get("identifier", "") or "",
                content=self._content(element.children),
                attributes=element.attributes,
            )
        if name in STATIC_TAGS:
            return ElementNode(element.tag, element.attributes, self._content(element.children, hottext))
        return self._unknown(element)

    # ─────────────────────────────────────────────────────────────────────────
    # Interactions
    # ─────────────────────────────────────────────────────────────────────────

    def _interaction_parts(self, element: SourceElement, choice_tag: Optional[str] = None, with_prompt: bool = True):
        """Split interaction children into (prompt, choices, extras)."""
        prompt = None
        choices: List[Choice] = []
        extras: List[UnknownContent] = []
        for child in element.children:
            if isinstance(child, str):
                if child.strip():
                    extras.append(self._stray_text(child))
                continue
            name = child.local_name
            if child.member:
                extras.append(self._unknown(child))
            elif with_prompt and name == "prompt" and prompt is None:
                prompt = self._content(child.children)
            elif choice_tag is not None and name == choice_tag:
                choices.append(self._choice(child))
            else:
                extras.append(self._unknown(child))
        return prompt, tuple(choices), tuple(extras)

    def _choice(self, element: SourceElement) -> Choice:
        identifier = (element.get("identifier") or "").strip()
        if not identifier:
            self._warn(DiagnosticCode.MISSING_IDENTIFIER, f"{element.local_name} has no identifier")
        content = [c for c in element.children if not (isinstance(c, SourceElement) and c.member)]
        extras = [self._unknown(c) for c in element.elements() if c.member]
        return Choice(
            identifier=identifier,
            content=self._content(content),
            is_fixed=parse_bool(element.get("fixed")),
            attributes=element.attributes,
            extras=tuple(extras),
        )

    def _choice_interaction(self, element: SourceElement) -> Interaction:
        prompt, choices, extras = self._interaction_parts(element, "simpleChoice")
        max_choices = self._number(element, "maxChoices", 1, integer=True)
        if max_choices < 0:
            self._warn(
                DiagnosticCode.NUMERIC_ATTRIBUTE_DEFAULTED,
                f"choiceInteraction maxChoices={max_choices} is negative; using 1",
            )
            max_choices = 1
        cls = ChoiceInteraction if max_choices == 1 else MultipleResponseInteraction
        return cls(
            response_identifier=element.get("responseIdentifier"),
            choices=choices,
            shuffle=parse_bool(element.get("shuffle")),
            max_choices=max_choices,
            min_choices=self._number(element, "minChoices", 0, integer=True),
            prompt=prompt,
            attributes=element.attributes,
            extras=extras,
        )

    def _text_entry_interaction(self, element: SourceElement) -> Interaction:
        _, _, extras = self._interaction_parts(element, with_prompt=False)
        return TextEntryInteraction(
            response_identifier=element.get("responseIdentifier"),
            expected_length=self._number(element, "expectedLength", None, integer=True),
            pattern_mask=element.get("patternMask"),
            placeholder=element.get("placeholderText"),
            attributes=element.attributes,
            extras=extras,
        )

    def _extended_text_interaction(self, element: SourceElement) -> Interaction:
        prompt, _, extras = self._interaction_parts(element)
        return ExtendedTextInteraction(
            response_identifier=element.get("responseIdentifier"),
            expected_lines=self._number(element, "expectedLines", None, integer=True),
            expected_length=self._number(element, "expectedLength", None, integer=True),
            prompt=prompt,
            attributes=element.attributes,
            extras=extras,
        )

    def _hottext_interaction(self, element: SourceElement) -> Interaction:
        prompt = None
        rest = []
        extras = []
        for child in element.children:
            if isinstance(child, SourceElement) and child.member:
                extras.append(self._unknown(child))
            elif prompt is None and isinstance(child, SourceElement) and child.local_name == "prompt":
                prompt = self._content(child.children)
            else:
                rest.append(child)
        return HottextInteraction(
            response_identifier=element.get("responseIdentifier"),
            content=self._content(rest, hottext=True),
            max_choices=self._number(element, "maxChoices", 0, integer=True),
            min_choices=self._number(element, "minChoices", 0, integer=True),
            prompt=prompt,
            attributes=element.attributes,
            extras=tuple(extras),
        )

    def _slider_interaction(self, element: SourceElement) -> Interaction:
        prompt, _, extras = self._interaction_parts(element)
        lower = self._number(element, "lowerBound", 0.0)
        upper = self._number(element, "upperBound", 100.0)
        step = self._number(element, "step", 1.0)
        if step <= 0:
            self._warn(
                DiagnosticCode.NUMERIC_ATTRIBUTE_DEFAULTED,
                f"sliderInteraction step={step} is not positive; using 1",
            )
            step = 1.0
        if upper < lower:
            self._warn(
                DiagnosticCode.NUMERIC_ATTRIBUTE_DEFAULTED,
                f"sliderInteraction upperBound {upper} is below lowerBound {lower}; using defaults",
            )
            lower, upper = 0.0, 100.0
        return SliderInteraction(
            response_identifier=element.get("responseIdentifier"),
            lower_bound=lower,
            upper_bound=upper,
            step=step,
            step_label=parse_bool(element.get("stepLabel")),
            orientation=element.get("orientation"),
            prompt=prompt,
            attributes=element.attributes,
            extras=extras,
        )

    def _order_interaction(self, element: SourceElement) -> Interaction:
        prompt, choices, extras = self._interaction_parts(element, "simpleChoice")
        return OrderInteraction(
            response_identifier=element.get("responseIdentifier"),
            choices=choices,
            shuffle=parse_bool(element.get("shuffle")),
            orientation=element.get("orientation"),
            prompt=prompt,
            attributes=element.attributes,
            extras=extras,
        )

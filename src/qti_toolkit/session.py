"""
Module: session

Purpose:
    Editor session state for interactive hosts. Holds the raw text (the
    single source of truth), the locked syntax, the selected version, the
    latest parse, and the learner responses and scores shown in preview.
    Every edit runs against the most recent text and is followed by a
    fresh parse.

Key Classes:
    - EditorSession: Mutable host-side state around the pure engine
    - FormatLockedError: Syntax change requested once content exists

Dependencies:
    - qti_toolkit.parsing: parse()
    - qti_toolkit.editing: apply_edit(), templates
    - qti_toolkit.scoring: score(), aggregate()

Used By:
    - Preview/editor front ends
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from qti_toolkit.config import DEFAULT_CONFIG, EngineConfig
from qti_toolkit.core.models import (
    Format,
    InteractionKind,
    ItemDocument,
    ItemScore,
    ResponseValue,
    SpecVersion,
    TotalScore,
)
from qti_toolkit.editing import (
    EditOperation,
    InsertItem,
    ReorderItems,
    SetCorrectResponse,
    apply_edit,
    blank_document,
    generate,
    move_order,
    new_item_id,
)
from qti_toolkit.parsing import ParseResult, detect_format, parse
from qti_toolkit.scoring import aggregate, apply_manual_score, score

logger = logging.getLogger(__name__)


class FormatLockedError(Exception):
    """The document syntax cannot change once the session has content."""
    pass


class EditorSession:
    """
    Host-side state of one open document.

    The syntax is locked as soon as the session holds non-blank text, so
    a document is never silently re-read in the other syntax. Responses
    are keyed by item identifier and re-scored after every parse while
    scoring is enabled. Manual grades survive the re-score until the
    learner answers that item again.

    Example:
        >>> session = EditorSession()
        >>> session.create_blank()
        >>> new_id = session.add_item("slider")
        >>> session.record_response(new_id, 50).is_correct
        True
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        *,
        format: Union[Format, str] = Format.MARKUP,
        version: Union[SpecVersion, str] = SpecVersion.V3_0,
    ) -> None:
        self.config = config or DEFAULT_CONFIG
        self.raw_text = ""
        self.format = Format(str(format).lower())
        self.version = SpecVersion(str(version))
        self.result: Optional[ParseResult] = None
        self.responses: Dict[str, ResponseValue] = {}
        self.scores: Dict[str, ItemScore] = {}
        # Grader input per item, re-applied whenever the item is re-scored.
        self.manual: Dict[str, Tuple[float, Optional[str]]] = {}
        self.scoring_enabled = True

    # ─────────────────────────────────────────────────────────────────────────
    # Document state
    # ─────────────────────────────────────────────────────────────────────────

    @property
    def has_content(self) -> bool:
        return bool(self.raw_text.strip())

    @property
    def format_locked(self) -> bool:
        return self.has_content

    @property
    def items(self) -> Sequence[ItemDocument]:
        return self.result.items if self.result is not None else ()

    @property
    def errors(self) -> Sequence[str]:
        return self.result.errors if self.result is not None else ()

    def item(self, item_id: str) -> Optional[ItemDocument]:
        return self.result.item(item_id) if self.result is not None else None

    def _parse_config(self) -> EngineConfig:
        # The selected version is the fallback for markup without a namespace.
        return replace(self.config, default_version=self.version)

    def _set_text(self, text: str) -> ParseResult:
        self.raw_text = text
        if not self.has_content:
            self.result = None
            self.scores.clear()
            return ParseResult((), (), (), self.format, self.version)
        self.result = parse(text, self.format, config=self._parse_config())
        logger.debug(
            f"Session parse: {len(self.result.items)} items, {len(self.result.errors)} errors"
        )
        self._rescore()
        return self.result

    def load(self, text: str, format: Union[Format, str, None] = None) -> ParseResult:
        """Replace the document with ``text``; the syntax is detected when not given."""
        self.format = Format(str(format).lower()) if format is not None else detect_format(text)
        self.responses.clear()
        self.scores.clear()
        self.manual.clear()
        return self._set_text(text)

    def update_text(self, text: str) -> ParseResult:
        """
        Author typed into the text view. The locked syntax is kept; an
        empty session adopts the syntax of the first text.
        """
        if not self.has_content and text.strip():
            self.format = detect_format(text)
        return self._set_text(text)

    def clear(self) -> None:
        self.raw_text = ""
        self.result = None
        self.format = Format.MARKUP
        self.responses.clear()
        self.scores.clear()
        self.manual.clear()

    def create_blank(self, format: Union[Format, str, None] = None) -> ParseResult:
        """Start a new document from the blank template."""
        fmt = Format(str(format).lower()) if format is not None else self.format
        text = blank_document(fmt, self.version)
        self.format = fmt
        self.responses.clear()
        self.scores.clear()
        self.manual.clear()
        return self._set_text(text)

    def set_format(self, format: Union[Format, str]) -> None:
        """
        Raises:
            FormatLockedError: If the session already holds content
        """
        fmt = Format(str(format).lower())
        if fmt is self.format:
            return
        if self.format_locked:
            raise FormatLockedError(
                f"Document syntax is locked to {self.format.value}; clear the document first"
            )
        if fmt is Format.STRUCTURED and self.version is SpecVersion.V2_1:
            self.version = SpecVersion.V3_0
        self.format = fmt

    def set_version(self, version: Union[SpecVersion, str]) -> Optional[ParseResult]:
        """Select a version and re-parse the current text against it."""
        version = SpecVersion(str(version))
        if version is SpecVersion.V2_1 and self.format is Format.STRUCTURED:
            raise ValueError("JSON documents are always version 3.0")
        self.version = version
        if self.has_content:
            return self._set_text(self.raw_text)
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Edits
    # ─────────────────────────────────────────────────────────────────────────

    def apply(self, operation: EditOperation) -> ParseResult:
        """
        Apply one edit to the current text.

        Raises:
            EditError: If the edit is refused; the session is unchanged
        """
        new_text = apply_edit(self.raw_text, operation, self.format, config=self._parse_config())
        return self._set_text(new_text)

    def add_item(
        self,
        kind: Union[InteractionKind, str],
        after_index: Optional[int] = None,
        item_id: Optional[str] = None,
    ) -> str:
        """Insert a generated item and return its identifier."""
        item_id = item_id or new_item_id()
        fragment = generate(kind, item_id, self.format, self.version)
        self.apply(InsertItem(fragment, after_index))
        logger.info(f"Added {kind} item {item_id!r}")
        return item_id

    def set_correct_response(
        self, item_id: str, values: Any, response_identifier: Optional[str] = None
    ) -> ParseResult:
        return self.apply(SetCorrectResponse(item_id, values, response_identifier))

    def move_item(self, old_index: int, new_index: int) -> ParseResult:
        """Move one item, as a drag in the item list would."""
        if old_index == new_index:
            return self.result
        return self.apply(ReorderItems(move_order(len(self.items), old_index, new_index)))

    # ─────────────────────────────────────────────────────────────────────────
    # Preview scoring
    # ─────────────────────────────────────────────────────────────────────────

    def _rescore(self) -> None:
        known = {item.identifier: item for item in self.items}
        self.scores = {}
        if not self.scoring_enabled:
            return
        for item_id, response in self.responses.items():
            item = known.get(item_id)
            if item is not None:
                verdict = score(item, response, config=self.config)
                if item_id in self.manual:
                    verdict = apply_manual_score(verdict, *self.manual[item_id])
                self.scores[item_id] = verdict

    def record_response(self, item_id: str, value: ResponseValue) -> Optional[ItemScore]:
        """Record a learner response; returns its score while scoring is enabled."""
        self.responses[item_id] = value
        self.manual.pop(item_id, None)
        item = self.item(item_id)
        if item is None or not self.scoring_enabled:
            return None
        verdict = score(item, value, config=self.config)
        self.scores[item_id] = verdict
        return verdict

    def manual_score(self, item_id: str, earned: float, feedback: Optional[str] = None) -> ItemScore:
        """
        Raises:
            KeyError: If no score has been recorded for ``item_id``
        """
        if item_id not in self.scores:
            raise KeyError(f"No score recorded for item {item_id!r}")
        verdict = apply_manual_score(self.scores[item_id], earned, feedback)
        self.manual[item_id] = (earned, feedback)
        self.scores[item_id] = verdict
        return verdict

    def set_scoring_enabled(self, enabled: bool) -> None:
        self.scoring_enabled = enabled
        if enabled:
            self._rescore()

    def reset_scoring(self) -> None:
        self.responses.clear()
        self.scores.clear()
        self.manual.clear()

    def total(self) -> TotalScore:
        return aggregate(self.scores.values())

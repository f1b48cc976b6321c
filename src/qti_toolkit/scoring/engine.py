"""
Module: scoring.engine

Purpose:
    Score a learner's response against one parsed item and aggregate item
    verdicts into a total. Pure functions over the document model: the
    same (item, response) always yields the same ItemScore, and content
    problems are reported through the verdict, never raised.

Key Functions:
    - score(): ItemScore for one item and response
    - aggregate(): TotalScore over many ItemScores
    - apply_manual_score(): Record a grader's score on a manual verdict

Dependencies:
    - .templates: Response-processing classification
    - .values: Response normalisation

Used By:
    - qti_toolkit.session: Preview scoring
    - qti_toolkit.cli: ``score`` command
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Any, Iterable, Optional, Sequence, Tuple

from qti_toolkit.config import DEFAULT_CONFIG, EngineConfig
from qti_toolkit.core.models import (
    Cardinality,
    ItemDocument,
    ItemScore,
    ResponseDeclaration,
    ResponseValue,
    SliderInteraction,
    TotalScore,
)
from qti_toolkit.core.values import format_value
from .templates import ScoringTemplate, classify
from .values import ResponseShapeError, comparison_key, declared_values, normalize_response

logger = logging.getLogger(__name__)

_EPSILON = 1e-9


def max_score(item: ItemDocument, config: Optional[EngineConfig] = None) -> float:
    """Declared maximum of ``item``, else the configured default."""
    config = config or DEFAULT_CONFIG
    declared = item.declared_max_score
    return declared if declared is not None else config.default_max_score


def _manual(item: ItemDocument, maximum: float) -> ItemScore:
    return ItemScore(item.identifier, earned=0.0, max=maximum, requires_manual_scoring=True)


def _verdict(item: ItemDocument, earned: float, maximum: float) -> ItemScore:
    earned = min(max(earned, 0.0), maximum)
    return ItemScore(
        item.identifier,
        earned=earned,
        max=maximum,
        is_correct=maximum > 0 and earned >= maximum - _EPSILON,
    )


def score(
    item: ItemDocument,
    response: ResponseValue,
    *,
    config: Optional[EngineConfig] = None,
) -> ItemScore:
    """
    Score ``response`` against ``item``.

    Dispatch:
        1. Free-text items need a human grader.
        2. match-none scores nothing out of nothing.
        3. Custom processing needs a human grader.
        4. map-response sums mapped weights when the declaration has a
           mapping, otherwise falls through to match-correct.
        5. match-correct awards the maximum on an exact match.

    A response that does not fit the declaration scores 0 with ``error``
    set. An empty response scores 0 without an error.

    Args:
        item: Parsed item
        response: Submitted value(s), or None for no answer
        config: Tolerances and default maximum

    Returns:
        ItemScore verdict; never raises for content problems

    Example:
        >>> score(item, "choiceA").is_correct
        True
    """
    config = config or DEFAULT_CONFIG
    maximum = max_score(item, config)

    if item.requires_free_text:
        return _manual(item, maximum)

    template = classify(item.response_processing)
    if template is ScoringTemplate.MATCH_NONE:
        return ItemScore(item.identifier, earned=0.0, max=0.0)
    if template is ScoringTemplate.CUSTOM:
        logger.debug(f"Item {item.identifier!r} uses custom response processing; manual scoring")
        return _manual(item, maximum)

    declaration = item.primary_declaration
    if declaration is None:
        return _manual(item, maximum)

    try:
        submitted = normalize_response(response, declaration)
    except ResponseShapeError as e:
        logger.debug(f"Scoring error on item {item.identifier!r}: {e}")
        return ItemScore(item.identifier, earned=0.0, max=maximum, error=str(e))

    if template is ScoringTemplate.MAP_RESPONSE and declaration.mapping is not None:
        return _map_response(item, declaration, submitted, maximum, config)

    if not declaration.has_correct_response:
        return _manual(item, maximum)
    if not submitted:
        return _verdict(item, 0.0, maximum)
    matched = _matches(item, declaration, submitted, config)
    return _verdict(item, maximum if matched else 0.0, maximum)


# ─────────────────────────────────────────────────────────────────────────────
# match-correct
# ─────────────────────────────────────────────────────────────────────────────


def _slider_tolerance(item: ItemDocument, declaration: ResponseDeclaration, config: EngineConfig) -> Optional[float]:
    for interaction in item.interactions:
        if isinstance(interaction, SliderInteraction) and interaction.response_identifier == declaration.identifier:
            return abs(interaction.step) * config.slider_tolerance_fraction
    return None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches(
    item: ItemDocument,
    declaration: ResponseDeclaration,
    submitted: Tuple[Any, ...],
    config: EngineConfig,
) -> bool:
    correct = declared_values(declaration)
    if len(submitted) != len(correct):
        return False

    tolerance = _slider_tolerance(item, declaration, config)
    if tolerance is not None and len(correct) == 1 and _is_number(submitted[0]) and _is_number(correct[0]):
        return abs(submitted[0] - correct[0]) <= tolerance + _EPSILON

    def keys(values: Sequence[Any]) -> list:
        return [comparison_key(v, declaration.base_type, config.case_sensitive_strings) for v in values]

    if declaration.cardinality is Cardinality.MULTIPLE:
        return Counter(keys(submitted)) == Counter(keys(correct))
    return keys(submitted) == keys(correct)


# ─────────────────────────────────────────────────────────────────────────────
# map-response
# ─────────────────────────────────────────────────────────────────────────────


def _map_response(
    item: ItemDocument,
    declaration: ResponseDeclaration,
    submitted: Tuple[Any, ...],
    maximum: float,
    config: EngineConfig,
) -> ItemScore:
    mapping = declaration.mapping
    seen = set()
    total = 0.0
    for value in submitted:
        key = comparison_key(value, declaration.base_type, config.case_sensitive_strings)
        if key in seen:
            continue
        seen.add(key)
        entry = mapping.lookup(format_value(value))
        total += entry.mapped_value if entry is not None else mapping.default_value
    if mapping.lower_bound is not None:
        total = max(total, mapping.lower_bound)
    if mapping.upper_bound is not None:
        total = min(total, mapping.upper_bound)
    return _verdict(item, total, maximum)


# ─────────────────────────────────────────────────────────────────────────────
# Aggregation and manual grading
# ─────────────────────────────────────────────────────────────────────────────


def aggregate(scores: Iterable[ItemScore]) -> TotalScore:
    """
    Total over item verdicts. Manual iff any item is manual; percentage
    is 0 when nothing is attainable.
    """
    scores = list(scores)
    earned = sum(s.earned for s in scores)
    maximum = sum(s.max for s in scores)
    return TotalScore(
        earned=earned,
        max=maximum,
        percentage=(earned / maximum * 100.0) if maximum > 0 else 0.0,
        correct_item_count=sum(1 for s in scores if s.is_correct),
        total_item_count=len(scores),
        requires_manual_scoring=any(s.requires_manual_scoring for s in scores),
    )


def apply_manual_score(item_score: ItemScore, earned: float, feedback: Optional[str] = None) -> ItemScore:
    """
    Record a grader's score. ``earned`` is clamped to ``[0, max]`` and
    the verdict no longer needs manual scoring.
    """
    earned = min(max(float(earned), 0.0), item_score.max)
    return replace(
        item_score,
        earned=earned,
        is_correct=item_score.max > 0 and earned >= item_score.max - _EPSILON,
        requires_manual_scoring=False,
        feedback=feedback,
        error=None,
    )

"""
Module: scores

Purpose:
    Score verdicts. ItemScore is what the scoring engine returns for one
    item; TotalScore is derived from a set of ItemScores and never stored.

Key Classes:
    - ItemScore: Per-item verdict
    - TotalScore: Aggregate over many ItemScores

Dependencies:
    - dataclasses (std)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

# Learner response: one scalar, a sequence of scalars, or None for "no answer".
Scalar = Union[str, int, float, bool]
ResponseValue = Union[None, Scalar, Sequence[Scalar]]


@dataclass(frozen=True, slots=True)
class ItemScore:
    """
    Scoring verdict for one item.

    Attributes:
        item_id: Identifier of the scored item
        earned: Points earned, within [0, max]
        max: Maximum attainable points
        is_correct: Whether the response earned full marks
        requires_manual_scoring: Whether a human must grade this response
        feedback: Optional grader feedback (manual scoring)
        error: Set when the response did not fit the declaration; the
            item then scores 0

    Example:
        >>> ItemScore("q1", earned=1.0, max=1.0, is_correct=True)
        ItemScore(item_id='q1', earned=1.0, max=1.0, is_correct=True, ...)
    """

    item_id: str
    earned: float
    max: float
    is_correct: bool = False
    requires_manual_scoring: bool = False
    feedback: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate score bounds on construction."""
        if self.max < 0:
            raise ValueError(f"max score cannot be negative: {self.max}")
        if self.earned < 0 or self.earned > self.max + 1e-9:
            raise ValueError(f"earned score {self.earned} outside [0, {self.max}]")

    @property
    def has_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "earned": self.earned,
            "max": self.max,
            "isCorrect": self.is_correct,
            "requiresManualScoring": self.requires_manual_scoring,
            "feedback": self.feedback,
            "error": self.error,
        }


@dataclass(frozen=True, slots=True)
class TotalScore:
    """Aggregate over a set of ItemScores."""

    earned: float
    max: float
    percentage: float
    correct_item_count: int
    total_item_count: int
    requires_manual_scoring: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "earned": self.earned,
            "max": self.max,
            "percentage": self.percentage,
            "correctItemCount": self.correct_item_count,
            "totalItemCount": self.total_item_count,
            "requiresManualScoring": self.requires_manual_scoring,
        }

"""
Scoring Package

Scores learner responses against parsed items.

| Function | Role |
|----------|------|
| `score` | ItemScore for one item and response |
| `aggregate` | TotalScore over ItemScores |
| `apply_manual_score` | Grader override for manual verdicts |
| `classify` | Response-processing template classification |
"""

from .engine import aggregate, apply_manual_score, max_score, score
from .templates import ScoringTemplate, classify
from .values import ResponseShapeError, normalize_response

__all__ = [
    "aggregate",
    "apply_manual_score",
    "max_score",
    "score",
    "ScoringTemplate",
    "classify",
    "ResponseShapeError",
    "normalize_response",
]

"""
Module: scoring.templates

Purpose:
    Classify an item's response processing into one of the well-known
    templates or the custom path.

Key Classes:
    - ScoringTemplate: match_correct, map_response, match_none or custom

Key Functions:
    - classify(): ScoringTemplate for a ResponseProcessing (or None)

Dependencies:
    - qti_toolkit.core.vocabulary: Template names
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from qti_toolkit.core.models import ResponseProcessing
from qti_toolkit.core.vocabulary import MAP_RESPONSE, MATCH_CORRECT, MATCH_NONE


class ScoringTemplate(str, Enum):
    """How an item's response is turned into a score."""

    MATCH_CORRECT = MATCH_CORRECT
    MAP_RESPONSE = MAP_RESPONSE
    MATCH_NONE = MATCH_NONE
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


_KNOWN = {t.value: t for t in ScoringTemplate if t is not ScoringTemplate.CUSTOM}


def template_name(template: str) -> str:
    """
    Last path segment of a template reference, without ``.xml``.

    Example:
        >>> template_name("http://www.imsglobal.org/question/qti_v2p1/rptemplates/map_response.xml")
        'map_response'
    """
    name = template.strip().rstrip("/").rsplit("/", 1)[-1]
    if name.lower().endswith(".xml"):
        name = name[:-4]
    return name


def classify(processing: Optional[ResponseProcessing]) -> ScoringTemplate:
    """
    Classify response processing.

    An absent element means match-correct. A template reference naming
    one of the known templates maps to it; any other reference, and any
    explicit rule set, is custom.
    """
    if processing is None:
        return ScoringTemplate.MATCH_CORRECT
    if processing.template is None:
        return ScoringTemplate.CUSTOM
    return _KNOWN.get(template_name(processing.template), ScoringTemplate.CUSTOM)

"""
Module: parsing.parser

Purpose:
    Public parse entry point. Detects the surface syntax and specification
    version when the caller does not name them, then dispatches to the
    markup or JSON front end. Parsing is total: any input yields a
    ParseResult, never an exception.

Key Functions:
    - parse(): Raw text to ParseResult
    - detect_format(): Markup or JSON
    - detect_version(): 2.1 or 3.0 from namespace markers

Dependencies:
    - .markup: Markup front end
    - .structured: JSON front end

Used By:
    - qti_toolkit.editing: Re-parse after every edit
    - qti_toolkit.session: Editor state
    - qti_toolkit.cli: parse subcommand
"""

from __future__ import annotations

import json
import logging
from typing import Optional, Union

from qti_toolkit.config import DEFAULT_CONFIG, EngineConfig
from qti_toolkit.core.models import Format, SpecVersion
from qti_toolkit.core.vocabulary import VERSION_MARKERS
from .markup import parse_markup
from .result import NESTED_TOO_DEEPLY, ParseResult
from .structured import parse_structured

logger = logging.getLogger(__name__)


def detect_format(text: str) -> Format:
    """
    JSON when the trimmed text is a JSON object or array that decodes,
    markup otherwise.

    Example:
        >>> detect_format('{"@type": "assessmentItem"}')
        <Format.STRUCTURED: 'json'>
    """
    stripped = text.strip()
    if not stripped:
        return Format.MARKUP
    if (stripped[0], stripped[-1]) not in (("{", "}"), ("[", "]")):
        return Format.MARKUP
    try:
        json.loads(stripped)
    except (ValueError, RecursionError):
        return Format.MARKUP
    return Format.STRUCTURED


def detect_version(text: str, default: SpecVersion = SpecVersion.V3_0) -> SpecVersion:
    """First namespace or schema-location marker found in ``text`` wins."""
    best = None
    for marker, version in VERSION_MARKERS:
        position = text.find(marker)
        if position >= 0 and (best is None or position < best[0]):
            best = (position, version)
    return best[1] if best is not None else default


def _coerce_format(value: Union[Format, str, None]) -> Optional[Format]:
    if value is None or isinstance(value, Format):
        return value
    return Format(str(value).lower())


def _coerce_version(value: Union[SpecVersion, str, None]) -> Optional[SpecVersion]:
    if value is None or isinstance(value, SpecVersion):
        return value
    return SpecVersion(str(value))


def parse(
    raw_text: str,
    format: Union[Format, str, None] = None,
    version: Union[SpecVersion, str, None] = None,
    *,
    config: Optional[EngineConfig] = None,
) -> ParseResult:
    """
    Parse ``raw_text`` into ItemDocuments.

    Args:
        raw_text: Untrusted, possibly malformed document text
        format: Surface syntax; detected when None
        version: Specification version; detected when None
        config: Engine configuration (DEFAULT_CONFIG when None)

    Returns:
        ParseResult with items, syntax errors and the unsupported tally

    Raises:
        ValueError: Only when ``format`` or ``version`` is not a known value

    Example:
        >>> result = parse(generate("choice", "q1"))
        >>> result.errors, result.items[0].kind
        ((), <InteractionKind.CHOICE: 'choice'>)
    """
    config = config or DEFAULT_CONFIG
    fmt = _coerce_format(format) or detect_format(raw_text)
    requested = _coerce_version(version)
    try:
        return _parse_format(raw_text, fmt, requested, config)
    except RecursionError:
        logger.warning(f"Document exceeds the nesting limit ({len(raw_text)} characters)")
        return ParseResult(
            (),
            (NESTED_TOO_DEEPLY,),
            (),
            fmt,
            requested or SpecVersion.V3_0,
        )


def _parse_format(raw_text: str, fmt: Format, requested: Optional[SpecVersion], config: EngineConfig) -> ParseResult:
    if fmt is Format.STRUCTURED:
        if requested is SpecVersion.V2_1:
            logger.debug("Refusing JSON parse at version 2.1")
            return ParseResult(
                (),
                ("JSON syntax is only defined for version 3.0",),
                (),
                Format.STRUCTURED,
                SpecVersion.V2_1,
            )
        return parse_structured(raw_text, config)

    resolved = requested or detect_version(raw_text, config.default_version)
    return parse_markup(raw_text, resolved, config)

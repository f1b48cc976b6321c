"""
Module: config

Purpose:
    Configuration dataclass for the document engine. Immutable
    configuration with validation on construction, shared by the
    parser, the updater and the scoring engine.

Key Classes:
    - EngineConfig: Tunables for parsing, editing and scoring

Dependencies:
    - dataclasses (std)
    - qti_toolkit.core.models.enums: SpecVersion

Used By:
    - qti_toolkit.parsing.parser: Version fallback, schema validation
    - qti_toolkit.editing.updater: Indentation of spliced fragments
    - qti_toolkit.scoring.engine: Tolerances and default maximum
    - qti_toolkit.session: Session defaults
"""

from __future__ import annotations

from dataclasses import dataclass

from qti_toolkit.core.models.enums import SpecVersion


@dataclass(frozen=True)
class EngineConfig:
    """
    Configuration for the document engine (immutable).

    Attributes:
        default_version: Version assumed for markup without a recognised
            namespace, and used for newly generated items
        default_max_score: Maximum score for items that declare neither
            a SCORE normalMaximum nor a usable mapping
        slider_tolerance_fraction: Fraction of a slider's step within which
            a submitted value still matches the correct value
        case_sensitive_strings: Whether string-typed responses compare
            case-sensitively under match-correct
        validate_structured: Run JSON items through the item schema
        indent: Indentation unit used when splicing new fragments

    Example:
        >>> config = EngineConfig(slider_tolerance_fraction=0.25)
        >>> config.default_version
        <SpecVersion.V3_0: '3.0'>
    """

    default_version: SpecVersion = SpecVersion.V3_0
    default_max_score: float = 1.0
    slider_tolerance_fraction: float = 0.5
    case_sensitive_strings: bool = False
    validate_structured: bool = True
    indent: str = "  "

    def __post_init__(self) -> None:
        """Validate configuration on construction."""
        if not isinstance(self.default_version, SpecVersion):
            raise ValueError(f"default_version must be a SpecVersion: {self.default_version!r}")
        if self.default_max_score <= 0:
            raise ValueError(f"default_max_score must be positive: {self.default_max_score}")
        if not 0 <= self.slider_tolerance_fraction <= 1:
            raise ValueError(
                f"slider_tolerance_fraction must be within [0, 1]: {self.slider_tolerance_fraction}"
            )
        if self.indent.strip(" \t"):
            raise ValueError(f"indent must contain only spaces or tabs: {self.indent!r}")


DEFAULT_CONFIG = EngineConfig()

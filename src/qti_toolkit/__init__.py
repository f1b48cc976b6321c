"""Top-level package for the QTI toolkit.

Provides subpackages:
- qti_toolkit.parsing – markup and JSON readers producing ItemDocument models
- qti_toolkit.editing – text-splice edits, serialization and item templates
- qti_toolkit.scoring – response scoring and aggregation
- qti_toolkit.session – editor session state for interactive hosts
"""

def _get_version() -> str:
    """Get version from pyproject.toml (dev) or importlib.metadata (installed)."""
    from pathlib import Path

    pyproject = Path(__file__).resolve().parent.parent.parent / "pyproject.toml"
    if pyproject.exists():
        try:
            content = pyproject.read_text()
            for line in content.splitlines():
                if line.strip().startswith("version"):
                    # Parse: version = "0.3.0"
                    return line.split("=")[1].strip().strip('"').strip("'")
        except OSError:
            pass

    # Fallback to importlib.metadata for installed package
    try:
        from importlib.metadata import PackageNotFoundError, version as pkg_version
        return pkg_version("qti-toolkit")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()
__copyright__ = "Copyright 2026 The qti-toolkit authors. Licensed under the MIT License"

from qti_toolkit.config import DEFAULT_CONFIG, EngineConfig
from qti_toolkit.core.models import (
    Format,
    ItemDocument,
    ItemScore,
    SpecVersion,
    TotalScore,
    UnsupportedElement,
)
from qti_toolkit.parsing import ParseResult, parse
from qti_toolkit.editing import (
    ConversionError,
    EditError,
    InsertItem,
    ReorderItems,
    ReplaceWhole,
    SetCorrectResponse,
    TemplateError,
    apply_edit,
    convert,
    generate,
    new_item_id,
    serialize,
)
from qti_toolkit.scoring import aggregate, apply_manual_score, score
from qti_toolkit.session import EditorSession, FormatLockedError

__all__: list[str] = [
    "__version__",
    "DEFAULT_CONFIG",
    "EngineConfig",
    "Format",
    "ItemDocument",
    "ItemScore",
    "SpecVersion",
    "TotalScore",
    "UnsupportedElement",
    "ParseResult",
    "parse",
    "ConversionError",
    "EditError",
    "InsertItem",
    "ReorderItems",
    "ReplaceWhole",
    "SetCorrectResponse",
    "TemplateError",
    "apply_edit",
    "convert",
    "generate",
    "new_item_id",
    "serialize",
    "aggregate",
    "apply_manual_score",
    "score",
    "EditorSession",
    "FormatLockedError",
]

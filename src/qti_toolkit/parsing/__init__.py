"""
Parsing package: raw markup or JSON text to ItemDocument models.

Modules:
    - markup_tree: Span-tracking markup tokenizer and tree builder
    - json_spans: Span-tracking JSON scanner
    - source: Syntax-neutral element view
    - builder: Shared ItemDocument builder
    - markup / structured: Front ends per surface syntax
    - parser: Format/version detection and dispatch
"""

from .builder import ItemBuilder, UnsupportedTally
from .markup import MarkupReading, read_markup
from .parser import detect_format, detect_version, parse
from .result import NESTED_TOO_DEEPLY, NO_ITEMS_FOUND, ParseResult
from .structured import StructuredReading, read_structured

__all__ = [
    "ItemBuilder",
    "MarkupReading",
    "NESTED_TOO_DEEPLY",
    "NO_ITEMS_FOUND",
    "ParseResult",
    "StructuredReading",
    "UnsupportedTally",
    "detect_format",
    "detect_version",
    "parse",
    "read_markup",
    "read_structured",
]

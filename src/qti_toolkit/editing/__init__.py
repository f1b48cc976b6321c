"""
Editing Package

Turns edit operations into new raw text. Raw text stays the source of
truth: edits are splices at located spans, full serialization is only
used for syntax conversion, and templates produce text that is parsed
like any other input.

| Module | Role |
|--------|------|
| `operations` | Edit operation dataclasses |
| `locator` | Span lookup and splicing |
| `updater` | `apply_edit` with the no-new-errors contract |
| `serializer` | Model -> text in either syntax, `convert` |
| `templates` | Starter items per interaction kind |
"""

from .operations import (
    EditOperation,
    InsertItem,
    ReorderItems,
    ReplaceWhole,
    SetCorrectResponse,
    move_order,
)
from .serializer import ConversionError, convert, serialize
from .templates import SUPPORTED_KINDS, TemplateError, blank_document, generate, new_item_id
from .updater import EditError, apply_edit

__all__ = [
    "EditOperation",
    "InsertItem",
    "ReorderItems",
    "ReplaceWhole",
    "SetCorrectResponse",
    "move_order",
    "ConversionError",
    "convert",
    "serialize",
    "SUPPORTED_KINDS",
    "TemplateError",
    "blank_document",
    "generate",
    "new_item_id",
    "EditError",
    "apply_edit",
]

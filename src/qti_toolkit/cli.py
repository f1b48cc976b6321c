"""
Module: cli

Purpose:
    Headless command line over the document engine. Reads documents from
    files (or ``-`` for stdin), writes JSON summaries or document text to
    stdout.

Key Functions:
    - main(): Entry point for ``qti-toolkit`` and ``python -m qti_toolkit``

Exit codes:
    0: Success
    1: The document has syntax errors (parse, score)
    2: Request refused (edit, template or conversion error, unknown item)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from qti_toolkit import __version__
from qti_toolkit.core.models import Format, InteractionKind, SpecVersion
from qti_toolkit.editing import (
    ConversionError,
    EditError,
    InsertItem,
    ReorderItems,
    SetCorrectResponse,
    TemplateError,
    apply_edit,
    convert,
    generate,
    new_item_id,
)
from qti_toolkit.parsing import ParseResult, parse
from qti_toolkit.scoring import score

logger = logging.getLogger(__name__)

FORMAT_CHOICES = [f.value for f in Format]
VERSION_CHOICES = [v.value for v in SpecVersion]
KIND_CHOICES = [k.value for k in InteractionKind if k is not InteractionKind.UNKNOWN]


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _write_document(args: argparse.Namespace, text: str) -> None:
    if getattr(args, "in_place", False) and args.file != "-":
        Path(args.file).write_text(text, encoding="utf-8")
        logger.info(f"Wrote {args.file}")
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _summary(result: ParseResult) -> dict:
    return {
        "format": result.format.value,
        "version": result.version.value,
        "items": [
            {
                "identifier": item.identifier,
                "title": item.title,
                "kind": item.kind.value,
                "responseDeclarations": [d.identifier for d in item.response_declarations],
                "warnings": [str(w) for w in item.warnings],
            }
            for item in result.items
        ],
        "errors": list(result.errors),
        "unsupported": [u.to_dict() for u in result.unsupported],
        "test": result.test.identifier if result.test is not None else None,
    }


# ─────────────────────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────────────────────


def _cmd_parse(args: argparse.Namespace) -> int:
    result = parse(_read(args.file), args.format, args.version)
    _print_json(_summary(result))
    return 1 if result.errors else 0


def _response_value(args: argparse.Namespace) -> Any:
    if args.json is not None:
        return json.loads(args.json)
    if not args.values:
        return None
    if len(args.values) == 1 and not args.multiple:
        return args.values[0]
    return list(args.values)


def _cmd_score(args: argparse.Namespace) -> int:
    result = parse(_read(args.file), args.format)
    item = result.item(args.item_id)
    if item is None:
        print(f"Item {args.item_id!r} not found", file=sys.stderr)
        return 1 if result.errors else 2
    _print_json(score(item, _response_value(args)).to_dict())
    return 0


def _cmd_generate(args: argparse.Namespace) -> int:
    text = generate(args.kind, args.id or new_item_id(), args.format, args.version)
    sys.stdout.write(text if text.endswith("\n") else text + "\n")
    return 0


def _cmd_convert(args: argparse.Namespace) -> int:
    _write_document(args, convert(_read(args.file), args.to))
    return 0


def _cmd_set_correct(args: argparse.Namespace) -> int:
    op = SetCorrectResponse(args.item_id, tuple(args.values), args.response_id)
    _write_document(args, apply_edit(_read(args.file), op, args.format))
    return 0


def _cmd_insert(args: argparse.Namespace) -> int:
    op = InsertItem(_read(args.fragment), args.after)
    _write_document(args, apply_edit(_read(args.file), op, args.format))
    return 0


def _cmd_reorder(args: argparse.Namespace) -> int:
    op = ReorderItems(tuple(args.order))
    _write_document(args, apply_edit(_read(args.file), op, args.format))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="qti-toolkit",
        description="Parse, edit and score QTI assessment items",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("parse", help="Summarise items, errors and unsupported elements")
    p.add_argument("file", help="Document path, or - for stdin")
    p.add_argument("--format", choices=FORMAT_CHOICES)
    p.add_argument("--version", dest="version", choices=VERSION_CHOICES)
    p.set_defaults(func=_cmd_parse)

    p = sub.add_parser("score", help="Score a response against one item")
    p.add_argument("file")
    p.add_argument("item_id")
    p.add_argument("values", nargs="*", help="Submitted value(s)")
    p.add_argument("--multiple", action="store_true", help="Submit values as a list even if only one")
    p.add_argument("--json", help="Submitted response as a JSON value")
    p.add_argument("--format", choices=FORMAT_CHOICES)
    p.set_defaults(func=_cmd_score)

    p = sub.add_parser("generate", help="Print a starter item")
    p.add_argument("kind", choices=KIND_CHOICES)
    p.add_argument("--id", help="Item identifier (generated when omitted)")
    p.add_argument("--format", choices=FORMAT_CHOICES, default=Format.MARKUP.value)
    p.add_argument("--version", dest="version", choices=VERSION_CHOICES, default=SpecVersion.V3_0.value)
    p.set_defaults(func=_cmd_generate)

    p = sub.add_parser("convert", help="Convert a document to the other syntax")
    p.add_argument("file")
    p.add_argument("--to", choices=FORMAT_CHOICES, required=True)
    p.add_argument("--in-place", action="store_true")
    p.set_defaults(func=_cmd_convert)

    p = sub.add_parser("set-correct", help="Set the correct response of an item")
    p.add_argument("file")
    p.add_argument("item_id")
    p.add_argument("values", nargs="*", help="Correct value(s); none removes the correct response")
    p.add_argument("--response-id", help="Declaration to update")
    p.add_argument("--format", choices=FORMAT_CHOICES)
    p.add_argument("--in-place", action="store_true")
    p.set_defaults(func=_cmd_set_correct)

    p = sub.add_parser("insert", help="Insert an item fragment")
    p.add_argument("file")
    p.add_argument("fragment", help="Path of the item fragment to insert")
    p.add_argument("--after", type=int, help="Insert after this index (-1 for the front)")
    p.add_argument("--format", choices=FORMAT_CHOICES)
    p.add_argument("--in-place", action="store_true")
    p.set_defaults(func=_cmd_insert)

    p = sub.add_parser("reorder", help="Permute items")
    p.add_argument("file")
    p.add_argument("order", nargs="+", type=int, help="New order as item indices")
    p.add_argument("--format", choices=FORMAT_CHOICES)
    p.add_argument("--in-place", action="store_true")
    p.set_defaults(func=_cmd_reorder)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except (EditError, TemplateError, ConversionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except json.JSONDecodeError as e:
        print(f"Error: invalid --json value: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

"""
Module: editing.updater

Purpose:
    Apply edit operations to raw document text. Every edit is a splice at
    located spans: the correct values of one declaration, the gap between
    two items, or whole item fragments. Nothing outside the touched spans
    changes, so comments, formatting and unknown content survive.

    Contract: if the old text parsed without errors, the new text must
    too. An edit that would break it raises EditError and the caller keeps
    the old text.

Key Functions:
    - apply_edit(): Dispatch one operation and enforce the contract

Key Classes:
    - EditError: Edit refused

Dependencies:
    - qti_toolkit.parsing: Parse before and after, span trees
    - .locator: Span lookup and splicing

Used By:
    - qti_toolkit.session
    - qti_toolkit.cli
"""

from __future__ import annotations

import json
import logging
from html import escape
from typing import Any, List, Optional, Sequence, Tuple, Union

from qti_toolkit.config import DEFAULT_CONFIG, EngineConfig
from qti_toolkit.core.models import (
    BaseType,
    Cardinality,
    ExtendedTextInteraction,
    Format,
    HottextInteraction,
    Interaction,
    ItemDocument,
    MultipleResponseInteraction,
    OrderInteraction,
    ResponseDeclaration,
    SliderInteraction,
    TextEntryInteraction,
    UnknownInteraction,
)
from qti_toolkit.core.models.items import DEFAULT_RESPONSE_IDENTIFIER
from qti_toolkit.core.values import format_value
from qti_toolkit.parsing import NO_ITEMS_FOUND, ParseResult, detect_format, parse, read_markup, read_structured
from qti_toolkit.parsing.json_spans import JsonNode, JsonSpanError
from qti_toolkit.parsing.markup_tree import MarkupElement, line_indent
from .locator import (
    Splice,
    apply_splices,
    attributes_end,
    child_indent,
    dump_json,
    find_json_item,
    find_markup_item,
    item_indent,
    json_array_insert,
    json_insert_members,
    member_indent,
    removal_start,
    tag_prefix,
)
from .operations import EditOperation, InsertItem, ReorderItems, ReplaceWhole, SetCorrectResponse
from .serializer import json_value

logger = logging.getLogger(__name__)


class EditError(Exception):
    """Edit refused; the document text is unchanged."""
    pass


def _refuse(message: str) -> EditError:
    logger.warning(f"Edit refused: {message}")
    return EditError(message)


def apply_edit(
    raw_text: str,
    operation: EditOperation,
    format: Union[Format, str, None] = None,
    *,
    config: Optional[EngineConfig] = None,
) -> str:
    """
    Apply ``operation`` to ``raw_text`` and return the new text.

    Args:
        raw_text: Current document text (the most recent version)
        operation: SetCorrectResponse, InsertItem, ReorderItems or ReplaceWhole
        format: Document syntax; detected when None
        config: Engine configuration

    Returns:
        New document text

    Raises:
        EditError: If the target cannot be located, an index or
            permutation is invalid, or the result would contain syntax
            errors the old text did not have

    Example:
        >>> text = apply_edit(text, SetCorrectResponse("q1", ("B",)))
    """
    config = config or DEFAULT_CONFIG
    fmt = Format(str(format).lower()) if format is not None else detect_format(raw_text)
    before = parse(raw_text, fmt, config=config)

    if isinstance(operation, SetCorrectResponse):
        new_text = _set_correct_response(raw_text, operation, fmt, before, config)
    elif isinstance(operation, InsertItem):
        new_text = _insert_item(raw_text, operation, fmt, before, config)
    elif isinstance(operation, ReorderItems):
        new_text = _reorder_items(raw_text, operation, fmt, before)
    elif isinstance(operation, ReplaceWhole):
        new_text = operation.raw_text
    else:
        raise _refuse(f"Unsupported edit operation: {type(operation).__name__}")

    name = type(operation).__name__
    if not before.errors:
        after = parse(new_text, fmt, config=config)
        if after.errors:
            raise _refuse(f"{name} would introduce syntax errors: {after.errors[0]}")

    logger.info(f"Applied {name}: {len(raw_text)} -> {len(new_text)} characters")
    return new_text


# ─────────────────────────────────────────────────────────────────────────────
# SetCorrectResponse
# ─────────────────────────────────────────────────────────────────────────────


def _value_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return format_value(tuple(value) if isinstance(value, list) else value)


def _target_response(item: ItemDocument, requested: Optional[str]) -> str:
    if requested:
        return requested
    interaction = item.primary_interaction
    if interaction is not None and interaction.response_identifier:
        return interaction.response_identifier
    declaration = item.primary_declaration
    if declaration is not None:
        return declaration.identifier
    return DEFAULT_RESPONSE_IDENTIFIER


def _interaction_for(item: ItemDocument, rid: str) -> Optional[Interaction]:
    for interaction in item.interactions:
        if interaction.response_identifier == rid:
            return interaction
    return item.primary_interaction


def declaration_shape(item: ItemDocument, rid: str, count: int) -> Tuple[Cardinality, BaseType]:
    """Cardinality and base type for a declaration created for ``rid``."""
    interaction = _interaction_for(item, rid)
    cardinality = Cardinality.SINGLE
    base_type = BaseType.IDENTIFIER
    if interaction is None or isinstance(interaction, UnknownInteraction):
        base_type = BaseType.STRING
    elif isinstance(interaction, OrderInteraction):
        cardinality = Cardinality.ORDERED
    elif isinstance(interaction, MultipleResponseInteraction):
        cardinality = Cardinality.MULTIPLE
    elif isinstance(interaction, HottextInteraction) and interaction.max_choices != 1:
        cardinality = Cardinality.MULTIPLE
    elif isinstance(interaction, (TextEntryInteraction, ExtendedTextInteraction)):
        base_type = BaseType.STRING
    elif isinstance(interaction, SliderInteraction):
        base_type = BaseType.FLOAT
    if cardinality is Cardinality.SINGLE and count > 1:
        cardinality = Cardinality.MULTIPLE
    return cardinality, base_type


def _item_located(raw_text: str, fmt: Format, item_id: str) -> bool:
    if fmt is Format.MARKUP:
        return find_markup_item(read_markup(raw_text), item_id) is not None
    try:
        return find_json_item(read_structured(raw_text).items, item_id) is not None
    except (JsonSpanError, RecursionError):
        return False


def _set_correct_response(
    raw_text: str,
    op: SetCorrectResponse,
    fmt: Format,
    before: ParseResult,
    config: EngineConfig,
) -> str:
    item = before.item(op.item_id)
    if item is None:
        if _item_located(raw_text, fmt, op.item_id):
            raise _refuse(f"Item {op.item_id!r} has errors and cannot be edited")
        raise _refuse(f"Item {op.item_id!r} not found")

    rid = _target_response(item, op.response_identifier)
    values = tuple(v for v in (_value_text(value) for value in op.values) if v)
    declaration = item.declaration(rid)
    if fmt is Format.MARKUP:
        reading = read_markup(raw_text)
        element = find_markup_item(reading, op.item_id)
        if element is None or not reading.is_clean(element):
            raise _refuse(f"Item {op.item_id!r} has errors and cannot be edited")
        splices = _markup_correct_splices(raw_text, element, item, declaration, rid, values, config.indent)
    else:
        node = find_json_item(read_structured(raw_text).items, op.item_id)
        if node is None:
            raise _refuse(f"Item {op.item_id!r} not found")
        splices = _json_correct_splices(raw_text, node, item, declaration, rid, values, config.indent)
    return apply_splices(raw_text, splices)


def _correct_block(tag: str, value_tag: str, values: Sequence[str], indent: str, unit: str) -> str:
    lines = "".join(f"\n{indent}{unit}<{value_tag}>{escape(v, quote=False)}</{value_tag}>" for v in values)
    return f"<{tag}>{lines}\n{indent}</{tag}>"


def _markup_correct_splices(
    text: str,
    element: MarkupElement,
    item: ItemDocument,
    declaration: Optional[ResponseDeclaration],
    rid: str,
    values: Tuple[str, ...],
    unit: str,
) -> List[Splice]:
    prefix = tag_prefix(element)
    decl_el = None
    for candidate in element.find_all("responseDeclaration"):
        if ((candidate.get("identifier") or "").strip() or DEFAULT_RESPONSE_IDENTIFIER) == rid:
            decl_el = candidate
            break

    if decl_el is None or declaration is None:
        if not values:
            return []
        return [_new_markup_declaration(text, element, item, rid, values, unit)]

    splices: List[Splice] = []
    if len(values) > 1 and declaration.cardinality is Cardinality.SINGLE:
        attr = decl_el.attribute("cardinality")
        if attr is not None:
            splices.append(Splice(attr.value_start, attr.value_end, Cardinality.MULTIPLE.value))
        else:
            at = attributes_end(decl_el)
            splices.append(Splice(at, at, f' cardinality="{Cardinality.MULTIPLE}"'))

    indent = line_indent(text, decl_el.start)
    inner_indent = child_indent(text, decl_el, unit)
    correct = decl_el.find("correctResponse")
    if correct is not None:
        value_tag = tag_prefix(correct) + "value"
        if not values:
            splices.append(Splice(removal_start(text, correct.start), correct.end, ""))
        elif correct.self_closing:
            block = _correct_block(correct.tag, value_tag, values, line_indent(text, correct.start), unit)
            splices.append(Splice(correct.start, correct.end, block))
        else:
            own_indent = line_indent(text, correct.start)
            value_indent = child_indent(text, correct, unit)
            lines = "".join(
                f"\n{value_indent}<{value_tag}>{escape(v, quote=False)}</{value_tag}>" for v in values
            )
            splices.append(Splice(correct.inner_start, correct.inner_end, f"{lines}\n{own_indent}"))
        return splices

    if not values:
        return splices
    block = _correct_block(prefix + "correctResponse", prefix + "value", values, inner_indent, unit)
    if decl_el.self_closing:
        closing = f">\n{inner_indent}{block}\n{indent}</{decl_el.tag}>"
        splices.append(Splice(attributes_end(decl_el), decl_el.end, closing))
        return splices
    default = decl_el.find("defaultValue")
    if default is not None:
        splices.append(Splice(default.end, default.end, f"\n{inner_indent}{block}"))
    elif not text[decl_el.inner_start:decl_el.inner_end].strip():
        splices.append(Splice(decl_el.inner_start, decl_el.inner_end, f"\n{inner_indent}{block}\n{indent}"))
    else:
        splices.append(Splice(decl_el.inner_start, decl_el.inner_start, f"\n{inner_indent}{block}"))
    return splices


def _new_markup_declaration(
    text: str, element: MarkupElement, item: ItemDocument, rid: str, values: Tuple[str, ...], unit: str
) -> Splice:
    prefix = tag_prefix(element)
    cardinality, base_type = declaration_shape(item, rid, len(values))
    indent = child_indent(text, element, unit)
    tag = prefix + "responseDeclaration"
    block = _correct_block(prefix + "correctResponse", prefix + "value", values, indent + unit, unit)
    fragment = (
        f'<{tag} identifier="{escape(rid)}" cardinality="{cardinality}" baseType="{base_type}">'
        f"\n{indent}{unit}{block}\n{indent}</{tag}>"
    )
    declarations = element.find_all("responseDeclaration")
    anchor = declarations[-1].end if declarations else element.start_tag_end
    return Splice(anchor, anchor, f"\n{indent}{fragment}")


def _json_payload(values: Tuple[str, ...], base_type: Optional[BaseType], as_list: bool) -> Any:
    typed = [json_value(v, base_type) for v in values]
    if not as_list and len(typed) == 1:
        return typed[0]
    return typed


def _json_objects(node: Optional[JsonNode]) -> List[JsonNode]:
    if node is None:
        return []
    nodes = node.items if node.kind == "array" else [node]
    return [n for n in nodes if n.kind == "object"]


def _json_correct_splices(
    text: str,
    node: JsonNode,
    item: ItemDocument,
    declaration: Optional[ResponseDeclaration],
    rid: str,
    values: Tuple[str, ...],
    unit: str,
) -> List[Splice]:
    member = node.member("responseDeclaration")
    decl_node = None
    for candidate in _json_objects(member.value if member is not None else None):
        raw_id = candidate.value.get("identifier")
        if raw_id is None and isinstance(candidate.value.get("attributes"), dict):
            raw_id = candidate.value["attributes"].get("identifier")
        if ((raw_id.strip() if isinstance(raw_id, str) else "") or DEFAULT_RESPONSE_IDENTIFIER) == rid:
            decl_node = candidate
            break

    if decl_node is None or declaration is None:
        if not values:
            return []
        cardinality, base_type = declaration_shape(item, rid, len(values))
        payload = _json_payload(values, base_type, cardinality is not Cardinality.SINGLE)
        new_decl = {
            "identifier": rid,
            "cardinality": cardinality.value,
            "baseType": base_type.value,
            "correctResponse": {"value": payload},
        }
        if member is None:
            indent = member_indent(text, node, unit)
            return [json_insert_members(text, node, [("responseDeclaration", dump_json(new_decl, indent, unit))], unit)]
        if member.value.kind == "array":
            array = member.value
            indent = item_indent(text, array, unit)
            return [json_array_insert(text, array, len(array.items), [dump_json(new_decl, indent, unit)], unit)]
        indent = member_indent(text, node, unit)
        inner = indent + unit
        existing = member.value
        replacement = (
            f"[\n{inner}{existing.raw(text)},\n{inner}{dump_json(new_decl, inner, unit)}\n{indent}]"
        )
        return [Splice(existing.start, existing.end, replacement)]

    splices: List[Splice] = []
    new_members: List[Tuple[str, str]] = []
    if len(values) > 1 and declaration.cardinality is Cardinality.SINGLE:
        target = decl_node.get("cardinality")
        if target is None:
            attributes = decl_node.get("attributes")
            target = attributes.get("cardinality") if attributes is not None else None
        if target is not None:
            splices.append(Splice(target.start, target.end, json.dumps(Cardinality.MULTIPLE.value)))
        else:
            new_members.append(("cardinality", json.dumps(Cardinality.MULTIPLE.value)))

    correct = decl_node.get("correctResponse")
    if correct is None:
        if values:
            payload = _json_payload(values, declaration.base_type, len(values) != 1)
            new_members.append(("correctResponse", json.dumps({"value": payload}, ensure_ascii=False)))
    else:
        holder = correct.get("value") if correct.kind == "object" else correct
        if holder is None:
            payload = _json_payload(values, declaration.base_type, len(values) != 1)
            splices.append(json_insert_members(
                text, correct, [("value", json.dumps(payload, ensure_ascii=False))], unit
            ))
        else:
            payload = _json_payload(values, declaration.base_type, holder.kind == "array" or len(values) != 1)
            splices.append(Splice(holder.start, holder.end, json.dumps(payload, ensure_ascii=False)))

    if new_members:
        splices.append(json_insert_members(text, decl_node, new_members, unit))
    return splices


# ─────────────────────────────────────────────────────────────────────────────
# InsertItem
# ─────────────────────────────────────────────────────────────────────────────


def _insert_position(after_index: Optional[int], count: int) -> int:
    """Index the first inserted item will occupy."""
    if after_index is None:
        return count
    if not -1 <= after_index < count:
        raise _refuse(f"after_index {after_index} is out of range for {count} items")
    return after_index + 1


def _insert_item(
    raw_text: str, op: InsertItem, fmt: Format, before: ParseResult, config: EngineConfig
) -> str:
    fragment_result = parse(op.raw_fragment, fmt, config=config)
    if fragment_result.errors:
        raise _refuse(f"Fragment does not parse cleanly: {fragment_result.errors[0]}")

    if not raw_text.strip():
        return op.raw_fragment.strip()
    if any(error != NO_ITEMS_FOUND for error in before.errors):
        raise _refuse("Document has syntax errors; fix them before inserting items")

    if fmt is Format.MARKUP:
        return _markup_insert(raw_text, op, config.indent)
    return _json_insert(raw_text, op, config.indent)


def _markup_insert(text: str, op: InsertItem, unit: str) -> str:
    fragment_reading = read_markup(op.raw_fragment)
    fragment = "\n\n".join(
        fragment_reading.source[el.start:el.end] for el in fragment_reading.items
    )
    reading = read_markup(text)
    items = reading.items

    if not items:
        if reading.sections and not reading.document.issues:
            return apply_splices(text, [_section_insert(text, reading.sections[-1], fragment, unit)])
        logger.info("Document has no items; the fragment replaces it")
        return op.raw_fragment.strip()

    position = _insert_position(op.after_index, len(items))
    if position == 0:
        first = items[0]
        indent = line_indent(text, first.start)
        return apply_splices(text, [Splice(first.start, first.start, f"{fragment}\n\n{indent}")])
    anchor = items[position - 1]
    indent = line_indent(text, anchor.start)
    return apply_splices(text, [Splice(anchor.end, anchor.end, f"\n\n{indent}{fragment}")])


def _section_insert(text: str, section: MarkupElement, fragment: str, unit: str) -> Splice:
    indent = line_indent(text, section.start)
    inner = indent + unit
    if section.self_closing:
        return Splice(
            attributes_end(section), section.end, f">\n{inner}{fragment}\n{indent}</{section.tag}>"
        )
    end = section.inner_end
    while end > section.inner_start and text[end - 1] in " \t\r\n":
        end -= 1
    return Splice(end, section.inner_end, f"\n{inner}{fragment}\n{indent}")


def _reindent(raw: str, old: str, new: str) -> str:
    lines = raw.split("\n")
    shifted = [lines[0]]
    for line in lines[1:]:
        shifted.append(new + line[len(old):] if line.startswith(old) else line)
    return "\n".join(shifted)


def _json_insert(text: str, op: InsertItem, unit: str) -> str:
    fragment = op.raw_fragment
    fragment_items = read_structured(fragment).items
    reading = read_structured(text)

    def entries(indent: str) -> List[str]:
        return [_reindent(n.raw(fragment), line_indent(fragment, n.start), indent) for n in fragment_items]

    items = reading.items
    container = reading.collection
    if container is not None:
        if not items:
            index = len(container.items)
        else:
            position = _insert_position(op.after_index, len(items))
            if position == 0:
                index = _array_index(container, items[0])
            else:
                index = _array_index(container, items[position - 1]) + 1
        indent = item_indent(text, container, unit)
        return apply_splices(text, [json_array_insert(text, container, index, entries(indent), unit)])

    if reading.test is not None:
        indent = member_indent(text, reading.test, unit)
        inner = indent + unit
        array = "[\n" + ",\n".join(inner + e for e in entries(inner)) + "\n" + indent + "]"
        return apply_splices(text, [json_insert_members(text, reading.test, [("items", array)], unit)])

    if not items:
        logger.info("Document has no items; the fragment replaces it")
        return fragment.strip()

    # A single item becomes a top-level array.
    root = items[0]
    position = _insert_position(op.after_index, 1)
    existing = _reindent(root.raw(text), line_indent(text, root.start), unit)
    new_entries = entries(unit)
    ordered = new_entries + [existing] if position == 0 else [existing] + new_entries
    array = "[\n" + ",\n".join(unit + e for e in ordered) + "\n]"
    return apply_splices(text, [Splice(root.start, root.end, array)])


def _array_index(array: JsonNode, node: JsonNode) -> int:
    for index, candidate in enumerate(array.items):
        if candidate is node:
            return index
    raise _refuse("Item is not an entry of its collection")


# ─────────────────────────────────────────────────────────────────────────────
# ReorderItems
# ─────────────────────────────────────────────────────────────────────────────


def _reorder_items(raw_text: str, op: ReorderItems, fmt: Format, before: ParseResult) -> str:
    if before.errors:
        raise _refuse("Document has syntax errors; fix them before reordering items")
    if fmt is Format.MARKUP:
        spans = [(el.start, el.end) for el in read_markup(raw_text).items]
    else:
        spans = [(node.start, node.end) for node in read_structured(raw_text).items]

    order = op.new_order
    if sorted(order) != list(range(len(spans))):
        raise _refuse(f"new_order {list(order)} is not a permutation of {len(spans)} items")
    texts = [raw_text[start:end] for start, end in spans]
    splices = [
        Splice(start, end, texts[order[slot]])
        for slot, (start, end) in enumerate(spans)
        if order[slot] != slot
    ]
    return apply_splices(raw_text, splices)

"""
Unit Tests for apply_edit

Tests for SetCorrectResponse, InsertItem, ReorderItems and ReplaceWhole
in both syntaxes, and for the no-new-errors contract.
"""

import json

import pytest

from qti_toolkit.core.models import Cardinality, Format
from qti_toolkit.editing import (
    EditError,
    InsertItem,
    ReorderItems,
    ReplaceWhole,
    SetCorrectResponse,
    apply_edit,
    generate,
    move_order,
)
from qti_toolkit.parsing import parse, read_markup


def _item_texts(text):
    """Source text of each item, keyed by identifier."""
    reading = read_markup(text)
    return {el.get("identifier"): text[el.start:el.end] for el in reading.items}


class TestSetCorrectResponse:
    """Tests for SetCorrectResponse."""

    def test_set_correct_when_markup_then_only_values_change(self, choice_item):
        new_text = apply_edit(choice_item, SetCorrectResponse("q1", ("choiceB",)))
        decl = parse(new_text).items[0].primary_declaration
        assert decl.correct_response == ("choiceB",)
        before, _, after = choice_item.partition("<correctResponse>")
        assert new_text.startswith(before + "<correctResponse>")
        assert new_text.split("</correctResponse>")[1] == after.split("</correctResponse>")[1]

    def test_set_correct_when_scalar_value_then_wrapped(self, choice_item):
        new_text = apply_edit(choice_item, SetCorrectResponse("q1", "choiceC"))
        assert parse(new_text).items[0].primary_declaration.correct_response == ("choiceC",)

    def test_set_correct_when_two_values_for_single_then_cardinality_widened(self, choice_item):
        new_text = apply_edit(choice_item, SetCorrectResponse("q1", ("choiceA", "choiceB")))
        decl = parse(new_text).items[0].primary_declaration
        assert decl.cardinality is Cardinality.MULTIPLE
        assert decl.correct_response == ("choiceA", "choiceB")

    def test_set_correct_when_empty_then_correct_response_removed(self, choice_item):
        new_text = apply_edit(choice_item, SetCorrectResponse("q1", ()))
        result = parse(new_text)
        assert result.errors == ()
        assert not result.items[0].primary_declaration.has_correct_response
        assert "correctResponse" not in new_text

    def test_set_correct_when_value_has_markup_chars_then_escaped(self):
        text = generate("textEntry", "t1")
        new_text = apply_edit(text, SetCorrectResponse("t1", ("a < b & c",)))
        assert "a &lt; b &amp; c" in new_text
        assert parse(new_text).items[0].primary_declaration.correct_response == ("a < b & c",)

    def test_set_correct_when_declaration_self_closing_then_expanded(self):
        text = generate("extendedText", "e1")
        new_text = apply_edit(text, SetCorrectResponse("e1", ("A model answer",)))
        decl = parse(new_text).items[0].primary_declaration
        assert decl.correct_response == ("A model answer",)

    def test_set_correct_when_declaration_missing_then_created(self, item_factory):
        text = item_factory().replace('responseIdentifier="RESPONSE"', 'responseIdentifier="ANSWER"')
        new_text = apply_edit(text, SetCorrectResponse("q1", ("choiceB",)))
        item = parse(new_text).items[0]
        created = item.declaration("ANSWER")
        assert created is not None
        assert created.correct_response == ("choiceB",)
        assert item.declaration("RESPONSE").correct_response == ("choiceA",)

    def test_set_correct_when_item_in_sequence_then_siblings_untouched(self, three_items):
        before = _item_texts(three_items)
        new_text = apply_edit(three_items, SetCorrectResponse("q2", ("choiceC",)))
        after = _item_texts(new_text)
        assert after["q1"] == before["q1"]
        assert after["q3"] == before["q3"]
        assert parse(new_text).item("q2").primary_declaration.correct_response == ("choiceC",)

    def test_set_correct_when_item_unknown_then_refused(self, choice_item):
        with pytest.raises(EditError, match="not found"):
            apply_edit(choice_item, SetCorrectResponse("nope", ("choiceA",)))

    def test_set_correct_when_item_broken_then_refused(self, item_factory):
        text = item_factory("q1") + "\n" + item_factory("q2", body="    <p>unclosed")
        with pytest.raises(EditError, match="has errors"):
            apply_edit(text, SetCorrectResponse("q2", ("choiceA",)))

    def test_set_correct_when_json_then_value_replaced(self, json_item):
        new_text = apply_edit(json_item, SetCorrectResponse("j1", ("choiceB",)))
        data = json.loads(new_text)
        assert data["responseDeclaration"]["correctResponse"] == {"value": ["choiceB"]}
        assert data["itemBody"] == json.loads(json_item)["itemBody"]

    def test_set_correct_when_json_integer_then_typed(self):
        text = generate("slider", "s1", Format.STRUCTURED)
        new_text = apply_edit(text, SetCorrectResponse("s1", (75,)))
        assert parse(new_text).items[0].primary_declaration.correct_response == ("75",)
        assert "75" in json.dumps(json.loads(new_text)["responseDeclaration"])

    def test_set_operation_when_item_id_empty_then_raises(self):
        with pytest.raises(ValueError):
            SetCorrectResponse("", ("a",))


class TestInsertItem:
    """Tests for InsertItem."""

    def test_insert_when_after_first_then_lands_second(self, three_items, item_factory):
        """Existing items keep their exact text; the new item is second."""
        before = _item_texts(three_items)
        new_text = apply_edit(three_items, InsertItem(item_factory("new"), after_index=0))
        result = parse(new_text)
        assert result.errors == ()
        assert result.item_ids == ("q1", "new", "q2", "q3")
        after = _item_texts(new_text)
        for identifier in ("q1", "q2", "q3"):
            assert after[identifier] == before[identifier]

    def test_insert_when_after_index_none_then_appended(self, three_items, item_factory):
        new_text = apply_edit(three_items, InsertItem(item_factory("new")))
        assert parse(new_text).item_ids == ("q1", "q2", "q3", "new")

    def test_insert_when_after_index_minus_one_then_front(self, three_items, item_factory):
        new_text = apply_edit(three_items, InsertItem(item_factory("new"), after_index=-1))
        assert parse(new_text).item_ids == ("new", "q1", "q2", "q3")

    def test_insert_when_index_out_of_range_then_refused(self, three_items, item_factory):
        with pytest.raises(EditError, match="out of range"):
            apply_edit(three_items, InsertItem(item_factory("new"), after_index=3))

    def test_insert_when_fragment_broken_then_refused(self, three_items):
        with pytest.raises(EditError, match="Fragment"):
            apply_edit(three_items, InsertItem('<assessmentItem identifier="x"><itemBody>'))

    def test_insert_when_document_empty_then_fragment_is_document(self, item_factory):
        fragment = item_factory("only")
        new_text = apply_edit("", InsertItem(fragment), Format.MARKUP)
        assert new_text == fragment
        assert parse(new_text).item_ids == ("only",)

    def test_insert_when_test_wrapper_then_inside_section(self, test_document, item_factory):
        new_text = apply_edit(test_document, InsertItem(item_factory("t3")))
        result = parse(new_text)
        assert result.errors == ()
        assert result.item_ids == ("t1", "t2", "t3")
        assert result.test.sections[0].item_identifiers == ("t1", "t2", "t3")

    def test_insert_when_json_array_then_entry_added(self, json_items):
        fragment = generate("slider", "jnew", Format.STRUCTURED)
        new_text = apply_edit(json_items, InsertItem(fragment, after_index=0))
        result = parse(new_text)
        assert result.errors == ()
        assert result.item_ids == ("j1", "jnew", "j2", "j3")

    def test_insert_when_json_single_item_then_array_created(self, json_item):
        fragment = generate("choice", "j2", Format.STRUCTURED)
        new_text = apply_edit(json_item, InsertItem(fragment))
        assert isinstance(json.loads(new_text), list)
        assert parse(new_text).item_ids == ("j1", "j2")


class TestReorderItems:
    """Tests for ReorderItems and move_order."""

    def test_reorder_when_permutation_then_items_swapped_verbatim(self, three_items):
        before = _item_texts(three_items)
        new_text = apply_edit(three_items, ReorderItems((2, 0, 1)))
        assert parse(new_text).item_ids == ("q3", "q1", "q2")
        assert _item_texts(new_text) == before

    def test_reorder_when_not_permutation_then_refused(self, three_items):
        with pytest.raises(EditError, match="permutation"):
            apply_edit(three_items, ReorderItems((0, 0, 1)))

    def test_reorder_when_json_then_entries_moved(self, json_items):
        new_text = apply_edit(json_items, ReorderItems((1, 2, 0)))
        assert parse(new_text).item_ids == ("j2", "j3", "j1")

    def test_reorder_when_document_broken_then_refused(self, item_factory):
        text = item_factory("q1") + "\n" + item_factory("q2", body="    <p>unclosed")
        with pytest.raises(EditError):
            apply_edit(text, ReorderItems((0,)))

    def test_move_order_then_drag_permutation(self):
        assert move_order(4, 0, 2) == (1, 2, 0, 3)
        assert move_order(4, 3, 0) == (3, 0, 1, 2)

    def test_move_order_when_out_of_range_then_raises(self):
        with pytest.raises(ValueError):
            move_order(3, 0, 3)


class TestReplaceWhole:
    """Tests for ReplaceWhole and the no-new-errors contract."""

    def test_replace_when_clean_then_new_text(self, choice_item, item_factory):
        replacement = item_factory("other")
        assert apply_edit(choice_item, ReplaceWhole(replacement)) == replacement

    def test_replace_when_result_broken_then_refused(self, choice_item):
        with pytest.raises(EditError, match="would introduce syntax errors"):
            apply_edit(choice_item, ReplaceWhole(choice_item.replace("</itemBody>", "")))

    def test_replace_when_old_text_already_broken_then_allowed(self, choice_item):
        broken = choice_item.replace("</itemBody>", "")
        still_broken = broken + "\n<p>"
        assert apply_edit(broken, ReplaceWhole(still_broken), Format.MARKUP) == still_broken

"""
Unit Tests for the Parser

Tests for format/version detection, markup item modelling, the
unsupported tally and recovery from malformed input.
"""

import pytest

from qti_toolkit.config import EngineConfig
from qti_toolkit.core.models import (
    BaseType,
    Cardinality,
    ChoiceInteraction,
    DiagnosticCode,
    Format,
    InteractionKind,
    MultipleResponseInteraction,
    SliderInteraction,
    SpecVersion,
    UnknownContent,
    UnknownInteraction,
    UnsupportedElement,
)
from qti_toolkit.parsing import NO_ITEMS_FOUND, detect_format, detect_version, parse


def _codes(item):
    return [w.code for w in item.warnings]


class TestDetection:
    """Tests for detect_format and detect_version."""

    def test_detect_format_when_json_object_then_structured(self, json_item):
        assert detect_format(json_item) is Format.STRUCTURED

    @pytest.mark.parametrize("text", ["", "   ", "<assessmentItem/>", "{not json}", "[1, 2"])
    def test_detect_format_when_not_json_then_markup(self, text):
        assert detect_format(text) is Format.MARKUP

    def test_detect_version_when_v2_namespace_then_2_1(self):
        text = '<assessmentItem xmlns="http://www.imsglobal.org/xsd/imsqti_v2p1"/>'
        assert detect_version(text) is SpecVersion.V2_1

    def test_detect_version_when_no_marker_then_default(self):
        assert detect_version("<assessmentItem/>", SpecVersion.V2_1) is SpecVersion.V2_1

    def test_parse_when_no_namespace_then_config_default(self, item_factory):
        text = item_factory(namespace="urn:example")
        result = parse(text, config=EngineConfig(default_version=SpecVersion.V2_1))
        assert result.version is SpecVersion.V2_1
        assert result.items[0].spec_version is SpecVersion.V2_1


class TestParseMarkup:
    """Tests for modelling well-formed markup items."""

    def test_parse_when_single_choice_then_item_modelled(self, choice_item):
        result = parse(choice_item)
        assert result.errors == ()
        assert result.format is Format.MARKUP
        assert result.version is SpecVersion.V3_0
        item = result.items[0]
        assert item.identifier == "q1"
        assert item.title == "Sample"
        assert item.kind is InteractionKind.CHOICE
        interaction = item.primary_interaction
        assert isinstance(interaction, ChoiceInteraction)
        assert [c.identifier for c in interaction.choices] == ["choiceA", "choiceB", "choiceC"]
        assert interaction.choices[1].text == "Beta"

    def test_parse_when_declaration_then_values_typed(self, choice_item):
        decl = parse(choice_item).items[0].primary_declaration
        assert decl.identifier == "RESPONSE"
        assert decl.cardinality is Cardinality.SINGLE
        assert decl.base_type is BaseType.IDENTIFIER
        assert decl.correct_response == ("choiceA",)

    def test_parse_when_max_choices_zero_then_multiple_response(self, item_factory):
        text = item_factory(cardinality="multiple", correct=("choiceA", "choiceC"), max_choices=0)
        item = parse(text).items[0]
        assert isinstance(item.primary_interaction, MultipleResponseInteraction)
        assert item.kind is InteractionKind.MULTIPLE_RESPONSE

    def test_parse_when_three_items_then_document_order(self, three_items):
        result = parse(three_items)
        assert result.errors == ()
        assert result.item_ids == ("q1", "q2", "q3")
        assert result.item("q2").title == "Question 2"
        assert result.item("missing") is None

    def test_parse_when_test_wrapper_then_metadata(self, test_document):
        result = parse(test_document)
        assert result.errors == ()
        assert result.item_ids == ("t1", "t2")
        assert result.test.identifier == "test-1"
        assert result.test.title == "Practice Test"
        section = result.test.sections[0]
        assert section.identifier == "section-1"
        assert section.item_identifiers == ("t1", "t2")
        assert result.unsupported == ()

    def test_parse_when_no_response_processing_then_none(self, item_factory):
        item = parse(item_factory(template=None)).items[0]
        assert item.response_processing is None

    def test_parse_when_prompt_then_collapsed_text(self, item_factory):
        body = (
            "    <p>What is\n      the answer?</p>\n"
            "    <textEntryInteraction responseIdentifier=\"RESPONSE\"/>"
        )
        item = parse(item_factory(body=body)).items[0]
        assert item.prompt == "What is the answer?"


class TestUnsupportedTally:
    """Tests for unknown constructs and the aggregated tally."""

    def test_parse_when_unknown_tag_in_body_then_tallied_not_error(self, item_factory):
        """One recognised item plus one unknown tag yields one tally entry."""
        body = "    <fancyWidget>spin me</fancyWidget>\n    <p>Question text</p>"
        result = parse(item_factory(body=body))
        assert len(result.items) == 1
        assert result.errors == ()
        assert result.unsupported == (UnsupportedElement("fancyWidget", 1, "fancyWidget elements"),)
        assert isinstance(result.items[0].body[1], UnknownContent)

    def test_parse_when_same_kind_across_items_then_one_entry_counted(self, item_factory):
        """Repeated occurrences collapse into one entry with a count."""
        match = '    <matchInteraction responseIdentifier="RESPONSE"><simpleMatchSet/></matchInteraction>'
        first = item_factory("a", body=match + "\n" + match)
        second = item_factory("b", body=match)
        result = parse(first + "\n" + second)
        assert result.errors == ()
        assert result.unsupported == (
            UnsupportedElement("matchInteraction", 3, "Matrix matching questions"),
        )
        assert result.items[0].unsupported_elements[0].count == 2

    def test_parse_when_unknown_interaction_then_raw_kept(self, item_factory):
        match = '<matchInteraction responseIdentifier="RESPONSE"><simpleMatchSet/></matchInteraction>'
        item = parse(item_factory(body="    " + match)).items[0]
        unknown = item.interactions[0]
        assert isinstance(unknown, UnknownInteraction)
        assert unknown.raw == match
        assert item.kind is InteractionKind.UNKNOWN

    def test_parse_when_text_entry_has_prompt_then_kept_as_extra(self, item_factory):
        body = '    <p>Animal: <textEntryInteraction responseIdentifier="RESPONSE"><prompt>Type it</prompt></textEntryInteraction></p>'
        result = parse(item_factory(body=body, base_type="string", correct=("cat",)))
        assert result.errors == ()
        assert [entry.kind for entry in result.unsupported] == ["prompt"]
        interaction = result.items[0].primary_interaction
        assert interaction.extras == (UnknownContent("prompt", "<prompt>Type it</prompt>"),)

    def test_parse_when_hottext_max_choices_absent_then_zero(self, item_factory):
        body = (
            '    <hottextInteraction responseIdentifier="RESPONSE">'
            '<p>The <hottext identifier="w1">cat</hottext> sat</p></hottextInteraction>'
        )
        result = parse(item_factory(body=body, cardinality="multiple", correct=("w1",)))
        interaction = result.items[0].primary_interaction
        assert interaction.max_choices == 0
        assert [h.identifier for h in interaction.hottexts] == ["w1"]


class TestDiagnostics:
    """Tests for semantic warnings."""

    def test_parse_when_identifier_missing_then_generated_with_warning(self, item_factory):
        text = item_factory("q1").replace(' identifier="q1"', "", 1)
        item = parse(text).items[0]
        assert item.identifier == "item-1"
        assert DiagnosticCode.MISSING_IDENTIFIER in _codes(item)

    def test_parse_when_dangling_response_identifier_then_warning(self, item_factory):
        text = item_factory().replace('responseIdentifier="RESPONSE"', 'responseIdentifier="OTHER"')
        item = parse(text).items[0]
        assert DiagnosticCode.DANGLING_RESPONSE_IDENTIFIER in _codes(item)
        assert parse(text).errors == ()

    def test_parse_when_bad_numeric_attribute_then_default_with_warning(self, item_factory):
        body = (
            '    <sliderInteraction responseIdentifier="RESPONSE" lowerBound="0" '
            'upperBound="10" step="abc"/>'
        )
        item = parse(item_factory(base_type="integer", correct=("5",), body=body)).items[0]
        slider = item.primary_interaction
        assert isinstance(slider, SliderInteraction)
        assert slider.step == 1.0
        assert slider.upper_bound == 10.0
        assert DiagnosticCode.NUMERIC_ATTRIBUTE_DEFAULTED in _codes(item)

    def test_parse_when_single_has_two_correct_values_then_warning(self, item_factory):
        item = parse(item_factory(correct=("choiceA", "choiceB"))).items[0]
        assert DiagnosticCode.CARDINALITY_VIOLATION in _codes(item)

    def test_parse_when_correct_value_mistyped_then_warning(self, item_factory):
        item = parse(item_factory(base_type="integer", correct=("many",))).items[0]
        assert DiagnosticCode.VALUE_TYPE_MISMATCH in _codes(item)

    def test_parse_when_unknown_cardinality_then_single_with_warning(self, item_factory):
        item = parse(item_factory(cardinality="several")).items[0]
        assert item.primary_declaration.cardinality is Cardinality.SINGLE
        assert DiagnosticCode.UNKNOWN_CARDINALITY in _codes(item)


class TestRecovery:
    """Tests for malformed input. parse never raises."""

    def test_parse_when_empty_then_no_items_error(self):
        result = parse("")
        assert result.items == ()
        assert result.errors == (NO_ITEMS_FOUND,)

    def test_parse_when_item_body_missing_then_item_error(self):
        text = '<assessmentItem identifier="q9"><responseDeclaration identifier="RESPONSE"/></assessmentItem>'
        result = parse(text)
        assert result.items == ()
        assert result.errors == ("Item 'q9': No itemBody found",)

    def test_parse_when_middle_item_broken_then_siblings_survive(self, item_factory):
        """A syntax error inside one item does not hide the others."""
        broken = item_factory("q2", body="    <p>unclosed paragraph")
        text = "\n".join([item_factory("q1"), broken, item_factory("q3")])
        result = parse(text)
        assert result.item_ids == ("q1", "q3")
        assert len(result.errors) == 1
        assert result.errors[0].startswith("line ")
        assert "<p> was not closed" in result.errors[0]

    def test_parse_when_truncated_then_error_not_exception(self, choice_item):
        result = parse(choice_item[: len(choice_item) // 2])
        assert result.items == ()
        assert result.errors

    def test_parse_when_bare_ampersand_then_syntax_error(self, item_factory):
        body = "    <p>salt & pepper</p>"
        result = parse(item_factory(body=body))
        assert result.items == ()
        assert any("unescaped '&'" in e for e in result.errors)

    def test_parse_when_item_nested_too_deeply_then_error_and_siblings_survive(self, item_factory):
        depth = 20000
        deep = item_factory("deep", body="<div>" * depth + "deep" + "</div>" * depth)
        text = "\n".join([deep, item_factory("ok")])
        result = parse(text)
        assert result.item_ids == ("ok",)
        assert result.errors == ("Item 1: content is nested too deeply",)

    def test_parse_when_unknown_format_value_then_raises(self, choice_item):
        with pytest.raises(ValueError):
            parse(choice_item, "yaml")

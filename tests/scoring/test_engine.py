"""
Unit Tests for the Scoring Engine

Tests for match-correct, map-response, match-none, custom processing,
free-text items, response shape errors, aggregation and manual grading.
"""

import pytest

from qti_toolkit.config import EngineConfig
from qti_toolkit.core.models import ItemScore
from qti_toolkit.editing import generate
from qti_toolkit.parsing import parse
from qti_toolkit.scoring import aggregate, apply_manual_score, max_score, score

TEMPLATES = "https://purl.imsglobal.org/spec/qti/v3p0/rptemplates/"

ORDER_BODY = """    <orderInteraction responseIdentifier="RESPONSE">
      <simpleChoice identifier="a">First</simpleChoice>
      <simpleChoice identifier="b">Second</simpleChoice>
    </orderInteraction>"""

MAPPING = """
    <mapping defaultValue="0" lowerBound="0">
      <mapEntry mapKey="choiceA" mappedValue="1"/>
      <mapEntry mapKey="choiceC" mappedValue="1"/>
      <mapEntry mapKey="choiceB" mappedValue="-1"/>
    </mapping>"""


def _item(text):
    result = parse(text)
    assert result.errors == ()
    return result.items[0]


class TestMatchCorrect:
    """Tests for match-correct scoring."""

    @pytest.fixture
    def single(self, choice_item):
        return _item(choice_item)

    def test_score_when_single_correct_then_full_marks(self, single):
        verdict = score(single, "choiceA")
        assert verdict == ItemScore("q1", earned=1.0, max=1.0, is_correct=True)

    def test_score_when_single_wrong_then_zero(self, single):
        verdict = score(single, "choiceB")
        assert verdict.earned == 0.0
        assert verdict.is_correct is False
        assert verdict.requires_manual_scoring is False

    def test_score_when_identifier_case_differs_then_wrong(self, single):
        assert score(single, "ChoiceA").is_correct is False

    def test_score_when_multiple_any_order_then_correct(self, item_factory):
        item = _item(item_factory(cardinality="multiple", correct=("a", "c"), max_choices=0))
        assert score(item, ["c", "a"]).is_correct is True
        assert score(item, ["a"]).is_correct is False
        assert score(item, ["a", "c", "b"]).is_correct is False

    def test_score_when_ordered_swapped_then_wrong(self, item_factory):
        item = _item(item_factory(cardinality="ordered", correct=("a", "b"), body=ORDER_BODY))
        assert score(item, ["b", "a"]).is_correct is False
        assert score(item, ["a", "b"]).is_correct is True

    def test_score_when_no_response_processing_then_match_correct(self, item_factory):
        item = _item(item_factory(template=None))
        assert score(item, "choiceA").is_correct is True

    def test_score_when_normal_maximum_then_scaled(self, item_factory):
        text = item_factory().replace('baseType="float"/>', 'baseType="float" normalMaximum="5"/>')
        item = _item(text)
        verdict = score(item, "choiceA")
        assert verdict.earned == 5.0
        assert verdict.max == 5.0
        assert max_score(item) == 5.0

    def test_score_when_empty_response_then_zero_without_error(self, single):
        for empty in (None, "", "   ", []):
            verdict = score(single, empty)
            assert verdict.earned == 0.0
            assert verdict.error is None
            assert verdict.requires_manual_scoring is False

    def test_score_when_no_correct_response_then_manual(self, item_factory):
        item = _item(item_factory(correct=()))
        verdict = score(item, "choiceA")
        assert verdict.requires_manual_scoring is True
        assert verdict.earned == 0.0

    def test_score_when_string_case_differs_then_correct_by_default(self):
        item = _item(generate("textEntry", "t1"))
        assert score(item, "  paris ").is_correct is True

    def test_score_when_strings_case_sensitive_then_wrong(self):
        item = _item(generate("textEntry", "t1"))
        config = EngineConfig(case_sensitive_strings=True)
        assert score(item, "paris", config=config).is_correct is False
        assert score(item, "Paris", config=config).is_correct is True

    def test_score_when_json_item_then_same_rules(self, json_item):
        item = _item(json_item)
        assert score(item, "choiceA").is_correct is True
        assert score(item, "choiceB").is_correct is False


class TestSlider:
    """Tests for slider tolerance."""

    @pytest.fixture
    def slider(self, item_factory):
        body = (
            '    <sliderInteraction responseIdentifier="RESPONSE" lowerBound="0" '
            'upperBound="5" step="0.5"/>'
        )
        return _item(item_factory(base_type="float", correct=("2.5",), body=body))

    def test_score_when_within_half_step_then_correct(self, slider):
        assert score(slider, 2.7).is_correct is True
        assert score(slider, "2.25").is_correct is True

    def test_score_when_beyond_half_step_then_wrong(self, slider):
        assert score(slider, 2.8).is_correct is False

    def test_score_when_tolerance_configured_zero_then_exact(self, slider):
        config = EngineConfig(slider_tolerance_fraction=0)
        assert score(slider, 2.6, config=config).is_correct is False
        assert score(slider, 2.5, config=config).is_correct is True

    def test_score_when_generated_integer_slider_then_exact_value_correct(self):
        item = _item(generate("slider", "s1"))
        assert score(item, 50).is_correct is True
        assert score(item, "51").is_correct is False


class TestMapResponse:
    """Tests for map-response scoring."""

    @pytest.fixture
    def mapped(self, item_factory):
        text = item_factory(
            cardinality="multiple",
            correct=("choiceA", "choiceC"),
            max_choices=0,
            mapping=MAPPING,
            template=TEMPLATES + "map_response.xml",
        )
        return _item(text)

    def test_score_when_all_mapped_then_full(self, mapped):
        verdict = score(mapped, ["choiceA", "choiceC"])
        assert verdict.earned == 2.0
        assert verdict.max == 2.0
        assert verdict.is_correct is True

    def test_score_when_partial_then_partial_credit(self, mapped):
        verdict = score(mapped, ["choiceA"])
        assert verdict.earned == 1.0
        assert verdict.is_correct is False

    def test_score_when_penalty_then_clamped_at_lower_bound(self, mapped):
        assert score(mapped, ["choiceB"]).earned == 0.0

    def test_score_when_duplicates_then_counted_once(self, mapped):
        assert score(mapped, ["choiceA", "choiceA"]).earned == 1.0

    def test_score_when_unmapped_value_then_default_value(self, mapped):
        assert score(mapped, ["choiceD", "choiceA"]).earned == 1.0

    def test_score_when_map_response_without_mapping_then_match_correct(self, item_factory):
        item = _item(item_factory(template=TEMPLATES + "map_response.xml"))
        assert score(item, "choiceA").is_correct is True


class TestOtherTemplates:
    """Tests for match-none, custom processing and free text."""

    def test_score_when_match_none_then_nothing_attainable(self, item_factory):
        item = _item(item_factory(template=TEMPLATES + "match_none.xml"))
        verdict = score(item, "choiceA")
        assert (verdict.earned, verdict.max, verdict.is_correct) == (0.0, 0.0, False)

    def test_score_when_unknown_template_then_manual(self, item_factory):
        item = _item(item_factory(template="https://example.com/rp/custom_rule.xml"))
        assert score(item, "choiceA").requires_manual_scoring is True

    def test_score_when_explicit_rules_then_manual(self, item_factory):
        rules = (
            '  <responseProcessing>\n'
            '    <setOutcomeValue identifier="SCORE"><baseValue baseType="float">1</baseValue></setOutcomeValue>\n'
            '  </responseProcessing>\n</assessmentItem>'
        )
        text = item_factory(template=None).replace("</assessmentItem>", rules)
        item = _item(text)
        assert item.response_processing.rules
        assert score(item, "choiceA").requires_manual_scoring is True

    def test_score_when_extended_text_then_manual(self):
        item = _item(generate("extendedText", "e1"))
        verdict = score(item, "A long essay")
        assert verdict.requires_manual_scoring is True
        assert verdict.earned == 0.0
        assert verdict.max == 1.0


class TestResponseShape:
    """Tests for responses that do not fit the declaration."""

    def test_score_when_many_values_for_single_then_error(self, choice_item):
        verdict = score(_item(choice_item), ["choiceA", "choiceB"])
        assert verdict.earned == 0.0
        assert verdict.error == "2 values submitted for single-cardinality response 'RESPONSE'"

    def test_score_when_value_mistyped_then_error(self):
        verdict = score(_item(generate("slider", "s1")), "fifty")
        assert verdict.error.startswith("response 'RESPONSE':")
        assert verdict.is_correct is False


class TestAggregate:
    """Tests for aggregate."""

    def test_aggregate_when_mixed_then_totals(self):
        total = aggregate([
            ItemScore("a", 1.0, 1.0, is_correct=True),
            ItemScore("b", 0.0, 1.0),
            ItemScore("c", 1.0, 2.0),
        ])
        assert total.earned == 2.0
        assert total.max == 4.0
        assert total.percentage == 50.0
        assert total.correct_item_count == 1
        assert total.total_item_count == 3
        assert total.requires_manual_scoring is False

    def test_aggregate_when_empty_then_zero_percent(self):
        total = aggregate([])
        assert total.percentage == 0.0
        assert total.total_item_count == 0

    def test_aggregate_when_any_manual_then_manual(self):
        total = aggregate([ItemScore("a", 0.0, 1.0, requires_manual_scoring=True)])
        assert total.requires_manual_scoring is True


class TestManualScore:
    """Tests for apply_manual_score."""

    @pytest.fixture
    def pending(self) -> ItemScore:
        return ItemScore("e1", 0.0, 2.0, requires_manual_scoring=True)

    def test_manual_when_full_marks_then_correct(self, pending):
        graded = apply_manual_score(pending, 2, "Well argued")
        assert graded.earned == 2.0
        assert graded.is_correct is True
        assert graded.requires_manual_scoring is False
        assert graded.feedback == "Well argued"

    def test_manual_when_out_of_range_then_clamped(self, pending):
        assert apply_manual_score(pending, 9).earned == 2.0
        assert apply_manual_score(pending, -1).earned == 0.0

    def test_manual_when_error_present_then_cleared(self):
        errored = ItemScore("q1", 0.0, 1.0, error="bad shape")
        assert apply_manual_score(errored, 1).error is None

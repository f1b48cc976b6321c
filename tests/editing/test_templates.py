"""
Unit Tests for Item Templates

Every generated item must parse cleanly in both syntaxes.
"""

import json
import re

import pytest

from qti_toolkit.core.models import Format, InteractionKind, SpecVersion
from qti_toolkit.editing import (
    SUPPORTED_KINDS,
    TemplateError,
    blank_document,
    generate,
    new_item_id,
)
from qti_toolkit.parsing import parse


class TestGenerate:
    """Tests for generate."""

    @pytest.mark.parametrize("kind", SUPPORTED_KINDS, ids=lambda k: k.value)
    @pytest.mark.parametrize("fmt", [Format.MARKUP, Format.STRUCTURED], ids=lambda f: f.value)
    def test_generate_when_supported_kind_then_parses_cleanly(self, kind, fmt):
        text = generate(kind, "gen-1", fmt)
        result = parse(text)
        assert result.format is fmt
        assert result.errors == ()
        assert result.unsupported == ()
        assert result.warnings == ()
        assert result.item_ids == ("gen-1",)
        assert result.items[0].kind is kind

    @pytest.mark.parametrize("kind", SUPPORTED_KINDS, ids=lambda k: k.value)
    def test_generate_when_json_then_no_layout_whitespace(self, kind):
        body = json.loads(generate(kind, "gen-1", Format.STRUCTURED))["itemBody"]
        assert body["content"][0]["@type"] == "paragraph"
        assert "\\n" not in json.dumps(body)
        assert all(n.get("text", "").strip() for n in body["content"] if n["@type"] == "text")

    def test_generate_when_version_2_1_then_v2_namespace(self):
        text = generate("choice", "old-1", Format.MARKUP, SpecVersion.V2_1)
        assert "imsqti_v2p1" in text
        result = parse(text)
        assert result.version is SpecVersion.V2_1
        assert result.errors == ()

    def test_generate_when_kind_is_text_then_accepted(self):
        assert parse(generate("slider", "s1")).items[0].kind is InteractionKind.SLIDER

    def test_generate_when_kind_unknown_then_raises(self):
        with pytest.raises(TemplateError):
            generate(InteractionKind.UNKNOWN, "x1")
        with pytest.raises(TemplateError):
            generate("matchInteraction", "x1")

    def test_generate_when_json_at_2_1_then_raises(self):
        with pytest.raises(TemplateError, match="3.0"):
            generate("choice", "x1", Format.STRUCTURED, SpecVersion.V2_1)

    @pytest.mark.parametrize("bad_id", ["", "has space"])
    def test_generate_when_identifier_invalid_then_raises(self, bad_id):
        with pytest.raises(TemplateError):
            generate("choice", bad_id)

    def test_generate_when_slider_then_correct_value_in_range(self):
        item = parse(generate("slider", "s1")).items[0]
        slider = item.primary_interaction
        assert slider.lower_bound == 0.0
        assert slider.upper_bound == 100.0
        assert item.primary_declaration.correct_response == ("50",)

    def test_generate_when_extended_text_then_no_correct_response(self):
        item = parse(generate("extendedText", "e1")).items[0]
        assert item.requires_free_text
        assert not item.primary_declaration.has_correct_response


class TestIdentifiersAndBlank:
    """Tests for new_item_id and blank_document."""

    def test_new_item_id_when_called_twice_then_unique(self):
        first, second = new_item_id(), new_item_id()
        assert first != second
        assert re.fullmatch(r"item-[0-9a-f]{12}", first)

    @pytest.mark.parametrize("fmt", [Format.MARKUP, Format.STRUCTURED])
    def test_blank_document_then_one_choice_item(self, fmt):
        result = parse(blank_document(fmt))
        assert result.errors == ()
        assert result.items[0].kind is InteractionKind.CHOICE
        assert result.items[0].title == "New QTI 3.0 Item"

    def test_blank_document_when_json_at_2_1_then_raises(self):
        with pytest.raises(TemplateError):
            blank_document(Format.STRUCTURED, SpecVersion.V2_1)

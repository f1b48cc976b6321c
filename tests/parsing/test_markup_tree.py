"""
Unit Tests for the Markup Span Tree

Tests for build_tree offsets and syntax issue reporting.
"""

from qti_toolkit.parsing.markup_tree import build_tree, line_indent


class TestBuildTree:
    """Tests for build_tree."""

    def test_build_when_well_formed_then_spans_cover_source(self):
        """Element spans index back into the exact source text."""
        source = '<a x="1"><b>hi</b><c/></a>'
        doc = build_tree(source)
        assert doc.issues == []
        root = doc.roots[0]
        b = root.find("b")
        assert source[b.start:b.end] == "<b>hi</b>"
        assert source[b.inner_start:b.inner_end] == "hi"
        c = root.find("c")
        assert c.self_closing
        assert source[c.start:c.end] == "<c/>"

    def test_build_when_attribute_has_entity_then_decoded(self):
        doc = build_tree('<a title="Fish &amp; Chips"/>')
        assert doc.roots[0].get("title") == "Fish & Chips"
        attribute = doc.roots[0].attribute("title")
        assert doc.source[attribute.value_start:attribute.value_end] == "Fish &amp; Chips"

    def test_build_when_element_unclosed_then_issue_with_position(self):
        """Unclosed elements are reported with 1-based line and column."""
        doc = build_tree("<a>\n  <b>text\n</a>")
        assert len(doc.issues) == 1
        assert doc.format_issue(doc.issues[0]) == "line 2, column 3: <b> was not closed before </a>"

    def test_build_when_stray_closing_tag_then_issue(self):
        doc = build_tree("<a></b></a>")
        assert [i.message for i in doc.issues] == ["unexpected closing tag </b>"]

    def test_build_when_bare_ampersand_then_issue(self):
        doc = build_tree("<p>salt & pepper</p>")
        assert [i.message for i in doc.issues] == ["unescaped '&'"]

    def test_build_when_text_outside_elements_then_issue(self):
        doc = build_tree("<a/>\nloose words")
        assert doc.issues[0].message == "text outside of any element"

    def test_build_when_item_opens_inside_item_then_first_closed(self):
        """Items never nest; a new item start closes the open one."""
        source = '<assessmentItem identifier="a"><itemBody>\n<assessmentItem identifier="b"></assessmentItem>'
        doc = build_tree(source)
        assert [root.get("identifier") for root in doc.roots] == ["a", "b"]
        assert any("was not closed before <assessmentItem>" in i.message for i in doc.issues)

    def test_build_when_declaration_and_comment_then_skipped(self):
        doc = build_tree('<?xml version="1.0"?>\n<!-- note -->\n<a/>')
        assert doc.issues == []
        assert [root.tag for root in doc.roots] == ["a"]


class TestLineIndent:
    """Tests for line_indent."""

    def test_line_indent_returns_leading_whitespace(self):
        source = "<a>\n    <b/>\n</a>"
        assert line_indent(source, source.index("<b/>")) == "    "

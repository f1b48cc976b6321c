"""
Unit Tests for EditorSession

Tests for format locking, edits through the session, and preview
scoring that follows the latest parse.
"""

import pytest

from qti_toolkit.core.models import Format, InteractionKind, SpecVersion
from qti_toolkit.editing import EditError, ReplaceWhole
from qti_toolkit.editing.templates import BLANK_ITEM_ID
from qti_toolkit.session import EditorSession, FormatLockedError


@pytest.fixture
def session() -> EditorSession:
    """Session holding the blank starter document."""
    s = EditorSession()
    s.create_blank()
    return s


class TestDocumentState:
    """Tests for loading, format locking and versions."""

    def test_new_session_when_empty_then_unlocked(self):
        s = EditorSession()
        assert not s.has_content
        assert not s.format_locked
        assert s.items == ()
        s.set_format(Format.STRUCTURED)
        assert s.format is Format.STRUCTURED

    def test_create_blank_then_one_item_and_locked(self, session):
        assert [i.identifier for i in session.items] == [BLANK_ITEM_ID]
        assert session.errors == ()
        assert session.format_locked

    def test_set_format_when_locked_then_raises(self, session):
        with pytest.raises(FormatLockedError):
            session.set_format("json")
        session.set_format(Format.MARKUP)

    def test_clear_then_format_unlocked(self, session):
        session.clear()
        assert not session.format_locked
        assert session.format is Format.MARKUP
        session.set_format(Format.STRUCTURED)

    def test_set_format_when_json_at_2_1_then_version_bumped(self):
        s = EditorSession(version=SpecVersion.V2_1)
        s.set_format(Format.STRUCTURED)
        assert s.version is SpecVersion.V3_0

    def test_set_version_when_json_and_2_1_then_raises(self):
        s = EditorSession(format=Format.STRUCTURED)
        with pytest.raises(ValueError):
            s.set_version("2.1")

    def test_load_when_json_then_format_detected(self, json_item):
        s = EditorSession()
        result = s.load(json_item)
        assert s.format is Format.STRUCTURED
        assert result.item_ids == ("j1",)

    def test_update_text_when_empty_session_then_adopts_format(self, json_item):
        s = EditorSession()
        s.update_text(json_item)
        assert s.format is Format.STRUCTURED
        assert s.format_locked

    def test_update_text_when_blanked_then_no_result(self, session):
        result = session.update_text("")
        assert result.items == ()
        assert session.result is None
        assert not session.format_locked

    def test_update_text_when_broken_then_errors_reported(self, session):
        session.update_text(session.raw_text.replace("</itemBody>", ""))
        assert session.errors
        assert session.items == ()


class TestSessionEdits:
    """Tests for edits applied through the session."""

    def test_add_item_then_appended_and_returned(self, session):
        new_id = session.add_item("slider")
        assert [i.identifier for i in session.items] == [BLANK_ITEM_ID, new_id]
        assert session.item(new_id).kind is InteractionKind.SLIDER

    def test_add_item_when_front_then_first(self, session):
        new_id = session.add_item(InteractionKind.ORDER, after_index=-1, item_id="ord-1")
        assert new_id == "ord-1"
        assert session.items[0].identifier == "ord-1"

    def test_add_item_when_json_session_then_json_item(self):
        s = EditorSession(format=Format.STRUCTURED)
        s.create_blank()
        new_id = s.add_item("hottext")
        assert s.raw_text.lstrip().startswith("[")
        assert s.item(new_id).kind is InteractionKind.HOTTEXT

    def test_move_item_then_reordered(self, session):
        new_id = session.add_item("choice")
        session.move_item(1, 0)
        assert [i.identifier for i in session.items] == [new_id, BLANK_ITEM_ID]

    def test_move_item_when_same_index_then_unchanged(self, session):
        text = session.raw_text
        session.move_item(0, 0)
        assert session.raw_text == text

    def test_apply_when_refused_then_text_unchanged(self, session):
        text = session.raw_text
        with pytest.raises(EditError):
            session.apply(ReplaceWhole(text.replace("</itemBody>", "")))
        assert session.raw_text == text


class TestPreviewScoring:
    """Tests for responses and scores held by the session."""

    def test_record_response_then_scored(self, session):
        verdict = session.record_response(BLANK_ITEM_ID, "ChoiceA")
        assert verdict.is_correct is True
        assert session.total().earned == 1.0

    def test_set_correct_response_then_stored_response_rescored(self, session):
        session.record_response(BLANK_ITEM_ID, "ChoiceA")
        session.set_correct_response(BLANK_ITEM_ID, ["ChoiceB"])
        assert session.scores[BLANK_ITEM_ID].is_correct is False
        session.record_response(BLANK_ITEM_ID, "ChoiceB")
        assert session.scores[BLANK_ITEM_ID].is_correct is True

    def test_record_response_when_item_unknown_then_none(self, session):
        assert session.record_response("ghost", "x") is None
        assert "ghost" in session.responses

    def test_scoring_disabled_then_no_scores_until_enabled(self, session):
        session.set_scoring_enabled(False)
        assert session.record_response(BLANK_ITEM_ID, "ChoiceA") is None
        assert session.scores == {}
        session.set_scoring_enabled(True)
        assert session.scores[BLANK_ITEM_ID].is_correct is True

    def test_manual_score_when_free_text_then_graded(self, session):
        essay = session.add_item("extendedText")
        assert session.record_response(essay, "My essay").requires_manual_scoring
        assert session.total().requires_manual_scoring
        graded = session.manual_score(essay, 1.0, "Good")
        assert graded.earned == 1.0
        assert not session.total().requires_manual_scoring

    def test_manual_score_when_other_item_edited_then_grade_kept(self, session):
        essay = session.add_item("extendedText")
        session.record_response(essay, "My essay")
        session.manual_score(essay, 1.0, "Good")
        session.add_item("slider")
        kept = session.scores[essay]
        assert (kept.earned, kept.feedback) == (1.0, "Good")
        assert not kept.requires_manual_scoring

    def test_manual_score_when_answered_again_then_needs_grading(self, session):
        essay = session.add_item("extendedText")
        session.record_response(essay, "My essay")
        session.manual_score(essay, 1.0)
        assert session.record_response(essay, "Second draft").requires_manual_scoring
        session.add_item("slider")
        assert session.scores[essay].requires_manual_scoring

    def test_manual_score_when_nothing_recorded_then_key_error(self, session):
        with pytest.raises(KeyError):
            session.manual_score(BLANK_ITEM_ID, 1.0)

    def test_reset_scoring_then_cleared(self, session):
        session.record_response(BLANK_ITEM_ID, "ChoiceA")
        session.reset_scoring()
        assert session.responses == {}
        assert session.total().total_item_count == 0

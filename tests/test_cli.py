"""
Unit Tests for the Command Line

Tests call main() directly and inspect exit codes and captured output.
"""

import io
import json

import pytest

from qti_toolkit.cli import main
from qti_toolkit.parsing import parse


@pytest.fixture
def item_file(tmp_path, three_items):
    path = tmp_path / "items.xml"
    path.write_text(three_items, encoding="utf-8")
    return path


class TestParseCommand:
    """Tests for the parse subcommand."""

    def test_parse_when_clean_then_summary_and_zero(self, item_file, capsys):
        assert main(["parse", str(item_file)]) == 0
        summary = json.loads(capsys.readouterr().out)
        assert [i["identifier"] for i in summary["items"]] == ["q1", "q2", "q3"]
        assert summary["format"] == "xml"
        assert summary["errors"] == []

    def test_parse_when_errors_then_exit_one(self, tmp_path, capsys):
        path = tmp_path / "broken.xml"
        path.write_text("<assessmentItem><itemBody>", encoding="utf-8")
        assert main(["parse", str(path)]) == 1
        assert json.loads(capsys.readouterr().out)["errors"]

    def test_parse_when_stdin_then_read(self, monkeypatch, capsys, json_item):
        monkeypatch.setattr("sys.stdin", io.StringIO(json_item))
        assert main(["parse", "-"]) == 0
        assert json.loads(capsys.readouterr().out)["format"] == "json"

    def test_parse_when_file_missing_then_exit_two(self, tmp_path, capsys):
        assert main(["parse", str(tmp_path / "absent.xml")]) == 2
        assert capsys.readouterr().err.startswith("Error:")


class TestScoreCommand:
    """Tests for the score subcommand."""

    def test_score_when_correct_then_verdict(self, item_file, capsys):
        assert main(["score", str(item_file), "q2", "choiceA"]) == 0
        verdict = json.loads(capsys.readouterr().out)
        assert verdict["itemId"] == "q2"
        assert verdict["isCorrect"] is True

    def test_score_when_json_response_then_parsed(self, item_file, capsys):
        assert main(["score", str(item_file), "q1", "--json", '["choiceA", "choiceB"]']) == 0
        verdict = json.loads(capsys.readouterr().out)
        assert verdict["error"] == "2 values submitted for single-cardinality response 'RESPONSE'"

    def test_score_when_item_missing_then_exit_two(self, item_file, capsys):
        assert main(["score", str(item_file), "nope", "x"]) == 2
        assert "not found" in capsys.readouterr().err


class TestDocumentCommands:
    """Tests for generate, convert and the edit subcommands."""

    def test_generate_then_parseable_item(self, capsys):
        assert main(["generate", "order", "--id", "ord-1"]) == 0
        result = parse(capsys.readouterr().out)
        assert result.errors == ()
        assert result.item_ids == ("ord-1",)

    def test_generate_when_json_at_2_1_then_exit_two(self, capsys):
        assert main(["generate", "choice", "--format", "json", "--version", "2.1"]) == 2
        assert "3.0" in capsys.readouterr().err

    def test_convert_then_json_output(self, item_file, capsys):
        assert main(["convert", str(item_file), "--to", "json"]) == 0
        assert parse(capsys.readouterr().out).item_ids == ("q1", "q2", "q3")

    def test_set_correct_when_in_place_then_file_updated(self, item_file):
        assert main(["set-correct", str(item_file), "q3", "choiceB", "--in-place"]) == 0
        result = parse(item_file.read_text(encoding="utf-8"))
        assert result.item("q3").primary_declaration.correct_response == ("choiceB",)

    def test_insert_then_fragment_added(self, item_file, tmp_path, item_factory, capsys):
        fragment = tmp_path / "new.xml"
        fragment.write_text(item_factory("q9"), encoding="utf-8")
        assert main(["insert", str(item_file), str(fragment), "--after", "0"]) == 0
        assert parse(capsys.readouterr().out).item_ids == ("q1", "q9", "q2", "q3")

    def test_reorder_then_permuted(self, item_file, capsys):
        assert main(["reorder", str(item_file), "2", "1", "0"]) == 0
        assert parse(capsys.readouterr().out).item_ids == ("q3", "q2", "q1")

    def test_reorder_when_invalid_then_exit_two(self, item_file, capsys):
        assert main(["reorder", str(item_file), "0", "0", "1"]) == 2
        assert capsys.readouterr().err.startswith("Error:")

    def test_version_flag_then_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("qti-toolkit ")

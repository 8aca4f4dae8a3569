"""
Tests for the medianotes CLI.

Every invocation passes --store so runs never touch ~/.medianotes.
"""

import json

import pytest
from typer.testing import CliRunner

from medianotes.cli import app
from medianotes.insights import Insights
from medianotes.providers.base import Availability, UnavailableReason

from tests.conftest import FakeRuntime


runner = CliRunner()


@pytest.fixture
def cli(tmp_path):
    """Invoke the CLI against a temporary store."""
    def invoke(*args):
        return runner.invoke(app, ["--store", str(tmp_path), *args])
    return invoke


def _add(cli, *args) -> dict:
    result = cli("--json", "add", *args)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def _note(cli, media_id, text) -> dict:
    result = cli("--json", "note", media_id, text)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


# ---------------------------------------------------------------------------
# Adding
# ---------------------------------------------------------------------------

class TestAdd:

    def test_kinds(self, cli):
        result = cli("kinds")
        assert result.exit_code == 0
        assert "tv_series" in result.output
        assert "contains episode" in result.output

    def test_add_movie(self, cli):
        result = cli("add", "Heat", "--kind", "movie", "--attr", "common.releaseYear=1995")
        assert result.exit_code == 0, result.output
        assert "Movie" in result.output
        assert "Heat" in result.output
        assert "(0 notes)" in result.output

    def test_add_json(self, cli):
        item = _add(cli, "Dune", "--kind", "book", "--attr", "book.author=Frank Herbert")
        assert item["kind"] == "book"
        assert item["subtitle"] == "Frank Herbert"
        assert item["attributes"] == {"book.author": "Frank Herbert"}

    def test_add_defaults_to_other(self, cli):
        assert _add(cli, "Something")["kind"] == "other"

    def test_add_under_parent_infers_kind(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        ep = _add(cli, "Pilot", "--parent", show["id"][:8], "--sort-key", "S01E01")
        assert ep["kind"] == "episode"
        assert ep["parent_id"] == show["id"]

    def test_blank_title(self, cli):
        result = cli("add", "   ", "--kind", "movie")
        assert result.exit_code == 1
        assert "must not be empty" in result.output

    def test_bad_kind(self, cli):
        result = cli("add", "Heat", "--kind", "podcast")
        assert result.exit_code == 2

    def test_bad_attr(self, cli):
        result = cli("add", "Heat", "--attr", "no-equals-sign")
        assert result.exit_code == 2

    def test_child(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        result = cli("child", show["id"], "Pilot", "--sort-key", "S01E01")
        assert result.exit_code == 0, result.output
        assert "Breaking Bad → Pilot" in result.output
        assert "Episode" in result.output

    def test_child_of_leaf(self, cli):
        movie = _add(cli, "Heat", "--kind", "movie")
        result = cli("child", movie["id"], "Scene")
        assert result.exit_code == 1
        assert "cannot have children" in result.output


# ---------------------------------------------------------------------------
# Notes, listing, showing
# ---------------------------------------------------------------------------

class TestNotesAndListing:

    def test_note_and_list(self, cli):
        movie = _add(cli, "Heat", "--kind", "movie")
        note = _note(cli, movie["id"], "Great heist")
        assert note["media_item_id"] == movie["id"]

        result = cli("list")
        assert result.exit_code == 0
        assert "Heat" in result.output
        assert "(1 note)" in result.output

    def test_blank_note_rejected(self, cli):
        movie = _add(cli, "Heat", "--kind", "movie")
        result = cli("note", movie["id"], "   ")
        assert result.exit_code == 1
        assert "must not be empty" in result.output

    def test_empty_list(self, cli):
        _add(cli, "Unwatched", "--kind", "movie")
        result = cli("list")
        assert result.exit_code == 0
        assert "No media with notes yet" in result.output

    def test_list_all_includes_unnoted(self, cli):
        _add(cli, "Unwatched", "--kind", "movie")
        result = cli("list", "--all")
        assert "Unwatched" in result.output

    def test_list_sorted_and_filtered(self, cli):
        for title, kind in [("Heat", "movie"), ("alien", "movie"), ("Dune", "book")]:
            item = _add(cli, title, "--kind", kind)
            _note(cli, item["id"], f"about {title}")
        result = cli("--json", "list", "--sort", "alphabetical", "--kind", "movie")
        assert [i["title"] for i in json.loads(result.output)] == ["alien", "Heat"]

    def test_show_item(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        cli("child", show["id"], "Pilot", "--sort-key", "S01E01")
        _note(cli, show["id"], "Slow start, huge payoff")

        result = cli("show", show["id"][:8])
        assert result.exit_code == 0, result.output
        assert "Breaking Bad" in result.output
        assert "Episodes:" in result.output
        assert "Pilot" in result.output
        assert "Notes (1 here, 1 total)" in result.output

    def test_show_includes_children_notes(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        pilot = json.loads(cli("--json", "child", show["id"], "Pilot").output)
        _note(cli, pilot["id"], "Great pilot")

        result = cli("show", show["id"])
        assert result.exit_code == 0, result.output
        assert "Notes (0 here, 1 total)" in result.output
        assert "[Breaking Bad → Pilot] Great pilot" in result.output

        data = json.loads(cli("--json", "show", show["id"]).output)
        assert [n["text"] for n in data["notes"]] == ["Great pilot"]

    def test_show_child_filter(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        pilot = json.loads(cli("--json", "child", show["id"], "Pilot").output)
        finale = json.loads(cli("--json", "child", show["id"], "Felina").output)
        _note(cli, pilot["id"], "Great pilot")
        _note(cli, finale["id"], "Perfect ending")
        _note(cli, show["id"], "Best show")

        result = cli("show", show["id"], "--child", finale["id"][:8])
        assert result.exit_code == 0, result.output
        assert "Notes on Breaking Bad → Felina (1):" in result.output
        assert "Perfect ending" in result.output
        assert "Great pilot" not in result.output
        assert "Best show" not in result.output

    def test_show_child_filter_rejects_unrelated_item(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        movie = _add(cli, "Heat", "--kind", "movie")
        result = cli("show", show["id"], "--child", movie["id"])
        assert result.exit_code == 1
        assert "is not under" in result.output

    def test_show_note(self, cli):
        movie = _add(cli, "Heat", "--kind", "movie")
        note = cli("--json", "note", movie["id"], "Great heist", "--quote", "Don't let yourself get attached")
        note_id = json.loads(note.output)["id"]
        result = cli("show", note_id)
        assert result.exit_code == 0
        assert "On: Heat" in result.output
        assert "> Don't let yourself get attached" in result.output

    def test_show_unknown(self, cli):
        result = cli("show", "deadbeef")
        assert result.exit_code == 1
        assert "Error:" in result.output


# ---------------------------------------------------------------------------
# Editing and deleting
# ---------------------------------------------------------------------------

class TestEditDelete:

    def test_edit_note(self, cli):
        movie = _add(cli, "Heat", "--kind", "movie")
        note = _note(cli, movie["id"], "draft")
        result = cli("--json", "edit", note["id"], "--text", "final")
        assert result.exit_code == 0, result.output
        edited = json.loads(result.output)
        assert edited["text"] == "final"
        assert edited["edited_at"] is not None

    def test_edit_item_title_and_attrs(self, cli):
        book = _add(cli, "Dnue", "--kind", "book", "--attr", "book.isbn=123")
        result = cli("--json", "edit", book["id"], "--title", "Dune", "--attr", "book.isbn=")
        edited = json.loads(result.output)
        assert edited["title"] == "Dune"
        assert edited["attributes"] == {}

    def test_delete_item_and_note(self, cli):
        show = _add(cli, "Breaking Bad", "--kind", "tv_series")
        movie = _add(cli, "Heat", "--kind", "movie")
        note = _note(cli, movie["id"], "bye")

        result = cli("del", show["id"], note["id"])
        assert result.exit_code == 0, result.output
        assert result.output.count("Deleted") == 2

        assert cli("show", show["id"]).exit_code == 1
        assert "Notes (0 here, 0 total)" in cli("show", movie["id"]).output

    def test_delete_missing_reports_error(self, cli):
        result = cli("del", "deadbeef")
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

class TestSearch:

    def test_blank_query(self, cli):
        result = cli("search", "   ")
        assert result.exit_code == 1
        assert "Enter a search term." in result.output

    def test_no_results(self, cli):
        result = cli("search", "zebra")
        assert result.exit_code == 0
        assert "No results for 'zebra'" in result.output

    def test_note_and_title_matches(self, cli):
        movie = _add(cli, "Inception", "--kind", "movie")
        _note(cli, movie["id"], "This movie is amazing!")

        result = cli("--json", "search", "AMAZING")
        data = json.loads(result.output)
        assert data["searched"] is True
        assert data["media"] == []
        assert [n["text"] for n in data["notes"]] == ["This movie is amazing!"]

        result = cli("search", "inception", "--scope", "media")
        assert "Media (1):" in result.output
        assert "Notes (" not in result.output


# ---------------------------------------------------------------------------
# Insights and config
# ---------------------------------------------------------------------------

class TestInsights:

    def test_unavailable(self, cli):
        cli("config", "--model", "none")
        result = cli("insights")
        assert result.exit_code == 1
        assert "Apple Intelligence not enabled" in result.output
        assert "No model configured" in result.output

    def test_unavailable_reason_from_runtime(self, cli, monkeypatch):
        runtime = FakeRuntime(availability=Availability.unavailable(UnavailableReason.DEVICE_NOT_ELIGIBLE))
        monkeypatch.setattr("medianotes.api.create_runtime", lambda config: runtime)
        result = cli("insights")
        assert result.exit_code == 1
        assert "Insights not supported on this device" in result.output
        assert runtime.respond_calls == 0

    def test_generates(self, cli, monkeypatch):
        runtime = FakeRuntime()
        monkeypatch.setattr("medianotes.api.create_runtime", lambda config: runtime)
        movie = _add(cli, "Heat", "--kind", "movie")
        _note(cli, movie["id"], "Tense")

        result = cli("insights", movie["id"])

        assert result.exit_code == 0, result.output
        assert "Insights for Heat" in result.output
        assert Insights.example().summary in result.output
        assert "Why:" in result.output
        assert "You might enjoy:" in result.output
        assert movie["id"] in runtime.last_prompt

    def test_generation_error(self, cli, monkeypatch):
        runtime = FakeRuntime(error=RuntimeError("model crashed"))
        monkeypatch.setattr("medianotes.api.create_runtime", lambda config: runtime)
        result = cli("insights")
        assert result.exit_code == 1
        assert "model crashed" in result.output

    def test_json(self, cli, monkeypatch):
        monkeypatch.setattr("medianotes.api.create_runtime", lambda config: FakeRuntime())
        result = cli("--json", "insights")
        assert json.loads(result.output) == Insights.example().model_dump()


class TestConfig:

    def test_show(self, cli, tmp_path):
        result = cli("--json", "config")
        data = json.loads(result.output)
        assert data["store"] == str(tmp_path.resolve())
        assert data["model"]["name"] == "ollama"
        assert data["counts"]["media_items"] == 0

    def test_change_model(self, cli):
        result = cli("config", "--model", "ollama", "--set", "model=phi3", "--set", "max_tool_rounds=2")
        assert result.exit_code == 0, result.output
        assert "model: ollama" in result.output
        assert "max_tool_rounds: 2" in result.output

        data = json.loads(cli("--json", "config").output)
        assert data["model"] == {"name": "ollama", "model": "phi3", "max_tool_rounds": 2}

    def test_unknown_model(self, cli):
        result = cli("config", "--model", "skynet")
        assert result.exit_code == 1
        assert "unknown model runtime" in result.output

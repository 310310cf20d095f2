"""Test CLI commands."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from beatweaver import __version__
from beatweaver.cli import _load_beats, _resolve_project_path, app
from beatweaver.models import ChapterFinalState
from beatweaver.persistence import SqliteChapterStore
from tests.fixtures.scripted_generation import ScriptedGeneration, beat_dict, clean_continuity

runner = CliRunner()

STORY_YAML = """\
synopsis:
  title: Tidewater
outline:
  chapters:
    - title: Embers
      summary: Mara Vell and Tomas flee the burning mill.
    - title: High Water
      summary: The flood reaches the village.
library:
  characters:
    - {name: Mara Vell, role: protagonist}
    - {name: Tomas, role: supporting}
  locations:
    - {name: Old Mill}
    - {name: Village Square}
"""


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An initialised project with a filled-in story.yaml."""
    result = runner.invoke(app, ["init", "tidewater", "--path", str(tmp_path)])
    assert result.exit_code == 0
    project_path = tmp_path / "tidewater"
    (project_path / "story.yaml").write_text(STORY_YAML)
    return project_path


def _store_state(project_path: Path, state: ChapterFinalState) -> None:
    with SqliteChapterStore(project_path / "chapters.db") as store:
        asyncio.run(store.store_chapter_final_state(state.chapter_number, state))


def _write_beats(path: Path, beats: list[dict[str, object]]) -> Path:
    path.write_text(json.dumps({"beats": beats}))
    return path


def test_version_command() -> None:
    """Test bw version command."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout


def test_no_args_shows_help() -> None:
    """Test that no arguments shows help."""
    result = runner.invoke(app, [])
    # no_args_is_help=True returns exit code 2 (not 0 like --help)
    assert result.exit_code == 2
    assert "BeatWeaver" in result.stdout


# --- Init Command Tests ---


def test_init_creates_project(tmp_path: Path) -> None:
    """Test bw init creates project structure."""
    result = runner.invoke(app, ["init", "my_story", "--path", str(tmp_path)])

    assert result.exit_code == 0
    assert "Created project" in result.stdout

    project_path = tmp_path / "my_story"
    assert (project_path / "project.yaml").exists()
    assert (project_path / "story.yaml").exists()
    assert (project_path / "beats").is_dir()


def test_init_with_provider(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["init", "my_story", "--path", str(tmp_path), "--provider", "ollama/qwen3:8b"]
    )

    assert result.exit_code == 0
    assert "ollama/qwen3:8b" in (tmp_path / "my_story" / "project.yaml").read_text()


def test_init_existing_directory_fails(tmp_path: Path) -> None:
    (tmp_path / "my_story").mkdir()

    result = runner.invoke(app, ["init", "my_story", "--path", str(tmp_path)])

    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_init_uses_projects_dir(tmp_path: Path) -> None:
    result = runner.invoke(app, ["--projects-dir", str(tmp_path), "init", "my_story"])
    assert result.exit_code == 0
    assert (tmp_path / "my_story" / "project.yaml").exists()


# --- Project resolution ---


def test_resolve_project_path_defaults_to_cwd() -> None:
    assert str(_resolve_project_path(None)) == "."


def test_resolve_project_path_by_name(tmp_path: Path) -> None:
    """A bare name is looked up in the projects directory."""
    (tmp_path / "tidewater").mkdir()
    with patch("beatweaver.cli._projects_dir", tmp_path):
        assert _resolve_project_path(Path("tidewater")) == tmp_path / "tidewater"


def test_missing_project_fails(tmp_path: Path) -> None:
    result = runner.invoke(app, ["state", "1", "--project", str(tmp_path / "nowhere")])
    assert result.exit_code == 1
    assert "No project.yaml found" in result.stdout


# --- Generate Command Tests ---


def test_generate_writes_beats(project: Path) -> None:
    """Generate runs the pipeline, writes the beats file and stores state."""
    generation = ScriptedGeneration(
        {
            "draft_beats": [
                {
                    "beats": [
                        beat_dict(1, location="Old Mill"),
                        beat_dict(2, location="Old Mill"),
                    ]
                }
            ],
            "continuity": [clean_continuity()],
        }
    )

    with patch("beatweaver.providers.create_generation_service", return_value=generation):
        result = runner.invoke(app, ["generate", "2", "--project", str(project)])

    assert result.exit_code == 0, result.stdout
    output = json.loads((project / "beats" / "chapter_02.json").read_text())
    assert [b["beat_number"] for b in output["beats"]] == [1, 2]
    assert output["validation"]["is_valid"] is True
    assert output["chapter_final_state"]["chapter_number"] == 2

    state_result = runner.invoke(app, ["state", "2", "--project", str(project)])
    assert state_result.exit_code == 0
    assert "Old Mill" in state_result.stdout


def test_generate_unknown_chapter_fails(project: Path) -> None:
    with patch(
        "beatweaver.providers.create_generation_service", return_value=ScriptedGeneration()
    ):
        result = runner.invoke(app, ["generate", "9", "--project", str(project)])

    assert result.exit_code == 1
    assert "Chapter 9 not in outline" in result.stdout


def test_generate_draft_failure_fails(project: Path) -> None:
    generation = ScriptedGeneration({"draft_beats": ["not json at all"]})

    with patch("beatweaver.providers.create_generation_service", return_value=generation):
        result = runner.invoke(app, ["generate", "1", "--project", str(project)])

    assert result.exit_code == 1
    assert not (project / "beats" / "chapter_01.json").exists()


# --- Validate Command Tests ---


def test_validate_clean_beats(project: Path, tmp_path: Path) -> None:
    beats_file = _write_beats(
        tmp_path / "beats.json",
        [beat_dict(1, location="Old Mill"), beat_dict(2, location="Old Mill")],
    )

    result = runner.invoke(
        app, ["validate", str(beats_file), "--chapter", "2", "--project", str(project)]
    )

    assert result.exit_code == 0, result.stdout
    assert "No issues found" in result.stdout


def test_validate_reports_illegal_location(project: Path, tmp_path: Path) -> None:
    beats_file = _write_beats(tmp_path / "beats.json", [beat_dict(1, location="Moon Base")])

    result = runner.invoke(
        app, ["validate", str(beats_file), "-c", "2", "--project", str(project)]
    )

    assert result.exit_code == 0
    assert "Moon Base" in result.stdout


def test_validate_critical_issue_exits_nonzero(project: Path, tmp_path: Path) -> None:
    """A dead character from the stored previous chapter makes validation fail."""
    _store_state(project, ChapterFinalState(chapter_number=1, dead_characters=["Tomas"]))
    beats_file = _write_beats(tmp_path / "beats.json", [beat_dict(1, location="Old Mill")])

    result = runner.invoke(
        app, ["validate", str(beats_file), "-c", "2", "--project", str(project)]
    )

    assert result.exit_code == 1


def test_validate_malformed_file(project: Path, tmp_path: Path) -> None:
    beats_file = tmp_path / "beats.json"
    beats_file.write_text("{broken")

    result = runner.invoke(app, ["validate", str(beats_file), "--project", str(project)])

    assert result.exit_code == 1


def test_load_beats_accepts_bare_list(tmp_path: Path) -> None:
    path = tmp_path / "beats.json"
    path.write_text(json.dumps([beat_dict(1), beat_dict(2)]))
    assert [b.beat_number for b in _load_beats(path)] == [1, 2]


# --- State Command Tests ---


def test_state_shows_stored_state(project: Path) -> None:
    _store_state(
        project,
        ChapterFinalState(chapter_number=1, dead_characters=["Tomas"], final_location="Old Mill"),
    )

    result = runner.invoke(app, ["state", "1", "--project", str(project)])

    assert result.exit_code == 0
    assert "Tomas" in result.stdout
    assert "Old Mill" in result.stdout


def test_state_missing_chapter(project: Path) -> None:
    result = runner.invoke(app, ["state", "3", "--project", str(project)])
    assert result.exit_code == 1
    assert "No stored state for chapter 3" in result.stdout

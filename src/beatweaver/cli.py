"""BeatWeaver CLI - typer application entry point."""

from __future__ import annotations

import asyncio
import atexit
import json
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from beatweaver.observability import close_file_logging, configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

if TYPE_CHECKING:
    from beatweaver.models import Beat, BeatPipelineResult, ChapterFinalState, Issue

app = typer.Typer(
    name="bw",
    help="BeatWeaver: chapter beat generation with continuity validation.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

DEFAULT_PROJECTS_DIR = Path("projects")
DB_FILE = "chapters.db"
BEATS_DIR = "beats"

SEVERITY_STYLES = {
    "critical": "[red]critical[/red]",
    "warning": "[yellow]warning[/yellow]",
    "suggestion": "[dim]suggestion[/dim]",
}

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_projects_dir: Path = DEFAULT_PROJECTS_DIR

ProjectOption = Annotated[
    Path | None,
    typer.Option(
        "--project",
        "-p",
        help="Project directory. Can be a path or name (looks in --projects-dir).",
    ),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {project}/logs/ (debug.jsonl, llm_calls.jsonl).",
        ),
    ] = False,
    projects_dir: Annotated[
        Path,
        typer.Option(
            "--projects-dir",
            "-d",
            help="Base directory for projects (default: ./projects).",
            envvar="BW_PROJECTS_DIR",
        ),
    ] = DEFAULT_PROJECTS_DIR,
) -> None:
    """BeatWeaver: chapter beat generation with continuity validation."""
    global _verbose, _log_enabled, _projects_dir
    _verbose = verbose
    _log_enabled = log_to_file
    _projects_dir = projects_dir

    configure_logging(verbosity=verbose)


def _configure_project_logging(project_path: Path) -> None:
    """Configure file logging if --log flag was set."""
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=project_path)
        atexit.register(close_file_logging)


def _resolve_project_path(project: Path | None) -> Path:
    """Resolve a project argument to a directory.

    ``None`` means the current directory; a bare name that does not exist
    as given is looked up in the projects directory.
    """
    if project is None:
        return Path()
    if project.exists():
        return project
    if len(project.parts) == 1:
        projects_path = _projects_dir / project
        if projects_path.exists():
            return projects_path
    return project


def _require_project(project_path: Path) -> None:
    """Verify project.yaml exists, exit with error if not."""
    if not (project_path / "project.yaml").exists():
        console.print(
            "[red]Error:[/red] No project.yaml found. Run 'bw init <name>' first, or use --project."
        )
        raise typer.Exit(1)


def _issues_table(title: str, issues: Sequence[Issue]) -> Table:
    table = Table(title=title)
    table.add_column("Beat", justify="right", style="cyan")
    table.add_column("Severity")
    table.add_column("Type", style="bold")
    table.add_column("Description")
    table.add_column("Source", style="dim")
    for issue in issues:
        table.add_row(
            str(issue.beat_number) if issue.beat_number is not None else "-",
            SEVERITY_STYLES.get(issue.severity, issue.severity),
            issue.type,
            issue.description,
            issue.source or "-",
        )
    return table


def _beats_table(title: str, beats: Sequence[Beat]) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Type")
    table.add_column("Location")
    table.add_column("Characters")
    table.add_column("Summary")
    for beat in beats:
        location = beat.location
        if beat.location_corrected:
            location = f"{location} [dim](was {beat.original_location})[/dim]"
        table.add_row(
            str(beat.beat_number),
            beat.type.value,
            location,
            ", ".join(beat.characters),
            beat.summary,
        )
    return table


def _state_table(state: ChapterFinalState) -> Table:
    table = Table(title=f"Chapter {state.chapter_number} final state")
    table.add_column("Fact", style="cyan")
    table.add_column("Value")
    table.add_row("Dead characters", ", ".join(state.dead_characters) or "-")
    table.add_row("Lost items", ", ".join(state.lost_items) or "-")
    table.add_row("Destroyed items", ", ".join(state.destroyed_items) or "-")
    table.add_row("Final location", state.final_location or "-")
    for name, location in sorted(state.character_locations.items()):
        table.add_row(f"Location: {name}", location)
    for owner, items in sorted(state.character_inventory.items()):
        table.add_row(f"Inventory: {owner}", ", ".join(items))
    return table


@app.command()
def version() -> None:
    """Show version information."""
    from beatweaver import __version__

    console.print(f"BeatWeaver v{__version__}")


@app.command()
def init(
    name: Annotated[str, typer.Argument(help="Project name")],
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            help="Parent directory for the project (default: --projects-dir).",
        ),
    ] = None,
    provider: Annotated[
        str | None,
        typer.Option(
            "--provider",
            help="Generation provider (e.g., openai/gpt-4o, ollama/qwen3:8b).",
        ),
    ] = None,
) -> None:
    """Initialize a new story project.

    Creates a project directory with project.yaml, an empty story.yaml to
    fill in, and a beats/ directory for generated chapters.
    """
    from dataclasses import replace

    from beatweaver.pipeline.config import PipelineConfig, write_project_config
    from beatweaver.story import write_story_template

    parent_dir = path if path is not None else _projects_dir
    project_path = parent_dir / name
    if project_path.exists():
        console.print(f"[red]Error:[/red] Directory '{project_path}' already exists")
        raise typer.Exit(1)

    project_path.mkdir(parents=True)
    (project_path / BEATS_DIR).mkdir()
    config = PipelineConfig()
    if provider:
        config = replace(config, provider=provider)
    write_project_config(project_path, name, config)
    write_story_template(project_path)

    console.print(f"[green]✓[/green] Created project: [bold]{name}[/bold]")
    console.print(f"  Location: {project_path.absolute()}")
    console.print()
    console.print("Next steps:")
    console.print(f"  Fill in {project_path / 'story.yaml'}")
    console.print(f"  bw generate 1 --project {project_path}")


async def _run_generate(
    project_path: Path,
    chapter: int,
    provider: str | None,
    refine: bool,
) -> BeatPipelineResult:
    from dataclasses import replace

    from beatweaver.observability import LLMLogger
    from beatweaver.persistence import SqliteChapterStore
    from beatweaver.pipeline import BeatPipeline, load_pipeline_config
    from beatweaver.providers import create_generation_service
    from beatweaver.story import load_story

    config = load_pipeline_config(project_path)
    if provider:
        config = replace(config, provider=provider)
    if not refine:
        config = replace(config, refinement_enabled=False)
    story = load_story(project_path)
    request = story.request_for(chapter)

    llm_logger = LLMLogger(project_path, enabled=_log_enabled)
    generation = create_generation_service(config.provider, llm_logger=llm_logger)
    with SqliteChapterStore(project_path / DB_FILE) as store:
        store.set_linked_events(chapter, story.linked_events_for(chapter))
        pipeline = BeatPipeline(generation, persistence=store, config=config)
        return await pipeline.run(request)


@app.command()
def generate(
    chapter: Annotated[int, typer.Argument(help="Chapter number to generate", min=1)],
    project: ProjectOption = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="Override the project's provider (provider/model)."),
    ] = None,
    refine: Annotated[
        bool,
        typer.Option("--refine/--no-refine", help="Refine beats when critical issues exist."),
    ] = True,
) -> None:
    """Generate and validate beats for one chapter.

    Writes beats/chapter_NN.json and stores the chapter's final state for
    the next chapter's continuity checks.
    """
    from beatweaver.pipeline import ConfigError, PipelineError
    from beatweaver.providers import ProviderError
    from beatweaver.story import StoryFileError

    project_path = _resolve_project_path(project)
    _require_project(project_path)
    _configure_project_logging(project_path)

    try:
        with console.status(f"Generating chapter {chapter}..."):
            result = asyncio.run(_run_generate(project_path, chapter, provider, refine))
    except (ConfigError, StoryFileError, ProviderError, PipelineError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e.args[0]}")
        raise typer.Exit(1) from e

    beats_dir = project_path / BEATS_DIR
    beats_dir.mkdir(exist_ok=True)
    output_path = beats_dir / f"chapter_{chapter:02d}.json"
    output_path.write_text(result.model_dump_json(indent=2), encoding="utf-8")

    console.print(_beats_table(f"Chapter {chapter} beats", result.beats))
    if result.validation.issues:
        console.print(_issues_table("Validation issues", result.validation.issues))
    if result.timeline.error:
        console.print(f"[yellow]Timeline degraded:[/yellow] {result.timeline.error}")
    if result.validation.error:
        console.print(f"[yellow]Continuity check degraded:[/yellow] {result.validation.error}")

    status = "[green]valid[/green]" if result.validation.is_valid else "[red]invalid[/red]"
    console.print(f"Chapter {chapter}: {status} - {result.validation.summary}")
    console.print(f"[green]✓[/green] Wrote {output_path}")


def _load_beats(beats_file: Path) -> list[Beat]:
    """Read beats from a beats file, a pipeline result file, or a bare list."""
    from beatweaver.models import Beat

    data = json.loads(beats_file.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("beats", [])
    return [Beat.model_validate(raw) for raw in data]


@app.command()
def validate(
    beats_file: Annotated[
        Path, typer.Argument(help="Beats JSON file", exists=True, dir_okay=False)
    ],
    chapter: Annotated[int, typer.Option("--chapter", "-c", help="Chapter number", min=1)] = 1,
    project: ProjectOption = None,
) -> None:
    """Run the heuristic validators over an existing beats file.

    No generation calls are made. Exits with status 1 when a critical
    issue is found.
    """
    from pydantic import ValidationError

    from beatweaver.continuity import (
        is_valid_location,
        validate_character_introductions,
        validate_cross_chapter_continuity,
        validate_scene_transitions,
    )
    from beatweaver.persistence import SqliteChapterStore
    from beatweaver.pipeline.stages import assemble_context
    from beatweaver.story import StoryFileError, load_story

    project_path = _resolve_project_path(project)
    _require_project(project_path)
    _configure_project_logging(project_path)

    try:
        beats = _load_beats(beats_file)
        story = load_story(project_path)
        request = story.request_for(chapter)
    except (json.JSONDecodeError, ValidationError, StoryFileError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except KeyError as e:
        console.print(f"[red]Error:[/red] {e.args[0]}")
        raise typer.Exit(1) from e

    async def _validate() -> list[Issue]:
        with SqliteChapterStore(project_path / DB_FILE) as store:
            store.set_linked_events(chapter, story.linked_events_for(chapter))
            context = await assemble_context(request, store)
            previous = (
                await store.load_chapter_final_state(chapter - 1) if chapter > 1 else None
            )
        return [
            *validate_character_introductions(beats, context),
            *validate_scene_transitions(beats, context.locations),
            *validate_cross_chapter_continuity(previous, beats, context, chapter),
        ]

    issues = asyncio.run(_validate())
    approved = [loc.name for loc in story.library.locations]
    illegal = [
        beat
        for beat in beats
        if approved and beat.location and not is_valid_location(beat.location, approved)
    ]

    if issues:
        console.print(_issues_table(f"Chapter {chapter} issues", issues))
    for beat in illegal:
        console.print(
            f"[yellow]Beat {beat.beat_number}:[/yellow] location '{beat.location}' "
            "is not in the library"
        )
    if not issues and not illegal:
        console.print("[green]✓[/green] No issues found")

    if any(issue.severity == "critical" for issue in issues):
        raise typer.Exit(1)


@app.command()
def state(
    chapter: Annotated[int, typer.Argument(help="Chapter number", min=1)],
    project: ProjectOption = None,
) -> None:
    """Show the stored final state of a chapter."""
    from beatweaver.persistence import PersistenceError, SqliteChapterStore

    project_path = _resolve_project_path(project)
    _require_project(project_path)

    async def _load() -> ChapterFinalState | None:
        with SqliteChapterStore(project_path / DB_FILE) as store:
            return await store.load_chapter_final_state(chapter)

    try:
        final_state = asyncio.run(_load())
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if final_state is None:
        console.print(f"[yellow]No stored state for chapter {chapter}.[/yellow]")
        raise typer.Exit(1)
    console.print(_state_table(final_state))


if __name__ == "__main__":
    app()

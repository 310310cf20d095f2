"""Story project file loading.

A project's ``story.yaml`` holds the synopsis, outline, library, content
preferences and the events linked to each chapter (by event name).
"""

from __future__ import annotations

from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from ruamel.yaml import YAML

from beatweaver.models import (
    BeatPipelineRequest,
    ChapterFinalState,
    ContentPreferences,
    LibraryData,
    Outline,
    StoryEvent,
    Synopsis,
)

STORY_FILE = "story.yaml"


class StoryFileError(Exception):
    """Raised when story.yaml cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load story at {path}: {reason}")


class StoryFile(BaseModel):
    """Contents of story.yaml."""

    synopsis: Synopsis = Field(default_factory=Synopsis)
    outline: Outline = Field(default_factory=Outline)
    library: LibraryData = Field(default_factory=LibraryData)
    preferences: ContentPreferences = Field(default_factory=ContentPreferences)
    linked_events: dict[int, list[str]] = Field(default_factory=dict)

    def linked_events_for(self, chapter_number: int) -> list[StoryEvent]:
        """Library events linked to a chapter, in listed order.

        Names are matched case-insensitively; unknown names are skipped.
        """
        by_name = {event.name.lower(): event for event in self.library.events}
        names = self.linked_events.get(chapter_number, [])
        return [by_name[name.lower()] for name in names if name.lower() in by_name]

    def request_for(
        self,
        chapter_number: int,
        previous_chapter_state: ChapterFinalState | None = None,
    ) -> BeatPipelineRequest:
        """Build a pipeline request for one outline chapter.

        Raises:
            KeyError: If the outline has no such chapter.
        """
        chapter = self.outline.get_chapter(chapter_number)
        if chapter is None:
            raise KeyError(f"Chapter {chapter_number} not in outline")
        return BeatPipelineRequest(
            chapter=chapter,
            chapter_number=chapter_number,
            synopsis=self.synopsis,
            outline=self.outline,
            library=self.library,
            preferences=self.preferences,
            previous_chapter_state=previous_chapter_state,
        )


def load_story(project_path: Path) -> StoryFile:
    """Load and validate story.yaml from a project directory.

    Raises:
        StoryFileError: If the file is missing, unparseable or invalid.
    """
    story_path = project_path / STORY_FILE
    if not story_path.exists():
        raise StoryFileError(story_path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with story_path.open("r", encoding="utf-8") as f:
            data: Any = yaml.load(f)
    except Exception as e:
        raise StoryFileError(story_path, str(e)) from e

    try:
        return StoryFile.model_validate(data or {})
    except ValidationError as e:
        raise StoryFileError(story_path, str(e)) from e


STORY_TEMPLATE: dict[str, Any] = {
    "synopsis": {"title": "", "logline": "", "synopsis": "", "themes": [], "genre": ""},
    "outline": {
        "chapters": [
            {
                "chapter_number": 1,
                "title": "",
                "summary": "",
                "key_events": [],
                "characters_present": [],
                "location": None,
                "mood": None,
                "ends_with": None,
            }
        ]
    },
    "library": {
        "characters": [],
        "locations": [],
        "items": [],
        "factions": [],
        "lore": [],
        "events": [],
        "world": {},
    },
    "preferences": {"audience": "general", "intensity": {}},
    "linked_events": {1: []},
}


def write_story_template(project_path: Path) -> Path:
    """Write an empty story.yaml to fill in."""
    story_path = project_path / STORY_FILE
    yaml = YAML()
    yaml.default_flow_style = False
    with story_path.open("w", encoding="utf-8") as f:
        yaml.dump(STORY_TEMPLATE, f)
    return story_path

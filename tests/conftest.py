"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from beatweaver.models import (
    BeatPipelineRequest,
    ChapterContext,
    ChapterOutline,
    ChapterSummary,
    Character,
    Item,
    LibraryData,
    Location,
    Outline,
    StoryEvent,
    Synopsis,
)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def library() -> LibraryData:
    """A small story library."""
    return LibraryData(
        characters=[
            Character(id=1, name="Mara Vell", role="protagonist", description="A smuggler"),
            Character(id=2, name="Tomas", role="supporting", description="Her brother"),
            Character(id=3, name="Liora", role="antagonist", description="A witch"),
        ],
        locations=[
            Location(id=10, name="Old Mill", description="A ruined mill"),
            Location(id=11, name="Village Square", description="The market square"),
            Location(id=12, name="Harbor Docks", description="Wet planks and rope"),
        ],
        items=[
            Item(id=20, name="Silver Key", description="Opens the crypt", owner="Mara Vell"),
            Item(id=21, name="Lantern", description="A brass lantern"),
        ],
        events=[
            StoryEvent(id=30, name="The Flood", description="The river floods", sort_order=2),
            StoryEvent(id=31, name="The Fire", description="The mill burns", sort_order=1),
            StoryEvent(id=32, name="The Coronation", description="A new queen", sort_order=3),
        ],
    )


@pytest.fixture
def outline() -> Outline:
    """Three chapters, the middle one under test."""
    return Outline(
        chapters=[
            ChapterOutline(
                chapter_number=1,
                title="Embers",
                summary="Mara Vell and Tomas flee the burning mill.",
                key_events=["The Fire"],
                ends_with="Tomas is wounded",
            ),
            ChapterOutline(
                chapter_number=2,
                title="High Water",
                summary="The flood reaches the village.",
                key_events=["The Flood"],
                characters_present=["Mara Vell", "Tomas"],
                location="Village Square",
                mood="tense",
                ends_with="cliffhanger",
            ),
            ChapterOutline(
                chapter_number=3,
                title="Crown",
                summary="A queen is crowned.",
                key_events=["The Coronation"],
            ),
        ]
    )


@pytest.fixture
def request_ch2(library: LibraryData, outline: Outline) -> BeatPipelineRequest:
    """A pipeline request for chapter 2."""
    chapter = outline.get_chapter(2)
    assert chapter is not None
    return BeatPipelineRequest(
        chapter=chapter,
        chapter_number=2,
        synopsis=Synopsis(title="Tidewater", genre="fantasy", themes=["family"]),
        outline=outline,
        library=library,
    )


@pytest.fixture
def context(library: LibraryData) -> ChapterContext:
    """Chapter 2 context whose previous chapter names Mara Vell and Tomas."""
    return ChapterContext(
        chapter=ChapterOutline(chapter_number=2, title="High Water"),
        chapter_number=2,
        characters=list(library.characters),
        locations=list(library.locations),
        items=list(library.items),
        events=list(library.events),
        previous_chapters=[
            ChapterSummary(number=1, summary="Mara Vell and Tomas flee the burning mill.")
        ],
    )

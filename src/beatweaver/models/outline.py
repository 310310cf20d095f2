"""Story outline and synopsis models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ChapterOutline(BaseModel):
    """Outline entry for a single chapter."""

    chapter_number: int | None = None
    title: str = ""
    summary: str = ""
    key_events: list[str] = Field(default_factory=list)
    characters_present: list[str] = Field(default_factory=list)
    location: str | None = None
    mood: str | None = None
    ends_with: str | None = None


class Outline(BaseModel):
    """Full story outline."""

    chapters: list[ChapterOutline] = Field(default_factory=list)

    def chapter_index(self, chapter: ChapterOutline) -> int:
        """Resolve a chapter's number.

        Uses ``chapter_number`` when set, otherwise the chapter's 1-based
        position in the outline.
        """
        if chapter.chapter_number is not None:
            return chapter.chapter_number
        for position, candidate in enumerate(self.chapters, start=1):
            if candidate is chapter:
                return position
        return 0

    def get_chapter(self, number: int) -> ChapterOutline | None:
        """Find a chapter by its resolved number."""
        for chapter in self.chapters:
            if self.chapter_index(chapter) == number:
                return chapter
        return None


class Synopsis(BaseModel):
    """High-level story synopsis."""

    title: str = ""
    logline: str = ""
    synopsis: str = ""
    themes: list[str] = Field(default_factory=list)
    genre: str = ""

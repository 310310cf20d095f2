"""Persistence protocol for chapter-linked events and chapter state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from beatweaver.models import ChapterFinalState, StoryEvent


class PersistenceService(Protocol):
    """Storage the pipeline reads linked events and chapter state from."""

    async def load_linked_events(self, chapter_number: int) -> list[StoryEvent]:
        """Events explicitly linked to a chapter, in chapter position order."""
        ...

    async def load_chapter_final_state(self, chapter_number: int) -> ChapterFinalState | None:
        """The stored final state of a chapter, or None if absent."""
        ...

    async def store_chapter_final_state(
        self,
        chapter_number: int,
        state: ChapterFinalState,
    ) -> None:
        """Store (or replace) a chapter's final state."""
        ...


class PersistenceError(Exception):
    """Raised when stored data cannot be read or written."""

    def __init__(self, message: str, chapter_number: int | None = None) -> None:
        self.chapter_number = chapter_number
        where = f" (chapter {chapter_number})" if chapter_number is not None else ""
        super().__init__(f"{message}{where}")

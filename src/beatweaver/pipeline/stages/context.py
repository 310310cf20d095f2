"""Context assembly for one chapter run."""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatweaver.models import BeatPipelineRequest, ChapterContext, ChapterSummary, StoryEvent
from beatweaver.observability.logging import get_logger

if TYPE_CHECKING:
    from beatweaver.persistence import PersistenceService

log = get_logger(__name__)


async def load_linked_events(
    persistence: PersistenceService | None,
    chapter_number: int,
) -> list[StoryEvent]:
    """Load chapter-linked events; a failed lookup degrades to no events."""
    if persistence is None:
        return []
    try:
        return await persistence.load_linked_events(chapter_number)
    except Exception as e:
        log.warning("linked_events_load_failed", chapter=chapter_number, error=str(e))
        return []


def chapter_summaries(
    request: BeatPipelineRequest,
) -> tuple[list[ChapterSummary], list[ChapterSummary]]:
    """Split the outline into summaries of previous and upcoming chapters."""
    previous: list[ChapterSummary] = []
    upcoming: list[ChapterSummary] = []
    for chapter in request.outline.chapters:
        number = request.outline.chapter_index(chapter)
        if number == request.chapter_number:
            continue
        summary = ChapterSummary(
            number=number,
            title=chapter.title,
            summary=chapter.summary,
            key_events=list(chapter.key_events),
            ends_with=chapter.ends_with if number < request.chapter_number else None,
        )
        (previous if number < request.chapter_number else upcoming).append(summary)
    previous.sort(key=lambda c: c.number)
    upcoming.sort(key=lambda c: c.number)
    return previous, upcoming


async def assemble_context(
    request: BeatPipelineRequest,
    persistence: PersistenceService | None = None,
) -> ChapterContext:
    """Gather everything later stages need into one ChapterContext.

    Args:
        request: The pipeline request.
        persistence: Source of chapter-linked events, if any.

    Returns:
        Context with events sorted by ``sort_order``.
    """
    library = request.library
    previous, upcoming = chapter_summaries(request)
    linked_events = await load_linked_events(persistence, request.chapter_number)

    context = ChapterContext(
        chapter=request.chapter,
        chapter_number=request.chapter_number,
        synopsis=request.synopsis,
        characters=list(library.characters),
        locations=list(library.locations),
        items=list(library.items),
        factions=list(library.factions),
        lore=list(library.lore),
        events=sorted(library.events, key=lambda e: e.sort_order),
        linked_events=linked_events,
        world=dict(library.world),
        previous_chapters=previous,
        upcoming_chapters=upcoming,
    )
    log.info(
        "context_assembled",
        chapter=request.chapter_number,
        characters=len(context.characters),
        locations=len(context.locations),
        events=len(context.events),
        linked_events=len(linked_events),
        previous_chapters=len(previous),
    )
    return context

"""Timeline categorization stage.

Places every library event before, during or after the current chapter
with one generation call. Events linked to the chapter are always
``during``. A failed or malformed call degrades to the linked events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatweaver.models import (
    StageError,
    StageResult,
    TimelineClassification,
    TimelineEntry,
    TimelineResponse,
)
from beatweaver.observability.logging import get_logger
from beatweaver.pipeline.stages._helpers import (
    bullet_list,
    generate_for_stage,
    validate_output,
)

if TYPE_CHECKING:
    from beatweaver.models import ChapterContext
    from beatweaver.pipeline.config import PipelineConfig
    from beatweaver.prompts import PromptCompiler
    from beatweaver.providers import GenerationService

log = get_logger(__name__)

STAGE = "timeline"


def linked_timeline(context: ChapterContext, error: str | None = None) -> TimelineClassification:
    """The fallback classification: only the linked events, all ``during``."""
    return TimelineClassification(
        during=[
            TimelineEntry(event_name=e.name, reason="Linked to this chapter")
            for e in context.linked_events
        ],
        error=error,
    )


def timeline_variables(context: ChapterContext) -> dict[str, str]:
    return {
        "chapter_number": str(context.chapter_number),
        "chapter_title": context.chapter.title,
        "previous_chapters": bullet_list(
            [f"Ch{c.number}: {c.title} - {c.summary}" for c in context.previous_chapters]
        ),
        "upcoming_chapters": bullet_list(
            [f"Ch{c.number}: {c.title} - {c.summary}" for c in context.upcoming_chapters]
        ),
        "linked_events": bullet_list([f"{e.name}: {e.description}" for e in context.linked_events]),
        "library_events": "\n".join(
            f"{i}. {e.name} (importance: {e.importance or 'unspecified'}, "
            f"timing: {e.suggested_timing or 'unspecified'}): {e.description}"
            for i, e in enumerate(context.events, start=1)
        ),
    }


def _force_linked_during(
    timeline: TimelineClassification,
    context: ChapterContext,
) -> TimelineClassification:
    """Move linked events into ``during`` if the generator placed them elsewhere."""
    linked = {e.name.lower() for e in context.linked_events}
    if not linked:
        return timeline
    before = [e for e in timeline.before if e.event_name.lower() not in linked]
    after = [e for e in timeline.after if e.event_name.lower() not in linked]
    during = list(timeline.during)
    present = {e.event_name.lower() for e in during}
    for event in context.linked_events:
        if event.name.lower() not in present:
            during.append(TimelineEntry(event_name=event.name, reason="Linked to this chapter"))
    return timeline.model_copy(update={"before": before, "during": during, "after": after})


async def categorize_timeline(
    context: ChapterContext,
    generation: GenerationService,
    compiler: PromptCompiler,
    config: PipelineConfig,
) -> StageResult[TimelineClassification]:
    """Classify library events relative to the chapter.

    Args:
        context: Assembled chapter context.
        generation: Generation service.
        compiler: Prompt compiler.
        config: Pipeline configuration.

    Returns:
        The classification. When the library has no events, the linked
        events without a generation call; on failure, the linked events
        with ``error`` set on both the classification and the result.
    """
    if not context.events:
        log.debug("timeline_skipped", chapter=context.chapter_number, reason="no_events")
        return StageResult(stage=STAGE, value=linked_timeline(context))

    try:
        content = await generate_for_stage(
            generation, compiler, STAGE, timeline_variables(context), config.stage(STAGE)
        )
        response = validate_output(TimelineResponse, content, STAGE)
    except Exception as e:
        log.warning("timeline_degraded", chapter=context.chapter_number, error=str(e))
        error = StageError.from_exception(STAGE, e)
        return StageResult(stage=STAGE, value=linked_timeline(context, str(e)), error=error)

    timeline = _force_linked_during(
        TimelineClassification(
            before=response.before,
            during=response.during,
            after=response.after,
            timeline_notes=response.timeline_notes,
        ),
        context,
    )
    log.info(
        "timeline_built",
        chapter=context.chapter_number,
        before=len(timeline.before),
        during=len(timeline.during),
        after=len(timeline.after),
    )
    return StageResult(stage=STAGE, value=timeline)

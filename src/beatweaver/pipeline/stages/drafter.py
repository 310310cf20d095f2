"""Beat drafting stage.

One generation call produces the chapter's draft beats. This stage has no
fallback: generation errors propagate unchanged and unusable output raises
``BeatDraftError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from beatweaver.models import Beat, DraftResponse, TimelineClassification
from beatweaver.observability.logging import get_logger
from beatweaver.pipeline.errors import BeatDraftError, StageOutputError
from beatweaver.pipeline.stages._helpers import (
    bullet_list,
    generate_for_stage,
    join_or,
    validate_output,
)

if TYPE_CHECKING:
    from beatweaver.models import ChapterContext, ContentPreferences
    from beatweaver.pipeline.config import PipelineConfig
    from beatweaver.prompts import PromptCompiler
    from beatweaver.providers import GenerationService

log = get_logger(__name__)

STAGE = "draft_beats"

EXPLICIT_THRESHOLD = 50
SENSUAL_THRESHOLD = 20


def mature_directives(preferences: ContentPreferences) -> list[str]:
    """Content instructions gated by the intensity sliders.

    Empty unless the audience is mature.
    """
    if not preferences.is_mature:
        return []
    intensity = preferences.intensity
    directives: list[str] = []

    if intensity.adult_content > EXPLICIT_THRESHOLD:
        directives.append("Beats include explicit sexual scenes where narratively appropriate")
        directives.append(
            'Be specific: "explicit scene between X and Y", not a vague "intimate moment"'
        )
    elif intensity.adult_content > SENSUAL_THRESHOLD:
        directives.append("Include sensual scene beats with physical intimacy")

    if intensity.romance > EXPLICIT_THRESHOLD:
        directives.append("Romance beats are passionate and physically explicit")
    elif intensity.romance > SENSUAL_THRESHOLD:
        directives.append("Include romantic tension and chemistry in relevant beats")

    if intensity.violence > EXPLICIT_THRESHOLD:
        directives.append("Include graphic violence and intense combat beats")
    if intensity.gore > EXPLICIT_THRESHOLD:
        directives.append("Include visceral gore and body horror beats when appropriate")
    return directives


def mature_guidance(preferences: ContentPreferences) -> str:
    """The mature-content block of the system prompt, or an empty string."""
    if not preferences.is_mature:
        return ""
    directives = mature_directives(preferences) or [
        "Include mature themes appropriate for adult audiences"
    ]
    lines = [
        "MATURE CONTENT REQUIREMENTS:",
        "This is adult fiction for mature audiences.",
        *(f"- {d}" for d in directives),
        "- Do NOT use euphemisms or vague language like 'they share a moment'",
        "- Be SPECIFIC about what happens in each beat",
    ]
    return "\n".join(lines) + "\n"


def draft_variables(
    context: ChapterContext,
    timeline: TimelineClassification,
    preferences: ContentPreferences,
    config: PipelineConfig,
) -> dict[str, str]:
    chapter = context.chapter
    return {
        "min_beats": str(config.min_beats),
        "max_beats": str(config.max_beats),
        "mature_guidance": mature_guidance(preferences),
        "chapter_number": str(context.chapter_number),
        "chapter_title": chapter.title,
        "chapter_summary": chapter.summary or "Not specified",
        "key_events": join_or(chapter.key_events),
        "characters_present": join_or(chapter.characters_present),
        "chapter_location": chapter.location or "Not specified",
        "chapter_mood": chapter.mood or "Not specified",
        "ends_with": chapter.ends_with or "continuation",
        "genre": context.synopsis.genre or "Not specified",
        "themes": join_or(context.synopsis.themes),
        "previous_chapters": "\n".join(
            f"Ch{c.number}: {c.summary}" for c in context.previous_chapters
        )
        or "This is the first chapter",
        "before": TimelineClassification.names(timeline.before),
        "during": TimelineClassification.names(timeline.during),
        "after": TimelineClassification.names(timeline.after),
        "characters": bullet_list(
            [
                f"{c.name}: {c.role} - {c.personality or c.description}"
                for c in context.characters[: config.max_characters]
            ]
        ),
        "locations": bullet_list(
            [
                f"{loc.name}: {loc.atmosphere or loc.description}"
                for loc in context.locations[: config.max_locations]
            ]
        ),
        "items": bullet_list(
            [f"{i.name}: {i.description}" for i in context.items[: config.max_items]]
        ),
    }


def renumber(beats: list[Beat]) -> list[Beat]:
    """Order beats by number and renumber them contiguously from 1."""
    ordered = sorted(enumerate(beats), key=lambda pair: (pair[1].beat_number, pair[0]))
    return [
        beat if beat.beat_number == number else beat.model_copy(update={"beat_number": number})
        for number, (_, beat) in enumerate(ordered, start=1)
    ]


async def draft_beats(
    context: ChapterContext,
    timeline: TimelineClassification,
    preferences: ContentPreferences,
    generation: GenerationService,
    compiler: PromptCompiler,
    config: PipelineConfig,
) -> list[Beat]:
    """Draft the chapter's beats.

    Returns:
        Beats numbered contiguously from 1.

    Raises:
        BeatDraftError: If the response is malformed or holds no beats.
    """
    if preferences.is_mature:
        intensity = preferences.intensity
        log.info(
            "mature_content_enabled",
            chapter=context.chapter_number,
            adult_content=intensity.adult_content,
            romance=intensity.romance,
            violence=intensity.violence,
            gore=intensity.gore,
        )

    content = await generate_for_stage(
        generation,
        compiler,
        STAGE,
        draft_variables(context, timeline, preferences, config),
        config.stage(STAGE),
    )
    try:
        response = validate_output(DraftResponse, content, STAGE)
    except StageOutputError as e:
        log.error("draft_malformed", chapter=context.chapter_number, error=e.message)
        raise BeatDraftError(e.message) from e

    if not response.beats:
        log.error("draft_empty", chapter=context.chapter_number)
        raise BeatDraftError("Generator returned no beats")

    beats = renumber(response.beats)
    if not config.min_beats <= len(beats) <= config.max_beats:
        log.warning(
            "draft_beat_count_out_of_range",
            chapter=context.chapter_number,
            count=len(beats),
            min=config.min_beats,
            max=config.max_beats,
        )
    log.info("beats_drafted", chapter=context.chapter_number, count=len(beats))
    return beats

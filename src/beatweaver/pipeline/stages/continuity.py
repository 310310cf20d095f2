"""Continuity validation stage.

Merges the heuristic introduction and transition validators with one
generative consistency check. A failed generative check degrades to the
heuristic findings; issues are data and never raise.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

from beatweaver.continuity import (
    validate_character_introductions,
    validate_scene_transitions,
)
from beatweaver.models import (
    ContinuityResponse,
    Issue,
    StageError,
    StageResult,
    TimelineClassification,
    ValidationResult,
    count_by_severity,
    has_critical,
)
from beatweaver.observability.logging import get_logger
from beatweaver.pipeline.stages._helpers import generate_for_stage, join_or, validate_output

if TYPE_CHECKING:
    from beatweaver.models import Beat, ChapterContext
    from beatweaver.pipeline.config import PipelineConfig
    from beatweaver.prompts import PromptCompiler
    from beatweaver.providers import GenerationService

log = get_logger(__name__)

STAGE = "continuity"

# Severities of introduction issues that make a chapter invalid.
_BLOCKING_INTRODUCTION_SEVERITIES = frozenset({"critical", "warning"})


def beats_json(beats: Sequence[Beat]) -> str:
    return json.dumps(
        [beat.model_dump(mode="json", exclude={"linked_objects"}) for beat in beats],
        indent=2,
        ensure_ascii=False,
    )


def continuity_variables(
    beats: Sequence[Beat],
    context: ChapterContext,
    timeline: TimelineClassification,
) -> dict[str, str]:
    return {
        "chapter_number": str(context.chapter_number),
        "chapter_title": context.chapter.title,
        "chapter_summary": context.chapter.summary or "Not specified",
        "key_events": join_or(context.chapter.key_events),
        "before": TimelineClassification.names(timeline.before),
        "during": TimelineClassification.names(timeline.during),
        "after": TimelineClassification.names(timeline.after),
        "previous_events": "\n".join(context.previous_chapter_events) or "None",
        "upcoming_chapters": "\n".join(
            f"Ch{c.number}: {c.title} - Key events: {', '.join(c.key_events)}"
            for c in context.upcoming_chapters
        )
        or "None",
        "beats": beats_json(beats),
    }


def reattribute_issues(issues: Sequence[Issue], beats: Sequence[Beat]) -> tuple[Issue, ...]:
    """Point issues that reference a missing beat at beat 1 (chapter level)."""
    known = {beat.beat_number for beat in beats}
    return tuple(
        issue
        if issue.beat_number is None or issue.beat_number in known
        else issue.model_copy(update={"beat_number": 1})
        for issue in issues
    )


def summarize_counts(issues: Sequence[Issue]) -> str:
    """E.g. ``1 critical, 2 warnings, 0 suggestions``."""
    counts = count_by_severity(issues)
    return (
        f"{counts['critical']} critical, "
        f"{counts['warning']} warning{'s' if counts['warning'] != 1 else ''}, "
        f"{counts['suggestion']} suggestion{'s' if counts['suggestion'] != 1 else ''}"
    )


def _introductions_block(issues: Sequence[Issue]) -> bool:
    return any(
        issue.type == "character_introduction_missing"
        and issue.severity in _BLOCKING_INTRODUCTION_SEVERITIES
        for issue in issues
    )


async def validate_continuity(
    beats: Sequence[Beat],
    context: ChapterContext,
    timeline: TimelineClassification,
    generation: GenerationService,
    compiler: PromptCompiler,
    config: PipelineConfig,
) -> StageResult[ValidationResult]:
    """Run the heuristic validators and the generative check.

    Args:
        beats: Location-corrected draft beats.
        context: Chapter context.
        timeline: Timeline classification.
        generation: Generation service.
        compiler: Prompt compiler.
        config: Pipeline configuration.

    Returns:
        Issues in the order character, transition, generative. On a
        generative failure, the heuristic issues with ``error`` set.
    """
    introduction_issues = validate_character_introductions(beats, context)
    transition_issues = validate_scene_transitions(beats, context.locations)
    heuristic = (*introduction_issues, *transition_issues)

    error: StageError | None = None
    generative_valid = True
    generative_summary = ""
    generative_issues: tuple[Issue, ...] = ()
    try:
        content = await generate_for_stage(
            generation,
            compiler,
            STAGE,
            continuity_variables(beats, context, timeline),
            config.stage(STAGE),
        )
        response = validate_output(ContinuityResponse, content, STAGE)
    except Exception as e:
        log.warning("continuity_check_degraded", chapter=context.chapter_number, error=str(e))
        error = StageError.from_exception(STAGE, e)
    else:
        generative_valid = response.is_valid
        generative_summary = response.summary
        generative_issues = reattribute_issues(response.issues, beats)

    issues = [*heuristic, *generative_issues]
    is_valid = generative_valid and not _introductions_block(introduction_issues)
    result = ValidationResult(
        issues=issues,
        is_valid=is_valid,
        summary=generative_summary,
        error=error.message if error else None,
    )
    log.info(
        "continuity_validated",
        chapter=context.chapter_number,
        heuristic=len(heuristic),
        generative=len(generative_issues),
        is_valid=is_valid,
    )
    return StageResult(stage=STAGE, value=result, error=error)


def merge_cross_chapter(
    validation: ValidationResult,
    cross_chapter_issues: Sequence[Issue],
) -> ValidationResult:
    """Append cross-chapter issues; a critical one invalidates the chapter."""
    if not cross_chapter_issues:
        return validation
    issues = [*validation.issues, *cross_chapter_issues]
    is_valid = validation.is_valid and not has_critical(cross_chapter_issues)
    return validation.model_copy(update={"issues": issues, "is_valid": is_valid})


def with_count_summary(validation: ValidationResult) -> ValidationResult:
    """Append per-severity counts to the validation summary."""
    counts = f"({summarize_counts(validation.issues)})"
    summary = f"{validation.summary} {counts}" if validation.summary else counts
    return validation.model_copy(update={"summary": summary})

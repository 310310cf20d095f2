"""Beat refinement stage.

Runs only when critical issues exist. One generation call rewrites the
beats to fix them; any failure returns the unrefined beats.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from beatweaver.continuity import correct_locations
from beatweaver.models import (
    Beat,
    Issue,
    RefineResponse,
    StageError,
    StageResult,
    TimelineClassification,
    has_critical,
)
from beatweaver.observability.logging import get_logger
from beatweaver.pipeline.stages._helpers import generate_for_stage, join_or, validate_output
from beatweaver.pipeline.stages.continuity import beats_json
from beatweaver.pipeline.stages.drafter import renumber

if TYPE_CHECKING:
    from beatweaver.models import ChapterContext
    from beatweaver.pipeline.config import PipelineConfig
    from beatweaver.prompts import PromptCompiler
    from beatweaver.providers import GenerationService

log = get_logger(__name__)

STAGE = "refine_beats"


def format_issue(issue: Issue) -> str:
    where = f"Beat {issue.beat_number}" if issue.beat_number is not None else "Chapter"
    line = f"{where}: [{issue.severity}] {issue.type} - {issue.description}"
    return f"{line}. Suggestion: {issue.fix_suggestion}" if issue.fix_suggestion else line


def refine_variables(
    beats: Sequence[Beat],
    issues: Sequence[Issue],
    context: ChapterContext,
    timeline: TimelineClassification,
) -> dict[str, str]:
    return {
        "issues": "\n".join(format_issue(issue) for issue in issues),
        "before": TimelineClassification.names(timeline.before),
        "during": TimelineClassification.names(timeline.during),
        "after": TimelineClassification.names(timeline.after),
        "locations": join_or([loc.name for loc in context.locations], empty="any"),
        "beats": beats_json(beats),
    }


def should_refine(issues: Sequence[Issue], config: PipelineConfig) -> bool:
    return config.refinement_enabled and has_critical(issues)


async def refine_beats(
    beats: list[Beat],
    issues: Sequence[Issue],
    context: ChapterContext,
    timeline: TimelineClassification,
    generation: GenerationService,
    compiler: PromptCompiler,
    config: PipelineConfig,
) -> StageResult[list[Beat]]:
    """Ask the generator to fix critical issues in one pass.

    Returns:
        Refined beats, renumbered and location-corrected, or the input
        beats with ``error`` set when the call fails or returns no beats.
    """
    log.info(
        "refinement_started",
        chapter=context.chapter_number,
        beats=len(beats),
        issues=len(issues),
    )
    try:
        content = await generate_for_stage(
            generation,
            compiler,
            STAGE,
            refine_variables(beats, issues, context, timeline),
            config.stage(STAGE),
        )
        response = validate_output(RefineResponse, content, STAGE)
    except Exception as e:
        log.warning("refinement_failed", chapter=context.chapter_number, error=str(e))
        return StageResult(stage=STAGE, value=beats, error=StageError.from_exception(STAGE, e))

    if not response.beats:
        log.warning("refinement_empty", chapter=context.chapter_number)
        error = StageError(stage=STAGE, message="Refiner returned no beats")
        return StageResult(stage=STAGE, value=beats, error=error)

    refined = correct_locations(renumber(response.beats), context.locations)
    if len(refined) != len(beats):
        log.warning(
            "refinement_changed_beat_count",
            chapter=context.chapter_number,
            before=len(beats),
            after=len(refined),
        )
    log.info("refinement_complete", chapter=context.chapter_number, beats=len(refined))
    return StageResult(stage=STAGE, value=refined)

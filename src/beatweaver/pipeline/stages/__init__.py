"""Pipeline stages: context, timeline, drafting, continuity and refinement."""

from beatweaver.pipeline.stages.context import assemble_context
from beatweaver.pipeline.stages.continuity import (
    merge_cross_chapter,
    reattribute_issues,
    validate_continuity,
    with_count_summary,
)
from beatweaver.pipeline.stages.drafter import draft_beats, mature_directives, renumber
from beatweaver.pipeline.stages.refiner import refine_beats, should_refine
from beatweaver.pipeline.stages.timeline import categorize_timeline

__all__ = [
    "assemble_context",
    "categorize_timeline",
    "draft_beats",
    "mature_directives",
    "merge_cross_chapter",
    "reattribute_issues",
    "refine_beats",
    "renumber",
    "should_refine",
    "validate_continuity",
    "with_count_summary",
]

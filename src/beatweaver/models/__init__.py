"""Pydantic models for beat generation.

Library entities and outline are inputs; beats, timeline classification,
issues, and chapter final state are produced by the pipeline.
"""

from beatweaver.models.beat import (
    INTENTIONAL_JUMP_TYPES,
    Beat,
    BeatType,
    LinkedObjects,
    LinkedRef,
)
from beatweaver.models.issues import Issue, Severity, count_by_severity, has_critical
from beatweaver.models.library import (
    Character,
    Faction,
    Item,
    LibraryData,
    Location,
    LoreEntry,
    StoryEvent,
)
from beatweaver.models.outline import ChapterOutline, Outline, Synopsis
from beatweaver.models.pipeline import (
    BeatPipelineRequest,
    BeatPipelineResult,
    ChapterContext,
    ChapterSummary,
    ContentPreferences,
    ContinuityResponse,
    DraftResponse,
    IntensityLevels,
    RefineResponse,
    StageError,
    StageResult,
    TimelineResponse,
    ValidationResult,
)
from beatweaver.models.state import ChapterFinalState
from beatweaver.models.timeline import TimelineClassification, TimelineEntry

__all__ = [
    "INTENTIONAL_JUMP_TYPES",
    "Beat",
    "BeatPipelineRequest",
    "BeatPipelineResult",
    "BeatType",
    "ChapterContext",
    "ChapterFinalState",
    "ChapterOutline",
    "ChapterSummary",
    "Character",
    "ContentPreferences",
    "ContinuityResponse",
    "DraftResponse",
    "Faction",
    "IntensityLevels",
    "Issue",
    "Item",
    "LibraryData",
    "LinkedObjects",
    "LinkedRef",
    "Location",
    "LoreEntry",
    "Outline",
    "RefineResponse",
    "Severity",
    "StageError",
    "StageResult",
    "StoryEvent",
    "Synopsis",
    "TimelineClassification",
    "TimelineEntry",
    "TimelineResponse",
    "ValidationResult",
    "count_by_severity",
    "has_critical",
]

"""Pipeline request, result, and stage boundary models.

Generation output is validated against the ``*Response`` schemas before
it enters the typed pipeline. Stage outcomes that may degrade are wrapped
in ``StageResult`` so the fallback is explicit rather than swallowed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from beatweaver.models.beat import Beat
from beatweaver.models.issues import Issue, count_by_severity
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
from beatweaver.models.state import ChapterFinalState
from beatweaver.models.timeline import TimelineClassification, TimelineEntry
from beatweaver.observability.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------


class IntensityLevels(BaseModel):
    """Content intensity sliders, 0-100."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    violence: int = Field(default=0, ge=0, le=100)
    gore: int = Field(default=0, ge=0, le=100)
    romance: int = Field(default=0, ge=0, le=100)
    adult_content: int = Field(default=0, ge=0, le=100)


class ContentPreferences(BaseModel):
    """Audience and intensity preferences for beat drafting."""

    audience: str = "general"
    intensity: IntensityLevels = Field(default_factory=IntensityLevels)

    @property
    def is_mature(self) -> bool:
        return self.audience.lower() == "mature"


class BeatPipelineRequest(BaseModel):
    """Everything a single chapter pipeline run needs."""

    chapter: ChapterOutline
    chapter_number: int = Field(ge=1)
    synopsis: Synopsis = Field(default_factory=Synopsis)
    outline: Outline = Field(default_factory=Outline)
    library: LibraryData = Field(default_factory=LibraryData)
    preferences: ContentPreferences = Field(default_factory=ContentPreferences)
    previous_chapter_state: ChapterFinalState | None = None


class ChapterSummary(BaseModel):
    """Condensed view of another chapter for context."""

    number: int
    title: str = ""
    summary: str = ""
    key_events: list[str] = Field(default_factory=list)
    ends_with: str | None = None


class ChapterContext(BaseModel):
    """Assembled context for one chapter run."""

    chapter: ChapterOutline
    chapter_number: int
    synopsis: Synopsis = Field(default_factory=Synopsis)
    characters: list[Character] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    factions: list[Faction] = Field(default_factory=list)
    lore: list[LoreEntry] = Field(default_factory=list)
    events: list[StoryEvent] = Field(default_factory=list)
    linked_events: list[StoryEvent] = Field(default_factory=list)
    world: dict[str, Any] = Field(default_factory=dict)
    previous_chapters: list[ChapterSummary] = Field(default_factory=list)
    upcoming_chapters: list[ChapterSummary] = Field(default_factory=list)

    @property
    def previous_chapter_events(self) -> list[str]:
        """Key events of all previous chapters, in chapter order."""
        return [event for c in self.previous_chapters for event in c.key_events]


# ---------------------------------------------------------------------------
# Stage boundary schemas
# ---------------------------------------------------------------------------


def _coerce_entries(value: object) -> object:
    if not isinstance(value, list):
        return [] if value is None else value
    entries: list[object] = []
    for entry in value:
        if isinstance(entry, str):
            entries.append({"event_name": entry})
        elif isinstance(entry, dict) and "event_name" not in entry and "name" in entry:
            entries.append({**entry, "event_name": entry["name"]})
        else:
            entries.append(entry)
    return entries


def _number_missing_beats(value: object) -> object:
    """Fill in missing beat numbers from list position."""
    if not isinstance(value, list):
        return value
    beats: list[object] = []
    for position, raw in enumerate(value, start=1):
        if isinstance(raw, dict) and not raw.get("beat_number"):
            raw = {**raw, "beat_number": position}
        beats.append(raw)
    return beats


class TimelineResponse(BaseModel):
    """Timeline stage output."""

    before: list[TimelineEntry] = Field(default_factory=list)
    during: list[TimelineEntry] = Field(default_factory=list)
    after: list[TimelineEntry] = Field(default_factory=list)
    timeline_notes: str = ""

    @field_validator("before", "during", "after", mode="before")
    @classmethod
    def coerce_entries(cls, value: object) -> object:
        return _coerce_entries(value)

    @field_validator("timeline_notes", mode="before")
    @classmethod
    def notes_to_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, list):
            return "\n".join(str(v) for v in value)
        return value


class DraftResponse(BaseModel):
    """Beat drafting stage output."""

    beats: list[Beat] = Field(default_factory=list)

    @field_validator("beats", mode="before")
    @classmethod
    def number_beats(cls, value: object) -> object:
        return _number_missing_beats(value)


_FIRST_INTEGER = re.compile(r"\d+")


def _coerce_beat_number(value: object) -> int | None:
    """First integer in a free-form beat reference ("1-2", "beat 3"), else None."""
    if isinstance(value, int):
        return value
    match = _FIRST_INTEGER.search(str(value)) if value is not None else None
    return int(match.group()) if match else None


def _generated_issue(raw: dict[str, Any]) -> Issue | None:
    """Validate one generated issue, repairing its beat reference once."""
    data = {"severity": "warning", "type": "continuity_break", **raw, "source": "continuity"}
    try:
        return Issue.model_validate(data)
    except ValidationError:
        data["beat_number"] = _coerce_beat_number(data.get("beat_number"))
    try:
        return Issue.model_validate(data)
    except ValidationError as e:
        log.warning("generated_issue_dropped", issue=raw, error=str(e))
        return None


class ContinuityResponse(BaseModel):
    """Generative continuity check output."""

    issues: list[Issue] = Field(default_factory=list)
    is_valid: bool = True
    summary: str = ""

    @field_validator("issues", mode="before")
    @classmethod
    def fill_issue_defaults(cls, value: object) -> object:
        """Validate generated issues one at a time.

        Each issue is tagged and given the fields models tend to omit. A
        malformed issue is repaired or dropped without discarding the rest
        of the response.
        """
        if not isinstance(value, list):
            return [] if value is None else value
        issues = [_generated_issue(raw) for raw in value if isinstance(raw, dict)]
        return [issue for issue in issues if issue is not None]


class RefineResponse(BaseModel):
    """Beat refinement stage output."""

    beats: list[Beat] = Field(default_factory=list)

    @field_validator("beats", mode="before")
    @classmethod
    def number_beats(cls, value: object) -> object:
        return _number_missing_beats(value)


# ---------------------------------------------------------------------------
# Stage outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StageError:
    """Why a stage fell back to its documented default."""

    stage: str
    message: str
    exception_type: str = ""

    @classmethod
    def from_exception(cls, stage: str, exc: BaseException) -> StageError:
        return cls(stage=stage, message=str(exc), exception_type=type(exc).__name__)


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Value produced by a stage, plus the error when it degraded."""

    stage: str
    value: T
    error: StageError | None = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


# ---------------------------------------------------------------------------
# Result side
# ---------------------------------------------------------------------------


class ValidationResult(BaseModel):
    """Merged findings of all validators for a chapter."""

    issues: list[Issue] = Field(default_factory=list)
    is_valid: bool = True
    summary: str = ""
    error: str | None = None
    refined: bool = False

    @property
    def counts(self) -> dict[str, int]:
        return count_by_severity(self.issues)

    @property
    def critical_count(self) -> int:
        return self.counts["critical"]

    @property
    def warning_count(self) -> int:
        return self.counts["warning"]

    @property
    def suggestion_count(self) -> int:
        return self.counts["suggestion"]


class BeatPipelineResult(BaseModel):
    """Complete output of a chapter pipeline run."""

    beats: list[Beat]
    timeline: TimelineClassification
    validation: ValidationResult
    chapter_final_state: ChapterFinalState

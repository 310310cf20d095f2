"""Timeline classification models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class TimelineEntry(BaseModel):
    """An event placed relative to the current chapter."""

    event_name: str = Field(min_length=1)
    reason: str = ""


class TimelineClassification(BaseModel):
    """Partition of known events into before / during / after the chapter.

    Events in ``before`` may be referenced but not re-enacted; events in
    ``after`` must not be referenced as having happened.
    """

    before: list[TimelineEntry] = Field(default_factory=list)
    during: list[TimelineEntry] = Field(default_factory=list)
    after: list[TimelineEntry] = Field(default_factory=list)
    timeline_notes: str = ""
    error: str | None = None

    @staticmethod
    def names(entries: list[TimelineEntry]) -> str:
        """Comma-separated event names, or 'None' for an empty bucket."""
        return ", ".join(e.event_name for e in entries) or "None"

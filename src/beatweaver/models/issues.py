"""Validation issue models."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Severity = Literal["critical", "warning", "suggestion"]

SEVERITY_ORDER: dict[str, int] = {"critical": 0, "warning": 1, "suggestion": 2}


class Issue(BaseModel):
    """A structured finding from a validator.

    ``beat_number`` is None for chapter-level findings. ``source`` names
    the validator that produced the issue.
    """

    model_config = ConfigDict(frozen=True)

    beat_number: int | None = None
    severity: Severity
    type: str = Field(min_length=1)
    description: str = ""
    fix_suggestion: str = ""
    source: str = ""
    character: str | None = None
    item: str | None = None
    location: str | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in SEVERITY_ORDER:
                return lowered
            if lowered in ("error", "major", "high"):
                return "critical"
            if lowered in ("minor", "low", "info"):
                return "suggestion"
            return "warning"
        return value


def count_by_severity(issues: Iterable[Issue]) -> dict[str, int]:
    """Count issues per severity, including zero counts."""
    counts = dict.fromkeys(SEVERITY_ORDER, 0)
    for issue in issues:
        counts[issue.severity] += 1
    return counts


def has_critical(issues: Iterable[Issue]) -> bool:
    return any(issue.severity == "critical" for issue in issues)

"""End-of-chapter state snapshot.

A ChapterFinalState is produced once per chapter by the state extractor
and consumed read-only by the next chapter's cross-chapter validator.
It serialises with camelCase keys for storage.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ChapterFinalState(BaseModel):
    """Facts established by the end of a chapter."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    chapter_number: int = Field(ge=1)
    dead_characters: list[str] = Field(default_factory=list)
    character_locations: dict[str, str] = Field(default_factory=dict)
    lost_items: list[str] = Field(default_factory=list)
    destroyed_items: list[str] = Field(default_factory=list)
    character_inventory: dict[str, list[str]] = Field(default_factory=dict)
    final_location: str | None = None

    @field_validator("dead_characters", "lost_items", "destroyed_items", mode="before")
    @classmethod
    def accept_named_records(cls, value: object) -> object:
        """Accept ``{"name": ...}`` records as well as plain names."""
        if not isinstance(value, list):
            return value
        names: list[str] = []
        for entry in value:
            if isinstance(entry, dict):
                name = entry.get("name")
                if name:
                    names.append(str(name))
            elif entry:
                names.append(str(entry))
        return names

    @property
    def unavailable_items(self) -> list[str]:
        """Lost and destroyed items, de-duplicated in order."""
        seen: set[str] = set()
        result: list[str] = []
        for name in [*self.lost_items, *self.destroyed_items]:
            if name.lower() not in seen:
                seen.add(name.lower())
                result.append(name)
        return result

    def to_storage(self) -> dict[str, object]:
        """Dump with camelCase keys."""
        return self.model_dump(by_alias=True)

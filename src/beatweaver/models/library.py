"""Library entity models.

The library is the story's catalogue of known characters, locations,
items, factions, lore entries, and events. Beats are validated and
linked against these rosters.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

EntityId = str | int


class Character(BaseModel):
    """A known story character."""

    id: EntityId | None = None
    name: str = Field(min_length=1)
    role: str = ""
    description: str = ""
    personality: str = ""

    @property
    def is_principal(self) -> bool:
        """True for protagonists, main characters, and narrators."""
        role = self.role.lower()
        return any(marker in role for marker in ("protagonist", "main", "narrator"))


class Location(BaseModel):
    """A known story location.

    ``parent`` names the enclosing region or building (e.g. a room's
    manor), used to treat two locations as related.
    """

    id: EntityId | None = None
    name: str = Field(min_length=1)
    description: str = ""
    atmosphere: str = ""
    parent: str | None = None


class Item(BaseModel):
    """A known story item; ``owner`` is the holding character's name."""

    id: EntityId | None = None
    name: str = Field(min_length=1)
    description: str = ""
    owner: str | None = None


class Faction(BaseModel):
    id: EntityId | None = None
    name: str = Field(min_length=1)
    description: str = ""


class LoreEntry(BaseModel):
    id: EntityId | None = None
    name: str = Field(min_length=1)
    content: str = ""


class StoryEvent(BaseModel):
    """A known story event, ordered chronologically by ``sort_order``."""

    id: EntityId | None = None
    name: str = Field(min_length=1)
    description: str = ""
    importance: str = ""
    suggested_timing: str = ""
    sort_order: int = 0


class LibraryData(BaseModel):
    """All library entity collections for a story."""

    characters: list[Character] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    factions: list[Faction] = Field(default_factory=list)
    lore: list[LoreEntry] = Field(default_factory=list)
    events: list[StoryEvent] = Field(default_factory=list)
    world: dict[str, Any] = Field(default_factory=dict)

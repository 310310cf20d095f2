"""Beat models.

A beat is one discrete scene moment within a chapter. Beats are created
by the drafter, rewritten by the location corrector and refiner, and
annotated with linked library objects as the last pipeline step.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from beatweaver.models.library import EntityId  # noqa: TC001 - used by pydantic


class BeatType(StrEnum):
    """Narrative role of a beat."""

    OPENING = "opening"
    RISING_ACTION = "rising_action"
    TENSION = "tension"
    CLIMAX = "climax"
    RESOLUTION = "resolution"
    TRANSITION = "transition"
    FLASHBACK = "flashback"
    DIALOGUE = "dialogue"
    ACTION = "action"
    REVELATION = "revelation"
    FLASH_FORWARD = "flash_forward"
    INTERLUDE = "interlude"
    PARALLEL = "parallel"
    DREAM = "dream"
    VISION = "vision"
    MEMORY = "memory"
    CUTAWAY = "cutaway"
    MONTAGE = "montage"


# Beat types that deliberately break scene continuity.
INTENTIONAL_JUMP_TYPES = frozenset(
    {
        BeatType.FLASHBACK,
        BeatType.FLASH_FORWARD,
        BeatType.INTERLUDE,
        BeatType.PARALLEL,
        BeatType.DREAM,
        BeatType.VISION,
        BeatType.MEMORY,
        BeatType.CUTAWAY,
        BeatType.MONTAGE,
    }
)


class LinkedRef(BaseModel):
    """Reference from a beat to a library object."""

    id: EntityId | None = None
    name: str


class LinkedObjects(BaseModel):
    """Library objects referenced by a beat, grouped by kind."""

    characters: list[LinkedRef] = Field(default_factory=list)
    locations: list[LinkedRef] = Field(default_factory=list)
    items: list[LinkedRef] = Field(default_factory=list)
    events: list[LinkedRef] = Field(default_factory=list)


class Beat(BaseModel):
    """One scene moment."""

    beat_number: int = Field(ge=1)
    type: BeatType = BeatType.RISING_ACTION
    summary: str = ""
    characters: list[str] = Field(default_factory=list)
    location: str = ""
    mood: str = ""
    dialogue_hint: str | None = None
    sensory_details: str | None = None
    linked_objects: LinkedObjects = Field(default_factory=LinkedObjects)
    location_corrected: bool = False
    original_location: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: object) -> object:
        """Normalise generator spellings; unknown types become rising_action."""
        if isinstance(value, BeatType):
            return value
        if not isinstance(value, str):
            return BeatType.RISING_ACTION
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        if normalized in BeatType._value2member_map_:
            return normalized
        return BeatType.RISING_ACTION

    @field_validator("characters", mode="before")
    @classmethod
    def dedupe_characters(cls, value: object) -> object:
        """Keep the first occurrence of each name, dropping blanks."""
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        seen: set[str] = set()
        names: list[str] = []
        for raw in value:
            name = str(raw).strip()
            if name and name.lower() not in seen:
                seen.add(name.lower())
                names.append(name)
        return names

    @field_validator("location", "mood", "summary", mode="before")
    @classmethod
    def none_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def text(self) -> str:
        """Summary, dialogue hint, and sensory details joined for scanning."""
        return " ".join(
            part for part in (self.summary, self.dialogue_hint, self.sensory_details) if part
        )

    def has_character(self, name: str) -> bool:
        """Case-insensitive membership check against the beat's cast."""
        lowered = name.lower()
        return any(c.lower() == lowered for c in self.characters)

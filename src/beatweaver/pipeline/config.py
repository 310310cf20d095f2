"""Pipeline configuration loading.

Feature flags and per-stage sampling settings live in an explicit
``PipelineConfig`` passed to the pipeline. It is read from the
``pipeline`` section of ``project.yaml``; ``BW_PROVIDER`` and
``BW_REFINEMENT`` environment variables override the file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

DEFAULT_PROVIDER = "openai/gpt-4o"
DEFAULT_MIN_BEATS = 15
DEFAULT_MAX_BEATS = 25

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class StageSettings:
    """Sampling settings for one generation stage."""

    temperature: float
    max_tokens: int

    @classmethod
    def from_dict(cls, data: dict[str, Any], default: StageSettings) -> StageSettings:
        return cls(
            temperature=float(data.get("temperature", default.temperature)),
            max_tokens=int(data.get("max_tokens", default.max_tokens)),
        )


DEFAULT_STAGE_SETTINGS: dict[str, StageSettings] = {
    "timeline": StageSettings(temperature=0.3, max_tokens=4000),
    "draft_beats": StageSettings(temperature=0.7, max_tokens=8000),
    "continuity": StageSettings(temperature=0.2, max_tokens=4000),
    "refine_beats": StageSettings(temperature=0.5, max_tokens=8000),
}


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration threaded through one pipeline run.

    Attributes:
        min_beats: Lower bound of the requested beat count.
        max_beats: Upper bound of the requested beat count.
        stages: Sampling settings per generation stage.
        max_characters: Characters listed to the drafter.
        max_locations: Locations listed to the drafter.
        max_items: Items listed to the drafter.
        refinement_enabled: Run the refiner when critical issues exist.
        cross_chapter_enabled: Check beats against the previous chapter's state.
        provider: Provider string, ``provider/model``.
    """

    min_beats: int = DEFAULT_MIN_BEATS
    max_beats: int = DEFAULT_MAX_BEATS
    stages: dict[str, StageSettings] = field(
        default_factory=lambda: dict(DEFAULT_STAGE_SETTINGS)
    )
    max_characters: int = 15
    max_locations: int = 10
    max_items: int = 10
    refinement_enabled: bool = True
    cross_chapter_enabled: bool = True
    provider: str = DEFAULT_PROVIDER

    def stage(self, name: str) -> StageSettings:
        """Settings for a stage, falling back to the built-in defaults."""
        return self.stages.get(name) or DEFAULT_STAGE_SETTINGS[name]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PipelineConfig:
        """Create config from the ``pipeline`` section of project.yaml.

        Raises:
            ValueError: If the beat range is inverted or a cap is negative.
        """
        stage_data = data.get("stages") or {}
        stages = {
            name: StageSettings.from_dict(dict(stage_data.get(name) or {}), default)
            for name, default in DEFAULT_STAGE_SETTINGS.items()
        }
        beats = data.get("beats") or {}
        caps = data.get("limits") or {}
        config = cls(
            min_beats=int(beats.get("min", DEFAULT_MIN_BEATS)),
            max_beats=int(beats.get("max", DEFAULT_MAX_BEATS)),
            stages=stages,
            max_characters=int(caps.get("characters", 15)),
            max_locations=int(caps.get("locations", 10)),
            max_items=int(caps.get("items", 10)),
            refinement_enabled=bool(data.get("refinement", True)),
            cross_chapter_enabled=bool(data.get("cross_chapter", True)),
            provider=str(data.get("provider", DEFAULT_PROVIDER)),
        )
        if not 1 <= config.min_beats <= config.max_beats:
            raise ValueError(f"Invalid beat range {config.min_beats}-{config.max_beats}")
        if min(config.max_characters, config.max_locations, config.max_items) < 0:
            raise ValueError("Listing limits must not be negative")
        return config

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the ``pipeline`` section layout."""
        return {
            "provider": self.provider,
            "beats": {"min": self.min_beats, "max": self.max_beats},
            "limits": {
                "characters": self.max_characters,
                "locations": self.max_locations,
                "items": self.max_items,
            },
            "refinement": self.refinement_enabled,
            "cross_chapter": self.cross_chapter_enabled,
            "stages": {
                name: {"temperature": s.temperature, "max_tokens": s.max_tokens}
                for name, s in self.stages.items()
            },
        }

    def with_env_overrides(self) -> PipelineConfig:
        """Apply ``BW_PROVIDER`` and ``BW_REFINEMENT`` overrides.

        Raises:
            ValueError: If ``BW_REFINEMENT`` is not a recognised boolean.
        """
        config = self
        provider = os.getenv("BW_PROVIDER")
        if provider:
            config = replace(config, provider=provider)
        refinement = os.getenv("BW_REFINEMENT")
        if refinement:
            config = replace(config, refinement_enabled=_parse_bool("BW_REFINEMENT", refinement))
        return config


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


class ConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load project config at {path}: {reason}")


def load_pipeline_config(project_path: Path) -> PipelineConfig:
    """Load pipeline configuration from project.yaml, with env overrides.

    Args:
        project_path: Path to the project root directory.

    Returns:
        PipelineConfig instance.

    Raises:
        ConfigError: If config cannot be loaded or is invalid.
    """
    config_path = project_path / "project.yaml"
    if not config_path.exists():
        raise ConfigError(config_path, "File not found")

    yaml = YAML(typ="safe")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)
        if data is None:
            raise ConfigError(config_path, "Empty file")
        section = dict(data).get("pipeline") or {}
        return PipelineConfig.from_dict(dict(section)).with_env_overrides()
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(config_path, str(e)) from e


def write_project_config(project_path: Path, name: str, config: PipelineConfig) -> Path:
    """Write a project.yaml holding the project name and pipeline section."""
    config_path = project_path / "project.yaml"
    yaml = YAML()
    yaml.default_flow_style = False
    with config_path.open("w", encoding="utf-8") as f:
        yaml.dump({"name": name, "version": 1, "pipeline": config.to_dict()}, f)
    return config_path

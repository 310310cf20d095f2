"""Chapter beat pipeline: configuration, stages and orchestration."""

from beatweaver.pipeline.config import (
    ConfigError,
    PipelineConfig,
    StageSettings,
    load_pipeline_config,
)
from beatweaver.pipeline.errors import BeatDraftError, PipelineError, StageOutputError
from beatweaver.pipeline.orchestrator import BeatPipeline, generate_beats

__all__ = [
    "BeatDraftError",
    "BeatPipeline",
    "ConfigError",
    "PipelineConfig",
    "PipelineError",
    "StageOutputError",
    "StageSettings",
    "generate_beats",
    "load_pipeline_config",
]

"""Pipeline exceptions."""

from __future__ import annotations


class PipelineError(Exception):
    """Raised when a pipeline stage fails fatally."""

    def __init__(self, stage: str, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(f"[{stage}] {message}")


class BeatDraftError(PipelineError):
    """Raised when the drafter's output is unusable."""

    def __init__(self, message: str) -> None:
        super().__init__("draft_beats", message)


class StageOutputError(PipelineError):
    """Raised when a stage's generated output fails boundary validation."""

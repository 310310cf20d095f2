"""JSONL log of generation calls.

One entry per call goes to ``logs/llm_calls.jsonl``: the stage, the
chapter being generated, both prompts, the sampling settings and the raw
response. Prompts and responses are never truncated.

Only active when the --log flag is passed to the CLI.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from beatweaver.observability.logging import current_chapter

if TYPE_CHECKING:
    from pathlib import Path

LLM_LOG_FILE = "llm_calls.jsonl"


@dataclass
class LLMLogEntry:
    """A single generation call."""

    timestamp: str
    stage: str
    model: str
    system_prompt: str
    user_prompt: str
    temperature: float
    max_tokens: int
    json_mode: bool
    content: str
    tokens_used: int
    duration_seconds: float
    chapter: int | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.error is not None


class LLMLogger:
    """Append-only JSONL log of generation calls for one project.

    Attributes:
        log_path: Path to the JSONL log file.
        enabled: Whether entries are written.
    """

    def __init__(self, project_path: Path, enabled: bool = True) -> None:
        self.enabled = enabled
        self.log_path = project_path / "logs" / LLM_LOG_FILE
        if enabled:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: LLMLogEntry) -> None:
        if not self.enabled:
            return
        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")

    @staticmethod
    def create_entry(
        stage: str,
        model: str,
        system_prompt: str,
        user_prompt: str,
        content: str,
        tokens_used: int,
        duration_seconds: float,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        json_mode: bool = True,
        error: str | None = None,
        **metadata: Any,
    ) -> LLMLogEntry:
        """Create an entry stamped with the current time and chapter.

        The chapter comes from the enclosing ``chapter_log_context``, so
        callers inside a pipeline run need not pass it.

        Args:
            stage: Pipeline stage name (timeline, draft_beats, ...).
            model: Model identifier used.
            system_prompt: System prompt sent.
            user_prompt: User prompt sent.
            content: Response content.
            tokens_used: Total tokens used.
            duration_seconds: Time taken for the call.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens allowed.
            json_mode: Whether JSON output was requested.
            error: Error message if the call failed.
            **metadata: Additional metadata.

        Returns:
            LLMLogEntry ready for logging.
        """
        return LLMLogEntry(
            timestamp=datetime.now(UTC).isoformat(),
            stage=stage,
            model=model,
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
            content=content,
            tokens_used=tokens_used,
            duration_seconds=duration_seconds,
            chapter=current_chapter(),
            error=error,
            metadata=dict(metadata),
        )

    def read_entries(
        self,
        stage: str | None = None,
        chapter: int | None = None,
    ) -> list[LLMLogEntry]:
        """Read logged entries, optionally only one stage's or one chapter's."""
        if not self.log_path.exists():
            return []

        entries: list[LLMLogEntry] = []
        with self.log_path.open(encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                entry = LLMLogEntry(**json.loads(line))
                if stage is not None and entry.stage != stage:
                    continue
                if chapter is not None and entry.chapter != chapter:
                    continue
                entries.append(entry)
        return entries

"""Tests for the generation call JSONL logger."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from beatweaver.observability import LLMLogEntry, LLMLogger, chapter_log_context

if TYPE_CHECKING:
    from pathlib import Path


def _entry(**overrides: Any) -> LLMLogEntry:
    fields: dict[str, Any] = {
        "stage": "draft_beats",
        "model": "gpt-4o",
        "system_prompt": "You are a story architect.",
        "user_prompt": "Create beats for chapter 2",
        "content": '{"beats": []}',
        "tokens_used": 120,
        "duration_seconds": 1.5,
    }
    fields.update(overrides)
    return LLMLogger.create_entry(**fields)


def test_llm_logger_creates_logs_dir(tmp_path: Path) -> None:
    """Logger creates the logs directory if missing."""
    logger = LLMLogger(tmp_path)

    assert logger.log_path == tmp_path / "logs" / "llm_calls.jsonl"
    assert (tmp_path / "logs").exists()


def test_llm_logger_disabled_does_not_write(tmp_path: Path) -> None:
    """Disabled logger creates nothing and writes nothing."""
    logger = LLMLogger(tmp_path, enabled=False)

    logger.log(_entry())

    assert not (tmp_path / "logs").exists()
    assert logger.enabled is False


def test_llm_logger_appends_entries(tmp_path: Path) -> None:
    """Each call appends one JSON line with prompts and sampling settings."""
    logger = LLMLogger(tmp_path)

    logger.log(_entry(temperature=0.2, max_tokens=4000, stage="continuity"))
    logger.log(_entry(error="timeout", content=""))

    lines = logger.log_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first, second = (json.loads(line) for line in lines)
    assert first["stage"] == "continuity"
    assert first["temperature"] == 0.2
    assert first["user_prompt"] == "Create beats for chapter 2"
    assert second["error"] == "timeout"


def test_create_entry_collects_metadata() -> None:
    entry = LLMLogger.create_entry(
        stage="timeline",
        model="qwen3:8b",
        system_prompt="s",
        user_prompt="u",
        content="{}",
        tokens_used=0,
        duration_seconds=0.1,
        provider="ollama",
    )

    assert entry.metadata == {"provider": "ollama"}
    assert entry.json_mode is True
    assert entry.timestamp


def test_create_entry_records_bound_chapter() -> None:
    """Entries created inside a chapter run carry its number."""
    with chapter_log_context(3):
        entry = _entry()

    assert entry.chapter == 3
    assert _entry().chapter is None


def test_read_entries_filters(tmp_path: Path) -> None:
    logger = LLMLogger(tmp_path)
    with chapter_log_context(1):
        logger.log(_entry(stage="timeline"))
        logger.log(_entry(stage="draft_beats"))
    with chapter_log_context(2):
        logger.log(_entry(stage="draft_beats", error="rate limited"))

    assert len(logger.read_entries()) == 3
    assert [e.chapter for e in logger.read_entries(stage="draft_beats")] == [1, 2]
    failed = logger.read_entries(chapter=2)
    assert len(failed) == 1
    assert failed[0].failed


def test_read_entries_missing_log(tmp_path: Path) -> None:
    assert LLMLogger(tmp_path, enabled=False).read_entries() == []

"""Observability module for BeatWeaver.

Provides structured logging and generation call tracking.
"""

from beatweaver.observability.llm_logger import LLMLogEntry, LLMLogger
from beatweaver.observability.logging import (
    chapter_log_context,
    close_file_logging,
    configure_logging,
    current_chapter,
    get_logger,
    get_logs_dir,
)

__all__ = [
    "LLMLogEntry",
    "LLMLogger",
    "chapter_log_context",
    "close_file_logging",
    "configure_logging",
    "current_chapter",
    "get_logger",
    "get_logs_dir",
]

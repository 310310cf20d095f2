"""Structured logging configuration for BeatWeaver.

Two sinks, both fed by structlog through the stdlib root logger:

- Console: rich output on stderr, level chosen by the ``-v`` count.
- File: every event as one JSON line in ``{project}/logs/debug.jsonl``,
  enabled by ``--log``.

Events logged inside ``chapter_log_context`` carry the chapter number, so
concurrent chapter runs stay distinguishable in debug.jsonl.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from structlog.typing import Processor

DEBUG_LOG_FILE = "debug.jsonl"

VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}

# Dependencies that drown out pipeline events at DEBUG
QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "openai",
    "langchain",
    "langchain_core",
    "asyncio",
)

# Context keys written right after the message in each JSONL entry.
_LEADING_KEYS = ("chapter", "stage")

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


class JSONLFileHandler(logging.FileHandler):
    """File handler that writes one JSON object per record."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.to_entry(record), default=str) + "\n"
            if self.stream:
                self.stream.write(line)
                self.stream.flush()
        except Exception:
            self.handleError(record)

    @staticmethod
    def to_entry(record: logging.LogRecord) -> dict[str, Any]:
        """Flatten a record into a JSONL entry.

        structlog hands over its event dict as ``record.msg``; its fields
        become top-level keys, with ``chapter`` and ``stage`` leading.
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if not isinstance(record.msg, dict):
            entry["message"] = record.getMessage()
            return entry

        fields = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
        entry["message"] = fields.pop("event", str(record.msg))
        for key in _LEADING_KEYS:
            if key in fields:
                entry[key] = fields.pop(key)
        entry.update(fields)
        return entry


def _console_handler(verbosity: int) -> RichHandler:
    return RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=True,
        level=VERBOSITY_LEVELS.get(verbosity, logging.DEBUG),
    )


def _open_file_handler(project_path: Path) -> JSONLFileHandler:
    global _logs_dir

    _logs_dir = project_path / "logs"
    _logs_dir.mkdir(parents=True, exist_ok=True)
    handler = JSONLFileHandler(str(_logs_dir / DEBUG_LOG_FILE), mode="a")
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    project_path: Path | None = None,
) -> None:
    """Configure logging for BeatWeaver.

    Safe to call again; a previously opened log file is closed first.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_to_file: If True, enable file logging to {project_path}/logs/.
        project_path: Project directory for file logging. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but project_path is not provided.
    """
    global _configured, _file_handler

    if log_to_file and project_path is None:
        raise ValueError("project_path is required when log_to_file=True")

    close_file_logging()

    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and project_path is not None:
        _file_handler = _open_file_handler(project_path)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)
    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger instance.

    Automatically configures logging if not already done.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def chapter_log_context(chapter_number: int, **values: object) -> Iterator[None]:
    """Bind ``chapter`` (and any extra values) to every event logged in the block."""
    with structlog.contextvars.bound_contextvars(chapter=chapter_number, **values):
        yield


def current_chapter() -> int | None:
    """The chapter bound by an enclosing ``chapter_log_context``, if any."""
    chapter = structlog.contextvars.get_contextvars().get("chapter")
    return chapter if isinstance(chapter, int) else None


def get_logs_dir() -> Path | None:
    """Get the configured logs directory, or None when file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Close the JSONL file handler, if open."""
    global _file_handler
    if _file_handler:
        _file_handler.close()
        _file_handler = None

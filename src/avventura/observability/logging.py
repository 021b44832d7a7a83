"""Structured logging configuration for Avventura.

Two sinks are available:
- Console logging: controlled by the -v flag (rich output to stderr)
- File logging: controlled by --log-dir (JSON lines in ``debug.jsonl``)
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from structlog.typing import Processor

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None

# Dependencies whose DEBUG output drowns out ours
_NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "langchain",
    "langchain_core",
    "langsmith",
    "asyncio",
)

# Taken from the LogRecord instead of the structlog event
_RECORD_FIELDS = ("level", "timestamp", "logger")


class JSONLineFormatter(logging.Formatter):
    """Render each record as a single JSON object.

    structlog events arrive as a dict in ``record.msg``; their keys (bound
    story context included) become top-level fields beside ``message``.
    Plain stdlib records keep their formatted message.
    """

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            event = dict(record.msg)
        else:
            event = {"event": record.getMessage()}
        for key in _RECORD_FIELDS:
            event.pop(key, None)

        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": event.pop("event", ""),
            **event,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _jsonl_handler(path: Path) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(JSONLineFormatter())
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure logging for Avventura.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG
        log_to_file: If True, also write every event to ``{log_dir}/debug.jsonl``.
        log_dir: Directory for the JSONL log. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None

    levels = {0: logging.WARNING, 1: logging.INFO}
    console_level = levels.get(verbosity, logging.DEBUG)

    console_handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=console_level,
    )
    handlers: list[logging.Handler] = [console_handler]

    if log_to_file and log_dir is not None:
        _logs_dir = log_dir
        _logs_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = _jsonl_handler(_logs_dir / "debug.jsonl")
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )

    for logger_name in _NOISY_LOGGERS:
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
    """Get a structured logger, configuring logging on first use.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def get_logs_dir() -> Path | None:
    """Return the JSONL log directory, or None when file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Close the file logging handler."""
    global _file_handler
    if _file_handler:
        _file_handler.close()
        _file_handler = None


def story_context(story: str, **extra: object) -> AbstractContextManager[None]:
    """Tag every event logged inside the block with the story being worked on.

    Example::

        with story_context("The Jade Island"):
            log.info("story_fetched", steps=12)  # also carries story=...
    """
    return structlog.contextvars.bound_contextvars(story=story, **extra)

"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

import avventura.observability.logging as log_module
from avventura.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    story_context,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    close_file_logging()
    configure_logging(verbosity=0)


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)
    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_verbose_lowers_root_level() -> None:
    """verbosity=1 opens the root logger; the console handler filters to INFO."""
    configure_logging(verbosity=1)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG
    assert root_logger.handlers[0].level == logging.INFO


def test_configure_logging_very_verbose_sets_debug() -> None:
    configure_logging(verbosity=2)
    assert logging.getLogger().handlers[0].level == logging.DEBUG


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert hasattr(logger, "info")


@pytest.mark.parametrize("name", ["httpx", "httpcore", "langchain_core"])
def test_noisy_loggers_capped(name: str) -> None:
    configure_logging(verbosity=2)
    assert logging.getLogger(name).level == logging.WARNING


def test_file_logging_requires_log_dir() -> None:
    with pytest.raises(ValueError, match="log_dir is required"):
        configure_logging(verbosity=0, log_to_file=True, log_dir=None)


def test_file_logging_creates_directory(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    configure_logging(verbosity=0, log_to_file=True, log_dir=log_dir)

    assert log_dir.is_dir()
    assert get_logs_dir() == log_dir


def test_reconfiguration_closes_handler(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)
    first_handler = log_module._file_handler
    assert first_handler is not None

    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)

    assert first_handler.stream is None or first_handler.stream.closed
    assert log_module._file_handler is not None


def test_close_file_logging_clears_handler(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)
    close_file_logging()
    assert log_module._file_handler is None


def test_jsonl_handler_writes_event_context(tmp_path: Path) -> None:
    """Event name and keyword context land as top-level JSON keys."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)

    get_logger("test.context").info("story_loaded", story="jade", steps=5)
    close_file_logging()

    entries = [json.loads(line) for line in (tmp_path / "debug.jsonl").read_text().splitlines()]
    matching = [e for e in entries if e.get("message") == "story_loaded"]
    assert len(matching) == 1
    assert matching[0]["story"] == "jade"
    assert matching[0]["steps"] == 5
    assert matching[0]["level"] == "INFO"


def test_story_context_binds_story(tmp_path: Path) -> None:
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)
    log = get_logger("test.story")

    with story_context("The Jade Island"):
        log.info("inside_story")
    log.info("outside_story")
    close_file_logging()

    entries = {
        e["message"]: e
        for e in (json.loads(line) for line in (tmp_path / "debug.jsonl").read_text().splitlines())
    }
    assert entries["inside_story"]["story"] == "The Jade Island"
    assert "story" not in entries["outside_story"]


def test_jsonl_plain_stdlib_record(tmp_path: Path) -> None:
    """Records from non-structlog loggers keep their formatted message."""
    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)

    logging.getLogger("plain").warning("backend %s unreachable", "http://x")
    try:
        raise ValueError("boom")
    except ValueError:
        logging.getLogger("plain").exception("push_failed")
    close_file_logging()

    lines = (tmp_path / "debug.jsonl").read_text().splitlines()
    entries = [json.loads(line) for line in lines]
    assert entries[0]["message"] == "backend http://x unreachable"
    assert entries[0]["logger"] == "plain"
    assert entries[1]["message"] == "push_failed"
    assert "ValueError: boom" in entries[1]["exception"]

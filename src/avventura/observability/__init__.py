"""Observability module for Avventura.

Provides structured logging for the CLI and library code.
"""

from avventura.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    story_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
    "story_context",
]

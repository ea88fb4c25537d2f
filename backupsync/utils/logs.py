"""Logging setup for backupsync entry points."""

from __future__ import annotations

import sys
from collections import deque
from pathlib import Path

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} - {message}"


def configure_logging(log_file: str | Path | None = None, quiet: bool = False) -> None:
    """
    Route loguru output to stderr and, optionally, the job log file.

    Args:
        log_file: Append job messages here in the "date - message" format
        quiet: Only show errors on stderr
    """
    logger.remove()
    logger.add(sys.stderr, level="ERROR" if quiet else "INFO")
    if log_file:
        logger.add(str(log_file), format=FILE_FORMAT, level="INFO", mode="a")


def tail_lines(path: str | Path, count: int = 10) -> list[str]:
    """Last lines of a text file; empty if the file cannot be read."""
    try:
        with open(path, "r", errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=count)]
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return []

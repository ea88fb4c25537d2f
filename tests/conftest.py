"""Shared fixtures."""

import sys

import pytest
from loguru import logger

from backupsync.utils.config import reset_config


@pytest.fixture(autouse=True)
def reset_logging_and_config():
    """Undo sinks and cached config left behind by a test."""
    yield
    logger.remove()
    logger.add(sys.stderr)
    reset_config()

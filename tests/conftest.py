# tests/conftest.py

"""Shared pytest fixtures for all pricing tests."""

import logging
from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from cardprice.config.settings import Settings


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path: Path) -> Generator[None, None, None]:
    """Send per-run log files to a temp ``logs/`` dir and drop handlers after."""
    with patch.object(Settings, "LOGS_DIR", tmp_path / "logs"):
        yield
    root_logger = logging.getLogger("cardprice")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)

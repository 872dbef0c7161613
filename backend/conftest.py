"""Root conftest: load test environment variables and route structlog through stdlib for caplog."""

import logging
from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import setup_logging

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# No log file is written under pytest; records still reach caplog's handler.
setup_logging(level=logging.DEBUG)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()

"""
test_logging_config.py — Tests for app/logging_config.py

Verifies Loguru setup, interception of the service loggers
(logging.getLogger("catalog.*")) and request context binding.

Called by: pytest
Depends on: app/logging_config.py
"""

import logging
import os
from unittest.mock import patch

import pytest
from loguru import logger

from app.logging_config import setup_logging


@pytest.fixture(autouse=True)
def _clean_loguru():
    """Remove all handlers before/after each test for isolation."""
    logger.remove()
    yield
    logger.remove()


def _capture(level="DEBUG"):
    messages = []
    logger.add(lambda m: messages.append(m.record), level=level, format="{message}")
    return messages


def test_setup_logging_adds_handler():
    assert len(logger._core.handlers) == 0
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000"}):
        setup_logging()
    assert len(logger._core.handlers) > 0


def test_service_logger_intercepted():
    """Service modules log via stdlib; records must reach Loguru sinks."""
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000"}):
        setup_logging()
    records = _capture()

    logging.getLogger("catalog.sync").warning("NOMENCLATURE %s: %s", "g-1", "parent missing")

    assert any(r["message"] == "NOMENCLATURE g-1: parent missing" for r in records)


def test_log_level_from_env():
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000", "LOG_LEVEL": "WARNING"}):
        setup_logging()
    records = _capture(level="WARNING")

    logger.debug("should be filtered")
    logger.warning("should appear")

    assert [r["message"] for r in records] == ["should appear"]


def test_noisy_loggers_quieted():
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000"}):
        setup_logging()
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING


def test_context_binding():
    records = _capture()
    with logger.contextualize(request_id="abc123"):
        logger.info("request log")
    assert records[-1]["extra"].get("request_id") == "abc123"


def test_context_not_leaked():
    records = _capture()
    with logger.contextualize(request_id="abc123"):
        logger.info("inside")
    logger.info("outside")
    assert records[-1]["extra"].get("request_id") != "abc123"


def test_production_mode_uses_serialize():
    """A non-localhost APP_URL switches to JSON output."""
    with patch.dict(os.environ, {"APP_URL": "https://catalog.example.com"}):
        with patch("loguru.logger.add") as mock_add:
            setup_logging()
    assert any(c.kwargs.get("serialize") is True for c in mock_add.call_args_list)


def test_development_mode_is_not_serialized():
    with patch.dict(os.environ, {"APP_URL": "http://127.0.0.1:8000"}):
        with patch("loguru.logger.add") as mock_add:
            setup_logging()
    assert not any(c.kwargs.get("serialize") for c in mock_add.call_args_list)

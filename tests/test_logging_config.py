"""Tests for singleton logging configuration."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from groundcheck.logging_config import (
    _SUPPRESSED_LOGGERS,
    LOG_DATEFMT,
    LOG_FORMAT,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_flag() -> None:
    """Reset the singleton flag before each test."""
    import groundcheck.logging_config as mod

    mod._configured = False


def test_setup_logging_is_idempotent() -> None:
    """Configuration executes once even when called twice."""
    with patch("groundcheck.logging_config.logging.basicConfig") as mock_bc:
        setup_logging()
        setup_logging()  # second call is no-op
        mock_bc.assert_called_once()


def test_level_passed_through() -> None:
    with patch("groundcheck.logging_config.logging.basicConfig") as mock_bc:
        setup_logging("debug")
    assert mock_bc.call_args.kwargs["level"] == logging.DEBUG
    assert mock_bc.call_args.kwargs["format"] == LOG_FORMAT
    assert mock_bc.call_args.kwargs["datefmt"] == LOG_DATEFMT


def test_suppressed_loggers_at_warning() -> None:
    """Retry and breaker libraries are quieted to WARNING."""
    with patch("groundcheck.logging_config.logging.basicConfig"):
        setup_logging()
    for name in _SUPPRESSED_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING, (
            f"{name} should be WARNING"
        )

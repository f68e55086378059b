"""Shared test fixtures: sample repository, settings, report logger."""

from __future__ import annotations

from pathlib import Path

import pytest

from groundcheck.config import Settings
from groundcheck.logger import ReportLogger

SAMPLE_REPO = Path(__file__).parent / "fixtures" / "sample_repo"


@pytest.fixture
def sample_repo() -> Path:
    """Read-only repository with Python and TypeScript sources."""
    return SAMPLE_REPO


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from any developer .env, with instant retries."""
    return Settings(
        _env_file=None,  # pyright: ignore[reportCallIssue]
        log_dir=tmp_path / "logs",
        probe_retry_attempts=3,
        probe_retry_initial_wait=0.0,
        probe_retry_max_wait=0.0,
        probe_retry_jitter=0.0,
    )


@pytest.fixture
def report_logger(tmp_path: Path) -> ReportLogger:
    return ReportLogger(log_dir=tmp_path / "logs", level="INFO")

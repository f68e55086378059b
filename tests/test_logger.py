"""Tests for the structured JSON-lines report logger."""

from __future__ import annotations

import json
from pathlib import Path

from groundcheck.constants import ERROR_TRUNCATION_CHARS
from groundcheck.logger import ReportLogger


def _records(logger: ReportLogger) -> list[dict[str, object]]:
    return [json.loads(line) for line in logger.log_path.read_text().splitlines()]


def test_log_file_created(tmp_path: Path) -> None:
    logger = ReportLogger(log_dir=tmp_path / "nested" / "logs")
    assert logger.log_path.parent.is_dir()
    assert logger.log_path.name == "groundcheck.log"


def test_retrieval_record(report_logger: ReportLogger) -> None:
    report_logger.log_retrieval(
        run_id="r1",
        query="UserService",
        rounds=2,
        coverage=0.8,
        files_explored=4,
        duration_ms=12.5,
    )
    record = _records(report_logger)[-1]
    assert record["type"] == "retrieval"
    assert record["run_id"] == "r1"
    assert record["rounds"] == 2
    assert "timestamp" in record


def test_probe_error_truncated(report_logger: ReportLogger) -> None:
    report_logger.log_probe(
        run_id="r2",
        probe_id="p1",
        outcome="error",
        duration_ms=1.0,
        error="x" * (ERROR_TRUNCATION_CHARS + 100),
    )
    record = _records(report_logger)[-1]
    assert len(str(record["error"])) == ERROR_TRUNCATION_CHARS


def test_probe_success_has_no_error(report_logger: ReportLogger) -> None:
    report_logger.log_probe(run_id="r3", probe_id="p1", outcome="passed", duration_ms=1.0)
    assert _records(report_logger)[-1]["error"] is None


def test_same_path_registers_one_handler(tmp_path: Path) -> None:
    first = ReportLogger(log_dir=tmp_path)
    ReportLogger(log_dir=tmp_path)
    first.log_refinement(
        run_id="r4", claims=1, modifications=0, before_rate=0.0, after_rate=0.0
    )
    assert len(_records(first)) == 1

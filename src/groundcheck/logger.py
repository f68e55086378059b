"""Structured JSON logger for retrieval, refinement and probe tracking."""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from groundcheck.constants import ERROR_TRUNCATION_CHARS
from groundcheck.logging_config import LOG_DATEFMT, LOG_FORMAT

__all__ = ["ReportLogger", "LOG_FORMAT", "LOG_DATEFMT"]


class ReportLogger:
    """Structured JSON-lines logger with run_id correlation."""

    def __init__(self, log_dir: Path, level: str = "INFO") -> None:
        self._log_dir = log_dir
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._log_path = (log_dir / "groundcheck.log").resolve()
        self._logger = logging.getLogger("groundcheck.reports")
        self._logger.setLevel(getattr(logging, level.upper()))
        self._logger.propagate = False

        if not any(
            isinstance(h, logging.FileHandler)
            and Path(h.baseFilename) == self._log_path
            for h in self._logger.handlers
        ):
            handler = logging.FileHandler(self._log_path)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    @property
    def log_path(self) -> Path:
        return self._log_path

    def log_retrieval(
        self,
        run_id: str,
        query: str,
        rounds: int,
        coverage: float,
        files_explored: int,
        duration_ms: float,
    ) -> None:
        self._emit(logging.INFO, {
            "type": "retrieval",
            "run_id": run_id,
            "query": query[:ERROR_TRUNCATION_CHARS],
            "rounds": rounds,
            "coverage": coverage,
            "files_explored": files_explored,
            "duration_ms": duration_ms,
        })

    def log_refinement(
        self,
        run_id: str,
        claims: int,
        modifications: int,
        before_rate: float,
        after_rate: float,
    ) -> None:
        self._emit(logging.INFO, {
            "type": "refinement",
            "run_id": run_id,
            "claims": claims,
            "modifications": modifications,
            "before_rate": before_rate,
            "after_rate": after_rate,
        })

    def log_probe(
        self,
        run_id: str,
        probe_id: str,
        outcome: str,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        self._emit(
            logging.ERROR if error else logging.INFO,
            {
                "type": "probe",
                "run_id": run_id,
                "probe_id": probe_id,
                "outcome": outcome,
                "duration_ms": duration_ms,
                "error": error[:ERROR_TRUNCATION_CHARS] if error else None,
            },
        )

    def _emit(self, level: int, record: dict[str, Any]) -> None:
        payload = {"timestamp": datetime.now(UTC).isoformat(), **record}
        self._logger.log(level, json.dumps(payload))

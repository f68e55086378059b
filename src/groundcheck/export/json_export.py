"""JSON export: structured report envelope."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from groundcheck.constants import ReportType


def export_report(report: BaseModel, report_type: ReportType | str) -> str:
    """Export any report model as a JSON envelope."""
    payload: dict[str, Any] = {
        "report_type": str(report_type),
        "generated_at": datetime.now(UTC).isoformat(),
        "report": report.model_dump(mode="json"),
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_reports(reports: dict[ReportType, BaseModel]) -> str:
    """Export several reports from one run under a single timestamp."""
    payload: dict[str, Any] = {
        "generated_at": datetime.now(UTC).isoformat(),
        "report_count": len(reports),
        "reports": {
            str(report_type): report.model_dump(mode="json")
            for report_type, report in reports.items()
        },
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)

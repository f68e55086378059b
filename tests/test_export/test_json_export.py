"""Tests for JSON report envelopes."""

from __future__ import annotations

import json
from datetime import datetime

from groundcheck.constants import ReportType
from groundcheck.export import export_report, export_reports
from groundcheck.retrieval.schemas import IterativeRetrievalResult
from groundcheck.verification.schemas import EntailmentReport, EntailmentSummary


def test_export_report_envelope() -> None:
    report = EntailmentReport(summary=EntailmentSummary(total=2, entailed=1, neutral=1))
    payload = json.loads(export_report(report, ReportType.ENTAILMENT))
    assert payload["report_type"] == "entailment"
    assert datetime.fromisoformat(payload["generated_at"]).tzinfo is not None
    summary = payload["report"]["summary"]
    assert summary["entailment_rate"] == 0.5
    assert summary["non_entailed_rate"] == 0.5


def test_export_report_keeps_unicode() -> None:
    report = IterativeRetrievalResult(query="café lookup")
    text = export_report(report, "retrieval")
    assert "café" in text
    assert json.loads(text)["report"]["query"] == "café lookup"


def test_export_reports_bundle() -> None:
    payload = json.loads(
        export_reports({
            ReportType.RETRIEVAL: IterativeRetrievalResult(query="q"),
            ReportType.ENTAILMENT: EntailmentReport(),
        })
    )
    assert payload["report_count"] == 2
    assert set(payload["reports"]) == {"retrieval", "entailment"}
    assert payload["reports"]["retrieval"]["stop_reason"] == ""

"""Tests for CLI argument parsing and command output."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from groundcheck.cli import _build_parser, main
from groundcheck.constants import HEDGE_PREFIX

ANSWER = "`UserService` extends `BaseService`. `build_service` is async."


@pytest.fixture(autouse=True)
def logging_setup(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    mock = MagicMock()
    monkeypatch.setattr("groundcheck.cli.setup_logging", mock)
    return mock


@pytest.fixture
def answer_file(tmp_path: Path) -> Path:
    path = tmp_path / "answer.md"
    path.write_text(ANSWER, encoding="utf-8")
    return path


class TestArgParser:
    def test_verify_defaults(self) -> None:
        args = _build_parser().parse_args(["verify", "answer.md"])
        assert args.command == "verify"
        assert args.answer == "answer.md"
        assert args.repo == "."
        assert args.output is None
        assert args.report_dir is None
        assert args.remove_unverified is None
        assert args.no_hedge is False
        assert args.log_level is None

    def test_retrieve_with_options(self) -> None:
        args = _build_parser().parse_args(
            ["--log-level", "debug", "retrieve", "UserService", "-r", "/tmp/repo", "--rounds", "2"]
        )
        assert args.command == "retrieve"
        assert args.query == "UserService"
        assert args.repo == "/tmp/repo"
        assert args.rounds == 2
        assert args.log_level == "debug"

    def test_no_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 2
        assert "usage: groundcheck" in capsys.readouterr().out


class TestCommands:
    def test_verify_prints_refinement_report(
        self,
        sample_repo: Path,
        answer_file: Path,
        capsys: pytest.CaptureFixture[str],
        logging_setup: MagicMock,
    ) -> None:
        code = main(
            ["--log-level", "debug", "verify", str(answer_file), "--repo", str(sample_repo)]
        )
        assert code == 0
        logging_setup.assert_called_once_with("debug")
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["report_type"] == "refinement"
        refined = envelope["report"]["refined_response"]
        assert f"{HEDGE_PREFIX} `build_service` is async." in refined

    def test_verify_can_remove(
        self, sample_repo: Path, answer_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        main(["verify", str(answer_file), "-r", str(sample_repo), "--remove-unverified"])
        envelope = json.loads(capsys.readouterr().out)
        refined = envelope["report"]["refined_response"]
        assert refined.rstrip() == "`UserService` extends `BaseService`."

    def test_verify_without_edits(
        self, sample_repo: Path, answer_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        main(["verify", str(answer_file), "-r", str(sample_repo), "--no-hedge"])
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["report"]["refined_response"] == ANSWER

    def test_citations_written_to_file(self, sample_repo: Path, tmp_path: Path) -> None:
        answer = tmp_path / "cited.md"
        answer.write_text("See app/services.py:7 and app/missing.py:3.", encoding="utf-8")
        output = tmp_path / "out" / "citations.json"
        code = main(
            ["citations", str(answer), "-r", str(sample_repo), "-o", str(output)]
        )
        assert code == 0
        envelope = json.loads(output.read_text(encoding="utf-8"))
        assert envelope["report_type"] == "citations"
        assert envelope["report"]["total_citations"] == 2
        assert envelope["report"]["verified_count"] == 1

    def test_retrieve_with_report_log(
        self, sample_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        report_dir = tmp_path / "runs"
        code = main(
            [
                "retrieve", "UserService",
                "-r", str(sample_repo),
                "--rounds", "1",
                "--report-dir", str(report_dir),
            ]
        )
        assert code == 0
        envelope = json.loads(capsys.readouterr().out)
        assert envelope["report_type"] == "retrieval"
        assert len(envelope["report"]["rounds"]) == 1
        record = json.loads((report_dir / "groundcheck.log").read_text().splitlines()[-1])
        assert record["type"] == "retrieval"

    def test_missing_repo(self, tmp_path: Path, answer_file: Path) -> None:
        assert main(["verify", str(answer_file), "-r", str(tmp_path / "nope")]) == 1

    def test_missing_answer_file(
        self, sample_repo: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = main(["citations", str(tmp_path / "absent.md"), "-r", str(sample_repo)])
        assert code == 1
        assert "Error:" in capsys.readouterr().err

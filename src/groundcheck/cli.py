"""CLI entry point: ``groundcheck verify``, ``citations`` and ``retrieve``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

from pydantic import BaseModel

from groundcheck.config import Settings
from groundcheck.constants import ReportType
from groundcheck.export import export_report
from groundcheck.logger import ReportLogger
from groundcheck.logging_config import setup_logging


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    settings = Settings()
    setup_logging(args.log_level or settings.log_level)

    repo = Path(args.repo).resolve()
    if not repo.is_dir():
        print(f"Error: {repo} is not a directory", file=sys.stderr)
        return 1

    report_logger = (
        ReportLogger(Path(args.report_dir), settings.log_level)
        if args.report_dir
        else None
    )

    try:
        if args.command == "verify":
            report, report_type = _run_verify(args, repo, settings, report_logger)
        elif args.command == "citations":
            report, report_type = _run_citations(args, repo, settings)
        else:
            report, report_type = _run_retrieve(args, repo, settings, report_logger)
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    _write_output(export_report(report, report_type), args.output)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="groundcheck",
        description="Check code-assistant answers against the repository they describe.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: LOG_LEVEL setting)",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--repo",
        "-r",
        default=".",
        help="Repository root (default: current directory)",
    )
    common.add_argument(
        "--output",
        "-o",
        default=None,
        help="Write the JSON report here instead of stdout",
    )
    common.add_argument(
        "--report-dir",
        default=None,
        help="Also append JSON-lines run records to this directory",
    )

    sub = parser.add_subparsers(dest="command")

    verify = sub.add_parser(
        "verify",
        parents=[common],
        help="Verify and refine an answer",
    )
    verify.add_argument(
        "answer",
        help="File holding the answer text, or - for stdin",
    )
    verify.add_argument(
        "--remove-unverified",
        action="store_true",
        default=None,
        help="Remove unsupported sentences instead of hedging them",
    )
    verify.add_argument(
        "--no-hedge",
        action="store_true",
        help="Report problems without editing the answer",
    )

    citations = sub.add_parser(
        "citations",
        parents=[common],
        help="Check file and line citations in an answer",
    )
    citations.add_argument(
        "answer",
        help="File holding the answer text, or - for stdin",
    )

    retrieve = sub.add_parser(
        "retrieve",
        parents=[common],
        help="Run multi-round retrieval for a query",
    )
    retrieve.add_argument("query", help="Natural-language or identifier query")
    retrieve.add_argument(
        "--rounds",
        type=int,
        default=None,
        help="Maximum retrieval rounds (default: RETRIEVAL_MAX_ROUNDS setting)",
    )

    return parser


def _read_answer(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _run_verify(
    args: argparse.Namespace,
    repo: Path,
    settings: Settings,
    report_logger: ReportLogger | None,
) -> tuple[BaseModel, ReportType]:
    from groundcheck.verification.cove import ChainOfVerificationRefiner

    config = settings.cove_config()
    overrides: dict[str, bool] = {}
    if args.remove_unverified is not None:
        overrides["remove_unverified"] = args.remove_unverified
    if args.no_hedge:
        overrides["hedge_low_confidence"] = False
    if overrides:
        config = replace(config, **overrides)

    refiner = ChainOfVerificationRefiner(
        config, settings=settings, report_logger=report_logger
    )
    result = asyncio.run(refiner.verify(_read_answer(args.answer), repo))
    return result, ReportType.REFINEMENT


def _run_citations(
    args: argparse.Namespace, repo: Path, settings: Settings
) -> tuple[BaseModel, ReportType]:
    from groundcheck.verification.citations import CitationVerifier

    verifier = CitationVerifier(settings=settings)
    report = verifier.verify_librarian_output(_read_answer(args.answer), repo)
    return report, ReportType.CITATIONS


def _run_retrieve(
    args: argparse.Namespace,
    repo: Path,
    settings: Settings,
    report_logger: ReportLogger | None,
) -> tuple[BaseModel, ReportType]:
    from groundcheck.retrieval.iterative import IterativeRetriever

    config = settings.iterative_config()
    if args.rounds is not None:
        config = replace(config, max_rounds=args.rounds)

    retriever = IterativeRetriever(
        config, settings=settings, report_logger=report_logger
    )
    result = asyncio.run(retriever.retrieve(args.query, repo))
    return result, ReportType.RETRIEVAL


def _write_output(content: str, output: str | None) -> None:
    if output is None:
        print(content)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content + "\n", encoding="utf-8")


if __name__ == "__main__":
    sys.exit(main())

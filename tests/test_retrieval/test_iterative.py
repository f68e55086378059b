"""Tests for the multi-round iterative retriever."""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import pytest

from groundcheck.config import Settings
from groundcheck.constants import MAX_EXPANSION_TERMS
from groundcheck.facts.fakes import InMemoryFactStore
from groundcheck.facts.models import ResultItem
from groundcheck.logger import ReportLogger
from groundcheck.retrieval.iterative import (
    IterativeRetriever,
    combine_results,
    estimate_coverage,
)
from groundcheck.retrieval.retrieval_config import IterativeRetrievalConfig
from groundcheck.retrieval.schemas import RetrievalRound


@pytest.fixture
def retriever(settings: Settings) -> IterativeRetriever:
    return IterativeRetriever(settings=settings)


class TestRetrieve:
    async def test_zero_budget(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve(
            "UserService", sample_repo, IterativeRetrievalConfig(max_rounds=0)
        )
        assert result.rounds == []
        assert result.stop_reason == "no_budget"

    async def test_missing_corpus(
        self, retriever: IterativeRetriever, tmp_path: Path
    ) -> None:
        result = await retriever.retrieve("UserService", tmp_path / "missing")
        assert result.rounds == []
        assert result.stop_reason == "corpus_missing"

    async def test_rounds_are_contiguous(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve("UserService", sample_repo)
        assert 1 <= len(result.rounds) <= 3
        assert [r.round for r in result.rounds] == list(range(1, len(result.rounds) + 1))
        assert result.rounds[0].query == "UserService"
        assert result.total_coverage == result.rounds[-1].coverage
        assert result.final_results[0].file == "app/services.py"

    async def test_single_round_budget(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve(
            "UserService", sample_repo, IterativeRetrievalConfig(max_rounds=1)
        )
        assert len(result.rounds) == 1
        assert result.stop_reason == "max_rounds"

    async def test_without_expansion_query_never_changes(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve(
            "UserService",
            sample_repo,
            IterativeRetrievalConfig(term_expansion=False),
        )
        assert all(r.query == "UserService" for r in result.rounds)
        assert result.terms_discovered == []
        assert result.stop_reason == "no_new_terms"

    async def test_negative_gain_disables_gain_rule(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve(
            "UserService",
            sample_repo,
            IterativeRetrievalConfig(min_coverage_gain=-1.0),
        )
        assert result.stop_reason != "coverage_gain"

    async def test_chases_relative_imports(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve("UserService", sample_repo)
        assert result.rounds[0].chased_files == ["app/base.py", "app/utils.py"]
        assert "app/utils.py" in result.files_explored

    async def test_chasing_disabled(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        result = await retriever.retrieve(
            "UserService",
            sample_repo,
            IterativeRetrievalConfig(cross_file_chasing=False),
        )
        assert all(r.chased_files == [] for r in result.rounds)

    async def test_repeatable(
        self, retriever: IterativeRetriever, sample_repo: Path
    ) -> None:
        first = await retriever.retrieve("UserService", sample_repo)
        second = await retriever.retrieve("UserService", sample_repo)
        assert [r.query for r in first.rounds] == [r.query for r in second.rounds]
        assert first.files_explored == second.files_explored
        assert first.terms_discovered == second.terms_discovered


async def test_in_memory_store_expansion(settings: Settings) -> None:
    store = InMemoryFactStore({
        "a.py": "class Alpha:\n    pass\n",
        "b.py": "from .a import Alpha\n\nclass Beta(Alpha):\n    pass\n",
    })
    retriever = IterativeRetriever(
        IterativeRetrievalConfig(max_rounds=3),
        settings=settings,
        store_factory=lambda _root: store,
    )
    result = await retriever.retrieve("Beta", "unused")
    assert store.searches[:2] == ["Beta", "Beta Alpha"]
    assert result.rounds[0].chased_files == ["a.py"]
    assert result.terms_discovered == ["Alpha"]
    assert result.files_explored == ["a.py", "b.py"]


class ScriptedSearchStore(InMemoryFactStore):
    """Store whose searches replay fixed snippets, one per round."""

    def __init__(self, *snippets: str) -> None:
        super().__init__()
        self._snippets = list(snippets)

    async def search(
        self, query: str, scope: Sequence[str] | None = None
    ) -> list[ResultItem]:
        self.searches.append(query)
        snippet = self._snippets[min(len(self.searches), len(self._snippets)) - 1]
        return [ResultItem(file=f"f{len(self.searches)}.py", score=0.5, snippet=snippet)]


async def test_query_keeps_terms_from_earlier_rounds(settings: Settings) -> None:
    store = ScriptedSearchStore("class Alpha:\n", "class Gamma:\n", "class Delta:\n")
    retriever = IterativeRetriever(
        IterativeRetrievalConfig(
            max_rounds=3, min_coverage_gain=-1.0, cross_file_chasing=False
        ),
        settings=settings,
        store_factory=lambda _root: store,
    )
    result = await retriever.retrieve("Beta", "unused")
    assert store.searches == ["Beta", "Beta Alpha", "Beta Alpha Gamma"]
    assert result.terms_discovered == ["Alpha", "Gamma", "Delta"]


async def test_query_expansion_is_capped(settings: Settings) -> None:
    first = " ".join(f"class Term{i}:" for i in range(MAX_EXPANSION_TERMS))
    store = ScriptedSearchStore(first, "class Late:\n")
    retriever = IterativeRetriever(
        IterativeRetrievalConfig(
            max_rounds=3, min_coverage_gain=-1.0, cross_file_chasing=False
        ),
        settings=settings,
        store_factory=lambda _root: store,
    )
    result = await retriever.retrieve("Beta", "unused")
    assert len(store.searches) == 2
    assert "Late" not in store.searches[1]
    assert result.stop_reason == "no_new_terms"


async def test_report_logger_records_run(
    settings: Settings, sample_repo: Path, report_logger: ReportLogger
) -> None:
    retriever = IterativeRetriever(settings=settings, report_logger=report_logger)
    await retriever.retrieve("UserService", sample_repo)
    lines = report_logger.log_path.read_text().strip().splitlines()
    record = json.loads(lines[-1])
    assert record["type"] == "retrieval"
    assert record["query"] == "UserService"


class TestEstimateCoverage:
    def test_empty(self) -> None:
        assert estimate_coverage([], "anything") == 0.0
        item = ResultItem(file="a.py", score=0.5, matched_terms=["x"])
        assert estimate_coverage([item], "") == 0.0

    def test_formula(self) -> None:
        items = [
            ResultItem(file="a.py", score=0.5, matched_terms=["alpha"]),
            ResultItem(file="b.py", score=0.5, matched_terms=["alpha"]),
        ]
        # half the terms matched, two results, mean score 0.5
        assert estimate_coverage(items, "alpha beta") == pytest.approx(
            0.25 + 0.2 + 0.1
        )

    def test_capped_at_one(self) -> None:
        items = [
            ResultItem(file=f"{i}.py", score=1.0, matched_terms=["alpha"])
            for i in range(20)
        ]
        assert estimate_coverage(items, "alpha") == pytest.approx(1.0)


def test_combine_results_keeps_best_and_unions_terms() -> None:
    rounds = [
        RetrievalRound(
            round=1,
            query="q",
            coverage=0.1,
            results=[ResultItem(file="a.py", score=0.4, matched_terms=["x"])],
        ),
        RetrievalRound(
            round=2,
            query="q y",
            coverage=0.2,
            results=[
                ResultItem(file="a.py", score=0.6, matched_terms=["y"]),
                ResultItem(file="b.py", score=0.6, matched_terms=["y"]),
            ],
        ),
    ]
    combined = combine_results(rounds)
    assert [r.file for r in combined] == ["a.py", "b.py"]
    assert combined[0].score == 0.6
    assert combined[0].matched_terms == ["x", "y"]

"""Multi-round retrieval with term discovery and reference chasing.

Each round searches the fact store, mines the result snippets for new
identifiers, optionally follows static imports of the top results, and
scores its coverage. The loop stops when the round budget is spent,
when coverage gain falls below the configured minimum, or when the next
query would be identical to the current one. Every round after the first
searches the original query plus the terms discovered so far.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from typing import TypeAlias
from pathlib import Path

from groundcheck.config import Settings
from groundcheck.constants import MAX_CHASED_RESULTS, MAX_EXPANSION_TERMS
from groundcheck.facts.imports import extract_specifiers
from groundcheck.facts.local_store import LocalFactStore
from groundcheck.facts.models import ResultItem
from groundcheck.facts.protocols import FactStore
from groundcheck.logger import ReportLogger
from groundcheck.retrieval.retrieval_config import IterativeRetrievalConfig
from groundcheck.retrieval.schemas import IterativeRetrievalResult, RetrievalRound
from groundcheck.retrieval.terms import expand_query, new_terms
from groundcheck.text import split_query

logger = logging.getLogger(__name__)

StoreFactory: TypeAlias = Callable[[Path], FactStore]


class IterativeRetriever:
    """Adaptive multi-round retriever over a corpus root.

    A fresh fact store is built for every ``retrieve`` call, so caches
    and accumulators never leak between invocations.
    """

    def __init__(
        self,
        config: IterativeRetrievalConfig | None = None,
        *,
        settings: Settings | None = None,
        store_factory: StoreFactory | None = None,
        report_logger: ReportLogger | None = None,
    ) -> None:
        cfg = settings or Settings()
        self._config = config or cfg.iterative_config()
        self._store_factory = store_factory or (
            lambda root: LocalFactStore(root, cfg, max_results=self._config.max_results)
        )
        self._report_logger = report_logger

    async def retrieve(
        self,
        query: str,
        corpus_root: Path | str,
        config: IterativeRetrievalConfig | None = None,
    ) -> IterativeRetrievalResult:
        cfg = config or self._config
        run_id = uuid.uuid4().hex[:12]
        start = time.monotonic()

        if cfg.max_rounds <= 0:
            return IterativeRetrievalResult(query=query, stop_reason="no_budget")

        store = self._store_factory(Path(corpus_root))
        if not await store.exists():
            logger.info(
                "event=corpus_missing component=iterative_retriever root=%s",
                corpus_root,
            )
            return IterativeRetrievalResult(query=query, stop_reason="corpus_missing")

        query_terms = split_query(query)
        known: set[str] = {t.lower() for t in query_terms}
        discovered: list[str] = []
        explored: set[str] = set()
        rounds: list[RetrievalRound] = []
        current_query = query
        prev_coverage = 0.0
        stop_reason = "max_rounds"

        for round_num in range(1, cfg.max_rounds + 1):
            results = await store.search(current_query)
            explored.update(r.file for r in results)

            fresh: list[str] = []
            if cfg.term_expansion:
                fresh = new_terms([r.snippet for r in results], known)
                known.update(t.lower() for t in fresh)
                discovered.extend(fresh)

            chased: list[str] = []
            if cfg.cross_file_chasing and results:
                chased = await _chase_references(
                    store, results[:MAX_CHASED_RESULTS], explored
                )
                explored.update(chased)

            coverage = estimate_coverage(results, current_query)
            rounds.append(
                RetrievalRound(
                    round=round_num,
                    query=current_query,
                    results=results,
                    new_terms=fresh,
                    chased_files=chased,
                    coverage=coverage,
                )
            )
            gain = coverage - prev_coverage
            prev_coverage = coverage
            logger.debug(
                "event=round_complete run_id=%s round=%d results=%d "
                "new_terms=%d coverage=%.3f gain=%.3f",
                run_id, round_num, len(results), len(fresh), coverage, gain,
            )

            if round_num == cfg.max_rounds:
                break
            if cfg.min_coverage_gain >= 0 and gain < cfg.min_coverage_gain:
                stop_reason = "coverage_gain"
                break
            next_query = (
                expand_query(query, discovered[:MAX_EXPANSION_TERMS])
                if fresh
                else current_query
            )
            if next_query == current_query:
                stop_reason = "no_new_terms"
                break
            current_query = next_query

        logger.info(
            "event=retrieval_complete run_id=%s rounds=%d stop=%s files=%d",
            run_id, len(rounds), stop_reason, len(explored),
        )
        result = IterativeRetrievalResult(
            query=query,
            rounds=rounds,
            final_results=combine_results(rounds),
            total_coverage=rounds[-1].coverage if rounds else 0.0,
            terms_discovered=discovered,
            files_explored=sorted(explored),
            stop_reason=stop_reason,
        )
        if self._report_logger is not None:
            self._report_logger.log_retrieval(
                run_id=run_id,
                query=query,
                rounds=len(rounds),
                coverage=result.total_coverage,
                files_explored=len(result.files_explored),
                duration_ms=(time.monotonic() - start) * 1000,
            )
        return result


def estimate_coverage(results: list[ResultItem], query: str) -> float:
    """Coverage of *query* by one round's results, in [0, 1].

    Half comes from the share of query terms matched by any result, up
    to 0.3 from the result count, and up to 0.2 from the mean score.
    """
    if not results:
        return 0.0
    terms = split_query(query)
    if not terms:
        return 0.0
    matched = {t.lower() for r in results for t in r.matched_terms}
    ratio = sum(1 for t in terms if t.lower() in matched) / len(terms)
    result_bonus = min(len(results) / 10, 0.3)
    score_bonus = sum(r.score for r in results) / len(results) * 0.2
    return min(1.0, ratio * 0.5 + result_bonus + score_bonus)


def combine_results(rounds: list[RetrievalRound]) -> list[ResultItem]:
    """Merge every round's hits by file: best score, union of matched terms."""
    merged: dict[str, ResultItem] = {}
    for rnd in rounds:
        for item in rnd.results:
            existing = merged.get(item.file)
            if existing is None:
                merged[item.file] = item.model_copy(deep=True)
                continue
            terms = list(dict.fromkeys(existing.matched_terms + item.matched_terms))
            if item.score > existing.score:
                merged[item.file] = item.model_copy(
                    update={"matched_terms": terms}, deep=True
                )
            else:
                existing.matched_terms = terms
    return sorted(merged.values(), key=lambda r: (-r.score, r.file))


async def _chase_references(
    store: FactStore, results: list[ResultItem], explored: set[str]
) -> list[str]:
    """Files reached through relative imports of *results*, not yet explored."""
    per_file = await asyncio.gather(
        *(_referenced_files(store, r.file) for r in results)
    )
    chased: list[str] = []
    for refs in per_file:
        for ref in refs:
            if ref not in explored and ref not in chased:
                chased.append(ref)
    return chased


async def _referenced_files(store: FactStore, file: str) -> list[str]:
    content = await store.read_file(file)
    if content is None:
        return []
    specifiers = extract_specifiers(content.content, file)
    resolved = await asyncio.gather(
        *(store.resolve_import(file, spec) for spec in specifiers)
    )
    return [r for r in resolved if r is not None and r != file]

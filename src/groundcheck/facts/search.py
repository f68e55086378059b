"""Lexical file ranking shared by the fact store implementations."""

from __future__ import annotations

import posixpath
from collections.abc import Mapping

from groundcheck.constants import (
    MAX_SEARCH_RESULTS,
    MAX_TERM_MATCHES_PER_FILE,
    SNIPPET_LINES_AFTER,
    SNIPPET_LINES_BEFORE,
    SNIPPET_MAX_CHARS,
    Confidence,
)
from groundcheck.facts.models import ResultItem
from groundcheck.text import truncate

_FILENAME_MATCH_WEIGHT = 2


def rank_files(
    contents: Mapping[str, str],
    terms: list[str],
    limit: int = MAX_SEARCH_RESULTS,
) -> list[ResultItem]:
    """Score every file against *terms* and return the best *limit* hits.

    Relevance is term coverage (weight 0.7) plus match density (0.3);
    filename hits count double. Files scoring at or below the minimum
    result score are dropped. Ties break on path for stable output.
    """
    lowered = list(dict.fromkeys(t.lower() for t in terms if t))
    if not lowered or limit <= 0:
        return []

    results: list[ResultItem] = []
    for path, content in contents.items():
        name = posixpath.basename(path).lower()
        body = content.lower()
        matched: list[str] = []
        total = 0
        for term in lowered:
            hits = min(body.count(term), MAX_TERM_MATCHES_PER_FILE)
            if term in name:
                hits += _FILENAME_MATCH_WEIGHT
            if hits:
                matched.append(term)
                total += hits
        if not matched:
            continue

        coverage = len(matched) / len(lowered)
        score = coverage * 0.7 + min(total / 100, 1.0) * 0.3
        if score <= Confidence.MIN_RESULT_SCORE:
            continue
        results.append(
            ResultItem(
                file=path,
                score=round(min(score, 1.0), 6),
                snippet=best_snippet(content, matched),
                matched_terms=matched,
            )
        )

    results.sort(key=lambda r: (-r.score, r.file))
    return results[:limit]


def best_snippet(content: str, terms: list[str]) -> str:
    """Lines around the line mentioning the most terms."""
    lines = content.splitlines()
    if not lines:
        return ""
    best_line, best_hits = 0, 0
    for i, line in enumerate(lines):
        lower = line.lower()
        hits = sum(1 for t in terms if t in lower)
        if hits > best_hits:
            best_line, best_hits = i, hits
    start = max(0, best_line - SNIPPET_LINES_BEFORE)
    end = min(len(lines), best_line + SNIPPET_LINES_AFTER + 1)
    return truncate("\n".join(lines[start:end]), SNIPPET_MAX_CHARS)

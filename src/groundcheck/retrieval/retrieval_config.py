"""Per-run retrieval configuration.

The retrievers consume these frozen configs directly; ``Settings``
builds them from the environment.
"""

from __future__ import annotations

from dataclasses import dataclass

from groundcheck.constants import (
    DEFAULT_MAX_ROUNDS,
    DEFAULT_MIN_COVERAGE_GAIN,
    DEFAULT_MIN_RETRIEVAL_GAP,
    DEFAULT_WINDOW_SIZE,
    MAX_SEARCH_RESULTS,
    Confidence,
)


@dataclass(frozen=True)
class IterativeRetrievalConfig:
    """Budget and behaviour switches for one ``retrieve`` call."""

    max_rounds: int = DEFAULT_MAX_ROUNDS
    min_coverage_gain: float = DEFAULT_MIN_COVERAGE_GAIN
    term_expansion: bool = True
    cross_file_chasing: bool = True
    max_results: int = MAX_SEARCH_RESULTS


@dataclass(frozen=True)
class ActiveRetrievalConfig:
    """Trigger settings for confidence-driven retrieval."""

    confidence_threshold: float = Confidence.FLARE_TRIGGER
    window_size: int = DEFAULT_WINDOW_SIZE
    min_retrieval_gap: int = DEFAULT_MIN_RETRIEVAL_GAP

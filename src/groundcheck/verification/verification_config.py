"""Scoring and refinement configuration for the verification pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from groundcheck.constants import (
    DEFAULT_EXACT_MATCH_WEIGHT,
    DEFAULT_MAX_VERIFICATION_QUESTIONS,
    HEDGE_PREFIX,
    Confidence,
)


@dataclass(frozen=True)
class MiniCheckConfig:
    """Thresholds for lexical grounding scores."""

    grounding_threshold: float = Confidence.GROUNDED
    exact_match_weight: float = DEFAULT_EXACT_MATCH_WEIGHT


@dataclass(frozen=True)
class ChainOfVerificationConfig:
    """Controls how unsupported claims are edited.

    ``remove_unverified`` takes precedence over ``hedge_low_confidence``
    when both are enabled.
    """

    hedge_threshold: float = Confidence.HEDGE
    hedge_low_confidence: bool = True
    remove_unverified: bool = False
    max_verification_questions: int = DEFAULT_MAX_VERIFICATION_QUESTIONS
    hedge_prefix: str = HEDGE_PREFIX

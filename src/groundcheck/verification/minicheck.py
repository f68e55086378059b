"""MiniCheck-style lexical grounding scorer.

Scores a claim against evidence strings by identifier overlap, weighted
towards exact matches, with bonuses when claim and evidence express the
same relationship (extends, returns, has method, ...) and a penalty when
they name the same subject but a different relationship target.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from groundcheck.config import Settings
from groundcheck.constants import Confidence
from groundcheck.text import BACKTICK_RE, CAMEL_CASE_RE, PASCAL_CASE_RE, SNAKE_CASE_RE
from groundcheck.verification.schemas import ClaimScore, MiniCheckScore
from groundcheck.verification.verification_config import MiniCheckConfig


@dataclass(frozen=True)
class _RelationshipPattern:
    name: str
    keywords: tuple[str, ...]
    bonus: float


_RELATIONSHIP_PATTERNS: tuple[_RelationshipPattern, ...] = (
    _RelationshipPattern("extends", ("extends",), 0.15),
    _RelationshipPattern("implements", ("implements",), 0.15),
    _RelationshipPattern("returns", ("returns", "return"), 0.12),
    _RelationshipPattern("has_method", ("has method", "has methods", "method"), 0.10),
    _RelationshipPattern(
        "parameter",
        ("takes parameter", "has parameter", "parameter", "takes", "accepts"),
        0.10,
    ),
    _RelationshipPattern("async", ("is async", "async"), 0.10),
    _RelationshipPattern("import", ("imported from", "import", "from"), 0.10),
    _RelationshipPattern(
        "type", ("is an interface", "interface", "is a type", "type alias"), 0.08
    ),
    _RelationshipPattern("class", ("is a class", "class"), 0.08),
    _RelationshipPattern("function", ("is a function", "function"), 0.08),
)

_COMMON_WORDS = frozenset({
    "the", "that", "this", "with", "from", "have", "has", "had",
    "will", "would", "could", "should", "been", "being", "were",
    "which", "their", "about", "into", "does", "function", "class",
    "method", "methods", "parameter", "returns", "takes", "type", "interface",
})
_QUOTED_RE = re.compile(r"'([^'\n]+)'")
_WORD_RE = re.compile(r"\b([a-z][a-z0-9]{3,})\b", re.IGNORECASE)

_EXACT_CREDIT = 1.0
_SUBSTRING_CREDIT = 0.8
_PARTIAL_CREDIT = 0.6
_HIGH_OVERLAP_BOOST = 0.1
_MISMATCH_PENALTY = 0.3


class MiniCheckScorer:
    def __init__(
        self,
        config: MiniCheckConfig | None = None,
        *,
        settings: Settings | None = None,
    ) -> None:
        self._config = config or (settings or Settings()).minicheck_config()

    def score_grounding(
        self, claims: Sequence[str], evidence: Sequence[str]
    ) -> MiniCheckScore:
        """Average per-claim score.

        No claims is vacuously grounded (1.0); claims with no evidence
        cannot be grounded (0.0).
        """
        if not claims:
            return MiniCheckScore(grounding_score=1.0, claim_scores=[], is_grounded=True)
        if not evidence:
            return MiniCheckScore(
                grounding_score=0.0,
                claim_scores=[
                    ClaimScore(claim=c, score=0.0, best_evidence=None, is_grounded=False)
                    for c in claims
                ],
                is_grounded=False,
            )
        scores = [self.score_claim_grounding(c, evidence) for c in claims]
        total = sum(s.score for s in scores) / len(scores)
        return MiniCheckScore(
            grounding_score=total,
            claim_scores=scores,
            is_grounded=total >= self._config.grounding_threshold,
        )

    def score_claim_grounding(
        self, claim: str, evidence: Sequence[str]
    ) -> ClaimScore:
        if not claim or not claim.strip() or not evidence:
            return ClaimScore(claim=claim, score=0.0, best_evidence=None, is_grounded=False)

        best_score = 0.0
        best_evidence: str | None = None
        for item in evidence:
            score = self._similarity(claim, item)
            if score > best_score:
                best_score, best_evidence = score, item
        if best_score < Confidence.BEST_EVIDENCE_FLOOR:
            best_evidence = None
        return ClaimScore(
            claim=claim,
            score=best_score,
            best_evidence=best_evidence,
            is_grounded=best_score >= self._config.grounding_threshold,
        )

    def _similarity(self, claim: str, evidence: str) -> float:
        claim_terms = extract_terms(claim)
        if not claim_terms:
            return 0.0
        evidence_terms = extract_terms(evidence)
        evidence_set = {t.lower() for t in evidence_terms}
        claim_lower = claim.lower()
        evidence_lower = evidence.lower()

        matched = 0.0
        exact = 0
        identifier_hit = False
        identifiers = {t.lower() for t in identifier_terms(claim)}
        for term in claim_terms:
            lower = term.lower()
            if lower in evidence_set:
                matched += _EXACT_CREDIT
                exact += 1
            elif lower in evidence_lower:
                matched += _SUBSTRING_CREDIT
            elif any(lower in et or et in lower for et in evidence_set):
                matched += _PARTIAL_CREDIT
            else:
                continue
            if lower in identifiers:
                identifier_hit = True

        # Claims naming identifiers are only grounded by evidence naming one of them.
        if identifiers and not identifier_hit:
            return 0.0

        w = self._config.exact_match_weight
        overlap = matched / len(claim_terms)
        exact_ratio = exact / len(claim_terms)
        weighted = overlap * (1 - w) + exact_ratio * w + overlap * w * 0.5

        bonus = sum(
            p.bonus
            for p in _RELATIONSHIP_PATTERNS
            if any(k in claim_lower for k in p.keywords)
            and any(k in evidence_lower for k in p.keywords)
        )
        score = min(1.0, weighted + bonus)
        if overlap > 0.7 and bonus > 0.1:
            score = min(1.0, score + _HIGH_OVERLAP_BOOST)
        score -= _relationship_mismatch(claim_lower, evidence_lower, claim_terms, evidence_set)
        return max(0.0, min(1.0, score))


def extract_terms(text: str) -> list[str]:
    """Quoted, CamelCase, snake_case and significant (4+ letter) words."""
    terms = identifier_terms(text)
    seen = {t.lower() for t in terms}
    for m in _WORD_RE.finditer(text):
        word = m.group(1)
        if word.lower() in _COMMON_WORDS or word.lower() in seen:
            continue
        seen.add(word.lower())
        terms.append(word)
    return terms


def identifier_terms(text: str) -> list[str]:
    """Identifier-shaped terms only: quoted, CamelCase, lowerCamel, snake_case."""
    terms: list[str] = []
    seen: set[str] = set()

    def add(term: str) -> None:
        term = term.strip()
        if term and term.lower() not in seen:
            seen.add(term.lower())
            terms.append(term)

    for m in BACKTICK_RE.finditer(text):
        add(m.group(1))
    for m in _QUOTED_RE.finditer(text):
        add(m.group(1))
    for pattern in (PASCAL_CASE_RE, CAMEL_CASE_RE):
        for m in pattern.finditer(text):
            if len(m.group(1)) > 2:
                add(m.group(1))
    for m in SNAKE_CASE_RE.finditer(text):
        add(m.group(1))
    return terms


def _relationship_mismatch(
    claim_lower: str,
    evidence_lower: str,
    claim_terms: list[str],
    evidence_set: set[str],
) -> float:
    """Penalty when both sides say "extends"/"implements" but name different targets."""
    for keyword in ("extends", "implements"):
        if keyword not in claim_lower or keyword not in evidence_lower:
            continue
        claim_target = _target_after(claim_lower, keyword)
        evidence_target = _target_after(evidence_lower, keyword)
        if (
            claim_target
            and evidence_target
            and claim_target != evidence_target
            and claim_terms
            and claim_terms[0].lower() in evidence_set
        ):
            return _MISMATCH_PENALTY
    return 0.0


def _target_after(text: str, keyword: str) -> str | None:
    m = re.search(rf"{keyword}\s+`?(\w+)", text)
    return m.group(1) if m else None

"""Chain-of-verification refinement of a synthesized answer.

Runs claim extraction, citation verification, MiniCheck grounding and
entailment over one answer, then hedges or removes the sentences whose
claims are not supported. The refiner only withdraws or qualifies
assertions; it never adds content, and the measured non-entailed rate
of the refined answer is never worse than the original's.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from groundcheck.config import Settings
from groundcheck.constants import (
    RATE_EPSILON,
    EntailmentVerdict,
    ModificationAction,
    RelationKind,
)
from groundcheck.facts.local_store import LocalFactStore
from groundcheck.facts.models import Fact, render_evidence
from groundcheck.facts.protocols import FactStore
from groundcheck.logger import ReportLogger
from groundcheck.verification.citations import CitationVerifier
from groundcheck.verification.claims import extract_claims
from groundcheck.verification.entailment import EntailmentChecker
from groundcheck.verification.minicheck import MiniCheckScorer
from groundcheck.verification.schemas import (
    Claim,
    CitationVerificationReport,
    EntailmentReport,
    Modification,
    RefinementResult,
    VerificationQuestion,
)
from groundcheck.verification.verification_config import ChainOfVerificationConfig

logger = logging.getLogger(__name__)

_SENTENCE_END_RE = re.compile(r"[.!?](?=\s|$)|\n")
_LEADING_MARKER_RE = re.compile(r"\s*(?:[-*+]\s+)?")

_QUESTION_TEMPLATES: dict[RelationKind, str] = {
    RelationKind.RETURNS: "What does {subject} return?",
    RelationKind.EXTENDS: "Does {subject} extend {target}?",
    RelationKind.IMPLEMENTS: "Does {subject} implement {target}?",
    RelationKind.HAS_METHOD: "Does {subject} have a method named {target}?",
    RelationKind.HAS_PROPERTY: "Does {subject} have a property named {target}?",
    RelationKind.TAKES_PARAMETER: "Does {subject} take a parameter named {target}?",
    RelationKind.PARAMETER_COUNT: "How many parameters does {subject} take?",
    RelationKind.IS_ASYNC: "Is {subject} async?",
    RelationKind.IMPORTED_FROM: "Where is {subject} imported from?",
    RelationKind.IS_EXPORTED: "Is {subject} exported?",
    RelationKind.DEFINED_IN: "Where is {subject} defined?",
    RelationKind.CALLS: "Does {subject} call {target}?",
    RelationKind.IS_KIND: "What kind of declaration is {subject}?",
}


@dataclass(frozen=True)
class _Flag:
    """A sentence that needs editing, with the weakest reason found in it."""

    span: tuple[int, int]
    claim: str
    reason: str
    score: float


class ChainOfVerificationRefiner:
    def __init__(
        self,
        config: ChainOfVerificationConfig | None = None,
        *,
        settings: Settings | None = None,
        store_factory: Callable[[Path], FactStore] | None = None,
        report_logger: ReportLogger | None = None,
    ) -> None:
        cfg = settings or Settings()
        self._config = config or cfg.cove_config()
        self._store_factory = store_factory or (lambda root: LocalFactStore(root, cfg))
        self._scorer = MiniCheckScorer(settings=cfg)
        self._checker = EntailmentChecker(settings=cfg, store_factory=self._store_factory)
        self._citations = CitationVerifier(settings=cfg)
        self._report_logger = report_logger

    @property
    def config(self) -> ChainOfVerificationConfig:
        return self._config

    async def verify(
        self,
        answer_text: str,
        repo_root: Path | str,
        facts: Sequence[Fact] | None = None,
    ) -> RefinementResult:
        """Verify *answer_text* against *repo_root* and return the refined answer.

        When *facts* is None they are extracted from *repo_root*; a missing
        root means no facts, so every claim is neutral.
        """
        run_id = uuid.uuid4().hex[:12]
        root = Path(repo_root)
        claims = extract_claims(answer_text)
        citation_report = await asyncio.to_thread(
            self._citations.verify_librarian_output, answer_text, root
        )
        if facts is None:
            facts = await self._load_facts(root)

        evidence = _evidence_for(claims, facts)
        grounding = self._scorer.score_grounding([c.text for c in claims], evidence)
        entailment = self._checker.check_claims(claims, facts)
        support = [
            _support(result.verdict, score.score)
            for result, score in zip(entailment.claims, grounding.claim_scores, strict=True)
        ]

        flags = self._flags(answer_text, claims, support, entailment, citation_report)
        protected = _entailed_sentences(answer_text, entailment)
        before_rate = entailment.summary.non_entailed_rate

        refined, modifications = self._apply(
            answer_text, flags, protected, allow_removal=self._config.remove_unverified
        )
        after_rate = self._measure(refined, len(claims), facts)
        if after_rate > before_rate + RATE_EPSILON:
            logger.warning(
                "event=refinement_regressed run_id=%s before=%.3f after=%.3f "
                "action=hedge_only",
                run_id, before_rate, after_rate,
            )
            refined, modifications = self._apply(
                answer_text, flags, protected, allow_removal=False
            )
            after_rate = self._measure(refined, len(claims), facts)
            if after_rate > before_rate + RATE_EPSILON:
                refined, modifications, after_rate = answer_text, [], before_rate

        questions = _verification_questions(
            entailment, self._config.max_verification_questions
        )
        logger.info(
            "event=refinement_complete run_id=%s claims=%d modifications=%d "
            "before=%.3f after=%.3f",
            run_id, len(claims), len(modifications), before_rate, after_rate,
        )
        if self._report_logger is not None:
            self._report_logger.log_refinement(
                run_id=run_id,
                claims=len(claims),
                modifications=len(modifications),
                before_rate=before_rate,
                after_rate=after_rate,
            )
        return RefinementResult(
            original_response=answer_text,
            refined_response=refined,
            modifications=modifications,
            verification_questions=questions,
            citation_report=citation_report,
            entailment_report=entailment,
            grounding=grounding,
            before_rate=before_rate,
            after_rate=after_rate,
        )

    async def _load_facts(self, root: Path) -> list[Fact]:
        store = self._store_factory(root)
        if not await store.exists():
            logger.info("event=repo_root_missing component=cove root=%s", root)
            return []
        return await store.list_facts()

    def _flags(
        self,
        text: str,
        claims: Sequence[Claim],
        support: Sequence[float],
        entailment: EntailmentReport,
        citation_report: CitationVerificationReport,
    ) -> list[_Flag]:
        """Weakest unsupported claim or failed citation per sentence."""
        spans = sentence_spans(text)
        flags: dict[tuple[int, int], _Flag] = {}

        def flag(offset: int, claim: str, reason: str, score: float) -> None:
            span = _containing(spans, offset)
            if span is None:
                return
            current = flags.get(span)
            if current is None or score < current.score:
                flags[span] = _Flag(span, claim, reason, score)

        for claim, score, result in zip(claims, support, entailment.claims, strict=True):
            if score < self._config.hedge_threshold:
                flag(
                    claim.span[0],
                    claim.text,
                    f"{result.verdict}: {result.explanation}",
                    score,
                )
        for cited in citation_report.results:
            if not cited.verified:
                flag(
                    cited.citation.span[0],
                    cited.citation.raw,
                    f"citation {cited.reason}: {cited.detail}",
                    0.0,
                )
            elif cited.identifier_found is False:
                flag(
                    cited.citation.span[0],
                    cited.citation.raw,
                    f"citation identifier_not_found: {cited.citation.identifier} "
                    f"not near {cited.resolved_path}:{cited.citation.line or ''}".rstrip(":"),
                    0.0,
                )
        return sorted(flags.values(), key=lambda f: f.span)

    def _apply(
        self,
        text: str,
        flags: Sequence[_Flag],
        protected: set[tuple[int, int]],
        *,
        allow_removal: bool,
    ) -> tuple[str, list[Modification]]:
        if not self._config.hedge_low_confidence and not allow_removal:
            return text, []

        prefix = self._config.hedge_prefix
        pieces: list[str] = []
        modifications: list[Modification] = []
        cursor = 0
        for f in flags:
            start, end = f.span
            sentence = text[start:end]
            # Sentences that also carry an entailed claim are hedged, not dropped.
            remove = allow_removal and f.span not in protected
            if remove:
                while end < len(text) and text[end] in " \t":
                    end += 1
                replacement = ""
                action = ModificationAction.REMOVED
            elif self._config.hedge_low_confidence and not sentence.startswith(prefix):
                replacement = f"{prefix} {sentence}"
                action = ModificationAction.HEDGED
            else:
                continue
            pieces.append(text[cursor:start])
            pieces.append(replacement)
            cursor = end
            modifications.append(
                Modification(
                    action=action,
                    claim=f.claim,
                    original_text=sentence,
                    replacement=replacement,
                    reason=f.reason,
                    score=f.score,
                )
            )
            logger.debug(
                "event=claim_modified action=%s score=%.3f claim=%s",
                action, f.score, f.claim[:80],
            )
        pieces.append(text[cursor:])
        return "".join(pieces), modifications

    def _measure(self, text: str, denominator: int, facts: Sequence[Fact]) -> float:
        """Share of still-asserted claims in *text* that are not entailed.

        Claims inside hedged sentences are no longer asserted. The
        denominator is the original claim count so before and after rates
        are comparable.
        """
        if denominator == 0:
            return 0.0
        prefix = self._config.hedge_prefix
        hedged = [s for s in sentence_spans(text) if text[s[0]:s[1]].startswith(prefix)]
        asserted = [
            c for c in extract_claims(text)
            if not any(start <= c.span[0] < end for start, end in hedged)
        ]
        report = self._checker.check_claims(asserted, facts)
        not_entailed = report.summary.contradicted + report.summary.neutral
        return min(1.0, not_entailed / denominator)


def sentence_spans(text: str) -> list[tuple[int, int]]:
    """``[start, end)`` offsets of each sentence or line in *text*.

    Leading whitespace and list markers are excluded from a span; a
    period only ends a sentence when followed by whitespace, so file
    paths like ``app.py`` stay intact.
    """
    spans: list[tuple[int, int]] = []
    start = 0
    boundaries = [m.end() for m in _SENTENCE_END_RE.finditer(text)]
    for end in [*boundaries, len(text)]:
        if end <= start:
            continue
        lead = _LEADING_MARKER_RE.match(text, start, end)
        s = lead.end() if lead else start
        e = end
        while e > s and text[e - 1].isspace():
            e -= 1
        if e > s:
            spans.append((s, e))
        start = end
    return spans


def _containing(
    spans: Sequence[tuple[int, int]], offset: int
) -> tuple[int, int] | None:
    for start, end in spans:
        if start <= offset < end:
            return (start, end)
    return None


def _entailed_sentences(
    text: str, entailment: EntailmentReport
) -> set[tuple[int, int]]:
    spans = sentence_spans(text)
    protected: set[tuple[int, int]] = set()
    for result in entailment.claims:
        if result.verdict == EntailmentVerdict.ENTAILED:
            span = _containing(spans, result.claim.span[0])
            if span is not None:
                protected.add(span)
    return protected


def _support(verdict: EntailmentVerdict, grounding_score: float) -> float:
    if verdict == EntailmentVerdict.ENTAILED:
        return 1.0
    if verdict == EntailmentVerdict.CONTRADICTED:
        return 0.0
    return grounding_score


def _evidence_for(claims: Sequence[Claim], facts: Sequence[Fact]) -> list[str]:
    """Rendered facts whose identifier is named by some claim."""
    names: set[str] = set()
    for claim in claims:
        for token in (claim.subject, claim.target or ""):
            for part in token.split("."):
                if part:
                    names.add(part.lower())
    return list(dict.fromkeys(
        render_evidence(f) for f in facts if f.identifier.lower() in names
    ))


def _verification_questions(
    entailment: EntailmentReport, limit: int
) -> list[VerificationQuestion]:
    questions: list[VerificationQuestion] = []
    for i, result in enumerate(entailment.claims[:limit], start=1):
        claim = result.claim
        questions.append(
            VerificationQuestion(
                id=f"vq-{i}",
                question=_QUESTION_TEMPLATES[claim.relation].format(
                    subject=claim.subject, target=claim.target or ""
                ),
                claim=claim.text,
                answer=result.explanation,
                consistent=result.verdict == EntailmentVerdict.ENTAILED,
            )
        )
    return questions

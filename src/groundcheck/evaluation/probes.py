"""Adversarial probe runner.

Sends trap questions through an injected answer provider and judges
each answer against the expected answer and the trap answer. Provider
failures are retried when transient, tripped through a circuit breaker
when persistent, and always recorded as result entries so one bad
provider call never aborts the batch.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeAlias
from pathlib import Path

from circuitbreaker import (  # pyright: ignore[reportUnknownVariableType]
    CircuitBreaker,
    CircuitBreakerError,
)
from pydantic import BaseModel, Field, computed_field
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from groundcheck.config import Settings
from groundcheck.constants import Confidence, ProbeOutcome
from groundcheck.facts.local_store import LocalFactStore
from groundcheck.facts.models import Fact
from groundcheck.logger import ReportLogger
from groundcheck.resilience.errors import ErrorClass, classify_error, is_retryable
from groundcheck.verification.cove import ChainOfVerificationRefiner
from groundcheck.verification.minicheck import MiniCheckScorer

logger = logging.getLogger(__name__)

AnswerProvider: TypeAlias = Callable[[str], Awaitable[str]]

PROVIDER_FAILED_ANSWER = "[Error: Answer provider failed]"


class AdversarialProbe(BaseModel):
    """A question with a known answer and a plausible wrong one."""

    probe_id: str
    query: str
    expected_answer: str
    trap_answer: str | None = None
    description: str = ""


class ProbeResult(BaseModel):
    probe: AdversarialProbe
    outcome: ProbeOutcome
    actual_answer: str = ""
    explanation: str = ""
    error_class: ErrorClass | None = None
    expected_score: float = Field(default=0.0, ge=0.0, le=1.0)
    trap_score: float = Field(default=0.0, ge=0.0, le=1.0)
    hallucination_rate: float | None = None
    duration_ms: float = 0.0


class ProbeReport(BaseModel):
    results: list[ProbeResult] = Field(default_factory=lambda: list[ProbeResult]())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return len(self.results)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def passed(self) -> int:
        return self._count(ProbeOutcome.PASSED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def failed(self) -> int:
        return self._count(ProbeOutcome.FAILED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def errors(self) -> int:
        return self._count(ProbeOutcome.ERROR)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def skipped(self) -> int:
        return self._count(ProbeOutcome.SKIPPED)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def pass_rate(self) -> float:
        return self.passed / self.total if self.total else 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def mean_hallucination_rate(self) -> float | None:
        rates = [
            r.hallucination_rate for r in self.results
            if r.hallucination_rate is not None
        ]
        return sum(rates) / len(rates) if rates else None

    def _count(self, outcome: ProbeOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)


def _should_retry(error: BaseException) -> bool:
    return not isinstance(error, CircuitBreakerError) and is_retryable(error)


class ProbeRunner:
    """Runs probes sequentially against one answer provider and repository."""

    def __init__(
        self,
        answer_provider: AnswerProvider,
        repo_root: Path | str,
        *,
        refiner: ChainOfVerificationRefiner | None = None,
        settings: Settings | None = None,
        report_logger: ReportLogger | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._provider = answer_provider
        self._repo_root = Path(repo_root)
        self._refiner = refiner or ChainOfVerificationRefiner(settings=self._settings)
        self._scorer = MiniCheckScorer(settings=self._settings)
        self._report_logger = report_logger
        self._breaker = CircuitBreaker(  # pyright: ignore[reportUnknownMemberType]
            failure_threshold=self._settings.probe_breaker_failure_threshold,
            recovery_timeout=self._settings.probe_breaker_recovery_timeout,
            expected_exception=Exception,
            name="answer_provider",
        )

    async def run(self, probes: Sequence[AdversarialProbe]) -> ProbeReport:
        run_id = uuid.uuid4().hex[:12]
        facts = await self._load_facts()
        results: list[ProbeResult] = []
        for probe in probes:
            start = time.monotonic()
            result = await self._run_one(probe, facts)
            result.duration_ms = (time.monotonic() - start) * 1000
            results.append(result)
            if self._report_logger is not None:
                self._report_logger.log_probe(
                    run_id=run_id,
                    probe_id=probe.probe_id,
                    outcome=result.outcome,
                    duration_ms=result.duration_ms,
                    error=result.explanation if result.outcome == ProbeOutcome.ERROR else None,
                )
        report = ProbeReport(results=results)
        logger.info(
            "event=probes_complete run_id=%s total=%d passed=%d failed=%d "
            "errors=%d skipped=%d",
            run_id, report.total, report.passed, report.failed,
            report.errors, report.skipped,
        )
        return report

    async def _run_one(
        self, probe: AdversarialProbe, facts: list[Fact]
    ) -> ProbeResult:
        if self._breaker.opened:  # pyright: ignore[reportUnknownMemberType]
            return ProbeResult(
                probe=probe,
                outcome=ProbeOutcome.SKIPPED,
                explanation="answer provider circuit open",
            )
        try:
            answer = await self._ask(probe.query)
        except CircuitBreakerError:
            logger.warning(
                "event=circuit_open component=probe_runner probe=%s action=skip",
                probe.probe_id,
            )
            return ProbeResult(
                probe=probe,
                outcome=ProbeOutcome.SKIPPED,
                explanation="answer provider circuit open",
            )
        except Exception as exc:
            error_class = classify_error(exc)
            logger.error(
                "event=probe_provider_failed probe=%s error_class=%s error=%s",
                probe.probe_id, error_class, exc,
            )
            return ProbeResult(
                probe=probe,
                outcome=ProbeOutcome.ERROR,
                actual_answer=PROVIDER_FAILED_ANSWER,
                explanation=f"{type(exc).__name__}: {exc}",
                error_class=error_class,
            )

        refinement = await self._refiner.verify(answer, self._repo_root, facts)
        return self._judge(probe, answer, refinement.before_rate)

    async def _ask(self, query: str) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._settings.probe_retry_attempts),
            wait=wait_exponential_jitter(
                multiplier=self._settings.probe_retry_initial_wait,
                max=self._settings.probe_retry_max_wait,
                jitter=self._settings.probe_retry_jitter,
            ),
            retry=retry_if_exception(_should_retry),
            reraise=True,
        ):
            with attempt:
                if self._breaker.opened:  # pyright: ignore[reportUnknownMemberType]
                    raise CircuitBreakerError(self._breaker)  # pyright: ignore[reportUnknownArgumentType]
                with self._breaker:  # pyright: ignore[reportUnknownMemberType]
                    return await self._provider(query)
        raise AssertionError("unreachable")  # pragma: no cover

    def _judge(
        self, probe: AdversarialProbe, answer: str, hallucination_rate: float
    ) -> ProbeResult:
        expected = self._scorer.score_claim_grounding(
            probe.expected_answer, [answer]
        ).score
        trap = (
            self._scorer.score_claim_grounding(probe.trap_answer, [answer]).score
            if probe.trap_answer
            else 0.0
        )
        if trap >= Confidence.PROBE_MATCH and trap > expected:
            outcome = ProbeOutcome.FAILED
            explanation = f"answer matches trap ({trap:.2f} > {expected:.2f})"
        elif expected >= Confidence.PROBE_MATCH:
            outcome = ProbeOutcome.PASSED
            explanation = f"answer matches expected ({expected:.2f})"
        else:
            outcome = ProbeOutcome.FAILED
            explanation = f"answer does not match expected ({expected:.2f})"
        return ProbeResult(
            probe=probe,
            outcome=outcome,
            actual_answer=answer,
            explanation=explanation,
            expected_score=expected,
            trap_score=trap,
            hallucination_rate=hallucination_rate,
        )

    async def _load_facts(self) -> list[Fact]:
        store = LocalFactStore(self._repo_root, self._settings)
        if not await store.exists():
            return []
        return await store.list_facts()

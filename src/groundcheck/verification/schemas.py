"""Pydantic models for verification output."""

from pydantic import BaseModel, Field, computed_field

from groundcheck.constants import (
    CitationFailure,
    ClaimType,
    EntailmentVerdict,
    ModificationAction,
    RelationKind,
)


class Claim(BaseModel):
    """A minimal checkable assertion extracted from an answer."""

    text: str
    claim_type: ClaimType
    relation: RelationKind
    subject: str
    target: str | None = None
    span: tuple[int, int]  # [start, end) offsets into the answer


class EntailmentResult(BaseModel):
    claim: Claim
    verdict: EntailmentVerdict
    confidence: float = Field(ge=0.0, le=1.0)
    supporting_evidence: list[str] = Field(default_factory=lambda: list[str]())
    contradicting_evidence: list[str] = Field(
        default_factory=lambda: list[str]()
    )
    explanation: str = ""


class EntailmentSummary(BaseModel):
    total: int = 0
    entailed: int = 0
    contradicted: int = 0
    neutral: int = 0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def entailment_rate(self) -> float:
        return self.entailed / self.total if self.total else 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def non_entailed_rate(self) -> float:
        return (self.contradicted + self.neutral) / self.total if self.total else 0.0


class EntailmentReport(BaseModel):
    claims: list[EntailmentResult] = Field(
        default_factory=lambda: list[EntailmentResult]()
    )
    summary: EntailmentSummary = Field(default_factory=EntailmentSummary)


class Citation(BaseModel):
    """A file (and optional line range) cited in an answer."""

    file: str
    line: int | None = None
    line_end: int | None = None
    raw: str = ""
    span: tuple[int, int] = (0, 0)
    identifier: str | None = None  # name the citation is attached to


class CitationVerificationResult(BaseModel):
    citation: Citation
    verified: bool
    reason: CitationFailure | None = None
    resolved_path: str | None = None
    line_count: int | None = None
    identifier_found: bool | None = None  # None when no identifier was cited
    detail: str = ""


class CitationVerificationReport(BaseModel):
    total_citations: int = 0
    verified_count: int = 0
    failed_count: int = 0
    verification_rate: float = 1.0
    file_existence_rate: float = 1.0
    line_validity_rate: float = 1.0
    identifier_match_rate: float = 1.0
    results: list[CitationVerificationResult] = Field(
        default_factory=lambda: list[CitationVerificationResult]()
    )


class ClaimScore(BaseModel):
    claim: str
    score: float = Field(ge=0.0, le=1.0)
    best_evidence: str | None = None
    is_grounded: bool


class MiniCheckScore(BaseModel):
    grounding_score: float = Field(ge=0.0, le=1.0)
    claim_scores: list[ClaimScore] = Field(
        default_factory=lambda: list[ClaimScore]()
    )
    is_grounded: bool


class VerificationQuestion(BaseModel):
    """A question the refiner asked of the evidence about one claim."""

    id: str
    question: str
    claim: str
    answer: str
    consistent: bool


class Modification(BaseModel):
    action: ModificationAction
    claim: str
    original_text: str
    replacement: str
    reason: str
    score: float = Field(ge=0.0, le=1.0)


class RefinementResult(BaseModel):
    original_response: str
    refined_response: str
    modifications: list[Modification] = Field(
        default_factory=lambda: list[Modification]()
    )
    verification_questions: list[VerificationQuestion] = Field(
        default_factory=lambda: list[VerificationQuestion]()
    )
    citation_report: CitationVerificationReport
    entailment_report: EntailmentReport
    grounding: MiniCheckScore
    before_rate: float = Field(ge=0.0, le=1.0)
    after_rate: float = Field(ge=0.0, le=1.0)

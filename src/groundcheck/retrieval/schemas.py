"""Pydantic models for retrieval output."""

from pydantic import BaseModel, Field

from groundcheck.facts.models import ResultItem


class RetrievalRound(BaseModel):
    """One search round; rounds are append-only and numbered from 1."""

    round: int = Field(ge=1)
    query: str
    results: list[ResultItem] = Field(default_factory=lambda: list[ResultItem]())
    new_terms: list[str] = Field(default_factory=lambda: list[str]())
    chased_files: list[str] = Field(default_factory=lambda: list[str]())
    coverage: float = Field(ge=0.0, le=1.0)


class IterativeRetrievalResult(BaseModel):
    query: str
    rounds: list[RetrievalRound] = Field(
        default_factory=lambda: list[RetrievalRound]()
    )
    final_results: list[ResultItem] = Field(
        default_factory=lambda: list[ResultItem]()
    )
    total_coverage: float = 0.0
    terms_discovered: list[str] = Field(default_factory=lambda: list[str]())
    files_explored: list[str] = Field(default_factory=lambda: list[str]())
    stop_reason: str = ""


class ConfidenceSignal(BaseModel):
    """Per-token retrieval trigger derived from generation confidence."""

    position: int = Field(ge=0)
    token: str
    confidence: float
    needs_retrieval: bool
    last_retrieval_position: int | None = None

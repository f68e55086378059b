"""Environment-based configuration and application constants."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

from groundcheck.constants import (
    DEFAULT_EXACT_MATCH_WEIGHT,
    DEFAULT_MAX_ROUNDS,
    DEFAULT_MAX_VERIFICATION_QUESTIONS,
    DEFAULT_MIN_COVERAGE_GAIN,
    DEFAULT_MIN_RETRIEVAL_GAP,
    DEFAULT_WINDOW_SIZE,
    MAX_SEARCH_RESULTS,
    Confidence,
)
from groundcheck.retrieval.retrieval_config import (
    ActiveRetrievalConfig,
    IterativeRetrievalConfig,
)
from groundcheck.verification.verification_config import (
    ChainOfVerificationConfig,
    MiniCheckConfig,
)

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Reads from .env file and environment variables."""

    # Directories
    log_dir: Path = Path("logs")

    # Logging
    log_level: str = "INFO"

    # Repository walking
    skip_directories: Annotated[list[str], NoDecode] = [
        "node_modules",
        "vendor",
        ".venv",
        "venv",
        "__pycache__",
        "build",
        "dist",
        "target",
        ".git",
        ".svn",
        ".hg",
        ".next",
    ]

    # Iterative retrieval
    retrieval_max_rounds: int = DEFAULT_MAX_ROUNDS
    retrieval_min_coverage_gain: float = DEFAULT_MIN_COVERAGE_GAIN
    retrieval_term_expansion: bool = True
    retrieval_cross_file_chasing: bool = True
    retrieval_max_results: int = MAX_SEARCH_RESULTS

    # Active (confidence-triggered) retrieval
    flare_confidence_threshold: float = Confidence.FLARE_TRIGGER
    flare_window_size: int = DEFAULT_WINDOW_SIZE
    flare_min_retrieval_gap: int = DEFAULT_MIN_RETRIEVAL_GAP

    # Grounding
    minicheck_grounding_threshold: float = Confidence.GROUNDED
    minicheck_exact_match_weight: float = DEFAULT_EXACT_MATCH_WEIGHT

    # Chain-of-verification
    cove_hedge_threshold: float = Confidence.HEDGE
    cove_hedge_low_confidence: bool = True
    cove_remove_unverified: bool = False
    cove_max_verification_questions: int = DEFAULT_MAX_VERIFICATION_QUESTIONS

    # Adversarial probes (answer provider resilience)
    probe_retry_attempts: int = 3
    probe_retry_initial_wait: float = 1.0
    probe_retry_max_wait: float = 10.0
    probe_retry_jitter: float = 1.0
    probe_breaker_failure_threshold: int = 3
    probe_breaker_recovery_timeout: int = 30

    @field_validator("skip_directories", mode="before")
    @classmethod
    def _parse_skip_dirs(cls, v: Any) -> Any:
        """Accept comma-separated string or JSON array."""
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator(
        "flare_confidence_threshold",
        "minicheck_grounding_threshold",
        "minicheck_exact_match_weight",
        "cove_hedge_threshold",
    )
    @classmethod
    def _validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {v}")
        return v

    @field_validator(
        "retrieval_max_rounds",
        "flare_window_size",
        "flare_min_retrieval_gap",
        "cove_max_verification_questions",
    )
    @classmethod
    def _validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"value must be >= 0, got {v}")
        return v

    @field_validator("probe_retry_attempts", "probe_breaker_failure_threshold")
    @classmethod
    def _validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"value must be >= 1, got {v}")
        return v

    def iterative_config(self) -> IterativeRetrievalConfig:
        return IterativeRetrievalConfig(
            max_rounds=self.retrieval_max_rounds,
            min_coverage_gain=self.retrieval_min_coverage_gain,
            term_expansion=self.retrieval_term_expansion,
            cross_file_chasing=self.retrieval_cross_file_chasing,
            max_results=self.retrieval_max_results,
        )

    def active_config(self) -> ActiveRetrievalConfig:
        return ActiveRetrievalConfig(
            confidence_threshold=self.flare_confidence_threshold,
            window_size=self.flare_window_size,
            min_retrieval_gap=self.flare_min_retrieval_gap,
        )

    def minicheck_config(self) -> MiniCheckConfig:
        return MiniCheckConfig(
            grounding_threshold=self.minicheck_grounding_threshold,
            exact_match_weight=self.minicheck_exact_match_weight,
        )

    def cove_config(self) -> ChainOfVerificationConfig:
        return ChainOfVerificationConfig(
            hedge_threshold=self.cove_hedge_threshold,
            hedge_low_confidence=self.cove_hedge_low_confidence,
            remove_unverified=self.cove_remove_unverified,
            max_verification_questions=self.cove_max_verification_questions,
        )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "",
        "extra": "ignore",
    }


# File extension → language name mapping
EXTENSION_MAP: dict[str, str] = {
    # Python
    ".py": "python",
    ".pyi": "python",
    # JavaScript
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    # TypeScript
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    # Other sources that can still be searched and cited
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".md": "markdown",
    ".json": "json",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
}

# Languages whose files take part in term search
SEARCHABLE_LANGUAGES: frozenset[str] = frozenset({
    "python",
    "javascript",
    "typescript",
    "java",
    "go",
    "rust",
    "ruby",
})

# Extensions recognised in citation spans
CITABLE_EXTENSIONS: tuple[str, ...] = tuple(
    sorted({ext.lstrip(".").lower() for ext in EXTENSION_MAP}, key=len, reverse=True)
)

# Grammar module name → import path for tree-sitter grammars
GRAMMAR_MODULES: dict[str, str] = {
    "python": "tree_sitter_python",
}

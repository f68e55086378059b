"""Shared constants: single source of truth for cross-module values.

All magic strings and numbers that appear in 2+ files belong here.
StrEnum members are str-compatible, so downstream code (JSON reports,
log lines) works unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class FactKind(StrEnum):
    """Kinds of facts a fact store can hold."""

    FUNCTION_DEF = "function_def"
    CLASS = "class"
    IMPORT = "import"
    EXPORT = "export"
    CALL = "call"
    TYPE = "type"


class TypeKind(StrEnum):
    """Flavours of type declarations carried by a TYPE fact."""

    INTERFACE = "interface"
    TYPE_ALIAS = "type_alias"
    ENUM = "enum"


class ClaimType(StrEnum):
    """Coarse category of an extracted claim."""

    STRUCTURAL = "structural"
    BEHAVIORAL = "behavioral"
    FACTUAL = "factual"


class RelationKind(StrEnum):
    """Relation a claim asserts between its subject and object."""

    RETURNS = "returns"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    HAS_METHOD = "has_method"
    HAS_PROPERTY = "has_property"
    TAKES_PARAMETER = "takes_parameter"
    PARAMETER_COUNT = "parameter_count"
    IS_ASYNC = "is_async"
    IMPORTED_FROM = "imported_from"
    IS_EXPORTED = "is_exported"
    DEFINED_IN = "defined_in"
    CALLS = "calls"
    IS_KIND = "is_kind"


class EntailmentVerdict(StrEnum):
    """Three-way entailment label attached to each claim."""

    ENTAILED = "entailed"
    CONTRADICTED = "contradicted"
    NEUTRAL = "neutral"


class CitationFailure(StrEnum):
    """Reason a citation failed verification."""

    FILE_NOT_FOUND = "file_not_found"
    LINE_OUT_OF_RANGE = "line_out_of_range"
    AMBIGUOUS_PATH = "ambiguous_path"


class ModificationAction(StrEnum):
    """Edit applied by the chain-of-verification refiner."""

    HEDGED = "hedged"
    REMOVED = "removed"


class ProbeOutcome(StrEnum):
    """Outcome of a single adversarial probe."""

    PASSED = "passed"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"


class ReportType(StrEnum):
    """Report names used in exported envelopes."""

    RETRIEVAL = "retrieval"
    ENTAILMENT = "entailment"
    CITATIONS = "citations"
    GROUNDING = "grounding"
    REFINEMENT = "refinement"
    PROBES = "probes"


# ── Confidence Thresholds ────────────────────────────────


class Confidence:
    """Named score thresholds: single source of truth."""

    GROUNDED = 0.6
    HEDGE = 0.6
    FLARE_TRIGGER = 0.5
    BEST_EVIDENCE_FLOOR = 0.2
    MIN_RESULT_SCORE = 0.1
    PROBE_MATCH = 0.5


# ── Retrieval ────────────────────────────────────────────

DEFAULT_MAX_ROUNDS = 3
DEFAULT_MIN_COVERAGE_GAIN = 0.05
MAX_EXPANSION_TERMS = 10
MAX_QUERY_WORDS = 25
MAX_SEARCH_RESULTS = 20
MAX_CHASED_RESULTS = 5
SNIPPET_LINES_BEFORE = 2
SNIPPET_LINES_AFTER = 5
SNIPPET_MAX_CHARS = 500
MAX_TERM_MATCHES_PER_FILE = 10
MIN_TERM_LENGTH = 2
MAX_TERM_LENGTH = 50

# ── Active retrieval ─────────────────────────────────────

DEFAULT_WINDOW_SIZE = 3
DEFAULT_MIN_RETRIEVAL_GAP = 5
MAX_GENERATED_QUERY_CHARS = 200
MAX_FALLBACK_KEYWORDS = 10

# ── Verification ─────────────────────────────────────────

DEFAULT_EXACT_MATCH_WEIGHT = 0.7
DEFAULT_MAX_VERIFICATION_QUESTIONS = 10
HEDGE_PREFIX = "Unverified:"
RATE_EPSILON = 1e-9

# ── I/O ──────────────────────────────────────────────────

BINARY_DETECTION_BUFFER = 8192
ERROR_TRUNCATION_CHARS = 500

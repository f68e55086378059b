"""Pure text helpers shared by search, retrieval and verification.

Everything here maps ``str -> list[str]`` (or a bool) with no I/O, so the
heuristics can be tested without a repository.
"""

from __future__ import annotations

import re

from groundcheck.constants import MAX_TERM_LENGTH, MIN_TERM_LENGTH

QUERY_STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
    "should", "may", "might", "must", "shall", "can", "need", "find", "how",
    "what", "where", "when", "why", "which", "who", "search",
})

LANGUAGE_KEYWORDS = frozenset({
    "const", "let", "var", "function", "class", "interface", "type",
    "import", "export", "from", "return", "if", "else", "for", "while",
    "async", "await", "new", "this", "true", "false", "null", "undefined",
    "string", "number", "boolean", "any", "void", "never", "unknown",
    "public", "private", "protected", "static", "readonly", "abstract",
    "extends", "implements", "super", "default", "throw", "try", "catch",
    "finally", "typeof", "instanceof", "in", "of", "as", "is", "keyof",
    # Python
    "def", "self", "cls", "none", "pass", "lambda", "yield", "with",
    "elif", "except", "raise", "not", "and", "or", "str", "int", "bool",
    "float", "dict", "list", "tuple", "set", "object",
})

_QUERY_PUNCT_RE = re.compile(r"[:\"'()\[\]{}]")
_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

PASCAL_CASE_RE = re.compile(r"\b([A-Z][a-z0-9]+(?:[A-Z][a-z0-9]*)+|[A-Z]{2,}[a-z][A-Za-z0-9]*)\b")
CAMEL_CASE_RE = re.compile(r"\b([a-z][a-z0-9]*(?:[A-Z][a-z0-9]*)+)\b")
SNAKE_CASE_RE = re.compile(r"\b([a-z][a-z0-9]*(?:_[a-z0-9]+)+)\b")
BACKTICK_RE = re.compile(r"`([^`\n]+)`")


def split_query(query: str) -> list[str]:
    """Split a search query into content words (stopwords removed)."""
    cleaned = _QUERY_PUNCT_RE.sub(" ", query)
    words = [w for w in cleaned.split() if len(w) > 1]
    return [w for w in words if w.lower() not in QUERY_STOPWORDS]


def tokenize(text: str) -> list[str]:
    """Identifier-shaped tokens, in order of appearance."""
    return _TOKEN_RE.findall(text)


def is_valid_term(term: str) -> bool:
    """A term worth searching for: sane length and not a language keyword."""
    if not MIN_TERM_LENGTH <= len(term) <= MAX_TERM_LENGTH:
        return False
    return term.lower() not in LANGUAGE_KEYWORDS


def identifier_candidates(text: str) -> list[str]:
    """CamelCase, PascalCase, snake_case and backtick-quoted identifiers.

    Backtick contents are reduced to their identifier tokens, so
    ``foo.bar()`` yields ``foo`` and ``bar``.
    """
    found: list[str] = []
    for m in BACKTICK_RE.finditer(text):
        found.extend(tokenize(m.group(1)))
    for pattern in (PASCAL_CASE_RE, CAMEL_CASE_RE, SNAKE_CASE_RE):
        found.extend(m.group(1) for m in pattern.finditer(text))
    return [t for t in dict.fromkeys(found) if is_valid_term(t)]


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + suffix

"""Term discovery for query expansion.

Pure functions from snippet text to candidate search terms; no fact
store access, so every heuristic is unit-testable in isolation.
"""

from __future__ import annotations

import re

from groundcheck.constants import MAX_QUERY_WORDS
from groundcheck.facts.imports import specifier_terms
from groundcheck.text import identifier_candidates, is_valid_term

_DECLARATION_RES = (
    # function / async function / def / async def
    re.compile(r"(?:function|def)\s+\*?\s*([A-Za-z_]\w*)"),
    # const handler = async (
    re.compile(r"(?:const|let|var)\s+([A-Za-z_]\w*)\s*=\s*(?:async\s*)?\("),
    re.compile(r"\bclass\s+([A-Za-z_]\w*)"),
    re.compile(r"\binterface\s+([A-Za-z_]\w*)"),
    re.compile(r"\btype\s+([A-Za-z_]\w*)\s*[=<]"),
    # Type annotations and generic parameters
    re.compile(r":\s*([A-Z]\w*)"),
    re.compile(r"->\s*([A-Z]\w*)"),
    re.compile(r"[<\[]([A-Z]\w*)[,>\]]"),
    # Default import
    re.compile(r"import\s+([A-Za-z_]\w*)\s+from"),
)
_IMPORT_LIST_RES = (
    re.compile(r"import\s+(?:type\s+)?\{\s*([^}]+)\s*\}"),
    re.compile(r"^\s*from\s+[\w.]+\s+import\s+\(?([^)\n]+)\)?", re.MULTILINE),
)
_IMPORT_SOURCE_RES = (
    re.compile(r"import\s+(?:.*?)\s+from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"require\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"import\s*\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"export\s+(?:.*?)\s+from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"\}\s*from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"^\s*from\s+(\.+[\w.]*)\s+import\b", re.MULTILINE),
)


def extract_identifiers(snippet: str) -> list[str]:
    """Declared, imported and annotated identifiers in a code snippet.

    Also picks up CamelCase, snake_case and backtick-quoted names.
    """
    found: list[str] = []
    for pattern in _DECLARATION_RES:
        found.extend(m.group(1) for m in pattern.finditer(snippet))
    for pattern in _IMPORT_LIST_RES:
        for m in pattern.finditer(snippet):
            for item in m.group(1).split(","):
                name = re.sub(r"\s+as\s+.*", "", item).strip()
                name = name.removeprefix("type ").strip()
                if name:
                    found.append(name)
    found.extend(identifier_candidates(snippet))
    return [t for t in dict.fromkeys(found) if is_valid_term(t)]


def extract_import_terms(snippet: str) -> list[str]:
    """Terms contributed by import sources named in a snippet."""
    found: list[str] = []
    for pattern in _IMPORT_SOURCE_RES:
        for m in pattern.finditer(snippet):
            found.extend(specifier_terms(m.group(1)))
    return [t for t in dict.fromkeys(found) if is_valid_term(t)]


def new_terms(snippets: list[str], known: set[str]) -> list[str]:
    """Identifiers and import terms in *snippets* not already in *known*.

    Comparison is case-insensitive; first spelling wins.
    """
    seen = {k.lower() for k in known}
    out: list[str] = []
    for snippet in snippets:
        for term in extract_identifiers(snippet) + extract_import_terms(snippet):
            if term.lower() in seen:
                continue
            seen.add(term.lower())
            out.append(term)
    return out


def expand_query(query: str, terms: list[str]) -> str:
    """Append *terms* to *query*, capped at the maximum query length in words."""
    words = query.split()
    lowered = {w.lower() for w in words}
    for term in terms:
        if len(words) >= MAX_QUERY_WORDS:
            break
        if term.lower() in lowered:
            continue
        words.append(term)
        lowered.add(term.lower())
    return " ".join(words[:MAX_QUERY_WORDS])

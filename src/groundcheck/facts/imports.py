"""Static import specifier extraction and resolution to repository files.

Only relative specifiers are resolved (``./x``, ``../y`` for scripts,
``.x`` / ``..y`` for Python); bare package names name third-party code
that is not part of the repository.
"""

from __future__ import annotations

import posixpath
import re
from pathlib import Path

_SCRIPT_SPECIFIER_RES = (
    re.compile(r"import\s+[^'\"]*?\s+from\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"import\s+['\"]([^'\"]+)['\"]"),
    re.compile(r"require\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"import\(\s*['\"]([^'\"]+)['\"]\s*\)"),
    re.compile(r"export\s+[^'\"]*?\s+from\s+['\"]([^'\"]+)['\"]"),
)
_PY_FROM_RE = re.compile(r"^\s*from\s+(\.+[\w.]*)\s+import\b", re.MULTILINE)

_SCRIPT_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")
_SCRIPT_INDEXES = tuple(f"index{ext}" for ext in (".ts", ".tsx", ".js", ".jsx"))


def extract_specifiers(content: str, rel_path: str) -> list[str]:
    """Return import specifiers in source order, deduplicated."""
    found: list[str] = []
    if rel_path.endswith((".py", ".pyi")):
        found.extend(m.group(1) for m in _PY_FROM_RE.finditer(content))
    else:
        for pattern in _SCRIPT_SPECIFIER_RES:
            found.extend(m.group(1) for m in pattern.finditer(content))
    return list(dict.fromkeys(found))


def resolve_specifier(root: Path, from_file: str, specifier: str) -> str | None:
    """Resolve *specifier* imported by *from_file* to a repo-relative path.

    Returns None for bare (package) specifiers, for targets that do not
    exist, and for anything that would escape *root*.
    """
    candidates = candidate_paths(from_file, specifier)
    resolved_root = root.resolve()
    for candidate in candidates:
        if candidate.startswith("../") or candidate == "..":
            continue
        path = root / candidate
        try:
            if path.is_file() and path.resolve().is_relative_to(resolved_root):
                return candidate
        except OSError:
            continue
    return None


def candidate_paths(from_file: str, specifier: str) -> list[str]:
    """Repo-relative paths *specifier* may refer to, most specific first."""
    if from_file.endswith((".py", ".pyi")):
        return _python_candidates(from_file, specifier)
    return _script_candidates(from_file, specifier)


def _script_candidates(from_file: str, specifier: str) -> list[str]:
    if not specifier.startswith("."):
        return []
    base = posixpath.normpath(
        posixpath.join(posixpath.dirname(from_file), specifier)
    )
    # TS sources often import compiled names: "./x.js" refers to "./x.ts"
    stem = re.sub(r"\.(?:js|jsx|ts|tsx|mjs|cjs)$", "", base)
    candidates = [base]
    candidates.extend(stem + ext for ext in _SCRIPT_EXTENSIONS)
    candidates.extend(posixpath.join(stem, idx) for idx in _SCRIPT_INDEXES)
    return list(dict.fromkeys(candidates))


def _python_candidates(from_file: str, specifier: str) -> list[str]:
    if not specifier.startswith("."):
        return []
    dots = len(specifier) - len(specifier.lstrip("."))
    package = posixpath.dirname(from_file)
    for _ in range(dots - 1):
        package = posixpath.dirname(package)
    module = specifier[dots:].replace(".", "/")
    base = posixpath.normpath(posixpath.join(package, module)) if module else package
    return [f"{base}.py", posixpath.join(base, "__init__.py")]


def specifier_terms(specifier: str) -> list[str]:
    """Search terms contributed by an import source.

    Relative paths give their last segment and its directory name;
    plain package names are kept whole, scoped or nested ones are dropped.
    """
    if specifier.startswith("."):
        cleaned = re.sub(r"\.(?:js|jsx|ts|tsx|mjs|cjs)$", "", specifier)
        parts = [p for p in re.split(r"[/.]", cleaned) if p]
        return parts[-2:][::-1] if parts else []
    if specifier.startswith("@") or "/" in specifier:
        return []
    return [specifier]

"""Citation verification: do cited files and lines actually exist?

Citations are pulled out of answer prose in the usual shapes
(``src/app.py:12``, ``src/app.py:12-20``, ``app.ts#L12``,
```app.py` line 12`` and bare paths) and checked against the file system.
A citation attached to an identifier (```load` (app.py:12)``,
```load` in `app.py```) also checks that the name occurs in the file
near the cited line. Absent files are results, not errors.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from groundcheck.config import CITABLE_EXTENSIONS, Settings
from groundcheck.constants import CitationFailure
from groundcheck.facts.walker import count_lines, walk_files
from groundcheck.verification.schemas import (
    Citation,
    CitationVerificationReport,
    CitationVerificationResult,
)

logger = logging.getLogger(__name__)

# Any extension counts when a line follows; bare paths need a known one.
_BARE_EXTENSIONS = frozenset(CITABLE_EXTENSIONS)
_PATH_RE = re.compile(
    r"(?<![\w/\\.@-])"
    r"(?P<path>(?:\.{1,2}[/\\]|/)?(?:[\w@.-]+[/\\])*[\w@.-]*\w"
    r"\.(?P<ext>[A-Za-z][A-Za-z0-9]{0,9}))"
    r"(?![\w-])"
)
# `name` (path:12), `name` in `path`, `name` is defined in `path:12`
_CITED_IDENTIFIER_RE = re.compile(
    r"`(?P<identifier>[A-Za-z_$][\w$]*)`\s*"
    r"(?:\(\s*|(?:is\s+)?(?:(?:defined|declared)\s+)?(?:in|from|at)\s+)`?$",
    re.IGNORECASE,
)
_IDENTIFIER_LOOKBEHIND = 120
LINE_TOLERANCE = 15
_LINE_SUFFIX_RE = re.compile(
    r":(?P<c_line>\d+)(?:-(?P<c_end>\d+))?"
    r"|#L(?P<a_line>\d+)(?:-L?(?P<a_end>\d+))?"
    r"|`?(?:,\s*|\s+)\(?(?:at\s+|on\s+)?lines?\s+(?P<w_line>\d+)"
    r"(?:\s*(?:-|to|through)\s*(?P<w_end>\d+))?",
    re.IGNORECASE,
)


class _RepoIndex:
    """Lazily built list of repo-relative file paths."""

    def __init__(self, root: Path, skip_dirs: tuple[str, ...]) -> None:
        self._root = root
        self._skip_dirs = skip_dirs
        self._files: list[str] | None = None

    @property
    def files(self) -> list[str]:
        if self._files is None:
            self._files = [
                p.relative_to(self._root).as_posix()
                for p in walk_files(self._root, self._skip_dirs)
            ]
        return self._files

    def by_name(self, name: str) -> list[str]:
        return [f for f in self.files if f.rsplit("/", 1)[-1] == name]

    def by_suffix(self, suffix: str) -> list[str]:
        return [f for f in self.files if f.endswith("/" + suffix)]


class CitationVerifier:
    def __init__(self, *, settings: Settings | None = None) -> None:
        self._skip_dirs = tuple((settings or Settings()).skip_directories)

    def extract_citations(self, text: str) -> list[Citation]:
        """All citations in *text*, in order, deduplicated by file and lines.

        A path followed by a line reference counts whatever its extension.
        Bare paths without a line count only when the extension is a known
        source extension and they contain a directory separator or are
        backtick-quoted, so prose like "Node.js" is not mistaken for a file.
        """
        citations: list[Citation] = []
        seen: set[tuple[str, int | None, int | None]] = set()
        for m in _PATH_RE.finditer(text):
            path = m.group("path")
            suffix = _LINE_SUFFIX_RE.match(text, m.end())
            line = end = None
            span_end = m.end()
            if suffix is not None:
                line = int(
                    suffix.group("c_line") or suffix.group("a_line") or suffix.group("w_line")
                )
                raw_end = suffix.group("c_end") or suffix.group("a_end") or suffix.group("w_end")
                end = int(raw_end) if raw_end else None
                span_end = suffix.end()
            elif m.group("ext").lower() not in _BARE_EXTENSIONS or (
                not re.search(r"[/\\]", path) and not _backticked(text, m.start(), m.end())
            ):
                continue
            key = (path, line, end)
            if key in seen:
                continue
            seen.add(key)
            citations.append(
                Citation(
                    file=path,
                    line=line,
                    line_end=end,
                    raw=text[m.start():span_end],
                    span=(m.start(), span_end),
                    identifier=_cited_identifier(text, m.start()),
                )
            )
        return citations

    def verify_librarian_output(
        self, answer_text: str, repo_root: Path | str
    ) -> CitationVerificationReport:
        """Verify every citation in *answer_text* against *repo_root*.

        Zero citations is vacuously fully verified (all rates 1.0).
        """
        root = Path(repo_root)
        citations = self.extract_citations(answer_text)
        index = _RepoIndex(root, self._skip_dirs)
        results = [self.verify_citation(c, root, index) for c in citations]
        return build_report(results)

    def verify_citation(
        self,
        citation: Citation,
        repo_root: Path | str,
        index: _RepoIndex | None = None,
    ) -> CitationVerificationResult:
        root = Path(repo_root)
        if index is None:
            index = _RepoIndex(root, self._skip_dirs)
        if not root.is_dir():
            return _failed(citation, CitationFailure.FILE_NOT_FOUND, "repository root not found")

        resolved, failure, detail = _resolve(citation.file, root, index)
        if failure is not None or resolved is None:
            return _failed(citation, failure or CitationFailure.FILE_NOT_FOUND, detail)

        if citation.line is None:
            return CitationVerificationResult(
                citation=citation,
                verified=True,
                resolved_path=resolved,
                identifier_found=_check_identifier(citation, root / resolved),
            )
        try:
            line_count = count_lines(root / resolved)
        except OSError:
            return _failed(citation, CitationFailure.FILE_NOT_FOUND, f"cannot read {resolved}")

        end = citation.line_end
        if citation.line < 1 or citation.line > line_count:
            detail = f"line {citation.line} outside 1..{line_count}"
        elif end is not None and (end < citation.line or end > line_count):
            detail = f"line range {citation.line}-{end} outside 1..{line_count}"
        else:
            return CitationVerificationResult(
                citation=citation,
                verified=True,
                resolved_path=resolved,
                line_count=line_count,
                identifier_found=_check_identifier(citation, root / resolved),
            )
        return _failed(
            citation,
            CitationFailure.LINE_OUT_OF_RANGE,
            detail,
            resolved_path=resolved,
            line_count=line_count,
        )


def build_report(
    results: list[CitationVerificationResult],
) -> CitationVerificationReport:
    total = len(results)
    verified = sum(1 for r in results if r.verified)
    located = [
        r for r in results
        if r.reason not in (CitationFailure.FILE_NOT_FOUND, CitationFailure.AMBIGUOUS_PATH)
    ]
    with_lines = [r for r in located if r.citation.line is not None]
    valid_lines = sum(1 for r in with_lines if r.verified)
    identified = [r for r in results if r.identifier_found is not None]
    return CitationVerificationReport(
        total_citations=total,
        verified_count=verified,
        failed_count=total - verified,
        verification_rate=verified / total if total else 1.0,
        file_existence_rate=len(located) / total if total else 1.0,
        line_validity_rate=valid_lines / len(with_lines) if with_lines else 1.0,
        identifier_match_rate=(
            sum(1 for r in identified if r.identifier_found) / len(identified)
            if identified
            else 1.0
        ),
        results=results,
    )


def _resolve(
    cited: str, root: Path, index: _RepoIndex
) -> tuple[str | None, CitationFailure | None, str]:
    """Map a cited path to a repo-relative file, or say why it cannot be."""
    normalized = cited.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    resolved_root = root.resolve()

    candidate = Path(normalized)
    full = candidate if candidate.is_absolute() else root / candidate
    try:
        full_resolved = full.resolve()
    except OSError:
        return None, CitationFailure.FILE_NOT_FOUND, f"cannot resolve {cited}"
    if not full_resolved.is_relative_to(resolved_root):
        return None, CitationFailure.FILE_NOT_FOUND, f"{cited} is outside the repository"
    if full_resolved.is_file():
        return full_resolved.relative_to(resolved_root).as_posix(), None, ""
    if candidate.is_absolute():
        return None, CitationFailure.FILE_NOT_FOUND, f"{cited} does not exist"

    matches = (
        index.by_name(normalized) if "/" not in normalized else index.by_suffix(normalized)
    )
    if len(matches) == 1:
        return matches[0], None, ""
    if len(matches) > 1:
        return (
            None,
            CitationFailure.AMBIGUOUS_PATH,
            f"{cited} matches {len(matches)} files: {', '.join(matches[:5])}",
        )
    return None, CitationFailure.FILE_NOT_FOUND, f"{cited} does not exist"


def _failed(
    citation: Citation,
    reason: CitationFailure,
    detail: str,
    *,
    resolved_path: str | None = None,
    line_count: int | None = None,
) -> CitationVerificationResult:
    logger.info(
        "event=citation_failed file=%s line=%s reason=%s",
        citation.file, citation.line, reason,
    )
    return CitationVerificationResult(
        citation=citation,
        verified=False,
        reason=reason,
        resolved_path=resolved_path,
        line_count=line_count,
        detail=detail,
    )


def _backticked(text: str, start: int, end: int) -> bool:
    return start > 0 and text[start - 1] == "`" and end < len(text) and text[end] == "`"


def _cited_identifier(text: str, start: int) -> str | None:
    """Identifier the citation at *start* is attached to, if any."""
    m = _CITED_IDENTIFIER_RE.search(text, max(0, start - _IDENTIFIER_LOOKBEHIND), start)
    return m.group("identifier") if m else None


def _check_identifier(citation: Citation, path: Path) -> bool | None:
    """Whether the cited identifier occurs in *path* within LINE_TOLERANCE of the line.

    None when the citation names no identifier.
    """
    if citation.identifier is None:
        return None
    word = re.compile(rf"(?<![\w$]){re.escape(citation.identifier)}(?![\w$])")
    try:
        lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return False
    hits = [n for n, text in enumerate(lines, start=1) if word.search(text)]
    if citation.line is None or not hits:
        found = bool(hits)
    else:
        found = any(abs(n - citation.line) <= LINE_TOLERANCE for n in hits)
    if not found:
        logger.info(
            "event=cited_identifier_missing file=%s line=%s identifier=%s",
            citation.file, citation.line, citation.identifier,
        )
    return found

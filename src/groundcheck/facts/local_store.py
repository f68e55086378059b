"""Fact store over a source tree on the local file system.

Caches live on the instance, so each retrieval or verification run
that builds its own store sees its own consistent snapshot and
concurrent runs never share state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

from groundcheck.config import EXTENSION_MAP, SEARCHABLE_LANGUAGES, Settings
from groundcheck.facts.ast_facts import extract_python_facts
from groundcheck.facts.imports import resolve_specifier
from groundcheck.facts.models import Fact, FileContent, ResultItem
from groundcheck.facts.script_facts import extract_script_facts
from groundcheck.facts.search import rank_files
from groundcheck.facts.walker import walk_files
from groundcheck.text import split_query

logger = logging.getLogger(__name__)

_SCRIPT_LANGUAGES = frozenset({"javascript", "typescript"})


class LocalFactStore:
    """Reads, searches and extracts facts from files under *root*."""

    def __init__(
        self,
        root: Path | str,
        settings: Settings | None = None,
        max_results: int | None = None,
    ) -> None:
        cfg = settings or Settings()
        self._root = Path(root)
        self._skip_dirs = tuple(cfg.skip_directories)
        self._max_results = max_results or cfg.retrieval_max_results
        self._files: list[str] | None = None
        self._contents: dict[str, str] = {}
        self._facts: dict[str, list[Fact]] = {}

    @property
    def root(self) -> Path:
        return self._root

    async def exists(self) -> bool:
        return await asyncio.to_thread(self._root.is_dir)

    async def files(self) -> list[str]:
        """Repo-relative paths of every non-binary file, sorted."""
        if self._files is None:
            paths = await asyncio.to_thread(walk_files, self._root, self._skip_dirs)
            self._files = [p.relative_to(self._root).as_posix() for p in paths]
        return self._files

    async def search(
        self, query: str, scope: Sequence[str] | None = None
    ) -> list[ResultItem]:
        terms = split_query(query)
        if not terms:
            return []
        candidates = [
            f for f in await self.files()
            if EXTENSION_MAP.get(Path(f).suffix.lower()) in SEARCHABLE_LANGUAGES
        ]
        if scope is not None:
            allowed = set(scope)
            candidates = [f for f in candidates if f in allowed]
        contents = await self._load(candidates)
        return rank_files(contents, terms, self._max_results)

    async def read_file(self, path: str) -> FileContent | None:
        rel = self._relative(path)
        if rel is None:
            return None
        contents = await self._load([rel])
        content = contents.get(rel)
        if content is None:
            return None
        return FileContent(
            path=rel,
            line_count=len(content.splitlines()),
            content=content,
        )

    async def list_facts(self, file: str | None = None) -> list[Fact]:
        if file is not None:
            rel = self._relative(file)
            targets = [rel] if rel is not None else []
        else:
            targets = await self.files()
        targets = [
            t for t in targets
            if EXTENSION_MAP.get(Path(t).suffix.lower()) in {"python", *_SCRIPT_LANGUAGES}
        ]
        contents = await self._load(targets)
        facts: list[Fact] = []
        for rel in targets:
            if rel not in contents:
                continue
            if rel not in self._facts:
                self._facts[rel] = await asyncio.to_thread(
                    _extract, contents[rel], rel
                )
            facts.extend(self._facts[rel])
        return facts

    async def resolve_import(self, from_file: str, specifier: str) -> str | None:
        return await asyncio.to_thread(
            resolve_specifier, self._root, from_file, specifier
        )

    def _relative(self, path: str) -> str | None:
        """Repo-relative form of *path*, or None if it leaves the root."""
        candidate = Path(path)
        resolved_root = self._root.resolve()
        full = candidate if candidate.is_absolute() else self._root / candidate
        try:
            resolved = full.resolve()
        except OSError:
            return None
        if not resolved.is_relative_to(resolved_root):
            return None
        return resolved.relative_to(resolved_root).as_posix()

    async def _load(self, paths: Sequence[str]) -> dict[str, str]:
        missing = [p for p in paths if p not in self._contents]
        if missing:
            loaded = await asyncio.to_thread(self._read_many, missing)
            self._contents.update(loaded)
        return {p: self._contents[p] for p in paths if p in self._contents}

    def _read_many(self, paths: Sequence[str]) -> dict[str, str]:
        out: dict[str, str] = {}
        for rel in paths:
            try:
                out[rel] = (self._root / rel).read_text(
                    encoding="utf-8", errors="replace"
                )
            except OSError:
                continue
        return out


def _extract(content: str, rel: str) -> list[Fact]:
    language = EXTENSION_MAP.get(Path(rel).suffix.lower())
    try:
        if language == "python":
            return extract_python_facts(content, rel)
        if language in _SCRIPT_LANGUAGES:
            return extract_script_facts(content, rel)
    except Exception:  # noqa: BLE001
        # Malformed source or parser crash → skip file
        logger.warning("event=fact_extraction_failed file=%s", rel, exc_info=True)
    return []

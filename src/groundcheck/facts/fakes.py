"""In-memory fact store for tests.

Satisfies the FactStore protocol without touching disk. Files are a
``{path: content}`` dict; facts are extracted from them the same way
the local store does unless explicit facts are supplied.
"""

from __future__ import annotations

import posixpath
from collections.abc import Sequence

from groundcheck.facts.ast_facts import extract_python_facts
from groundcheck.facts.imports import candidate_paths
from groundcheck.facts.models import Fact, FileContent, ResultItem
from groundcheck.facts.script_facts import extract_script_facts
from groundcheck.facts.search import rank_files
from groundcheck.text import split_query


class InMemoryFactStore:
    def __init__(
        self,
        files: dict[str, str] | None = None,
        facts: list[Fact] | None = None,
    ) -> None:
        self._files = dict(files or {})
        self._facts = facts
        self.searches: list[str] = []

    async def exists(self) -> bool:
        return True

    async def search(
        self, query: str, scope: Sequence[str] | None = None
    ) -> list[ResultItem]:
        self.searches.append(query)
        files = self._files
        if scope is not None:
            files = {k: v for k, v in files.items() if k in set(scope)}
        return rank_files(files, split_query(query))

    async def read_file(self, path: str) -> FileContent | None:
        rel = posixpath.normpath(path)
        content = self._files.get(rel)
        if content is None:
            return None
        return FileContent(
            path=rel, line_count=len(content.splitlines()), content=content
        )

    async def list_facts(self, file: str | None = None) -> list[Fact]:
        facts = self._facts if self._facts is not None else self._extract_all()
        if file is None:
            return list(facts)
        return [f for f in facts if f.file == file]

    async def resolve_import(self, from_file: str, specifier: str) -> str | None:
        for candidate in candidate_paths(from_file, specifier):
            if candidate in self._files:
                return candidate
        return None

    def _extract_all(self) -> list[Fact]:
        facts: list[Fact] = []
        for path in sorted(self._files):
            if path.endswith(".py"):
                facts.extend(extract_python_facts(self._files[path], path))
            elif path.endswith((".ts", ".tsx", ".js", ".jsx")):
                facts.extend(extract_script_facts(self._files[path], path))
        return facts

"""Protocol-based fact store interface.

Implementations satisfy this protocol structurally (no inheritance).
Test doubles can be plain classes matching the same signatures.
"""

from collections.abc import Sequence
from typing import Protocol

from groundcheck.facts.models import Fact, FileContent, ResultItem


class FactStore(Protocol):
    async def exists(self) -> bool: ...
    async def search(
        self, query: str, scope: Sequence[str] | None = None
    ) -> list[ResultItem]: ...
    async def read_file(self, path: str) -> FileContent | None: ...
    async def list_facts(self, file: str | None = None) -> list[Fact]: ...
    async def resolve_import(
        self, from_file: str, specifier: str
    ) -> str | None: ...

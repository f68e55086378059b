"""Base service types."""

from typing import Protocol


class Repository(Protocol):
    def get(self, key: str) -> dict | None: ...


class BaseService:
    name = "base"

    def __init__(self, repository: Repository) -> None:
        self.repository = repository

    def describe(self) -> str:
        return self.name

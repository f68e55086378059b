"""Facts module: typed code facts, repository walking, fact stores."""

from groundcheck.facts.local_store import LocalFactStore
from groundcheck.facts.models import (
    CallFact,
    ClassFact,
    ExportFact,
    Fact,
    FileContent,
    FunctionDefFact,
    ImportFact,
    ResultItem,
    TypeFact,
    render_evidence,
)
from groundcheck.facts.protocols import FactStore
from groundcheck.facts.walker import walk_files

__all__ = [
    "CallFact",
    "ClassFact",
    "ExportFact",
    "Fact",
    "FactStore",
    "FileContent",
    "FunctionDefFact",
    "ImportFact",
    "LocalFactStore",
    "ResultItem",
    "TypeFact",
    "render_evidence",
    "walk_files",
]

"""Typed facts, search results and evidence rendering.

A fact is a closed tagged union over :class:`FactKind`; each kind carries
its own details payload so verifiers can ``match`` exhaustively.
"""

from __future__ import annotations

from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from groundcheck.constants import FactKind, TypeKind


class Parameter(BaseModel):
    """One declared parameter of a function or method."""

    model_config = ConfigDict(frozen=True)

    name: str
    annotation: str | None = None


class FunctionDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    parameters: tuple[Parameter, ...] = ()
    return_type: str | None = None
    is_async: bool = False
    is_exported: bool = False
    parent_class: str | None = None


class ClassDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    extends: tuple[str, ...] = ()
    implements: tuple[str, ...] = ()
    methods: tuple[str, ...] = ()
    properties: tuple[str, ...] = ()
    is_exported: bool = False


class ImportDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    alias: str | None = None
    is_default: bool = False
    is_relative: bool = False


class ExportDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str | None = None  # set for re-exports
    is_default: bool = False


class CallDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    caller: str | None = None
    receiver: str | None = None  # "obj" in obj.method()


class TypeDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    type_kind: TypeKind
    extends: tuple[str, ...] = ()
    properties: tuple[str, ...] = ()
    definition: str | None = None


class _FactBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    identifier: str
    file: str  # repo-relative, forward slashes
    line: int = Field(ge=1)


class FunctionDefFact(_FactBase):
    kind: Literal[FactKind.FUNCTION_DEF] = FactKind.FUNCTION_DEF
    details: FunctionDetails = FunctionDetails()


class ClassFact(_FactBase):
    kind: Literal[FactKind.CLASS] = FactKind.CLASS
    details: ClassDetails = ClassDetails()


class ImportFact(_FactBase):
    kind: Literal[FactKind.IMPORT] = FactKind.IMPORT
    details: ImportDetails


class ExportFact(_FactBase):
    kind: Literal[FactKind.EXPORT] = FactKind.EXPORT
    details: ExportDetails = ExportDetails()


class CallFact(_FactBase):
    kind: Literal[FactKind.CALL] = FactKind.CALL
    details: CallDetails = CallDetails()


class TypeFact(_FactBase):
    kind: Literal[FactKind.TYPE] = FactKind.TYPE
    details: TypeDetails


Fact: TypeAlias = Annotated[
    FunctionDefFact | ClassFact | ImportFact | ExportFact | CallFact | TypeFact,
    Field(discriminator="kind"),
]


class ResultItem(BaseModel):
    """A ranked search hit: one file plus its best snippet."""

    file: str
    score: float = Field(ge=0.0, le=1.0)
    snippet: str = ""
    matched_terms: list[str] = Field(default_factory=lambda: list[str]())


class FileContent(BaseModel):
    """Content of a file as read through a fact store."""

    path: str
    line_count: int
    content: str


def render_evidence(fact: Fact) -> str:
    """Flatten a fact into the evidence sentence verifiers compare against.

    >>> render_evidence(ClassFact(identifier="A", file="a.py", line=1,
    ...     details=ClassDetails(extends=("B",))))
    'class A extends B (a.py:1)'
    """
    match fact:
        case FunctionDefFact(details=d):
            params = ", ".join(
                f"{p.name}: {p.annotation}" if p.annotation else p.name
                for p in d.parameters
            )
            prefix = "async function" if d.is_async else "function"
            name = (
                f"{d.parent_class}.{fact.identifier}"
                if d.parent_class
                else fact.identifier
            )
            text = f"{prefix} {name}({params})"
            if d.return_type:
                text += f" returns {d.return_type}"
            if d.is_exported:
                text = f"exported {text}"
        case ClassFact(details=d):
            text = f"class {fact.identifier}"
            if d.extends:
                text += f" extends {', '.join(d.extends)}"
            if d.implements:
                text += f" implements {', '.join(d.implements)}"
            if d.methods:
                text += f" has methods {', '.join(d.methods)}"
            if d.properties:
                text += f" with properties {', '.join(d.properties)}"
        case ImportFact(details=d):
            text = f"{fact.identifier} imported from '{d.source}'"
        case ExportFact(details=d):
            text = f"exports {fact.identifier}"
            if d.source:
                text += f" from '{d.source}'"
        case CallFact(details=d):
            callee = (
                f"{d.receiver}.{fact.identifier}" if d.receiver else fact.identifier
            )
            text = f"{d.caller or '<module>'} calls {callee}"
        case TypeFact(details=d):
            label = d.type_kind.value.replace("_", " ")
            text = f"{label} {fact.identifier}"
            if d.extends:
                text += f" extends {', '.join(d.extends)}"
            if d.properties:
                text += f" with properties {', '.join(d.properties)}"
            if d.definition:
                text += f" = {d.definition}"
    return f"{text} ({fact.file}:{fact.line})"

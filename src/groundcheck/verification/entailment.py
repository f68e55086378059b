"""Three-way entailment of extracted claims against code facts.

A claim is *entailed* when a fact about its subject supports the
asserted relation, *contradicted* when facts about the subject exist but
say something else, and *neutral* when nothing is known about the
subject. Neutral is never folded into either side.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any, TypeAlias

from groundcheck.config import Settings
from groundcheck.constants import EntailmentVerdict, RelationKind, TypeKind
from groundcheck.facts.local_store import LocalFactStore
from groundcheck.facts.models import (
    CallFact,
    ClassFact,
    ExportFact,
    Fact,
    FunctionDefFact,
    ImportFact,
    TypeFact,
    render_evidence,
)
from groundcheck.facts.protocols import FactStore
from groundcheck.verification.claims import extract_claims
from groundcheck.verification.schemas import (
    Claim,
    EntailmentReport,
    EntailmentResult,
    EntailmentSummary,
)

logger = logging.getLogger(__name__)

_CONTRADICTED_CONFIDENCE = 0.8
_TYPE_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_TYPE_ALIASES = {
    "str": "string",
    "int": "number",
    "float": "number",
    "bool": "boolean",
    "none": "void",
    "null": "void",
    "undefined": "void",
    "nothing": "void",
}
_TYPE_FILLER = frozenset({
    "a", "an", "the", "of", "new", "instance", "value", "values", "s",
})
_SOURCE_SUFFIX_RE = re.compile(r"\.(?:py|pyi|ts|tsx|js|jsx|mjs|cjs|mts|cts)$")

Evidence: TypeAlias = tuple[list[str], list[str]]  # (supporting, contradicting)


class _FactIndex:
    """Facts grouped for subject lookup (case-insensitive)."""

    def __init__(self, facts: Iterable[Fact]) -> None:
        self._by_id: dict[str, list[Fact]] = defaultdict(list)
        self._imports: dict[str, list[ImportFact]] = defaultdict(list)
        self._calls: dict[str, list[CallFact]] = defaultdict(list)
        for fact in facts:
            self._by_id[fact.identifier.lower()].append(fact)
            if isinstance(fact, ImportFact):
                if fact.details.alias:
                    self._imports[fact.details.alias.lower()].append(fact)
                self._imports[fact.identifier.lower()].append(fact)
            elif isinstance(fact, CallFact) and fact.details.caller:
                self._calls[fact.details.caller.lower()].append(fact)

    def functions(self, subject: str) -> list[FunctionDefFact]:
        owner, name = _split_subject(subject)
        found = [f for f in self._by_id[name] if isinstance(f, FunctionDefFact)]
        if owner is not None:
            scoped = [
                f for f in found
                if (f.details.parent_class or "").lower() == owner
            ]
            return scoped or found
        return found

    def classes(self, subject: str) -> list[ClassFact]:
        return [
            f for f in self._by_id[_split_subject(subject)[1]]
            if isinstance(f, ClassFact)
        ]

    def types(self, subject: str) -> list[TypeFact]:
        return [
            f for f in self._by_id[_split_subject(subject)[1]]
            if isinstance(f, TypeFact)
        ]

    def exports(self, subject: str) -> list[ExportFact]:
        return [
            f for f in self._by_id[_split_subject(subject)[1]]
            if isinstance(f, ExportFact)
        ]

    def imports(self, subject: str) -> list[ImportFact]:
        return self._imports[subject.lower()] or self._imports[
            _split_subject(subject)[1]
        ]

    def calls_from(self, subject: str) -> list[CallFact]:
        return self._calls[_split_subject(subject)[1]]

    def definitions(self, subject: str) -> list[Fact]:
        return [
            *self.functions(subject),
            *self.classes(subject),
            *self.types(subject),
        ]


class EntailmentChecker:
    """Labels claims entailed, contradicted or neutral against facts."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        store_factory: Callable[[Path], FactStore] | None = None,
    ) -> None:
        cfg = settings or Settings()
        self._store_factory = store_factory or (
            lambda root: LocalFactStore(root, cfg)
        )

    async def check_response(
        self, answer_text: str, evidence_root: Path | str
    ) -> EntailmentReport:
        """Extract claims from *answer_text* and check them against the repo."""
        claims = extract_claims(answer_text)
        if not claims:
            return EntailmentReport()
        store = self._store_factory(Path(evidence_root))
        facts: list[Fact] = []
        if await store.exists():
            facts = await store.list_facts()
        else:
            logger.info(
                "event=evidence_root_missing component=entailment root=%s",
                evidence_root,
            )
        return self.check_claims(claims, facts)

    def check_claims(
        self, claims: Sequence[Claim], facts: Iterable[Fact]
    ) -> EntailmentReport:
        index = _FactIndex(facts)
        results = [self._check(claim, index) for claim in claims]
        summary = EntailmentSummary(
            total=len(results),
            entailed=sum(1 for r in results if r.verdict == EntailmentVerdict.ENTAILED),
            contradicted=sum(
                1 for r in results if r.verdict == EntailmentVerdict.CONTRADICTED
            ),
            neutral=sum(1 for r in results if r.verdict == EntailmentVerdict.NEUTRAL),
        )
        logger.debug(
            "event=entailment_checked claims=%d entailed=%d contradicted=%d neutral=%d",
            summary.total, summary.entailed, summary.contradicted, summary.neutral,
        )
        return EntailmentReport(claims=results, summary=summary)

    def check_claim(self, claim: Claim, facts: Iterable[Fact]) -> EntailmentResult:
        return self._check(claim, _FactIndex(facts))

    def _check(self, claim: Claim, index: _FactIndex) -> EntailmentResult:
        support, contradict = _RELATION_CHECKS[claim.relation](claim, index)
        support = list(dict.fromkeys(support))
        contradict = list(dict.fromkeys(contradict))
        if support:
            verdict = EntailmentVerdict.ENTAILED
            confidence = 0.5 + 0.5 * len(support) / (len(support) + len(contradict))
            explanation = f"Supported by {support[0]}"
        elif contradict:
            verdict = EntailmentVerdict.CONTRADICTED
            confidence = _CONTRADICTED_CONFIDENCE
            explanation = f"Contradicted by {contradict[0]}"
        else:
            verdict = EntailmentVerdict.NEUTRAL
            confidence = 0.0
            explanation = f"No facts found for {claim.subject}"
        return EntailmentResult(
            claim=claim,
            verdict=verdict,
            confidence=confidence,
            supporting_evidence=support,
            contradicting_evidence=contradict,
            explanation=explanation,
        )


# ── Relation checks ──────────────────────────────────────


def _check_returns(claim: Claim, index: _FactIndex) -> Evidence:
    support: list[str] = []
    contradict: list[str] = []
    expected = _type_tokens(claim.target or "")
    for fn in index.functions(claim.subject):
        if fn.details.return_type is None:
            continue
        actual = _type_tokens(fn.details.return_type)
        if expected and actual and (expected <= actual or actual <= expected):
            support.append(render_evidence(fn))
        else:
            contradict.append(render_evidence(fn))
    return support, contradict


def _check_extends(claim: Claim, index: _FactIndex) -> Evidence:
    holders: list[ClassFact | TypeFact] = [
        *index.classes(claim.subject),
        *(t for t in index.types(claim.subject) if t.details.type_kind == TypeKind.INTERFACE),
    ]
    return _partition(
        holders, lambda f: _contains_name(f.details.extends, claim.target)
    )


def _check_implements(claim: Claim, index: _FactIndex) -> Evidence:
    def implements(fact: ClassFact) -> bool:
        if _contains_name(fact.details.implements, claim.target):
            return True
        # Python has no implements clause; protocols and ABCs are bases.
        return fact.file.endswith((".py", ".pyi")) and _contains_name(
            fact.details.extends, claim.target
        )

    return _partition(index.classes(claim.subject), implements)


def _check_has_method(claim: Claim, index: _FactIndex) -> Evidence:
    support, contradict = _partition(
        index.classes(claim.subject),
        lambda f: _contains_name(f.details.methods, claim.target),
    )
    type_support, type_contradict = _partition(
        index.types(claim.subject),
        lambda f: _contains_name(f.details.properties, claim.target),
    )
    return support + type_support, contradict + type_contradict


def _check_has_property(claim: Claim, index: _FactIndex) -> Evidence:
    holders: list[ClassFact | TypeFact] = [
        *index.classes(claim.subject),
        *index.types(claim.subject),
    ]
    return _partition(
        holders, lambda f: _contains_name(f.details.properties, claim.target)
    )


def _check_takes_parameter(claim: Claim, index: _FactIndex) -> Evidence:
    return _partition(
        index.functions(claim.subject),
        lambda f: _contains_name((p.name for p in f.details.parameters), claim.target),
    )


def _check_parameter_count(claim: Claim, index: _FactIndex) -> Evidence:
    try:
        expected = int(claim.target or "")
    except ValueError:
        return [], []
    return _partition(
        index.functions(claim.subject),
        lambda f: len(f.details.parameters) == expected,
    )


def _check_is_async(claim: Claim, index: _FactIndex) -> Evidence:
    return _partition(index.functions(claim.subject), lambda f: f.details.is_async)


def _check_imported_from(claim: Claim, index: _FactIndex) -> Evidence:
    return _partition(
        index.imports(claim.subject),
        lambda f: _same_module(f.details.source, claim.target or ""),
    )


def _check_is_exported(claim: Claim, index: _FactIndex) -> Evidence:
    support = [render_evidence(f) for f in index.exports(claim.subject)]
    contradict: list[str] = []
    defs: list[FunctionDefFact | ClassFact] = [
        *(f for f in index.functions(claim.subject) if f.details.parent_class is None),
        *index.classes(claim.subject),
    ]
    for fact in defs:
        if fact.details.is_exported:
            support.append(render_evidence(fact))
        else:
            contradict.append(render_evidence(fact))
    return support, contradict


def _check_defined_in(claim: Claim, index: _FactIndex) -> Evidence:
    target = _normalize_path(claim.target or "")
    return _partition(
        index.definitions(claim.subject),
        lambda f: _path_matches(f.file, target),
    )


def _check_calls(claim: Claim, index: _FactIndex) -> Evidence:
    target = (claim.target or "").lower()
    callee = target.rsplit(".", 1)[-1]
    support = [
        render_evidence(c)
        for c in index.calls_from(claim.subject)
        if c.identifier.lower() == callee
        and (
            "." not in target
            or f"{c.details.receiver or ''}.{c.identifier}".lower() == target
            or (c.details.receiver or "").lower() in {"self", "this"}
        )
    ]
    if support:
        return support, []
    # Call facts are only extracted for Python; elsewhere absence proves nothing.
    python_defs = [
        f for f in index.functions(claim.subject) if f.file.endswith((".py", ".pyi"))
    ]
    return [], [render_evidence(f) for f in python_defs]


_KIND_MATCHERS: dict[str, Callable[[Fact], bool]] = {
    "class": lambda f: isinstance(f, ClassFact),
    "function": lambda f: isinstance(f, FunctionDefFact),
    "method": lambda f: isinstance(f, FunctionDefFact) and f.details.parent_class is not None,
    "interface": lambda f: isinstance(f, TypeFact) and f.details.type_kind == TypeKind.INTERFACE,
    "type_alias": lambda f: isinstance(f, TypeFact) and f.details.type_kind == TypeKind.TYPE_ALIAS,
    "enum": lambda f: isinstance(f, TypeFact) and f.details.type_kind == TypeKind.ENUM,
}


def _check_is_kind(claim: Claim, index: _FactIndex) -> Evidence:
    matcher = _KIND_MATCHERS.get(claim.target or "")
    if matcher is None:
        return [], []
    return _partition(index.definitions(claim.subject), matcher)


_RELATION_CHECKS: dict[RelationKind, Callable[[Claim, _FactIndex], Evidence]] = {
    RelationKind.RETURNS: _check_returns,
    RelationKind.EXTENDS: _check_extends,
    RelationKind.IMPLEMENTS: _check_implements,
    RelationKind.HAS_METHOD: _check_has_method,
    RelationKind.HAS_PROPERTY: _check_has_property,
    RelationKind.TAKES_PARAMETER: _check_takes_parameter,
    RelationKind.PARAMETER_COUNT: _check_parameter_count,
    RelationKind.IS_ASYNC: _check_is_async,
    RelationKind.IMPORTED_FROM: _check_imported_from,
    RelationKind.IS_EXPORTED: _check_is_exported,
    RelationKind.DEFINED_IN: _check_defined_in,
    RelationKind.CALLS: _check_calls,
    RelationKind.IS_KIND: _check_is_kind,
}


# ── Helpers ──────────────────────────────────────────────


def _partition(
    facts: Iterable[Fact], supports: Callable[[Any], bool]
) -> Evidence:
    support: list[str] = []
    contradict: list[str] = []
    for fact in facts:
        (support if supports(fact) else contradict).append(render_evidence(fact))
    return support, contradict


def _split_subject(subject: str) -> tuple[str | None, str]:
    """``"Owner.name"`` -> ``("owner", "name")``; plain names have no owner."""
    parts = subject.lower().rsplit(".", 1)
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0].rsplit(".", 1)[-1], parts[1]
    return None, parts[-1]


def _base_name(name: str) -> str:
    """Last dotted segment without generic arguments."""
    name = re.split(r"[<\[(]", name, maxsplit=1)[0]
    return name.strip().rsplit(".", 1)[-1].lower()


def _contains_name(names: Iterable[str], target: str | None) -> bool:
    if not target:
        return False
    wanted = _base_name(target)
    return any(_base_name(n) == wanted for n in names)


def _type_tokens(text: str) -> set[str]:
    tokens = set()
    for raw in _TYPE_TOKEN_RE.findall(text.lower()):
        token = _TYPE_ALIASES.get(raw, raw)
        if token not in _TYPE_FILLER:
            tokens.add(token)
    return tokens


def _normalize_module(source: str) -> str:
    source = source.strip().strip("`'\"").replace("\\", "/")
    while source.startswith(("./", "../")):
        source = source.split("/", 1)[1]
    source = _SOURCE_SUFFIX_RE.sub("", source)
    source = source.removesuffix("/index").removesuffix("/__init__")
    return source.lstrip(".").replace(".", "/") if "/" not in source else source


def _same_module(actual: str, claimed: str) -> bool:
    a = _normalize_module(actual).lower()
    c = _normalize_module(claimed).lower()
    if not a or not c:
        return False
    return a == c or a.endswith("/" + c) or c.endswith("/" + a)


def _normalize_path(path: str) -> str:
    path = path.strip().strip("`'\"").replace("\\", "/")
    return path.removeprefix("./").lower()


def _path_matches(file: str, target: str) -> bool:
    if not target:
        return False
    file = file.lower()
    stem = _SOURCE_SUFFIX_RE.sub("", file)
    return any(
        candidate == target or candidate.endswith("/" + target)
        for candidate in (file, stem)
    )

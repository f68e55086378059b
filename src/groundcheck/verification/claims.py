"""Claim extraction: turn answer prose into checkable assertions.

Each pattern pairs an identifier-shaped subject with a relation verb
("returns", "extends", "has method", ...). Compound sentences are split
on conjunctions with the subject carried forward ("X extends Y and
implements Z" is two claims), and "it", "this class", "the method" and
similar references resolve to the subject of the preceding claim.
Matching is heuristic, so it is kept as pure functions over strings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from groundcheck.constants import ClaimType, RelationKind
from groundcheck.text import LANGUAGE_KEYWORDS
from groundcheck.verification.schemas import Claim

_KINDS = r"function|method|class|interface|type|enum|module|constant|component|service"
_SUBJECT = (
    rf"(?<![\w$`])(?:(?:the\s+)?(?P<kw>{_KINDS})\s+)?"
    r"(?P<subject>`[^`\n]+`|[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*(?:\(\))?)"
)
# Conjunction joining a claim to a subject-less continuation.
_CONJUNCTION = r"(?:\s*,)?\s+(?:and|but)(?:\s+also)?|\s+as\s+well\s+as|\s*,(?:\s+also)?"
_ANAPHOR = (
    rf"(?<![\w$`])(?P<anaphor>it|(?:this|that|the|said)\s+(?:{_KINDS}))(?:\s+also)?"
)

# Pairs joined by "and" that name one thing, never two claims.
COMPOUND_NOUNS: tuple[str, ...] = (
    "input and output",
    "read and write",
    "request and response",
    "get and set",
    "push and pull",
    "lock and unlock",
    "open and close",
    "start and stop",
    "begin and end",
    "create and delete",
    "add and remove",
    "show and hide",
    "enable and disable",
    "encode and decode",
    "encrypt and decrypt",
    "serialize and deserialize",
    "load and save",
    "import and export",
    "client and server",
    "source and destination",
    "key and value",
)
_COMPOUND = "|".join(
    r"\s+".join(re.escape(word) for word in c.split()) for c in COMPOUND_NOUNS
)

_TARGET_ID = (
    r"(?:the\s+|an?\s+)?"
    r"(?P<target>`[^`\n]+`|[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)(?:\(\))?"
)
_TARGET_TYPE = (
    rf"(?:an?\s+|the\s+)?(?P<target>`[^`\n]+`|(?:{_COMPOUND})\b|[^.,;:\n]+?)"
    r"(?=\s*(?:[.,;:\n]|$)|\s+(?:and|but|when|if|or|which|that|because|for)\b)"
)
_TARGET_PATH = r"(?P<target>`[^`\n]+`|['\"][^'\"\n]+['\"]|[\w@./-]*[\w@/-])"
_NUMBER_WORDS = {
    "no": 0, "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9, "ten": 10,
}
_COUNT = r"(?P<target>\d+|" + "|".join(_NUMBER_WORDS) + r")"

_PRONOUNS = frozenset({
    "it", "this", "that", "which", "who", "they", "he", "she", "there",
    "here", "what", "each", "every", "one", "some", "all",
})


@dataclass(frozen=True)
class _ClaimPattern:
    relation: RelationKind
    claim_type: ClaimType
    regex: re.Pattern[str]
    continuation: re.Pattern[str]
    anaphoric: re.Pattern[str]


def _p(relation: RelationKind, claim_type: ClaimType, body: str) -> _ClaimPattern:
    return _ClaimPattern(
        relation,
        claim_type,
        re.compile(_SUBJECT + body, re.IGNORECASE),
        re.compile(rf"(?:{_CONJUNCTION})(?P<body>{body})", re.IGNORECASE),
        re.compile(rf"{_ANAPHOR}(?P<body>{body})", re.IGNORECASE),
    )


_PATTERNS: tuple[_ClaimPattern, ...] = (
    _p(
        RelationKind.EXTENDS, ClaimType.STRUCTURAL,
        r"\s+(?:extends|inherits\s+from|is\s+a\s+subclass\s+of|subclasses)\s+"
        + _TARGET_ID,
    ),
    _p(
        RelationKind.IMPLEMENTS, ClaimType.STRUCTURAL,
        r"\s+implements\s+" + _TARGET_ID,
    ),
    _p(
        RelationKind.HAS_METHOD, ClaimType.STRUCTURAL,
        r"\s+(?:has|defines|exposes|provides|contains|declares)\s+"
        r"(?:an?\s+|the\s+)?(?:async\s+|public\s+|static\s+)?methods?\s+(?:named\s+|called\s+)?"
        + _TARGET_ID,
    ),
    _p(
        RelationKind.HAS_PROPERTY, ClaimType.STRUCTURAL,
        r"\s+(?:has|defines|contains|declares)\s+(?:an?\s+|the\s+)?"
        r"(?:property|field|attribute|member)\s+(?:named\s+|called\s+)?" + _TARGET_ID,
    ),
    _p(
        RelationKind.PARAMETER_COUNT, ClaimType.BEHAVIORAL,
        r"\s+(?:takes|accepts|receives|has)\s+(?:exactly\s+)?" + _COUNT
        + r"\s+(?:parameters?|arguments?|params?)\b",
    ),
    _p(
        RelationKind.TAKES_PARAMETER, ClaimType.BEHAVIORAL,
        r"\s+(?:takes|accepts|receives|has)\s+(?:an?\s+|the\s+)?"
        r"(?:parameter|argument|param)\s+(?:named\s+|called\s+)?" + _TARGET_ID,
    ),
    _p(
        RelationKind.IS_ASYNC, ClaimType.BEHAVIORAL,
        r"\s+is\s+(?:an?\s+)?(?:async|asynchronous)\b",
    ),
    _p(
        RelationKind.RETURNS, ClaimType.BEHAVIORAL,
        r"\s+(?:always\s+|will\s+)?returns?\s+" + _TARGET_TYPE,
    ),
    _p(
        RelationKind.IMPORTED_FROM, ClaimType.FACTUAL,
        r"\s+is\s+imported\s+from\s+" + _TARGET_PATH,
    ),
    _p(
        RelationKind.IS_EXPORTED, ClaimType.FACTUAL,
        r"\s+is\s+(?:re-?)?exported\b",
    ),
    _p(
        RelationKind.DEFINED_IN, ClaimType.FACTUAL,
        r"\s+is\s+(?:defined|declared|implemented|located)\s+in\s+" + _TARGET_PATH,
    ),
    _p(
        RelationKind.CALLS, ClaimType.BEHAVIORAL,
        r"\s+(?:calls|invokes)\s+" + _TARGET_ID,
    ),
    _p(
        RelationKind.IS_KIND, ClaimType.STRUCTURAL,
        r"\s+is\s+(?:an?\s+)(?:abstract\s+|exported\s+)?"
        r"(?P<target>class|function|interface|type\s+alias|enum|method)\b",
    ),
)


@dataclass(frozen=True)
class Relation:
    kind: RelationKind
    subject: str
    target: str | None


def parse_relation(text: str) -> Relation | None:
    """Relation asserted by a single claim sentence, if one is recognised."""
    claims = extract_claims(text)
    if not claims:
        return None
    first = claims[0]
    return Relation(first.relation, first.subject, first.target)


def extract_claims(answer_text: str) -> list[Claim]:
    """All non-overlapping claims in *answer_text*, in text order.

    Where matches overlap, the earliest (then longest) wins. Each claim
    is followed by any conjunction-joined continuations that share its
    subject; anaphoric claims take the subject of the claim before them
    and are dropped when there is none.
    """
    explicit = _explicit_claims(answer_text)
    anaphoric = _anaphoric_matches(answer_text)

    accepted: list[Claim] = []
    seen_text: set[str] = set()

    def accept(claim: Claim) -> bool:
        if accepted and claim.span[0] < accepted[-1].span[1]:
            return False
        key = claim.text.lower()
        if key in seen_text:
            return False
        accepted.append(claim)
        seen_text.add(key)
        return True

    def accept_with_continuations(claim: Claim) -> None:
        if not accept(claim):
            return
        current: Claim | None = claim
        while current is not None:
            current = _continuation(answer_text, current)
            if current is not None and not accept(current):
                break

    i = j = 0
    while i < len(explicit) or j < len(anaphoric):
        take_explicit = j >= len(anaphoric) or (
            i < len(explicit) and explicit[i].span[0] <= anaphoric[j][1].start("anaphor")
        )
        if take_explicit:
            accept_with_continuations(explicit[i])
            i += 1
            continue
        pattern, m = anaphoric[j]
        j += 1
        if not accepted:
            continue
        claim = _build(
            pattern, m,
            subject=accepted[-1].subject,
            start=m.start("anaphor"),
            body_start=m.start("body"),
        )
        if claim is not None:
            accept_with_continuations(claim)
    return accepted


def _explicit_claims(text: str) -> list[Claim]:
    candidates: list[Claim] = []
    for pattern in _PATTERNS:
        for m in pattern.regex.finditer(text):
            claim = _to_claim(pattern, m)
            if claim is not None:
                candidates.append(claim)
    candidates.sort(key=lambda c: (c.span[0], -(c.span[1] - c.span[0])))
    return candidates


def _anaphoric_matches(text: str) -> list[tuple[_ClaimPattern, re.Match[str]]]:
    matches = [
        (pattern, m)
        for pattern in _PATTERNS
        for m in pattern.anaphoric.finditer(text)
    ]
    matches.sort(key=lambda pm: (pm[1].start("anaphor"), -(pm[1].end() - pm[1].start())))
    return matches


def _continuation(text: str, previous: Claim) -> Claim | None:
    """Subject-less claim joined to *previous* by a conjunction, if any."""
    if _joins_compound(text, previous.span[1]):
        return None
    best: Claim | None = None
    for pattern in _PATTERNS:
        m = pattern.continuation.match(text, previous.span[1])
        if m is None:
            continue
        start = m.start("body") + len(m.group("body")) - len(m.group("body").lstrip())
        claim = _build(
            pattern, m,
            subject=previous.subject,
            start=start,
            body_start=m.start("body"),
        )
        if claim is not None and (best is None or claim.span[1] > best.span[1]):
            best = claim
    return best


def _joins_compound(text: str, offset: int) -> bool:
    """True when the words around the conjunction after *offset* form one noun."""
    head = text[max(0, offset - 40):offset].lower()
    tail = text[offset:offset + 40].lower()
    window = re.sub(r"\s+", " ", head + tail)
    pivot = len(re.sub(r"\s+", " ", head))
    for compound in COMPOUND_NOUNS:
        at = window.find(compound)
        if at != -1 and at < pivot < at + len(compound):
            return True
    return False


def _build(
    pattern: _ClaimPattern,
    m: re.Match[str],
    *,
    subject: str,
    start: int,
    body_start: int,
) -> Claim | None:
    target = _target(pattern, m)
    if target == "":
        return None
    body = m.string[body_start:m.end()].strip()
    return Claim(
        text=f"{subject} {body}",
        claim_type=pattern.claim_type,
        relation=pattern.relation,
        subject=subject,
        target=target,
        span=(start, m.end()),
    )


def _to_claim(pattern: _ClaimPattern, m: re.Match[str]) -> Claim | None:
    raw_subject = m.group("subject")
    if not _looks_like_identifier(raw_subject, has_kind=bool(m.group("kw"))):
        return None
    target = _target(pattern, m)
    if target == "":
        return None
    start = m.start("kw") if m.group("kw") else m.start("subject")
    return Claim(
        text=m.group(0)[start - m.start():].strip(),
        claim_type=pattern.claim_type,
        relation=pattern.relation,
        subject=_clean(raw_subject),
        target=target,
        span=(start, m.end()),
    )


def _target(pattern: _ClaimPattern, m: re.Match[str]) -> str | None:
    """Normalised relation target; ``""`` when present but empty."""
    target = m.groupdict().get("target")
    if target is None:
        return None
    target = _clean(target)
    if not target:
        return ""
    if pattern.relation is RelationKind.PARAMETER_COUNT:
        return str(_NUMBER_WORDS.get(target.lower(), target))
    if pattern.relation is RelationKind.IS_KIND:
        return re.sub(r"\s+", "_", target.lower())
    return target


def _clean(token: str) -> str:
    return token.strip().strip("`'\"").removesuffix("()").strip()


def _looks_like_identifier(raw: str, *, has_kind: bool) -> bool:
    """Plain lowercase words only count when backticked, called or introduced by a kind word."""
    name = _clean(raw)
    if not name or name.lower() in _PRONOUNS or name.lower() in LANGUAGE_KEYWORDS:
        return False
    if has_kind or raw.startswith("`") or raw.endswith("()"):
        return True
    if "_" in name or "." in name:
        return True
    return name[0].isupper() or any(c.isupper() for c in name[1:])

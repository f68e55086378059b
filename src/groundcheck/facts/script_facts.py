"""Regex-based fact extraction for TypeScript and JavaScript sources.

No tree-sitter grammar is required for scripts: declarations are
recognised line-anchored, class and interface bodies are delimited by
brace matching, and only depth-0 members of a body are reported.
"""

from __future__ import annotations

import re

from groundcheck.constants import TypeKind
from groundcheck.facts.models import (
    ClassDetails,
    ClassFact,
    ExportDetails,
    ExportFact,
    Fact,
    FunctionDefFact,
    FunctionDetails,
    ImportDetails,
    ImportFact,
    Parameter,
    TypeDetails,
    TypeFact,
)

_FUNCTION_RE = re.compile(
    r"^[ \t]*(?P<export>export\s+(?:default\s+)?)?(?P<async>async\s+)?function\s*\*?\s*"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*\((?P<params>[^)]*)\)"
    r"(?:\s*:\s*(?P<ret>[^{;]+?))?\s*[{;]",
    re.MULTILINE,
)
_ARROW_RE = re.compile(
    r"^[ \t]*(?P<export>export\s+)?(?:const|let|var)\s+(?P<name>[A-Za-z_$][\w$]*)"
    r"\s*(?::\s*[^=]+)?=\s*(?P<async>async\s+)?(?:function\s*)?"
    r"\((?P<params>[^)]*)\)(?:\s*:\s*(?P<ret>[^=]+?))?\s*=>",
    re.MULTILINE,
)
_CLASS_RE = re.compile(
    r"^[ \t]*(?P<export>export\s+(?:default\s+)?)?(?:abstract\s+)?class\s+"
    r"(?P<name>[A-Za-z_$][\w$]*)(?:\s*<[^>{]*>)?"
    r"(?:\s+extends\s+(?P<extends>[\w$.]+)(?:<[^>{]*>)?)?"
    r"(?:\s+implements\s+(?P<implements>[^{]+?))?\s*\{",
    re.MULTILINE,
)
_INTERFACE_RE = re.compile(
    r"^[ \t]*(?P<export>export\s+)?interface\s+(?P<name>[A-Za-z_$][\w$]*)"
    r"(?:\s*<[^>{]*>)?(?:\s+extends\s+(?P<extends>[^{]+?))?\s*\{",
    re.MULTILINE,
)
_TYPE_ALIAS_RE = re.compile(
    r"^[ \t]*(?P<export>export\s+)?type\s+(?P<name>[A-Za-z_$][\w$]*)"
    r"(?:\s*<[^>=]*>)?\s*=\s*(?P<definition>[^;\n]+)",
    re.MULTILINE,
)
_ENUM_RE = re.compile(
    r"^[ \t]*(?P<export>export\s+)?(?:const\s+)?enum\s+(?P<name>[A-Za-z_$][\w$]*)\s*\{",
    re.MULTILINE,
)
_IMPORT_RE = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?(?P<clause>[^;'\"]+?)\s+from\s+['\"](?P<source>[^'\"]+)['\"]",
    re.MULTILINE,
)
_REQUIRE_RE = re.compile(
    r"(?:const|let|var)\s+(?P<clause>[A-Za-z_$][\w$]*|\{[^}]*\})\s*=\s*"
    r"require\(\s*['\"](?P<source>[^'\"]+)['\"]\s*\)",
)
_EXPORT_LIST_RE = re.compile(
    r"^[ \t]*export\s+(?:type\s+)?\{(?P<names>[^}]*)\}"
    r"(?:\s*from\s+['\"](?P<source>[^'\"]+)['\"])?",
    re.MULTILINE,
)
_EXPORT_STAR_RE = re.compile(
    r"^[ \t]*export\s+\*(?:\s+as\s+(?P<alias>\w+))?\s+from\s+['\"](?P<source>[^'\"]+)['\"]",
    re.MULTILINE,
)
_EXPORT_DEFAULT_RE = re.compile(
    r"^[ \t]*export\s+default\s+(?P<name>[A-Za-z_$][\w$]*)\s*;?\s*$",
    re.MULTILINE,
)
_METHOD_RE = re.compile(
    r"^\s*(?:(?:public|private|protected|static|readonly|abstract|override)\s+)*"
    r"(?P<async>async\s+)?(?:get\s+|set\s+)?\*?(?P<name>[A-Za-z_$][\w$]*)\s*"
    r"(?:<[^>]*>)?\s*\((?P<params>[^)]*)\)(?:\s*:\s*(?P<ret>[^{;]+?))?\s*[{;]",
)
_MEMBER_RE = re.compile(
    r"^\s*(?:(?:public|private|protected|static|readonly|declare)\s+)*"
    r"(?P<name>[A-Za-z_$][\w$]*)\??\s*[:=]",
)
_SIGNATURE_MEMBER_RE = re.compile(
    r"^\s*(?:readonly\s+)?(?P<name>[A-Za-z_$][\w$]*)\??\s*[:(]"
)
_ENUM_MEMBER_RE = re.compile(r"^\s*(?P<name>[A-Za-z_$][\w$]*)\s*(?:=|,|$)")

_NON_METHODS = frozenset({
    "if", "for", "while", "switch", "catch", "return", "function", "constructor",
    "super", "new", "await", "typeof",
})


def extract_script_facts(source: str, rel_path: str) -> list[Fact]:
    """Return every fact recognised in one TypeScript/JavaScript module."""
    facts: list[Fact] = []
    exported: set[str] = set()

    for m in _FUNCTION_RE.finditer(source):
        facts.append(_function_fact(m, source, rel_path, parent=None))
        if m.group("export"):
            exported.add(m.group("name"))
    for m in _ARROW_RE.finditer(source):
        facts.append(_function_fact(m, source, rel_path, parent=None))
        if m.group("export"):
            exported.add(m.group("name"))

    for m in _CLASS_RE.finditer(source):
        facts.extend(_class_facts(m, source, rel_path))
        if m.group("export"):
            exported.add(m.group("name"))

    for m in _INTERFACE_RE.finditer(source):
        body = _block_body(source, m.end() - 1)
        facts.append(
            TypeFact(
                identifier=m.group("name"),
                file=rel_path,
                line=_line_of(source, m.start("name")),
                details=TypeDetails(
                    type_kind=TypeKind.INTERFACE,
                    extends=_split_names(m.group("extends")),
                    properties=tuple(_depth0_members(body, _SIGNATURE_MEMBER_RE)),
                ),
            )
        )
        if m.group("export"):
            exported.add(m.group("name"))

    for m in _TYPE_ALIAS_RE.finditer(source):
        facts.append(
            TypeFact(
                identifier=m.group("name"),
                file=rel_path,
                line=_line_of(source, m.start("name")),
                details=TypeDetails(
                    type_kind=TypeKind.TYPE_ALIAS,
                    definition=m.group("definition").strip(),
                ),
            )
        )
        if m.group("export"):
            exported.add(m.group("name"))

    for m in _ENUM_RE.finditer(source):
        body = _block_body(source, m.end() - 1)
        facts.append(
            TypeFact(
                identifier=m.group("name"),
                file=rel_path,
                line=_line_of(source, m.start("name")),
                details=TypeDetails(
                    type_kind=TypeKind.ENUM,
                    properties=tuple(_depth0_members(body, _ENUM_MEMBER_RE)),
                ),
            )
        )
        if m.group("export"):
            exported.add(m.group("name"))

    facts.extend(_import_facts(source, rel_path))
    facts.extend(_export_facts(source, rel_path, exported))
    return facts


def _function_fact(
    m: re.Match[str], source: str, rel_path: str, parent: str | None
) -> FunctionDefFact:
    ret = m.group("ret")
    return FunctionDefFact(
        identifier=m.group("name"),
        file=rel_path,
        line=_line_of(source, m.start("name")),
        details=FunctionDetails(
            parameters=_parse_params(m.group("params")),
            return_type=ret.strip() if ret else None,
            is_async=bool(m.group("async")),
            is_exported=parent is None and "export" in (m.groupdict().get("export") or ""),
            parent_class=parent,
        ),
    )


def _class_facts(m: re.Match[str], source: str, rel_path: str) -> list[Fact]:
    name = m.group("name")
    body_start = m.end() - 1
    body = _block_body(source, body_start)
    body_offset = body_start + 1
    facts: list[Fact] = []
    methods: list[str] = []
    properties: list[str] = []

    depth = 0
    pos = 0
    for raw_line in body.splitlines(keepends=True):
        if depth == 0:
            method = _METHOD_RE.match(raw_line)
            if method and method.group("name") not in _NON_METHODS:
                methods.append(method.group("name"))
                ret = method.group("ret")
                facts.append(
                    FunctionDefFact(
                        identifier=method.group("name"),
                        file=rel_path,
                        line=_line_of(source, body_offset + pos + method.start("name")),
                        details=FunctionDetails(
                            parameters=_parse_params(method.group("params")),
                            return_type=ret.strip() if ret else None,
                            is_async=bool(method.group("async")),
                            parent_class=name,
                        ),
                    )
                )
            else:
                member = _MEMBER_RE.match(raw_line)
                if member:
                    properties.append(member.group("name"))
        depth += raw_line.count("{") - raw_line.count("}")
        depth = max(depth, 0)
        pos += len(raw_line)

    facts.append(
        ClassFact(
            identifier=name,
            file=rel_path,
            line=_line_of(source, m.start("name")),
            details=ClassDetails(
                extends=(m.group("extends"),) if m.group("extends") else (),
                implements=_split_names(m.group("implements")),
                methods=tuple(methods),
                properties=tuple(dict.fromkeys(properties)),
                is_exported=bool(m.group("export")),
            ),
        )
    )
    return facts


def _import_facts(source: str, rel_path: str) -> list[Fact]:
    facts: list[Fact] = []
    matches = list(_IMPORT_RE.finditer(source)) + list(_REQUIRE_RE.finditer(source))
    for m in matches:
        src = m.group("source")
        line = _line_of(source, m.start())
        for identifier, alias, is_default in _parse_import_clause(m.group("clause")):
            facts.append(
                ImportFact(
                    identifier=identifier,
                    file=rel_path,
                    line=line,
                    details=ImportDetails(
                        source=src,
                        alias=alias,
                        is_default=is_default,
                        is_relative=src.startswith("."),
                    ),
                )
            )
    return facts


def _export_facts(
    source: str, rel_path: str, declared: set[str]
) -> list[Fact]:
    facts: list[Fact] = []
    seen: set[str] = set()

    def add(name: str, line: int, src: str | None, is_default: bool = False) -> None:
        if not name or name in seen:
            return
        seen.add(name)
        facts.append(
            ExportFact(
                identifier=name,
                file=rel_path,
                line=line,
                details=ExportDetails(source=src, is_default=is_default),
            )
        )

    for m in _EXPORT_LIST_RE.finditer(source):
        line = _line_of(source, m.start())
        for part in m.group("names").split(","):
            pieces = part.strip().split(" as ")
            add(pieces[-1].strip(), line, m.group("source"))
    for m in _EXPORT_STAR_RE.finditer(source):
        add(m.group("alias") or "*", _line_of(source, m.start()), m.group("source"))
    for m in _EXPORT_DEFAULT_RE.finditer(source):
        add(m.group("name"), _line_of(source, m.start()), None, is_default=True)
    for name in sorted(declared):
        decl = re.search(
            rf"^[ \t]*export\b[^\n]*\b{re.escape(name)}\b", source, re.MULTILINE
        )
        add(name, _line_of(source, decl.start()) if decl else 1, None)
    return facts


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def _line_of(source: str, offset: int) -> int:
    return source.count("\n", 0, offset) + 1


def _block_body(source: str, open_brace: int) -> str:
    """Text between the brace at *open_brace* and its matching close."""
    depth = 0
    for i in range(open_brace, len(source)):
        ch = source[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return source[open_brace + 1 : i]
    return source[open_brace + 1 :]


def _depth0_members(body: str, pattern: re.Pattern[str]) -> list[str]:
    names: list[str] = []
    depth = 0
    for line in body.splitlines():
        if depth == 0:
            m = pattern.match(line)
            if m and m.group("name") not in _NON_METHODS:
                names.append(m.group("name"))
        depth = max(depth + line.count("{") - line.count("}"), 0)
    return list(dict.fromkeys(names))


def _split_names(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    cleaned = re.sub(r"<[^>]*>", "", raw)
    return tuple(p.strip() for p in cleaned.split(",") if p.strip())


def _parse_params(raw: str | None) -> tuple[Parameter, ...]:
    if not raw or not raw.strip():
        return ()
    params: list[Parameter] = []
    depth = 0
    current = ""
    for ch in raw:
        if ch in "<{[(":
            depth += 1
        elif ch in ">}])":
            depth -= 1
        if ch == "," and depth == 0:
            params.append(_parse_param(current))
            current = ""
        else:
            current += ch
    if current.strip():
        params.append(_parse_param(current))
    return tuple(p for p in params if p.name)


def _parse_param(raw: str) -> Parameter:
    text = raw.strip().removeprefix("...")
    text = re.sub(r"^(?:public|private|protected|readonly)\s+", "", text)
    name, _, annotation = text.partition(":")
    name = name.split("=", 1)[0].strip().rstrip("?")
    annotation = annotation.split("=", 1)[0].strip()
    return Parameter(name=name, annotation=annotation or None)


def _parse_import_clause(clause: str) -> list[tuple[str, str | None, bool]]:
    """Split an import clause into (identifier, alias, is_default) triples."""
    out: list[tuple[str, str | None, bool]] = []
    clause = clause.strip()
    braces = re.search(r"\{([^}]*)\}", clause)
    if braces:
        for part in braces.group(1).split(","):
            part = part.strip().removeprefix("type ").strip()
            if not part:
                continue
            original, _, alias = part.partition(" as ")
            out.append((original.strip(), alias.strip() or None, False))
        clause = (clause[: braces.start()] + clause[braces.end() :]).strip(" ,")
    ns = re.search(r"\*\s+as\s+([A-Za-z_$][\w$]*)", clause)
    if ns:
        out.append((ns.group(1), None, False))
        clause = (clause[: ns.start()] + clause[ns.end() :]).strip(" ,")
    default = re.match(r"([A-Za-z_$][\w$]*)", clause)
    if default:
        out.append((default.group(1), None, True))
    return out

"""Extract typed facts from Python sources via tree-sitter."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterator

import tree_sitter

from groundcheck.config import GRAMMAR_MODULES
from groundcheck.constants import TypeKind
from groundcheck.facts.models import (
    CallDetails,
    CallFact,
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

logger = logging.getLogger(__name__)

_PROTOCOL_BASES = frozenset({"Protocol", "typing.Protocol", "TypedDict"})
_ENUM_BASES = frozenset({
    "Enum",
    "StrEnum",
    "IntEnum",
    "Flag",
    "IntFlag",
    "enum.Enum",
    "enum.StrEnum",
    "enum.IntEnum",
})
_IMPLICIT_RECEIVERS = frozenset({"self", "cls"})


def extract_python_facts(source: str, rel_path: str) -> list[Fact]:
    """Return every fact found in one Python module.

    Unparseable input yields whatever tree-sitter could recover; a
    missing grammar yields no facts (graceful degradation).
    """
    parser = _get_parser("python")
    if parser is None:
        logger.warning("event=grammar_missing language=python file=%s", rel_path)
        return []

    tree = parser.parse(source.encode("utf-8"))
    collector = _PythonFactCollector(rel_path, _module_all(tree.root_node))
    collector.visit_module(tree.root_node)
    return collector.facts


class _PythonFactCollector:
    def __init__(self, rel_path: str, exported: list[str] | None) -> None:
        self._file = rel_path
        self._exported = exported
        self.facts: list[Fact] = []

    def visit_module(self, root: tree_sitter.Node) -> None:
        for node in root.named_children:
            node = _unwrap_decorated(node)
            match node.type:
                case "function_definition":
                    self._function(node, parent_class=None)
                case "class_definition":
                    self._class(node)
                case "import_statement" | "import_from_statement":
                    self._imports(node)
                case "type_alias_statement":
                    self._type_alias(node)
                case _:
                    if not self._all_assignment(node):
                        self._calls(node, caller=None)

    def _is_exported(self, name: str) -> bool:
        if self._exported is not None:
            return name in self._exported
        return not name.startswith("_")

    def _function(
        self, node: tree_sitter.Node, parent_class: str | None
    ) -> str | None:
        name = _text(node.child_by_field_name("name"))
        if not name:
            return None
        params = _parameters(node.child_by_field_name("parameters"))
        if parent_class and params and params[0].name in _IMPLICIT_RECEIVERS:
            params = params[1:]
        return_type = node.child_by_field_name("return_type")
        self.facts.append(
            FunctionDefFact(
                identifier=name,
                file=self._file,
                line=node.start_point[0] + 1,
                details=FunctionDetails(
                    parameters=tuple(params),
                    return_type=_text(return_type) or None,
                    is_async=any(c.type == "async" for c in node.children),
                    is_exported=parent_class is None and self._is_exported(name),
                    parent_class=parent_class,
                ),
            )
        )
        body = node.child_by_field_name("body")
        if body is not None:
            self._calls(body, caller=name)
        return name

    def _class(self, node: tree_sitter.Node) -> None:
        name = _text(node.child_by_field_name("name"))
        if not name:
            return
        bases = _superclasses(node.child_by_field_name("superclasses"))
        methods: list[str] = []
        properties: list[str] = []
        body = node.child_by_field_name("body")
        for stmt in body.named_children if body is not None else []:
            stmt = _unwrap_decorated(stmt)
            if stmt.type == "function_definition":
                method = self._function(stmt, parent_class=name)
                if method:
                    methods.append(method)
                if method == "__init__":
                    properties.extend(_self_attributes(stmt))
            elif stmt.type == "expression_statement":
                properties.extend(_assigned_names(stmt))

        line = node.start_point[0] + 1
        extends = tuple(b for b in bases if b != "object")
        self.facts.append(
            ClassFact(
                identifier=name,
                file=self._file,
                line=line,
                details=ClassDetails(
                    extends=extends,
                    methods=tuple(methods),
                    properties=tuple(dict.fromkeys(properties)),
                    is_exported=self._is_exported(name),
                ),
            )
        )

        type_kind: TypeKind | None = None
        if any(_base_name(b) in _ENUM_BASES or b in _ENUM_BASES for b in bases):
            type_kind = TypeKind.ENUM
        elif any(_base_name(b) in _PROTOCOL_BASES for b in bases):
            type_kind = TypeKind.INTERFACE
        if type_kind is not None:
            self.facts.append(
                TypeFact(
                    identifier=name,
                    file=self._file,
                    line=line,
                    details=TypeDetails(
                        type_kind=type_kind,
                        extends=extends,
                        properties=tuple(dict.fromkeys(properties + methods)),
                    ),
                )
            )

    def _imports(self, node: tree_sitter.Node) -> None:
        line = node.start_point[0] + 1
        module = ""
        if node.type == "import_from_statement":
            module = _text(node.child_by_field_name("module_name"))
            if any(c.type == "wildcard_import" for c in node.children):
                self._add_import("*", module, None, line)
                return
        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                original = _text(name_node.child_by_field_name("name"))
                alias = _text(name_node.child_by_field_name("alias")) or None
            else:
                original, alias = _text(name_node), None
            if node.type == "import_statement":
                self._add_import(alias or original, original, alias, line)
            else:
                self._add_import(original, module, alias, line)

    def _add_import(
        self, identifier: str, source: str, alias: str | None, line: int
    ) -> None:
        if not identifier:
            return
        self.facts.append(
            ImportFact(
                identifier=identifier,
                file=self._file,
                line=line,
                details=ImportDetails(
                    source=source,
                    alias=alias,
                    is_relative=source.startswith("."),
                ),
            )
        )

    def _type_alias(self, node: tree_sitter.Node) -> None:
        left = _text(node.child_by_field_name("left")).split("[", 1)[0].strip()
        if not left:
            return
        self.facts.append(
            TypeFact(
                identifier=left,
                file=self._file,
                line=node.start_point[0] + 1,
                details=TypeDetails(
                    type_kind=TypeKind.TYPE_ALIAS,
                    definition=_text(node.child_by_field_name("right")) or None,
                ),
            )
        )

    def _all_assignment(self, node: tree_sitter.Node) -> bool:
        """Record ``__all__`` entries as exports; True when *node* was one."""
        if node.type != "expression_statement" or self._exported is None:
            return False
        assignment = node.named_children[0] if node.named_children else None
        if assignment is None or assignment.type != "assignment":
            return False
        if _text(assignment.child_by_field_name("left")) != "__all__":
            return False
        for name in self._exported:
            self.facts.append(
                ExportFact(
                    identifier=name,
                    file=self._file,
                    line=node.start_point[0] + 1,
                    details=ExportDetails(),
                )
            )
        return True

    def _calls(self, node: tree_sitter.Node, caller: str | None) -> None:
        for call in _descendants(node, "call"):
            func = call.child_by_field_name("function")
            if func is None:
                continue
            receiver: str | None = None
            if func.type == "attribute":
                callee = _text(func.child_by_field_name("attribute"))
                receiver = _text(func.child_by_field_name("object")) or None
            elif func.type == "identifier":
                callee = _text(func)
            else:
                continue
            if not callee:
                continue
            self.facts.append(
                CallFact(
                    identifier=callee,
                    file=self._file,
                    line=call.start_point[0] + 1,
                    details=CallDetails(caller=caller, receiver=receiver),
                )
            )


# ---------------------------------------------------------------------------
# Node helpers
# ---------------------------------------------------------------------------


def _text(node: tree_sitter.Node | None) -> str:
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def _unwrap_decorated(node: tree_sitter.Node) -> tree_sitter.Node:
    if node.type == "decorated_definition":
        inner = node.child_by_field_name("definition")
        if inner is not None:
            return inner
    return node


def _descendants(node: tree_sitter.Node, node_type: str) -> Iterator[tree_sitter.Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == node_type:
            yield current
        stack.extend(reversed(current.children))


def _parameters(params_node: tree_sitter.Node | None) -> list[Parameter]:
    params: list[Parameter] = []
    if params_node is None:
        return params
    for child in params_node.named_children:
        match child.type:
            case "identifier":
                params.append(Parameter(name=_text(child)))
            case "typed_parameter":
                name_node = child.named_children[0] if child.named_children else None
                params.append(
                    Parameter(
                        name=_text(name_node).lstrip("*"),
                        annotation=_text(child.child_by_field_name("type")) or None,
                    )
                )
            case "default_parameter" | "typed_default_parameter":
                params.append(
                    Parameter(
                        name=_text(child.child_by_field_name("name")),
                        annotation=_text(child.child_by_field_name("type")) or None,
                    )
                )
            case "list_splat_pattern" | "dictionary_splat_pattern":
                params.append(Parameter(name=_text(child).lstrip("*")))
            case _:
                continue
    return [p for p in params if p.name]


def _superclasses(arg_list: tree_sitter.Node | None) -> list[str]:
    bases: list[str] = []
    if arg_list is None:
        return bases
    for child in arg_list.named_children:
        if child.type in ("identifier", "attribute"):
            bases.append(_text(child))
        elif child.type in ("subscript", "generic_type"):
            bases.append(_text(child).split("[", 1)[0].strip())
    return bases


def _base_name(base: str) -> str:
    return base.rsplit(".", 1)[-1]


def _assigned_names(stmt: tree_sitter.Node) -> list[str]:
    names: list[str] = []
    for child in stmt.named_children:
        if child.type != "assignment":
            continue
        left = child.child_by_field_name("left")
        if left is not None and left.type == "identifier":
            names.append(_text(left))
    return names


def _self_attributes(init: tree_sitter.Node) -> list[str]:
    names: list[str] = []
    body = init.child_by_field_name("body")
    if body is None:
        return names
    for assignment in _descendants(body, "assignment"):
        left = assignment.child_by_field_name("left")
        if left is None or left.type != "attribute":
            continue
        if _text(left.child_by_field_name("object")) == "self":
            attr = _text(left.child_by_field_name("attribute"))
            if attr:
                names.append(attr)
    return names


def _module_all(root: tree_sitter.Node) -> list[str] | None:
    """Names listed in a top-level ``__all__``, or None when absent."""
    for node in root.named_children:
        if node.type != "expression_statement" or not node.named_children:
            continue
        assignment = node.named_children[0]
        if assignment.type != "assignment":
            continue
        if _text(assignment.child_by_field_name("left")) != "__all__":
            continue
        right = assignment.child_by_field_name("right")
        if right is None:
            return []
        return [
            _text(s).strip("\"'")
            for s in right.named_children
            if s.type == "string"
        ]
    return None


# ---------------------------------------------------------------------------
# Parser cache
# ---------------------------------------------------------------------------

_parser_cache: dict[str, tree_sitter.Parser] = {}


def _get_parser(language: str) -> tree_sitter.Parser | None:
    """Get or create a cached tree-sitter parser."""
    if language in _parser_cache:
        return _parser_cache[language]

    module_name = GRAMMAR_MODULES.get(language)
    if module_name is None:
        return None

    try:
        mod = importlib.import_module(module_name)
        capsule: object = mod.language()
        lang = tree_sitter.Language(capsule)
        parser = tree_sitter.Parser(lang)
        _parser_cache[language] = parser
        return parser
    except (ImportError, AttributeError):
        return None

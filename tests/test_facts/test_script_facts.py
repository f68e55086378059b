"""Tests for regex-based TypeScript/JavaScript fact extraction."""

from __future__ import annotations

from pathlib import Path

from groundcheck.constants import TypeKind
from groundcheck.facts.models import (
    ClassFact,
    ExportFact,
    FunctionDefFact,
    ImportFact,
    TypeFact,
)
from groundcheck.facts.script_facts import extract_script_facts


def _client_facts(sample_repo: Path) -> list:
    source = (sample_repo / "web" / "client.ts").read_text()
    return extract_script_facts(source, "web/client.ts")


class TestClasses:
    def test_extends_and_implements(self, sample_repo: Path) -> None:
        facts = _client_facts(sample_repo)
        http = next(f for f in facts if isinstance(f, ClassFact) and f.identifier == "HttpClient")
        assert http.details.extends == ("BaseClient",)
        assert http.details.implements == ("Client",)
        assert http.details.is_exported is True
        assert http.line == 17

    def test_methods_and_properties_at_depth_zero(self, sample_repo: Path) -> None:
        facts = _client_facts(sample_repo)
        http = next(f for f in facts if isinstance(f, ClassFact) and f.identifier == "HttpClient")
        assert http.details.methods == ("fetchUser", "stamp")
        assert http.details.properties == ("timeout",)

    def test_constructor_is_not_a_method(self, sample_repo: Path) -> None:
        facts = _client_facts(sample_repo)
        base = next(f for f in facts if isinstance(f, ClassFact) and f.identifier == "BaseClient")
        assert base.details.methods == ()
        assert base.details.properties == ("baseUrl",)

    def test_method_facts_carry_signature(self, sample_repo: Path) -> None:
        facts = _client_facts(sample_repo)
        fetch = next(
            f for f in facts if isinstance(f, FunctionDefFact) and f.identifier == "fetchUser"
        )
        assert fetch.details.is_async is True
        assert fetch.details.parent_class == "HttpClient"
        assert fetch.details.return_type == "Promise<ApiResponse>"
        assert [p.name for p in fetch.details.parameters] == ["id"]
        assert fetch.details.parameters[0].annotation == "string"


class TestTypes:
    def test_interface_members(self, sample_repo: Path) -> None:
        facts = _client_facts(sample_repo)
        client = next(f for f in facts if isinstance(f, TypeFact) and f.identifier == "Client")
        assert client.details.type_kind == TypeKind.INTERFACE
        assert client.details.properties == ("baseUrl", "fetchUser")

    def test_alias_and_enum(self, sample_repo: Path) -> None:
        source = (sample_repo / "web" / "types.ts").read_text()
        facts = extract_script_facts(source, "web/types.ts")
        types = {f.identifier: f for f in facts if isinstance(f, TypeFact)}
        assert types["UserId"].details.type_kind == TypeKind.TYPE_ALIAS
        assert types["UserId"].details.definition == "string"
        assert types["Role"].details.type_kind == TypeKind.ENUM
        assert types["Role"].details.properties == ("Admin", "Member")
        assert types["ApiResponse"].details.properties == ("status", "body")


class TestImportsAndExports:
    def test_named_imports(self, sample_repo: Path) -> None:
        imports = [f for f in _client_facts(sample_repo) if isinstance(f, ImportFact)]
        by_name = {i.identifier: i for i in imports}
        assert by_name["ApiResponse"].details.source == "./types"
        assert by_name["formatDate"].details.source == "../shared/format"
        assert all(i.details.is_relative for i in imports)

    def test_default_namespace_and_aliased_imports(self) -> None:
        source = (
            "import React, { useState as useLocal } from 'react';\n"
            "import * as path from 'path';\n"
            "const fs = require('fs');\n"
        )
        imports = [f for f in extract_script_facts(source, "a.js") if isinstance(f, ImportFact)]
        by_name = {i.identifier: i for i in imports}
        assert by_name["React"].details.is_default is True
        assert by_name["useState"].details.alias == "useLocal"
        assert by_name["path"].details.source == "path"
        assert by_name["fs"].details.source == "fs"

    def test_declared_and_listed_exports(self) -> None:
        source = (
            "export async function load(id: string): Promise<void> {}\n"
            "const helper = (x) => x;\n"
            "export { helper as assist };\n"
            "export * from './more';\n"
        )
        facts = extract_script_facts(source, "m.ts")
        exports = {f.identifier: f for f in facts if isinstance(f, ExportFact)}
        assert set(exports) == {"load", "assist", "*"}
        assert exports["*"].details.source == "./more"
        load = next(f for f in facts if isinstance(f, FunctionDefFact) and f.identifier == "load")
        assert load.details.is_async is True
        assert load.details.is_exported is True
        assert load.details.return_type == "Promise<void>"

    def test_arrow_function_params(self) -> None:
        source = "export const add = (a: number, b: number): number => a + b;\n"
        fn = next(
            f for f in extract_script_facts(source, "m.ts") if isinstance(f, FunctionDefFact)
        )
        assert fn.identifier == "add"
        assert [p.name for p in fn.details.parameters] == ["a", "b"]
        assert fn.details.return_type == "number"

"""Tests for import specifier extraction and resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from groundcheck.facts.imports import (
    candidate_paths,
    extract_specifiers,
    resolve_specifier,
    specifier_terms,
)


class TestExtractSpecifiers:
    def test_python_relative_only(self) -> None:
        content = "import os\nfrom .base import A\nfrom ..pkg.mod import B\nfrom typing import C\n"
        assert extract_specifiers(content, "app/x.py") == [".base", "..pkg.mod"]

    def test_script_forms(self) -> None:
        content = (
            "import { a } from './a';\n"
            "import './side-effect';\n"
            "const b = require('../b');\n"
            "const c = await import('./c');\n"
            "export { d } from './d';\n"
            "import { a as again } from './a';\n"
        )
        assert extract_specifiers(content, "web/x.ts") == [
            "./a", "./side-effect", "../b", "./c", "./d",
        ]


class TestResolve:
    def test_python_sibling_module(self, sample_repo: Path) -> None:
        assert resolve_specifier(sample_repo, "app/services.py", ".base") == "app/base.py"

    def test_python_package_init(self, sample_repo: Path) -> None:
        assert resolve_specifier(sample_repo, "app/services.py", ".") == "app/__init__.py"

    def test_script_extension_probing(self, sample_repo: Path) -> None:
        assert resolve_specifier(sample_repo, "web/client.ts", "./types") == "web/types.ts"
        assert (
            resolve_specifier(sample_repo, "web/client.ts", "../shared/format")
            == "shared/format.ts"
        )

    def test_compiled_js_name_maps_to_ts(self, sample_repo: Path) -> None:
        assert resolve_specifier(sample_repo, "web/client.ts", "./types.js") == "web/types.ts"

    @pytest.mark.parametrize("specifier", ["react", "@scope/pkg", "./missing"])
    def test_unresolvable(self, sample_repo: Path, specifier: str) -> None:
        assert resolve_specifier(sample_repo, "web/client.ts", specifier) is None

    def test_cannot_escape_root(self, sample_repo: Path) -> None:
        assert resolve_specifier(sample_repo, "web/client.ts", "../../outside") is None


def test_candidate_paths_include_index_files() -> None:
    candidates = candidate_paths("src/app.ts", "./lib")
    assert "src/lib.ts" in candidates
    assert "src/lib/index.ts" in candidates


@pytest.mark.parametrize(
    ("specifier", "expected"),
    [
        ("./services/user", ["user", "services"]),
        ("../types.js", ["types"]),
        ("lodash", ["lodash"]),
        ("@angular/core", []),
        ("lodash/fp", []),
    ],
)
def test_specifier_terms(specifier: str, expected: list[str]) -> None:
    assert specifier_terms(specifier) == expected

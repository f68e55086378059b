"""Tests for repository walking."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from groundcheck.facts.walker import count_lines, is_binary, walk_files


def _rel(root: Path, paths: list[Path]) -> list[str]:
    return [p.relative_to(root).as_posix() for p in paths]


class TestWalkFiles:
    def test_honours_gitignore(self, sample_repo: Path) -> None:
        files = _rel(sample_repo, walk_files(sample_repo, []))
        assert "app/services.py" in files
        assert "generated/ignored.py" not in files

    def test_sorted_output(self, sample_repo: Path) -> None:
        files = _rel(sample_repo, walk_files(sample_repo, []))
        assert files == sorted(files)

    def test_skips_hidden_and_configured_dirs(self, tmp_path: Path) -> None:
        (tmp_path / ".cache").mkdir()
        (tmp_path / ".cache" / "x.py").write_text("x = 1\n")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "lib.js").write_text("1\n")
        (tmp_path / "main.py").write_text("print(1)\n")
        assert _rel(tmp_path, walk_files(tmp_path, ["node_modules"])) == ["main.py"]

    def test_skips_binary_files(self, tmp_path: Path) -> None:
        (tmp_path / "blob.bin").write_bytes(b"\x00\x01\x02")
        (tmp_path / "text.py").write_text("a = 1\n")
        assert _rel(tmp_path, walk_files(tmp_path, [])) == ["text.py"]

    def test_missing_root_is_empty(self, tmp_path: Path) -> None:
        assert walk_files(tmp_path / "nope", []) == []

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_symlink_outside_root_is_skipped(self, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.py").write_text("TOKEN = 1\n")
        root = tmp_path / "repo"
        root.mkdir()
        (root / "ok.py").write_text("a = 1\n")
        (root / "link").symlink_to(outside, target_is_directory=True)
        assert _rel(root, walk_files(root, [])) == ["ok.py"]

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_symlink_cycle_terminates(self, tmp_path: Path) -> None:
        (tmp_path / "a.py").write_text("a = 1\n")
        (tmp_path / "pkg").mkdir()
        (tmp_path / "pkg" / "loop").symlink_to(tmp_path, target_is_directory=True)
        assert _rel(tmp_path, walk_files(tmp_path, [])) == ["a.py"]

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_mutual_symlinks_visit_each_directory_once(self, tmp_path: Path) -> None:
        (tmp_path / "x").mkdir()
        (tmp_path / "y").mkdir()
        (tmp_path / "x" / "one.py").write_text("one = 1\n")
        (tmp_path / "y" / "two.py").write_text("two = 2\n")
        (tmp_path / "x" / "to_y").symlink_to(tmp_path / "y", target_is_directory=True)
        (tmp_path / "y" / "to_x").symlink_to(tmp_path / "x", target_is_directory=True)
        # x/to_y is reached before y itself, so y's files are listed under that path.
        assert _rel(tmp_path, walk_files(tmp_path, [])) == ["x/one.py", "x/to_y/two.py"]


def test_is_binary(tmp_path: Path) -> None:
    binary = tmp_path / "b"
    binary.write_bytes(b"abc\x00def")
    text = tmp_path / "t"
    text.write_text("hello")
    assert is_binary(binary) is True
    assert is_binary(text) is False
    assert is_binary(tmp_path / "missing") is True


@pytest.mark.parametrize(
    ("content", "expected"),
    [("", 0), ("one", 1), ("one\n", 1), ("one\ntwo\n", 2), ("one\ntwo", 2)],
)
def test_count_lines(tmp_path: Path, content: str, expected: int) -> None:
    path = tmp_path / "f.txt"
    path.write_text(content)
    assert count_lines(path) == expected

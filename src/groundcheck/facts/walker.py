"""Repository walking: gitignore-aware, symlink-safe, binary-free."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import pathspec

from groundcheck.constants import BINARY_DETECTION_BUFFER

logger = logging.getLogger(__name__)


def is_binary(path: Path) -> bool:
    """Return True if the file appears to be binary (null byte in first N bytes)."""
    try:
        with open(path, "rb") as f:
            chunk = f.read(BINARY_DETECTION_BUFFER)
        return b"\x00" in chunk
    except OSError:
        return True


def count_lines(path: Path) -> int:
    """Count lines the way editors number them (a trailing newline adds none)."""
    with open(path, encoding="utf-8", errors="replace") as f:
        return sum(1 for _ in f)


def walk_files(root: Path, skip_dirs: Iterable[str]) -> list[Path]:
    """Return all regular, non-binary files under *root* in sorted order.

    * Skips hidden directories and directories named in *skip_dirs*.
    * Honours the root ``.gitignore``.
    * Symlinks (both directory and file) that resolve outside the root
      are skipped to prevent directory traversal.
    * Each real directory is entered once, so symlink cycles terminate.
    """
    if not root.is_dir():
        return []
    spec = load_gitignore(root)
    resolved_root = root.resolve()
    files = _walk_inner(root, root, set(skip_dirs), spec, resolved_root, {resolved_root})
    return [f for f in files if not is_binary(f)]


def _walk_inner(
    current: Path,
    root: Path,
    skip_dirs: set[str],
    gitignore_spec: pathspec.PathSpec,
    resolved_root: Path,
    visited: set[Path],
) -> list[Path]:
    files: list[Path] = []
    try:
        items = sorted(current.iterdir())
    except OSError:
        return files
    for item in items:
        if item.is_symlink():
            resolved = item.resolve()
            if not resolved.is_relative_to(resolved_root):
                continue
        rel = item.relative_to(root).as_posix()
        if item.is_dir():
            if item.name.startswith(".") or item.name in skip_dirs:
                continue
            if gitignore_spec.match_file(rel + "/"):
                continue
            real = item.resolve()
            if real in visited:
                logger.debug("event=directory_revisit_skipped path=%s", rel)
                continue
            visited.add(real)
            files.extend(
                _walk_inner(item, root, skip_dirs, gitignore_spec, resolved_root, visited)
            )
        elif item.is_file():
            if not gitignore_spec.match_file(rel):
                files.append(item)
    return files


def load_gitignore(root: Path) -> pathspec.PathSpec:
    """Load .gitignore patterns using pathspec."""
    gitignore = root / ".gitignore"
    if not gitignore.exists():
        return pathspec.PathSpec.from_lines("gitignore", [])
    try:
        with open(gitignore, encoding="utf-8") as f:
            return pathspec.PathSpec.from_lines("gitignore", f)
    except OSError:
        return pathspec.PathSpec.from_lines("gitignore", [])

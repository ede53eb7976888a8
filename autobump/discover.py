"""Discovery of go.mod files under a directory tree."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path

_SKIP_DIRS = {"vendor", "node_modules", ".git"}


def _match(name: str, pattern: str) -> bool:
    """Shell-style match where wildcards never cross a ``/``."""
    parts = name.split("/")
    pattern_parts = pattern.split("/")
    if len(parts) != len(pattern_parts):
        return False
    return all(fnmatch.fnmatchcase(part, pat) for part, pat in zip(parts, pattern_parts))


def _excluded(rel_path: str, patterns: list[str]) -> bool:
    rel_dir = os.path.dirname(rel_path) or "."
    return any(_match(rel_path, pattern) or _match(rel_dir, pattern) for pattern in patterns)


def discover_go_mod_files(root: str | Path, exclude: list[str] | None = None) -> list[Path]:
    """Find every go.mod under ``root``, sorted.

    Hidden directories, ``vendor`` and ``node_modules`` are never entered.
    Exclude globs (a ``*`` never matches ``/``) are matched against the
    go.mod path and its directory, both relative to ``root``.
    """
    root_path = Path(root).resolve()
    if root_path.is_file():
        return [root_path] if root_path.name == "go.mod" else []

    patterns = exclude or []
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames[:] = [d for d in dirnames if d not in _SKIP_DIRS and not d.startswith(".")]
        if "go.mod" not in filenames:
            continue
        go_mod = Path(dirpath) / "go.mod"
        rel_path = go_mod.relative_to(root_path).as_posix()
        if not _excluded(rel_path, patterns):
            found.append(go_mod)

    return sorted(found)

"""Local checkout source: walks a directory on disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from ..errors import FileFetchError
from ..models import FileRecord, RepoCoordinates
from .base import EXCLUDED_SEGMENTS, RepoSource

_EXCLUDED_DIRS = set(EXCLUDED_SEGMENTS) | {
    ".hg",
    ".svn",
    ".venv",
    "__pycache__",
    ".idea",
    ".cache",
    "coverage",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or configured excludes."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        target = rel_path
        if self.anchored or self.has_slash:
            if fnmatchcase(target, self.pattern):
                return True
            if self.directory_only and target.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in target.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    has_slash = "/" in pattern
    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash=has_slash,
    )


def build_ignore_rules(patterns: Sequence[str]) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    for pattern in patterns:
        rule = build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _iter_entries(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[tuple[str, bool]]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if should_ignore(rel_path, True, rules):
                continue
            kept_dirs.append(name)
            yield rel_path, True
        dirnames[:] = kept_dirs

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if should_ignore(rel_path, False, rules):
                continue
            yield rel_path, False


class LocalSource(RepoSource):
    """Reads a repository that already exists on disk."""

    def __init__(
        self,
        root: str | Path,
        *,
        exclude_paths: Sequence[str] = (),
        coordinates: Optional[RepoCoordinates] = None,
    ) -> None:
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")
        self.root = root_path
        self.coordinates = coordinates or RepoCoordinates(
            owner="local", name=root_path.name or "repository", branch="local"
        )
        self._rules = parse_gitignore(root_path / ".gitignore")
        self._rules.extend(build_ignore_rules(exclude_paths))

    def list_files(self) -> List[FileRecord]:
        records: List[FileRecord] = []
        for rel_path, is_dir in _iter_entries(self.root, self._rules):
            records.append(
                FileRecord(
                    path=rel_path,
                    type="tree" if is_dir else "blob",
                    url=(self.root / rel_path).as_uri(),
                )
            )
        return records

    def read_text(self, path: str) -> str:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise FileFetchError(path, "path escapes the repository root")
        try:
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise FileFetchError(path, str(exc)) from exc


__all__ = [
    "IgnoreRule",
    "LocalSource",
    "build_ignore_rule",
    "build_ignore_rules",
    "parse_gitignore",
    "should_ignore",
]

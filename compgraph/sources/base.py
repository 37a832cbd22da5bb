"""Contracts shared by repository sources."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import List, Optional

from ..errors import InvalidRepositoryError
from ..models import FileRecord, RepoCoordinates

# Build output and vendored trees never contain authored components.
EXCLUDED_SEGMENTS = frozenset({"node_modules", ".next", "dist", "build", ".git"})

_GITHUB_URL = re.compile(r"github\.com[/:](?P<owner>[^/\s]+)/(?P<name>[^/\s#?]+)")
_SHORTHAND = re.compile(r"^(?P<owner>[A-Za-z0-9_.-]+)/(?P<name>[A-Za-z0-9_.-]+)$")


def parse_repo_url(location: str, branch: Optional[str] = None) -> RepoCoordinates:
    """Parse ``https://github.com/owner/repo`` (or ``owner/repo``) into coordinates."""
    text = (location or "").strip()
    match = _GITHUB_URL.search(text) or _SHORTHAND.match(text)
    if not match:
        raise InvalidRepositoryError(f"Invalid GitHub repository URL: {location!r}")
    name = match.group("name")
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise InvalidRepositoryError(f"Invalid GitHub repository URL: {location!r}")
    return RepoCoordinates(owner=match.group("owner"), name=name, branch=branch or "main")


def is_excluded(path: str) -> bool:
    """Return True for paths inside build output or dependency directories."""
    return any(part in EXCLUDED_SEGMENTS for part in path.split("/"))


class RepoSource(ABC):
    """Lists a repository's files and reads their text on demand.

    Sources are context managers; ``close`` releases network clients and
    scratch directories and is safe to call more than once.
    """

    coordinates: RepoCoordinates

    def open(self) -> "RepoSource":
        return self

    @abstractmethod
    def list_files(self) -> List[FileRecord]:
        """Return the flat list of tree entries (blobs and trees)."""

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Return the decoded text of ``path``; raise FileFetchError on failure."""

    def close(self) -> None:
        return None

    def __enter__(self) -> "RepoSource":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["EXCLUDED_SEGMENTS", "RepoSource", "is_excluded", "parse_repo_url"]

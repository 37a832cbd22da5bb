"""Repository sources: GitHub tree listing, tarball archive and local checkouts."""

from .base import EXCLUDED_SEGMENTS, RepoSource, is_excluded, parse_repo_url
from .github import ArchiveSource, GitHubClient, GitHubSource
from .local import LocalSource

__all__ = [
    "ArchiveSource",
    "EXCLUDED_SEGMENTS",
    "GitHubClient",
    "GitHubSource",
    "LocalSource",
    "RepoSource",
    "is_excluded",
    "parse_repo_url",
]

"""Exception hierarchy shared across compgraph components."""

from __future__ import annotations


class CompgraphError(RuntimeError):
    """Base class for errors raised by compgraph."""


class ConfigError(CompgraphError):
    """Raised when the configuration file cannot be parsed."""


class InvalidRepositoryError(CompgraphError):
    """Raised when a repository location cannot be parsed into coordinates."""


class RepositoryNotFoundError(CompgraphError):
    """Raised when the repository or the requested branch does not exist."""


class RepositoryFetchError(CompgraphError):
    """Raised when the repository listing or archive cannot be retrieved."""


class FileFetchError(CompgraphError):
    """Raised when a single file body cannot be retrieved.

    Unlike the repository level errors this one is recoverable: callers skip
    the file and keep going.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {path}: {reason}")
        self.path = path
        self.reason = reason


class AnalysisError(CompgraphError):
    """Raised when a source file cannot be parsed by any strategy."""


__all__ = [
    "AnalysisError",
    "CompgraphError",
    "ConfigError",
    "FileFetchError",
    "InvalidRepositoryError",
    "RepositoryFetchError",
    "RepositoryNotFoundError",
]

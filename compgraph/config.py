"""Configuration loading for compgraph (.compgraph.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".compgraph.yml"

_ENV_TOKEN_KEYS = ("COMPGRAPH_GITHUB_TOKEN", "GITHUB_TOKEN")
_ENV_CACHE_DIR = "COMPGRAPH_CACHE_DIR"


@dataclass
class CacheConfig:
    """Where analysis results are cached and for how long."""

    directory: Path = Path(".cache") / "repos"
    ttl_hours: float = 24.0
    max_size_mb: float = 100.0
    enabled: bool = True

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_hours * 60 * 60

    @property
    def max_bytes(self) -> int:
        return int(self.max_size_mb * 1024 * 1024)


@dataclass
class GitHubConfig:
    """Upstream endpoints and credentials."""

    token: Optional[str] = None
    api_base: str = "https://api.github.com"
    raw_base: str = "https://raw.githubusercontent.com"
    timeout: float = 30.0
    user_agent: str = "compgraph-analyzer"


@dataclass
class AnalysisConfig:
    """Knobs for the per-file analysis loop."""

    mode: str = "remote"
    pace_every: int = 10
    pace_delay: float = 0.1
    max_files: Optional[int] = None
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class CompgraphConfig:
    """Represents the settings defined in .compgraph.yml plus environment overrides."""

    root: Path
    cache: CacheConfig = field(default_factory=CacheConfig)
    github: GitHubConfig = field(default_factory=GitHubConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)


def load_config(config_path: Path | None = None) -> CompgraphConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path or Path.cwd())
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    cache = CacheConfig()
    cache_data = _as_dict(data.get("cache"))
    if cache_data:
        directory = _as_str(cache_data.get("directory"))
        if directory:
            cache.directory = Path(directory)
        ttl = _as_float(cache_data.get("ttl_hours"))
        if ttl is not None:
            cache.ttl_hours = ttl
        max_size = _as_float(cache_data.get("max_size_mb"))
        if max_size is not None:
            cache.max_size_mb = max_size
        enabled = _as_bool(cache_data.get("enabled"))
        if enabled is not None:
            cache.enabled = enabled

    github = GitHubConfig()
    github_data = _as_dict(data.get("github"))
    if github_data:
        github.token = _as_str(github_data.get("token"))
        github.api_base = (_as_str(github_data.get("api_base")) or github.api_base).rstrip("/")
        github.raw_base = (_as_str(github_data.get("raw_base")) or github.raw_base).rstrip("/")
        timeout = _as_float(github_data.get("timeout"))
        if timeout is not None:
            github.timeout = timeout
        github.user_agent = _as_str(github_data.get("user_agent")) or github.user_agent

    analysis = AnalysisConfig()
    analysis_data = _as_dict(data.get("analysis"))
    if analysis_data:
        mode = _as_str(analysis_data.get("mode"))
        if mode:
            if mode not in {"remote", "archive"}:
                raise ConfigError(f"analysis.mode must be 'remote' or 'archive', got {mode!r}")
            analysis.mode = mode
        pace_every = _as_int(analysis_data.get("pace_every"))
        if pace_every is not None:
            analysis.pace_every = pace_every
        pace_delay = _as_float(analysis_data.get("pace_delay"))
        if pace_delay is not None:
            analysis.pace_delay = pace_delay
        analysis.max_files = _as_int(analysis_data.get("max_files"))
        analysis.exclude_paths = _as_str_list(analysis_data.get("exclude_paths"))

    _apply_env_overrides(cache, github)

    if not cache.directory.is_absolute():
        cache.directory = root / cache.directory

    return CompgraphConfig(root=root, cache=cache, github=github, analysis=analysis)


def _apply_env_overrides(cache: CacheConfig, github: GitHubConfig) -> None:
    cache_dir = os.getenv(_ENV_CACHE_DIR)
    if cache_dir:
        cache.directory = Path(cache_dir)
    if not github.token:
        github.token = _first_env_value(_ENV_TOKEN_KEYS)


def _first_env_value(keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "AnalysisConfig",
    "CONFIG_FILENAME",
    "CacheConfig",
    "CompgraphConfig",
    "GitHubConfig",
    "load_config",
]

"""Persistent cache for complete repository analysis results."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from ..logging import get_logger
from ..models import CacheRecord, Entity, FileRecord, RepoCoordinates

CACHE_VERSION = "1.0.0"
DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_BYTES = 100 * 1024 * 1024

_SUFFIX = ".json"

logger = get_logger("cache")


def make_cache_key(location: str, branch: str = "main") -> str:
    """Return the fingerprint for a repository location and branch."""
    normalized = location.strip().lower().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return hashlib.sha256(f"{normalized}#{branch}".encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RecordSummary:
    """What the eviction policy needs to know about one stored record."""

    key: str
    modified: float
    size: int
    valid: bool


@dataclass(frozen=True)
class CacheStats:
    """Aggregate view of the cache directory."""

    count: int
    total_bytes: int
    oldest: Optional[datetime] = None
    newest: Optional[datetime] = None


def plan_evictions(summaries: Iterable[RecordSummary], *, max_bytes: int) -> Set[str]:
    """Return the keys to delete so the cache holds only valid records under ``max_bytes``.

    Invalid records (expired, stale version or unreadable) are always evicted.
    The survivors are then evicted oldest-modified first until their combined
    size fits under the ceiling.
    """
    doomed: Set[str] = set()
    survivors: List[RecordSummary] = []
    for summary in summaries:
        if summary.valid:
            survivors.append(summary)
        else:
            doomed.add(summary.key)

    total = sum(summary.size for summary in survivors)
    if total <= max_bytes:
        return doomed

    for summary in sorted(survivors, key=lambda item: (item.modified, item.key)):
        if total <= max_bytes:
            break
        doomed.add(summary.key)
        total -= summary.size
    return doomed


def is_payload_valid(payload: object, *, version: str, now: float) -> bool:
    """Return True when a stored payload matches ``version`` and has not expired."""
    if not isinstance(payload, dict):
        return False
    if payload.get("version") != version:
        return False
    expires_at = payload.get("expiresAt")
    if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
        return False
    return now < expires_at


class RepoCache:
    """Stores analysis results as one JSON document per (location, branch) fingerprint.

    Storage errors never escape: a failed read is a miss and a failed write
    is logged and dropped.
    """

    def __init__(
        self,
        directory: Path,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        version: str = CACHE_VERSION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.ttl_seconds = ttl_seconds
        self.max_bytes = max_bytes
        self.version = version
        self._clock = clock

    def get(self, location: str, branch: str = "main") -> Optional[CacheRecord]:
        key = make_cache_key(location, branch)
        path = self._path_for(key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Failed to read cache record %s: %s", path.name, exc)
            return None

        try:
            payload = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            logger.warning("Discarding corrupt cache record %s: %s", path.name, exc)
            self._discard(path)
            return None

        if not is_payload_valid(payload, version=self.version, now=self._clock()):
            logger.debug("Cache record for %s#%s is stale; removing", location, branch)
            self._discard(path)
            return None

        record = _record_from_payload(key, payload)
        if record is None:
            logger.warning("Discarding malformed cache record %s", path.name)
            self._discard(path)
            return None

        logger.info("Cache hit for %s#%s", location, branch)
        return record

    def put(
        self,
        location: str,
        branch: str,
        entities: Sequence[Entity],
        files: Sequence[FileRecord],
        repository: RepoCoordinates,
    ) -> None:
        key = make_cache_key(location, branch)
        now = self._clock()
        payload = {
            "repoUrl": location,
            "branch": branch,
            "timestamp": now,
            "expiresAt": now + self.ttl_seconds,
            "version": self.version,
            "components": [entity.to_dict() for entity in entities],
            "allFiles": [record.to_dict() for record in files],
            "repository": repository.to_dict(),
        }
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            self._write_atomic(self._path_for(key), json.dumps(payload, indent=2))
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to write cache record for %s#%s: %s", location, branch, exc)
            return
        logger.info("Cached %d entities for %s#%s", len(entities), location, branch)
        self._evict()

    def stats(self) -> CacheStats:
        count = 0
        total = 0
        oldest: Optional[float] = None
        newest: Optional[float] = None
        try:
            paths = self._record_paths()
        except OSError as exc:
            logger.warning("Failed to list cache directory %s: %s", self.directory, exc)
            return CacheStats(count=0, total_bytes=0)

        for path in paths:
            try:
                stat_result = path.stat()
            except OSError:
                continue
            count += 1
            total += stat_result.st_size
            mtime = stat_result.st_mtime
            if oldest is None or mtime < oldest:
                oldest = mtime
            if newest is None or mtime > newest:
                newest = mtime

        return CacheStats(
            count=count,
            total_bytes=total,
            oldest=_to_datetime(oldest),
            newest=_to_datetime(newest),
        )

    def clear(self) -> int:
        removed = 0
        try:
            paths = self._record_paths()
        except OSError as exc:
            logger.warning("Failed to list cache directory %s: %s", self.directory, exc)
            return 0
        for path in paths:
            if self._discard(path):
                removed += 1
        logger.info("Cleared %d cache records", removed)
        return removed

    # ------------------------------------------------------------------
    # Internal helpers

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{key}{_SUFFIX}"

    def _record_paths(self) -> List[Path]:
        if not self.directory.exists():
            return []
        return sorted(path for path in self.directory.iterdir() if path.suffix == _SUFFIX)

    def _summaries(self, now: float) -> List[RecordSummary]:
        summaries: List[RecordSummary] = []
        for path in self._record_paths():
            try:
                stat_result = path.stat()
            except OSError:
                continue
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                payload = None
            summaries.append(
                RecordSummary(
                    key=path.stem,
                    modified=stat_result.st_mtime,
                    size=stat_result.st_size,
                    valid=is_payload_valid(payload, version=self.version, now=now),
                )
            )
        return summaries

    def _evict(self) -> None:
        try:
            summaries = self._summaries(self._clock())
        except OSError as exc:
            logger.warning("Skipping cache cleanup: %s", exc)
            return
        for key in sorted(plan_evictions(summaries, max_bytes=self.max_bytes)):
            if self._discard(self._path_for(key)):
                logger.debug("Evicted cache record %s", key)

    @staticmethod
    def _write_atomic(path: Path, text: str) -> None:
        handle, temp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(handle, "w", encoding="utf-8") as stream:
                stream.write(text)
            os.replace(temp_name, path)
        except BaseException:
            try:
                os.unlink(temp_name)
            except OSError:
                pass
            raise

    @staticmethod
    def _discard(path: Path) -> bool:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Failed to remove cache record %s: %s", path.name, exc)
            return False
        return True


def _record_from_payload(key: str, payload: Dict[str, object]) -> Optional[CacheRecord]:
    repository = RepoCoordinates.from_dict(payload.get("repository"))
    repo_url = payload.get("repoUrl")
    branch = payload.get("branch")
    timestamp = payload.get("timestamp")
    if (
        repository is None
        or not isinstance(repo_url, str)
        or not isinstance(branch, str)
        or not isinstance(timestamp, (int, float))
    ):
        return None

    entities: List[Entity] = []
    raw_entities = payload.get("components")
    if isinstance(raw_entities, list):
        for raw in raw_entities:
            entity = Entity.from_dict(raw)
            if entity is not None:
                entities.append(entity)

    files: List[FileRecord] = []
    raw_files = payload.get("allFiles")
    if isinstance(raw_files, list):
        for raw in raw_files:
            record = FileRecord.from_dict(raw)
            if record is not None:
                files.append(record)

    return CacheRecord(
        key=key,
        repo_url=repo_url,
        branch=branch,
        timestamp=float(timestamp),
        expires_at=float(payload["expiresAt"]),  # validated by is_payload_valid
        version=str(payload["version"]),
        entities=entities,
        files=files,
        repository=repository,
    )


def _to_datetime(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, UTC)


__all__ = [
    "CACHE_VERSION",
    "CacheStats",
    "RecordSummary",
    "RepoCache",
    "is_payload_valid",
    "make_cache_key",
    "plan_evictions",
]

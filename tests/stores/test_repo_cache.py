"""Tests for the repository result cache."""

from __future__ import annotations

import json
import os
from pathlib import Path

from compgraph.models import Entity, EntityRole, FileRecord, InterfaceField, RepoCoordinates
from compgraph.stores import RepoCache, make_cache_key, plan_evictions
from compgraph.stores.repo_cache import RecordSummary, is_payload_valid

REPO = "https://github.com/acme/widgets"


class _Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _entities() -> list[Entity]:
    return [
        Entity(
            name="Button",
            role=EntityRole.COMPONENT,
            file="components/Button.tsx",
            props=[InterfaceField(name="label", type="string", required=True)],
            uses=["Icon"],
            used_by=["Page"],
            content="export default function Button() {}",
            is_client=True,
        )
    ]


def _files() -> list[FileRecord]:
    return [
        FileRecord(path="components", type="tree", url="https://example/tree"),
        FileRecord(path="components/Button.tsx", type="blob", url="https://example/blob"),
    ]


def test_cache_round_trip(tmp_path: Path) -> None:
    clock = _Clock()
    cache = RepoCache(tmp_path / "cache", clock=clock)
    coords = RepoCoordinates(owner="acme", name="widgets", branch="main")

    cache.put(REPO, "main", _entities(), _files(), coords)
    record = cache.get(REPO, "main")

    assert record is not None
    assert record.entities == _entities()
    assert record.files == _files()
    assert record.repository == coords
    assert record.expires_at == clock.now + 24 * 60 * 60
    assert record.version == "1.0.0"


def test_cache_key_normalises_location() -> None:
    assert make_cache_key("https://github.com/Acme/Widgets.git") == make_cache_key(
        "https://github.com/acme/widgets/"
    )
    assert make_cache_key(REPO, "main") != make_cache_key(REPO, "dev")


def test_version_change_invalidates_and_removes_record(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    coords = RepoCoordinates(owner="acme", name="widgets")
    RepoCache(directory, version="1.0.0").put(REPO, "main", _entities(), _files(), coords)

    newer = RepoCache(directory, version="2.0.0")
    assert newer.get(REPO, "main") is None
    assert list(directory.glob("*.json")) == []


def test_expired_record_is_a_miss(tmp_path: Path) -> None:
    clock = _Clock()
    cache = RepoCache(tmp_path / "cache", ttl_seconds=60, clock=clock)
    cache.put(REPO, "main", _entities(), _files(), RepoCoordinates(owner="acme", name="widgets"))

    clock.now += 61
    assert cache.get(REPO, "main") is None


def test_corrupt_record_is_discarded(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    directory.mkdir()
    path = directory / f"{make_cache_key(REPO, 'main')}.json"
    path.write_text("{not json", encoding="utf-8")

    cache = RepoCache(directory)
    assert cache.get(REPO, "main") is None
    assert not path.exists()


def test_undecodable_record_is_discarded(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    directory.mkdir()
    path = directory / f"{make_cache_key(REPO, 'main')}.json"
    path.write_bytes(b"\xff\xfe{bad")

    cache = RepoCache(directory)
    assert cache.get(REPO, "main") is None
    assert not path.exists()


def test_put_evicts_undecodable_neighbour(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    directory.mkdir()
    neighbour = directory / "other.json"
    neighbour.write_bytes(b"\xff\xfe{bad")

    cache = RepoCache(directory)
    cache.put(REPO, "main", _entities(), _files(), RepoCoordinates(owner="acme", name="widgets"))

    assert cache.get(REPO, "main") is not None
    assert not neighbour.exists()


def test_stats_and_clear(tmp_path: Path) -> None:
    cache = RepoCache(tmp_path / "cache")
    coords = RepoCoordinates(owner="acme", name="widgets")
    cache.put(REPO, "main", _entities(), _files(), coords)
    cache.put(REPO, "dev", [], _files(), coords)

    stats = cache.stats()
    assert stats.count == 2
    assert stats.total_bytes > 0
    assert stats.oldest is not None and stats.newest is not None
    assert stats.oldest <= stats.newest

    assert cache.clear() == 2
    assert cache.stats().count == 0


def test_stats_on_missing_directory(tmp_path: Path) -> None:
    stats = RepoCache(tmp_path / "absent").stats()
    assert stats.count == 0
    assert stats.oldest is None


def test_put_evicts_oldest_when_over_ceiling(tmp_path: Path) -> None:
    directory = tmp_path / "cache"
    coords = RepoCoordinates(owner="acme", name="widgets")
    roomy = RepoCache(directory)
    roomy.put(REPO, "old", _entities(), _files(), coords)
    old_path = directory / f"{make_cache_key(REPO, 'old')}.json"
    os.utime(old_path, (1, 1))

    size = old_path.stat().st_size
    tight = RepoCache(directory, max_bytes=size + size // 2)
    tight.put(REPO, "new", _entities(), _files(), coords)

    assert not old_path.exists()
    assert tight.get(REPO, "new") is not None


def test_plan_evictions_drops_invalid_then_oldest() -> None:
    summaries = [
        RecordSummary(key="stale", modified=5.0, size=10, valid=False),
        RecordSummary(key="a", modified=1.0, size=40, valid=True),
        RecordSummary(key="b", modified=2.0, size=40, valid=True),
        RecordSummary(key="c", modified=3.0, size=40, valid=True),
    ]

    assert plan_evictions(summaries, max_bytes=200) == {"stale"}
    assert plan_evictions(summaries, max_bytes=80) == {"stale", "a"}
    assert plan_evictions(summaries, max_bytes=0) == {"stale", "a", "b", "c"}


def test_is_payload_valid_checks_version_and_expiry() -> None:
    payload = {"version": "1.0.0", "expiresAt": 100.0}
    assert is_payload_valid(payload, version="1.0.0", now=99.0)
    assert not is_payload_valid(payload, version="1.0.0", now=100.0)
    assert not is_payload_valid(payload, version="0.9.0", now=0.0)
    assert not is_payload_valid(None, version="1.0.0", now=0.0)


def test_written_record_uses_wire_keys(tmp_path: Path) -> None:
    cache = RepoCache(tmp_path / "cache")
    cache.put(REPO, "main", _entities(), _files(), RepoCoordinates(owner="acme", name="widgets"))

    (path,) = list((tmp_path / "cache").glob("*.json"))
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert set(payload) == {
        "repoUrl",
        "branch",
        "timestamp",
        "expiresAt",
        "version",
        "components",
        "allFiles",
        "repository",
    }
    assert payload["components"][0]["usedBy"] == ["Page"]
    assert payload["components"][0]["isClient"] is True

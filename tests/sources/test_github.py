"""Tests for the GitHub backed sources using a mocked transport."""

from __future__ import annotations

import base64
import io
import json
import tarfile
from pathlib import Path

import httpx
import pytest

from compgraph.config import GitHubConfig
from compgraph.errors import (
    FileFetchError,
    InvalidRepositoryError,
    RepositoryFetchError,
    RepositoryNotFoundError,
)
from compgraph.models import RepoCoordinates
from compgraph.sources import ArchiveSource, GitHubClient, GitHubSource, is_excluded, parse_repo_url

COORDS = RepoCoordinates(owner="acme", name="widgets", branch="main")


def _client(handler) -> GitHubClient:
    return GitHubClient(GitHubConfig(token="secret"), transport=httpx.MockTransport(handler))


def _tarball(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, text in files.items():
            data = text.encode("utf-8")
            info = tarfile.TarInfo(name=f"acme-widgets-abc123/{name}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def test_parse_repo_url_variants() -> None:
    assert parse_repo_url("https://github.com/acme/widgets") == COORDS
    assert parse_repo_url("https://github.com/acme/widgets.git", "dev").branch == "dev"
    assert parse_repo_url("https://github.com/acme/widgets/tree/main/src").name == "widgets"
    assert parse_repo_url("acme/widgets") == COORDS


def test_parse_repo_url_rejects_garbage() -> None:
    with pytest.raises(InvalidRepositoryError):
        parse_repo_url("not a repository")


def test_is_excluded_matches_whole_segments() -> None:
    assert is_excluded("node_modules/react/index.js")
    assert is_excluded("apps/web/.next/server.js")
    assert not is_excluded("src/builder/Form.tsx")


def test_fetch_tree_lists_entries_with_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "tree": [
                    {"path": "src", "type": "tree", "url": "u1"},
                    {"path": "src/App.tsx", "type": "blob", "url": "u2"},
                    {"path": "vendor", "type": "commit", "url": "u3"},
                ],
                "truncated": False,
            },
        )

    client = _client(handler)
    records = client.fetch_tree(COORDS)

    assert [record.path for record in records] == ["src", "src/App.tsx"]
    assert seen[0].url.path == "/repos/acme/widgets/git/trees/main"
    assert seen[0].url.params["recursive"] == "1"
    assert seen[0].headers["Authorization"] == "token secret"


def test_fetch_tree_not_found() -> None:
    client = _client(lambda request: httpx.Response(404, json={"message": "Not Found"}))
    with pytest.raises(RepositoryNotFoundError, match="Repository not found"):
        client.fetch_tree(COORDS)


def test_fetch_tree_upstream_failure() -> None:
    client = _client(lambda request: httpx.Response(500))
    with pytest.raises(RepositoryFetchError, match="500"):
        client.fetch_tree(COORDS)


def test_read_text_falls_back_to_contents_api() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "raw.githubusercontent.com":
            return httpx.Response(429)
        encoded = base64.b64encode(b"export default function App() {}").decode("ascii")
        return httpx.Response(200, json={"content": encoded, "size": 32})

    source = GitHubSource(COORDS, _client(handler))
    assert source.read_text("src/App.tsx") == "export default function App() {}"


def test_read_text_raises_when_both_paths_fail() -> None:
    source = GitHubSource(COORDS, _client(lambda request: httpx.Response(404)))
    with pytest.raises(FileFetchError) as excinfo:
        source.read_text("missing.ts")
    assert excinfo.value.path == "missing.ts"


def test_archive_source_extracts_and_cleans_up(tmp_path: Path) -> None:
    payload = _tarball({"src/App.tsx": "export default function App() {}", "README.md": "# hi"})

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/acme/widgets/tarball/main"
        return httpx.Response(200, content=payload)

    source = ArchiveSource(COORDS, _client(handler), scratch_root=tmp_path)
    with source:
        scratch = source.scratch_dir
        assert scratch is not None and scratch.exists()
        records = {record.path: record for record in source.list_files()}
        assert records["src"].type == "tree"
        assert records["src/App.tsx"].url == "https://github.com/acme/widgets/blob/main/src/App.tsx"
        assert source.read_text("src/App.tsx").startswith("export default")

    assert not scratch.exists()


def test_archive_source_cleans_up_on_failed_download(tmp_path: Path) -> None:
    source = ArchiveSource(COORDS, _client(lambda request: httpx.Response(404)), scratch_root=tmp_path)
    with pytest.raises(RepositoryNotFoundError):
        source.open()
    assert list(tmp_path.iterdir()) == []


def test_archive_extraction_skips_escaping_members(tmp_path: Path) -> None:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name in ("root/ok.ts", "root/../../evil.ts"):
            data = b"export {}"
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))

    source = ArchiveSource(
        COORDS, _client(lambda request: httpx.Response(200, content=buffer.getvalue())), scratch_root=tmp_path
    )
    with source:
        paths = [record.path for record in source.list_files()]
    assert paths == ["ok.ts"]
    assert not (tmp_path / "evil.ts").exists()


def test_tree_invalid_json_is_fetch_error() -> None:
    client = _client(lambda request: httpx.Response(200, content=b"<html>"))
    with pytest.raises(RepositoryFetchError):
        client.fetch_tree(COORDS)


def test_contents_payload_without_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "raw.githubusercontent.com":
            return httpx.Response(500)
        return httpx.Response(200, content=json.dumps({"content": ""}).encode())

    with pytest.raises(FileFetchError, match="no content"):
        GitHubSource(COORDS, _client(handler)).read_text("empty.ts")

"""GitHub backed repository sources (tree listing and tarball archive)."""

from __future__ import annotations

import base64
import shutil
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from ..config import GitHubConfig
from ..errors import (
    FileFetchError,
    RepositoryFetchError,
    RepositoryNotFoundError,
)
from ..logging import get_logger
from ..models import FileRecord, RepoCoordinates
from .base import RepoSource
from .local import LocalSource

logger = get_logger("sources.github")

_NOT_FOUND_MESSAGE = "Repository not found or branch does not exist"


class GitHubClient:
    """Thin wrapper over the GitHub REST API and the raw content mirror."""

    def __init__(
        self,
        config: GitHubConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or GitHubConfig()
        self._client = httpx.Client(
            timeout=self.config.timeout,
            headers={"User-Agent": self.config.user_agent},
            follow_redirects=True,
            transport=transport,
        )

    def _api_headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github.v3+json"}
        if self.config.token:
            headers["Authorization"] = f"token {self.config.token}"
        return headers

    def fetch_tree(self, coords: RepoCoordinates) -> List[FileRecord]:
        """Return every entry of the branch tree with a single recursive query."""
        url = (
            f"{self.config.api_base}/repos/{coords.owner}/{coords.name}"
            f"/git/trees/{quote(coords.branch, safe='')}"
        )
        logger.info("Fetching repository tree for %s@%s", coords.slug, coords.branch)
        try:
            response = self._client.get(url, params={"recursive": "1"}, headers=self._api_headers())
        except httpx.HTTPError as exc:
            raise RepositoryFetchError(f"GitHub API request failed: {exc}") from exc

        if response.status_code == 404:
            raise RepositoryNotFoundError(_NOT_FOUND_MESSAGE)
        if response.is_error:
            raise RepositoryFetchError(f"GitHub API error: {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise RepositoryFetchError("GitHub API returned invalid JSON") from exc

        tree = payload.get("tree") if isinstance(payload, dict) else None
        if not isinstance(tree, list):
            raise RepositoryFetchError("GitHub API response did not include a tree")
        if payload.get("truncated"):
            logger.warning("Tree listing for %s was truncated by GitHub", coords.slug)

        records: List[FileRecord] = []
        for item in tree:
            record = FileRecord.from_dict(item)
            if record is not None:
                records.append(record)
        return records

    def fetch_raw(self, coords: RepoCoordinates, path: str) -> str:
        """Fetch a file body from the unauthenticated raw content mirror."""
        url = (
            f"{self.config.raw_base}/{coords.owner}/{coords.name}"
            f"/{quote(coords.branch)}/{quote(path)}"
        )
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise FileFetchError(path, str(exc)) from exc
        if response.is_error:
            raise FileFetchError(path, f"raw mirror returned {response.status_code}")
        return response.text

    def fetch_contents(self, coords: RepoCoordinates, path: str) -> str:
        """Fetch a file body through the authenticated contents API."""
        url = f"{self.config.api_base}/repos/{coords.owner}/{coords.name}/contents/{quote(path)}"
        try:
            response = self._client.get(
                url, params={"ref": coords.branch}, headers=self._api_headers()
            )
        except httpx.HTTPError as exc:
            raise FileFetchError(path, str(exc)) from exc
        if response.is_error:
            raise FileFetchError(path, f"contents API returned {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise FileFetchError(path, "contents API returned invalid JSON") from exc
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, str) or not content:
            raise FileFetchError(path, "no content found in file")
        try:
            return base64.b64decode(content).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as exc:
            raise FileFetchError(path, f"undecodable content: {exc}") from exc

    def download_archive(self, coords: RepoCoordinates, destination: Path) -> Path:
        """Stream the branch tarball to ``destination`` and return its path."""
        url = f"{self.config.api_base}/repos/{coords.owner}/{coords.name}/tarball/{quote(coords.branch)}"
        logger.info("Downloading archive for %s@%s", coords.slug, coords.branch)
        try:
            with self._client.stream("GET", url, headers=self._api_headers()) as response:
                if response.status_code == 404:
                    raise RepositoryNotFoundError(_NOT_FOUND_MESSAGE)
                if response.is_error:
                    raise RepositoryFetchError(
                        f"Failed to download repository: {response.status_code}"
                    )
                with destination.open("wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
        except httpx.HTTPError as exc:
            raise RepositoryFetchError(f"Failed to download repository: {exc}") from exc
        return destination

    def close(self) -> None:
        self._client.close()


class GitHubSource(RepoSource):
    """Remote listing strategy: one tree query plus per-file body fetches.

    Bodies come from the raw mirror first; on any failure the authenticated
    contents API is tried before the file is reported as unavailable.
    """

    def __init__(self, coordinates: RepoCoordinates, client: GitHubClient) -> None:
        self.coordinates = coordinates
        self.client = client

    def list_files(self) -> List[FileRecord]:
        return self.client.fetch_tree(self.coordinates)

    def read_text(self, path: str) -> str:
        try:
            return self.client.fetch_raw(self.coordinates, path)
        except FileFetchError as exc:
            logger.debug("Raw mirror failed for %s (%s); falling back to API", path, exc.reason)
        return self.client.fetch_contents(self.coordinates, path)

    def close(self) -> None:
        self.client.close()


class ArchiveSource(RepoSource):
    """Archive strategy: download the tarball into a scratch directory and read from disk.

    The scratch directory is removed by ``close`` and also when ``open``
    itself fails part way through. Closing a source also closes its client.
    """

    def __init__(
        self,
        coordinates: RepoCoordinates,
        client: GitHubClient,
        *,
        scratch_root: Path | None = None,
    ) -> None:
        self.coordinates = coordinates
        self.client = client
        self._scratch_root = scratch_root
        self.scratch_dir: Optional[Path] = None
        self._local: Optional[LocalSource] = None

    def open(self) -> "ArchiveSource":
        if self._local is not None:
            return self
        prefix = f"repo-{self.coordinates.owner}-{self.coordinates.name}-"
        self.scratch_dir = Path(tempfile.mkdtemp(prefix=prefix, dir=self._scratch_root))
        try:
            archive = self.client.download_archive(
                self.coordinates, self.scratch_dir / "repo.tar.gz"
            )
            checkout = self.scratch_dir / "checkout"
            checkout.mkdir()
            _extract_stripped(archive, checkout)
            archive.unlink()
            self._local = LocalSource(checkout, coordinates=self.coordinates)
        except BaseException:
            self.close()
            raise
        return self

    def list_files(self) -> List[FileRecord]:
        local = self._require_local()
        base = f"https://github.com/{self.coordinates.owner}/{self.coordinates.name}"
        records: List[FileRecord] = []
        for record in local.list_files():
            records.append(
                FileRecord(
                    path=record.path,
                    type=record.type,
                    url=f"{base}/{record.type}/{self.coordinates.branch}/{record.path}",
                )
            )
        return records

    def read_text(self, path: str) -> str:
        return self._require_local().read_text(path)

    def close(self) -> None:
        self._local = None
        self.client.close()
        if self.scratch_dir is not None:
            shutil.rmtree(self.scratch_dir, ignore_errors=True)
            logger.debug("Removed scratch directory %s", self.scratch_dir)
            self.scratch_dir = None

    def _require_local(self) -> LocalSource:
        if self._local is None:
            raise RuntimeError("ArchiveSource must be opened before use")
        return self._local


def _extract_stripped(archive: Path, destination: Path) -> None:
    """Extract ``archive`` into ``destination`` dropping the top-level folder."""
    root = destination.resolve()
    try:
        with tarfile.open(archive, "r:*") as tar:
            for member in tar.getmembers():
                parts = PurePosixPath(member.name).parts[1:]
                if not parts:
                    continue
                target = root.joinpath(*parts).resolve()
                if not target.is_relative_to(root):
                    logger.warning("Skipping archive member outside checkout: %s", member.name)
                    continue
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isfile():
                    source = tar.extractfile(member)
                    if source is None:
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    with source, target.open("wb") as handle:
                        shutil.copyfileobj(source, handle)
    except (tarfile.TarError, OSError) as exc:
        raise RepositoryFetchError(f"Failed to extract repository archive: {exc}") from exc


__all__ = ["ArchiveSource", "GitHubClient", "GitHubSource"]

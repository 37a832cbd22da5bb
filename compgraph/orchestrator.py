"""Coordinates fetch, analysis, resolution and caching for one repository run."""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

from .analyzers import ComponentAnalyzer
from .analyzers.classifier import candidate_priority, is_source_file
from .config import CompgraphConfig, load_config
from .errors import CompgraphError, ConfigError, FileFetchError
from .events import (
    AnalysisEvent,
    CompleteEvent,
    ComponentEvent,
    ErrorEvent,
    FilesEvent,
    ProgressEvent,
    StatusEvent,
)
from .logging import get_logger, log_exception
from .models import AnalysisRun, CacheRecord, Entity, FileRecord, RepoCoordinates
from .resolver import resolve
from .sources import (
    ArchiveSource,
    GitHubClient,
    GitHubSource,
    LocalSource,
    RepoSource,
    is_excluded,
    parse_repo_url,
)
from .stores import RepoCache

MODES = ("remote", "archive")

SourceFactory = Callable[[RepoCoordinates, str], RepoSource]


@dataclass
class AnalysisRequest:
    """Inbound request for one repository analysis."""

    repo_url: str
    branch: str = "main"
    include_all_files: bool = False
    use_cache: bool = True
    mode: Optional[str] = None


class Orchestrator:
    """Runs the analysis pipeline and streams its progress as events.

    ``analyze`` is a generator: events are produced while later files are
    still pending, and closing the generator stops the run and releases
    the repository source.
    """

    def __init__(
        self,
        config: CompgraphConfig | None = None,
        *,
        cache: RepoCache | None = None,
        analyzer: ComponentAnalyzer | None = None,
        source_factory: SourceFactory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config or load_config()
        self.cache = cache if cache is not None else self._build_cache(self.config)
        self.analyzer = analyzer or ComponentAnalyzer()
        self._source_factory = source_factory or self._default_source
        self._sleep = sleep
        self.logger = get_logger("orchestrator")

    def analyze(self, request: AnalysisRequest) -> Iterator[AnalysisEvent]:
        """Yield events for ``request`` ending with exactly one complete or error event."""
        try:
            yield from self._run(request)
        except CompgraphError as exc:
            self.logger.error("Analysis of %s failed: %s", request.repo_url, exc)
            yield ErrorEvent(message=str(exc))
        except Exception as exc:
            log_exception(self.logger, f"Unexpected failure analyzing {request.repo_url}", exc)
            yield ErrorEvent(message=f"Analysis failed: {exc}")

    def analyze_local(
        self, path: str | Path, *, include_all_files: bool = False
    ) -> Iterator[AnalysisEvent]:
        """Analyze a checkout on disk; results are never cached."""
        try:
            source = LocalSource(path, exclude_paths=self.config.analysis.exclude_paths)
        except OSError as exc:
            self.logger.error("Cannot analyze %s: %s", path, exc)
            yield ErrorEvent(message=str(exc))
            return
        except Exception as exc:
            log_exception(self.logger, f"Cannot analyze {path}", exc)
            yield ErrorEvent(message=f"Analysis failed: {exc}")
            return
        try:
            yield StatusEvent(message=f"Scanning {source.root}...")
            yield from self._stream(source, include_all_files=include_all_files, cache_location=None)
        except CompgraphError as exc:
            self.logger.error("Analysis of %s failed: %s", path, exc)
            yield ErrorEvent(message=str(exc))
        except Exception as exc:
            log_exception(self.logger, f"Unexpected failure analyzing {path}", exc)
            yield ErrorEvent(message=f"Analysis failed: {exc}")

    def fetch_file(self, repo_url: str, file_path: str, branch: str = "main") -> str:
        """Return the text of a single repository file (raises FileFetchError)."""
        coords = parse_repo_url(repo_url, branch)
        with GitHubSource(coords, GitHubClient(self.config.github)) as source:
            return source.read_text(file_path)

    # ------------------------------------------------------------------
    # Pipeline

    def _run(self, request: AnalysisRequest) -> Iterator[AnalysisEvent]:
        coords = parse_repo_url(request.repo_url, request.branch)
        mode = request.mode or self.config.analysis.mode
        if mode not in MODES:
            raise ConfigError(f"Unknown analysis mode {mode!r}")
        location = f"https://github.com/{coords.slug}"

        if request.use_cache and self.cache is not None:
            yield StatusEvent(message="Checking cache...")
            record = self.cache.get(location, coords.branch)
            if record is not None:
                yield from self._replay(record, include_all_files=request.include_all_files)
                return

        yield StatusEvent(message="Fetching repository structure...")
        self.logger.info("Analyzing %s@%s (%s mode)", coords.slug, coords.branch, mode)
        source = self._source_factory(coords, mode)
        yield from self._stream(
            source, include_all_files=request.include_all_files, cache_location=location
        )

    def _stream(
        self,
        source: RepoSource,
        *,
        include_all_files: bool,
        cache_location: Optional[str],
    ) -> Iterator[AnalysisEvent]:
        with source:
            files = [record for record in source.list_files() if not is_excluded(record.path)]
            yield FilesEvent(files=files, repository=source.coordinates)

            candidates = self.select_candidates(files, include_all_files=include_all_files)
            yield StatusEvent(message=f"Found {len(candidates)} files to analyze...")

            run = AnalysisRun(total=len(candidates))
            entities: List[Entity] = []
            for event in self._analyze_candidates(source, candidates, run):
                if isinstance(event, ComponentEvent):
                    entities.append(event.entity)
                yield event

        resolve(entities)
        if run.skipped:
            self.logger.info("Skipped %d unreadable files", len(run.skipped))

        if cache_location is not None and self.cache is not None:
            coords = source.coordinates
            self.cache.put(cache_location, coords.branch, entities, files, coords)

        self.logger.info("Analysis complete: %d entities from %d files", len(entities), run.total)
        yield CompleteEvent(
            entities=entities,
            total_files=run.total,
            analyzed_files=len(entities),
            from_cache=False,
        )

    def _analyze_candidates(
        self, source: RepoSource, candidates: Sequence[FileRecord], run: AnalysisRun
    ) -> Iterator[AnalysisEvent]:
        pace_every = self.config.analysis.pace_every
        pace_delay = self.config.analysis.pace_delay
        for index, record in enumerate(candidates, start=1):
            if pace_every > 0 and pace_delay > 0 and index > 1 and (index - 1) % pace_every == 0:
                self._sleep(pace_delay)

            yield ProgressEvent(current=index, total=run.total, path=record.path)
            run.processed = index

            try:
                content = source.read_text(record.path)
            except FileFetchError as exc:
                self.logger.warning("Skipping %s: %s", record.path, exc.reason)
                run.skipped.append(record.path)
                continue

            try:
                entity = self.analyzer.analyze(record.path, content)
            except Exception as exc:
                log_exception(self.logger, f"Analyzer failed on {record.path}", exc)
                run.skipped.append(record.path)
                continue

            if entity is None:
                continue
            run.analyzed += 1
            self.logger.debug("Analyzed %s (%s) from %s", entity.name, entity.role.value, entity.file)
            yield ComponentEvent(entity=entity)

    def _replay(self, record: CacheRecord, *, include_all_files: bool) -> Iterator[AnalysisEvent]:
        yield StatusEvent(message="Loaded analysis from cache")
        yield FilesEvent(files=record.files, repository=record.repository)
        for entity in record.entities:
            yield ComponentEvent(entity=entity)
        total = len(self.select_candidates(record.files, include_all_files=include_all_files))
        yield CompleteEvent(
            entities=record.entities,
            total_files=total,
            analyzed_files=len(record.entities),
            from_cache=True,
        )

    def select_candidates(
        self, files: Sequence[FileRecord], *, include_all_files: bool = False
    ) -> List[FileRecord]:
        """Return the blobs to analyze, pages and layouts first."""
        blobs = [
            record
            for record in files
            if record.type == "blob" and not is_excluded(record.path)
        ]
        if not include_all_files:
            blobs = [record for record in blobs if is_source_file(record.path)]
        ordered = sorted(blobs, key=lambda record: candidate_priority(record.path))
        max_files = self.config.analysis.max_files
        if max_files is not None and max_files > 0:
            ordered = ordered[:max_files]
        return ordered

    # ------------------------------------------------------------------
    # Collaborators

    def _default_source(self, coords: RepoCoordinates, mode: str) -> RepoSource:
        client = GitHubClient(self.config.github)
        if mode == "archive":
            return ArchiveSource(coords, client)
        return GitHubSource(coords, client)

    @staticmethod
    def _build_cache(config: CompgraphConfig) -> RepoCache | None:
        if not config.cache.enabled:
            return None
        return RepoCache(
            config.cache.directory,
            ttl_seconds=config.cache.ttl_seconds,
            max_bytes=config.cache.max_bytes,
        )


__all__ = ["AnalysisRequest", "MODES", "Orchestrator", "SourceFactory"]

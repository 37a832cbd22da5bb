"""FastAPI application exposing analysis, cache management and file retrieval."""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from .. import __version__
from ..errors import FileFetchError, InvalidRepositoryError
from ..events import format_sse
from ..logging import get_logger
from ..orchestrator import AnalysisRequest, Orchestrator
from ..sources import parse_repo_url

logger = get_logger("service")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AnalyzeRequest(_WireModel):
    repo_url: str = Field(alias="repoUrl")
    branch: str = "main"
    include_all_files: bool = Field(default=False, alias="includeAllFiles")
    use_cache: bool = Field(default=True, alias="useCache")
    mode: Optional[str] = None


class FileContentRequest(_WireModel):
    repo_url: str = Field(alias="repoUrl")
    file_path: str = Field(alias="filePath")
    branch: str = "main"


class FileContentResponse(BaseModel):
    content: str
    filename: str
    size: int


class CacheStatsResponse(BaseModel):
    count: int
    totalSize: int
    totalSizeMB: float
    oldest: Optional[str] = None
    newest: Optional[str] = None


class CacheClearResponse(BaseModel):
    removed: int
    message: str


class HealthResponse(BaseModel):
    status: str
    version: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application serving compgraph operations."""

    app = FastAPI(title="compgraph", version=__version__)

    async def get_orchestrator() -> Orchestrator:
        # Lazy-instantiate per request to keep state predictable.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/analyze")
    async def analyze(
        payload: AnalyzeRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> StreamingResponse:
        # Reject malformed locations before the stream opens.
        parse_repo_url(payload.repo_url, payload.branch)
        request = AnalysisRequest(
            repo_url=payload.repo_url,
            branch=payload.branch,
            include_all_files=payload.include_all_files,
            use_cache=payload.use_cache,
            mode=payload.mode,
        )

        def _frames() -> Iterator[str]:
            for event in orchestrator.analyze(request):
                yield format_sse(event)

        return StreamingResponse(
            _frames(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/cache", response_model=CacheStatsResponse)
    async def cache_stats(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CacheStatsResponse:
        if orchestrator.cache is None:
            return CacheStatsResponse(count=0, totalSize=0, totalSizeMB=0.0)
        stats = orchestrator.cache.stats()
        return CacheStatsResponse(
            count=stats.count,
            totalSize=stats.total_bytes,
            totalSizeMB=round(stats.total_bytes / (1024 * 1024), 2),
            oldest=_isoformat(stats.oldest),
            newest=_isoformat(stats.newest),
        )

    @app.delete("/cache", response_model=CacheClearResponse)
    async def cache_clear(
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> CacheClearResponse:
        removed = orchestrator.cache.clear() if orchestrator.cache is not None else 0
        return CacheClearResponse(removed=removed, message="Cache cleared successfully")

    @app.post("/file-content", response_model=FileContentResponse)
    async def file_content(
        payload: FileContentRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> FileContentResponse:
        def _fetch() -> str:
            return orchestrator.fetch_file(payload.repo_url, payload.file_path, payload.branch)

        loop = asyncio.get_running_loop()
        content = await loop.run_in_executor(None, _fetch)
        return FileContentResponse(
            content=content,
            filename=payload.file_path.rsplit("/", 1)[-1],
            size=len(content.encode("utf-8")),
        )

    @app.exception_handler(InvalidRepositoryError)
    async def invalid_repository_handler(
        _: Any, exc: InvalidRepositoryError
    ) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(FileFetchError)
    async def file_fetch_handler(_: Any, exc: FileFetchError) -> JSONResponse:
        logger.info("File content request failed for %s: %s", exc.path, exc.reason)
        return JSONResponse(status_code=404, content={"error": "File not found"})

    return app


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def run_service(
    host: str = "0.0.0.0", port: int = 8000
) -> None:  # pragma: no cover - integration path
    app = create_app()
    uvicorn.run(app, host=host, port=port)

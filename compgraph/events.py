"""Events emitted by an analysis run and their Server-Sent Events encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Union

from .models import Entity, FileRecord, RepoCoordinates


@dataclass
class StatusEvent:
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "status", "message": self.message}


@dataclass
class FilesEvent:
    files: List[FileRecord]
    repository: RepoCoordinates

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "files",
            "allFiles": [record.to_dict() for record in self.files],
            "repository": self.repository.to_dict(),
        }


@dataclass
class ProgressEvent:
    current: int
    total: int
    path: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "progress", "current": self.current, "total": self.total, "path": self.path}


@dataclass
class ComponentEvent:
    entity: Entity

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "component", "component": self.entity.to_dict()}


@dataclass
class CompleteEvent:
    """Terminal success event."""

    entities: List[Entity] = field(default_factory=list)
    total_files: int = 0
    analyzed_files: int = 0
    from_cache: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "complete",
            "components": [entity.to_dict() for entity in self.entities],
            "totalFiles": self.total_files,
            "analyzedFiles": self.analyzed_files,
            "fromCache": self.from_cache,
        }


@dataclass
class ErrorEvent:
    """Terminal failure event."""

    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "error", "message": self.message}


AnalysisEvent = Union[
    StatusEvent, FilesEvent, ProgressEvent, ComponentEvent, CompleteEvent, ErrorEvent
]


def is_terminal(event: AnalysisEvent) -> bool:
    return isinstance(event, (CompleteEvent, ErrorEvent))


def format_sse(event: AnalysisEvent) -> str:
    """Encode ``event`` as a single ``data:`` frame."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


__all__ = [
    "AnalysisEvent",
    "CompleteEvent",
    "ComponentEvent",
    "ErrorEvent",
    "FilesEvent",
    "ProgressEvent",
    "StatusEvent",
    "format_sse",
    "is_terminal",
]

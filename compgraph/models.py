"""Core data models shared across compgraph components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class EntityRole(str, Enum):
    """Categorical role of a discovered entity."""

    PAGE = "page"
    LAYOUT = "layout"
    COMPONENT = "reusable-unit"
    HOOK = "stateful-hook"
    CONTEXT = "shared-context"
    UTILITY = "utility"


@dataclass
class InterfaceField:
    """One member of an entity's declared props interface."""

    name: str
    type: str
    required: bool
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
        }
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, payload: object) -> Optional["InterfaceField"]:
        if not isinstance(payload, dict):
            return None
        name = payload.get("name")
        type_text = payload.get("type")
        if not isinstance(name, str) or not isinstance(type_text, str):
            return None
        description = payload.get("description")
        return cls(
            name=name,
            type=type_text,
            required=bool(payload.get("required", False)),
            description=description if isinstance(description, str) else None,
        )


@dataclass
class Entity:
    """Metadata for a discovered structural unit (page, component, hook, ...)."""

    name: str
    role: EntityRole
    file: str
    description: Optional[str] = None
    props: List[InterfaceField] = field(default_factory=list)
    uses: List[str] = field(default_factory=list)
    used_by: List[str] = field(default_factory=list)
    exports: List[str] = field(default_factory=list)
    content: str = ""
    is_client: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.value,
            "file": self.file,
            "description": self.description,
            "props": [prop.to_dict() for prop in self.props],
            "uses": list(self.uses),
            "usedBy": list(self.used_by),
            "exports": list(self.exports),
            "content": self.content,
            "isClient": self.is_client,
        }

    @classmethod
    def from_dict(cls, payload: object) -> Optional["Entity"]:
        if not isinstance(payload, dict):
            return None
        name = payload.get("name")
        file = payload.get("file")
        if not isinstance(name, str) or not isinstance(file, str):
            return None
        try:
            role = EntityRole(payload.get("role"))
        except ValueError:
            return None
        description = payload.get("description")
        props: List[InterfaceField] = []
        for raw in _as_list(payload.get("props")):
            prop = InterfaceField.from_dict(raw)
            if prop is not None:
                props.append(prop)
        content = payload.get("content")
        return cls(
            name=name,
            role=role,
            file=file,
            description=description if isinstance(description, str) else None,
            props=props,
            uses=_as_str_list(payload.get("uses")),
            used_by=_as_str_list(payload.get("usedBy")),
            exports=_as_str_list(payload.get("exports")),
            content=content if isinstance(content, str) else "",
            is_client=bool(payload.get("isClient", False)),
        )


@dataclass
class FileRecord:
    """One entry of the repository tree, independent of classification."""

    path: str
    type: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "type": self.type, "url": self.url}

    @classmethod
    def from_dict(cls, payload: object) -> Optional["FileRecord"]:
        if not isinstance(payload, dict):
            return None
        path = payload.get("path")
        kind = payload.get("type")
        url = payload.get("url", "")
        if not isinstance(path, str) or kind not in {"blob", "tree"}:
            return None
        return cls(path=path, type=kind, url=url if isinstance(url, str) else "")


@dataclass(frozen=True)
class RepoCoordinates:
    """Owner, repository name and branch of an analyzed repository."""

    owner: str
    name: str
    branch: str = "main"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner, "name": self.name, "branch": self.branch}

    @classmethod
    def from_dict(cls, payload: object) -> Optional["RepoCoordinates"]:
        if not isinstance(payload, dict):
            return None
        owner = payload.get("owner")
        name = payload.get("name")
        branch = payload.get("branch", "main")
        if not isinstance(owner, str) or not isinstance(name, str) or not isinstance(branch, str):
            return None
        return cls(owner=owner, name=name, branch=branch)


@dataclass(frozen=True)
class CacheRecord:
    """Complete analysis result persisted for one (location, branch) pair."""

    key: str
    repo_url: str
    branch: str
    timestamp: float
    expires_at: float
    version: str
    entities: List[Entity]
    files: List[FileRecord]
    repository: RepoCoordinates


@dataclass
class AnalysisRun:
    """Transient progress state of an in-flight analysis."""

    total: int = 0
    processed: int = 0
    analyzed: int = 0
    skipped: List[str] = field(default_factory=list)


def _as_list(value: object) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_str_list(value: object) -> List[str]:
    return [item for item in _as_list(value) if isinstance(item, str)]


__all__ = [
    "AnalysisRun",
    "CacheRecord",
    "Entity",
    "EntityRole",
    "FileRecord",
    "InterfaceField",
    "RepoCoordinates",
]

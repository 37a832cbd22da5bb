"""Per-file static analysis producing Entity records."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import List, Optional

from ..errors import AnalysisError
from ..logging import get_logger
from ..models import Entity
from . import classifier
from .parser import ModuleParser, ParsedModule

logger = get_logger("analyzers.component")

_LOCAL_PREFIXES = ("./", "../", "@/", "~/")


class ComponentAnalyzer:
    """Turns one source file into an Entity, or None when it is not a structural unit.

    Parse failures are logged and reported as None; they never propagate to
    the caller so a single broken file cannot abort a repository run.
    """

    def __init__(self, parser: Optional[ModuleParser] = None) -> None:
        self.parser = parser or ModuleParser()

    def analyze(self, path: str, content: str) -> Optional[Entity]:
        if not classifier.is_candidate(path, content):
            return None
        try:
            module = self.parser.parse(path, content)
        except AnalysisError as exc:
            logger.warning("Skipping %s: %s", path, exc)
            return None

        name = pick_name(module, path)
        return Entity(
            name=name,
            role=classifier.determine_role(path, content),
            file=path,
            description=module.description,
            props=list(module.interfaces.get(f"{name}Props", [])),
            uses=collect_references(module),
            exports=list(module.exports),
            content=content,
            is_client=module.is_client,
        )


def pick_name(module: ParsedModule, path: str) -> str:
    """Default export, then the first top-level function, then const, then the filename."""
    if module.default_export:
        return module.default_export
    for candidate in (*module.functions, *module.classes):
        if _is_unit_name(candidate):
            return candidate
    for candidate in module.constants:
        if _is_unit_name(candidate):
            return candidate
    return name_from_path(path)


def name_from_path(path: str) -> str:
    pure = PurePosixPath(path)
    stem = classifier.stem_of(path)
    if stem == "index" and pure.parent.name:
        stem = pure.parent.name
    if _is_unit_name(stem):
        return stem
    return stem[:1].upper() + stem[1:]


def collect_references(module: ParsedModule) -> List[str]:
    references: List[str] = []
    for binding in module.imports:
        if not binding.source.startswith(_LOCAL_PREFIXES):
            continue
        references.extend(binding.names)
        references.extend(module_names(binding.source))
    references.extend(module.calls)
    return _unique(references)


def module_names(source: str) -> List[str]:
    """Plausible entity names for an import specifier such as ``./Button`` or ``@/hooks/useAuth``."""
    parts = [part for part in source.split("/") if part and part not in {".", "..", "@", "~"}]
    if not parts:
        return []
    base = parts[-1]
    for ext in classifier.JS_EXTENSIONS:
        if base.endswith(ext):
            base = base[: -len(ext)]
            break
    if base == "index":
        if len(parts) < 2:
            return []
        base = parts[-2]
    if not base:
        return []
    return _unique([base, base[:1].upper() + base[1:]])


def _is_unit_name(name: str) -> bool:
    return name[:1].isupper() or (name.startswith("use") and name[3:4].isupper())


def _unique(items: List[str]) -> List[str]:
    seen = set()
    result: List[str] = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


__all__ = ["ComponentAnalyzer", "collect_references", "module_names", "name_from_path", "pick_name"]

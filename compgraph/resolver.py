"""Cross-file relationship resolution over a set of analyzed entities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Union

from .analyzers.classifier import stem_of
from .logging import get_logger
from .models import Entity

logger = get_logger("resolver")


@dataclass(frozen=True)
class UnresolvedReference:
    """A raw reference string that matched no known entity."""

    name: str


@dataclass(frozen=True)
class ResolvedReference:
    """A reference bound to the entity declared in ``file``."""

    name: str
    file: str


Reference = Union[UnresolvedReference, ResolvedReference]


class ReferenceIndex:
    """Looks up raw reference strings by declared name, then export name, then filename."""

    def __init__(self, entities: Iterable[Entity]) -> None:
        self._by_name: Dict[str, Entity] = {}
        self._by_export: Dict[str, Entity] = {}
        self._by_filename: Dict[str, Entity] = {}
        for entity in entities:
            self._by_name[entity.name] = entity
            for export in entity.exports:
                self._by_export[export] = entity
            stem = stem_of(entity.file)
            self._by_filename[stem] = entity
            self._by_filename[stem[:1].upper() + stem[1:]] = entity

    def lookup(self, raw: str) -> Reference:
        for index in (self._by_name, self._by_export, self._by_filename):
            entity = index.get(raw)
            if entity is not None:
                return ResolvedReference(name=entity.name, file=entity.file)
        return UnresolvedReference(name=raw)


def resolve(entities: Sequence[Entity]) -> None:
    """Rewrite ``uses`` to canonical names and rebuild every ``used_by`` list in place.

    Unresolvable references stay as plain text. Running the resolver twice
    over the same entities yields the same result.
    """
    index = ReferenceIndex(entities)
    by_file = {entity.file: entity for entity in entities}
    for entity in entities:
        entity.used_by = []

    resolved_count = 0
    for entity in entities:
        rewritten: List[str] = []
        for raw in entity.uses:
            reference = index.lookup(raw)
            if isinstance(reference, ResolvedReference):
                resolved_count += 1
                rewritten.append(reference.name)
                target = by_file[reference.file]
                if target is not entity and entity.name not in target.used_by:
                    target.used_by.append(entity.name)
            else:
                rewritten.append(reference.name)
        entity.uses = _without(rewritten, entity.name)

    for entity in entities:
        entity.used_by = _without(entity.used_by, entity.name)

    logger.debug("Resolved %d references across %d entities", resolved_count, len(entities))


def _without(items: Iterable[str], name: str) -> List[str]:
    seen = set()
    result: List[str] = []
    for item in items:
        if item == name or item in seen:
            continue
        seen.add(item)
        result.append(item)
    return result


__all__ = ["Reference", "ReferenceIndex", "ResolvedReference", "UnresolvedReference", "resolve"]

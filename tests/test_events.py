"""Tests for event serialisation."""

from __future__ import annotations

import json

from compgraph.events import (
    CompleteEvent,
    ErrorEvent,
    FilesEvent,
    ProgressEvent,
    format_sse,
    is_terminal,
)
from compgraph.models import Entity, EntityRole, FileRecord, RepoCoordinates


def test_format_sse_frames_json() -> None:
    frame = format_sse(ProgressEvent(current=2, total=5, path="src/App.tsx"))

    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: ") :]) == {
        "type": "progress",
        "current": 2,
        "total": 5,
        "path": "src/App.tsx",
    }


def test_files_event_uses_wire_names() -> None:
    event = FilesEvent(
        files=[FileRecord(path="src", type="tree", url="u")],
        repository=RepoCoordinates(owner="acme", name="widgets", branch="dev"),
    )
    assert event.to_dict() == {
        "type": "files",
        "allFiles": [{"path": "src", "type": "tree", "url": "u"}],
        "repository": {"owner": "acme", "name": "widgets", "branch": "dev"},
    }


def test_complete_event_payload() -> None:
    entity = Entity(name="Card", role=EntityRole.COMPONENT, file="Card.tsx", used_by=["Page"])
    payload = CompleteEvent(entities=[entity], total_files=4, analyzed_files=1, from_cache=True).to_dict()

    assert payload["type"] == "complete"
    assert payload["totalFiles"] == 4
    assert payload["analyzedFiles"] == 1
    assert payload["fromCache"] is True
    assert payload["components"][0]["usedBy"] == ["Page"]


def test_terminal_events() -> None:
    assert is_terminal(ErrorEvent(message="boom"))
    assert is_terminal(CompleteEvent())
    assert not is_terminal(ProgressEvent(current=1, total=1, path="a.ts"))

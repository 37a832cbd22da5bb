"""Tests for model serialisation helpers."""

from __future__ import annotations

from compgraph.models import Entity, EntityRole, FileRecord, InterfaceField, RepoCoordinates


def test_entity_to_dict_uses_wire_names() -> None:
    entity = Entity(
        name="useCart",
        role=EntityRole.HOOK,
        file="hooks/useCart.ts",
        props=[InterfaceField(name="id", type="string", required=True)],
        used_by=["CartPage"],
        is_client=True,
    )
    payload = entity.to_dict()

    assert payload["role"] == "stateful-hook"
    assert payload["usedBy"] == ["CartPage"]
    assert payload["isClient"] is True
    assert payload["props"] == [{"name": "id", "type": "string", "required": True}]
    assert Entity.from_dict(payload) == entity


def test_entity_from_dict_rejects_unknown_role() -> None:
    assert Entity.from_dict({"name": "X", "file": "x.ts", "role": "widget"}) is None
    assert Entity.from_dict("nope") is None


def test_file_record_requires_known_type() -> None:
    assert FileRecord.from_dict({"path": "a", "type": "commit"}) is None
    assert FileRecord.from_dict({"path": "a", "type": "blob"}) == FileRecord(path="a", type="blob", url="")


def test_repo_coordinates_slug() -> None:
    coords = RepoCoordinates(owner="acme", name="widgets")
    assert coords.slug == "acme/widgets"
    assert RepoCoordinates.from_dict(coords.to_dict()) == coords

import json
from unittest.mock import patch

import pytest

from errors import IOFailure, ManifestCorrupt
from manifest_store import ManifestStore
from tests.conftest import make_record


def test_missing_file_loads_empty(tmp_path):
    store = ManifestStore(tmp_path / "nowhere" / "installed.json")
    assert store.load() == {}


def test_save_then_load(store):
    a = make_record("A", install_path="/games/a", title="Game A")
    b = make_record("B", install_path="/games/b", title="Game B", platform=None)
    store.save({"A": a, "B": b})

    loaded = store.load()
    assert set(loaded) == {"A", "B"}
    assert loaded["A"] == a
    assert loaded["B"].platform is None


def test_save_creates_parent_dirs(tmp_path):
    store = ManifestStore(tmp_path / "fresh" / "legendary" / "installed.json")
    store.save({"A": make_record("A")})
    assert store.path.exists()


def test_invalid_json_is_corrupt(store):
    store.path.write_text("{ this is not json", encoding="utf-8")
    with pytest.raises(ManifestCorrupt):
        store.load()


def test_non_object_is_corrupt(store):
    store.path.write_text("[1, 2, 3]", encoding="utf-8")
    with pytest.raises(ManifestCorrupt):
        store.load()


def test_invalid_entry_is_corrupt(store):
    store.path.write_text(json.dumps({"A": {"title": "no app name"}}), encoding="utf-8")
    with pytest.raises(ManifestCorrupt, match="'A'"):
        store.load()


def test_unknown_fields_preserved(store):
    store.path.write_text(
        json.dumps({"A": {"app_name": "A", "title": "Game A", "future_field": [1, 2]}}),
        encoding="utf-8",
    )
    store.save(store.load())
    data = json.loads(store.path.read_text(encoding="utf-8"))
    assert data["A"]["future_field"] == [1, 2]


def test_failed_write_keeps_previous_manifest(store):
    store.save({"A": make_record("A")})
    before = store.path.read_bytes()

    with patch("manifest_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(IOFailure):
            store.save({})

    assert store.path.read_bytes() == before
    leftovers = [p for p in store.path.parent.iterdir() if p.name.endswith(".tmp")]
    assert leftovers == []


def test_save_replaces_whole_mapping(store):
    store.save({"A": make_record("A"), "B": make_record("B")})
    store.save({"B": make_record("B")})
    assert set(store.load()) == {"B"}

"""Unit tests for app/services/state_store.py - JSON file and Redis backends."""

import json
import os

import pytest

from app.integrations import redis_client as rc
from app.services.state_store import JsonFileStore, RedisStore, build_state_store


# ---------------------------------------------------------------------------
# JsonFileStore
# ---------------------------------------------------------------------------


def test_file_store_roundtrip_and_persistence(tmp_path):
    store = JsonFileStore(str(tmp_path))
    store.set("usage", {"total_scans": 3})
    store.set("history", [{"id": "a"}])

    reopened = JsonFileStore(str(tmp_path))
    assert reopened.get("usage") == {"total_scans": 3}
    assert reopened.get("history") == [{"id": "a"}]
    assert reopened.get("missing") is None


def test_file_store_delete(file_store):
    file_store.set("history", [1, 2])
    file_store.delete("history")
    file_store.delete("never-set")
    assert file_store.get("history") is None


def test_file_store_creates_data_dir(tmp_path):
    store = JsonFileStore(str(tmp_path / "nested" / "dir"))
    store.set("k", 1)
    assert os.path.exists(store.path)


def test_corrupt_state_file_reads_as_empty(tmp_path):
    (tmp_path / "state.json").write_text("{not json")
    store = JsonFileStore(str(tmp_path))

    assert store.get("history") is None
    store.set("history", [])
    assert json.loads((tmp_path / "state.json").read_text()) == {"history": []}


def test_no_temp_files_left_behind(tmp_path):
    store = JsonFileStore(str(tmp_path))
    for i in range(5):
        store.set("counter", i)
    assert sorted(os.listdir(tmp_path)) == ["state.json"]


# ---------------------------------------------------------------------------
# RedisStore
# ---------------------------------------------------------------------------


def test_redis_store_prefixes_keys_and_serializes(mock_redis):
    store = RedisStore()
    store.set("preferences", {"max_history_items": 5})

    assert json.loads(mock_redis.get("dfd:preferences")) == {"max_history_items": 5}
    assert store.get("preferences") == {"max_history_items": 5}

    store.delete("preferences")
    assert store.get("preferences") is None


def test_redis_store_ignores_corrupt_values(mock_redis):
    mock_redis.set("dfd:usage", "{broken")
    assert RedisStore().get("usage") is None


def test_redis_store_requires_client(monkeypatch):
    monkeypatch.setattr(rc, "client", None)
    with pytest.raises(RuntimeError):
        RedisStore().get("usage")


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


def test_build_prefers_redis_when_available(mock_redis):
    assert build_state_store().backend == "redis"


def test_build_falls_back_to_file(monkeypatch):
    monkeypatch.setattr(rc, "client", None)
    assert build_state_store().backend == "file"

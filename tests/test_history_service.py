"""Unit tests for app/services/history_service.py - capped history, preferences, import/export."""

import json

import pytest

from app.schemas.usage import PreferencesUpdate
from app.services.history_service import AUDIO_PLACEHOLDER, HistoryService, create_thumbnail
from app.services.state_store import JsonFileStore
from tests.conftest import COMPLETE_MANIPULATED, make_analysis, make_tiny_jpeg, model, rd_payload


def _analysis(n: int):
    payload = rd_payload(
        "COMPLETE",
        [model("rd-ensemble", "COMPLETE", 0.1 * (n % 10))],
        requestId=f"req-{n}",
        timestamp=f"2026-03-{n + 1:02d}T10:00:00Z",
    )
    return make_analysis(payload, filename=f"file{n}.jpg", file_type="image/jpeg")


@pytest.fixture
def history(file_store):
    return HistoryService(file_store)


# ---------------------------------------------------------------------------
# History list
# ---------------------------------------------------------------------------


def test_add_is_most_recent_first(history):
    history.add(_analysis(1))
    history.add(_analysis(2))

    assert [h.id for h in history.get_all()] == ["req-2", "req-1"]


def test_re_adding_same_id_replaces_entry(history):
    history.add(_analysis(1), "data:old")
    history.add(_analysis(2))
    history.add(_analysis(1), "data:new")

    entries = history.get_all()
    assert [h.id for h in entries] == ["req-1", "req-2"]
    assert entries[0].thumbnail_blob == "data:new"


def test_history_is_capped_by_preference(history):
    for n in range(12):
        history.add(_analysis(n))

    entries = history.get_all()
    assert len(entries) == 10
    assert entries[0].id == "req-11"
    assert entries[-1].id == "req-2"


def test_lowering_cap_trims_immediately(history):
    for n in range(5):
        history.add(_analysis(n))

    prefs = history.update_preferences(PreferencesUpdate(max_history_items=2))

    assert prefs.max_history_items == 2
    assert prefs.show_detailed_analysis is True
    assert [h.id for h in history.get_all()] == ["req-4", "req-3"]


def test_get_remove_clear(history):
    history.add(_analysis(1))
    history.add(_analysis(2))

    assert history.get("req-1").filename == "file1.jpg"
    assert history.get("nope") is None
    assert history.remove("req-1") is True
    assert history.remove("req-1") is False
    history.clear()
    assert history.get_all() == []


def test_stored_entry_round_trips_details(history):
    stored = history.add(make_analysis(COMPLETE_MANIPULATED))
    assert history.get(stored.id).details.score_source == "ensemble"


def test_stats(history):
    assert history.stats().history_count == 0
    assert history.stats().last_modified is None

    history.add(_analysis(1))
    history.add(_analysis(2))
    stats = history.stats()

    assert stats.history_count == 2
    assert stats.estimated_size.endswith(" KB")
    assert stats.last_modified == "2026-03-03T10:00:00Z"


# ---------------------------------------------------------------------------
# Export / import
# ---------------------------------------------------------------------------


def test_export_then_import_restores_state(file_store, tmp_path):
    source = HistoryService(file_store)
    source.update_preferences(PreferencesUpdate(auto_download_reports=True))
    source.add(_analysis(1))
    exported = json.dumps(source.export_data())

    target = HistoryService(JsonFileStore(str(tmp_path / "other")))
    result = target.import_data(exported)

    assert result.success is True
    assert result.message == "Data imported successfully"
    assert [h.id for h in target.get_all()] == ["req-1"]
    assert target.get_preferences().auto_download_reports is True


def test_import_accepts_camel_case_keys(history):
    data = {
        "analysisHistory": [_analysis(3).model_dump()],
        "userPreferences": {"max_history_items": 4},
    }
    assert history.import_data(data).success is True
    assert history.get_preferences().max_history_items == 4
    assert history.get("req-3") is not None


@pytest.mark.parametrize("data", [
    "not json",
    "[1, 2, 3]",
    {"analysis_history": [{"id": "missing-fields"}]},
    {"analysis_history": "nope"},
])
def test_invalid_import_changes_nothing(history, data):
    history.add(_analysis(1))

    result = history.import_data(data)

    assert result.success is False
    assert result.message == "Invalid data format"
    assert [h.id for h in history.get_all()] == ["req-1"]


def test_import_applies_history_cap(history):
    data = {
        "analysis_history": [_analysis(n).model_dump() for n in range(6)],
        "user_preferences": {"max_history_items": 3},
    }
    history.import_data(data)
    assert len(history.get_all()) == 3


# ---------------------------------------------------------------------------
# Thumbnails
# ---------------------------------------------------------------------------


def test_image_thumbnail_is_jpeg_data_uri():
    thumb = create_thumbnail(make_tiny_jpeg(), "image/jpeg", "a.jpg")
    assert thumb.startswith("data:image/jpeg;base64,")


def test_audio_uses_placeholder():
    assert create_thumbnail(b"RIFF....", "audio/wav", "a.wav") == AUDIO_PLACEHOLDER


def test_undecodable_image_yields_none():
    assert create_thumbnail(b"not an image", "image/png", "a.png") is None

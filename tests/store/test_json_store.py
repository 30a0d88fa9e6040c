import json
from unittest.mock import patch

import pytest

from cognify.errors import StorageUnavailableError
from cognify.store import InMemorySessionStore, JsonSessionStore, Role, make_session_store


def test_state_survives_reopening(tmp_path):
    path = tmp_path / "sessions.json"
    store = JsonSessionStore(path)
    session_id = store.create_session()
    store.append_turn(session_id, Role.learner, "🎤 What is osmosis?")
    store.add_artifact(session_id, "bio.pdf", "Osmosis is...", ["Osmosis", "Diffusion"])
    store.record_evaluation(session_id, True)
    store.record_evaluation(session_id, False)
    store.rename_session(session_id, "What is osmosis?")

    reopened = JsonSessionStore(path)

    session = reopened.load_session(session_id)
    assert session.title == "What is osmosis?"
    assert (session.correct_count, session.total_evaluated) == (1, 2)
    assert [t.text for t in reopened.list_turns(session_id)] == ["🎤 What is osmosis?"]
    assert reopened.active_artifact(session_id).chapter_index == ["Osmosis", "Diffusion"]


def test_reopened_store_keeps_timestamps_increasing(tmp_path):
    path = tmp_path / "sessions.json"
    store = JsonSessionStore(path)
    old_id = store.create_session()

    reopened = JsonSessionStore(path)
    new_id = reopened.create_session()

    assert (
        reopened.load_session(new_id).updated_at
        > reopened.load_session(old_id).updated_at
    )


def test_file_layout(tmp_path):
    path = tmp_path / "sessions.json"
    store = JsonSessionStore(path)
    session_id = store.create_session()
    store.append_turn(session_id, Role.tutor, "Hello")

    data = json.loads(path.read_text(encoding="utf-8"))

    assert data["version"] == 1
    assert [s["id"] for s in data["sessions"]] == [session_id]
    assert data["turns"][0]["role"] == "tutor"
    assert data["artifacts"] == []


def test_corrupt_file_raises_storage_unavailable(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json")

    with pytest.raises(StorageUnavailableError):
        JsonSessionStore(path)


def test_inconsistent_counters_in_file_raise_storage_unavailable(tmp_path):
    path = tmp_path / "sessions.json"
    JsonSessionStore(path).create_session()
    data = json.loads(path.read_text())
    data["sessions"][0]["correct_count"] = 3
    data["sessions"][0]["total_evaluated"] = 1
    path.write_text(json.dumps(data))

    with pytest.raises(StorageUnavailableError, match="correct_count"):
        JsonSessionStore(path)


def test_failed_write_rolls_back(tmp_path):
    store = JsonSessionStore(tmp_path / "sessions.json")
    session_id = store.create_session()

    with patch(
        "cognify.store.json_store.write_json", side_effect=OSError("disk full")
    ):
        with pytest.raises(StorageUnavailableError):
            store.append_turn(session_id, Role.learner, "lost")
        with pytest.raises(StorageUnavailableError):
            store.record_evaluation(session_id, True)

    assert store.list_turns(session_id) == []
    assert store.load_session(session_id).total_evaluated == 0


def test_make_session_store(tmp_path):
    assert isinstance(make_session_store(None), InMemorySessionStore)
    store = make_session_store(tmp_path / "s.json")
    assert isinstance(store, JsonSessionStore)
    assert store.path == tmp_path / "s.json"

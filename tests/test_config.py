import pytest
from pydantic import ValidationError

from cognify.config import AppConfig, DialogueConfig
from cognify.errors import (
    CapabilityUnavailableError,
    CognifyError,
    SessionNotFoundError,
    StorageUnavailableError,
)


def test_defaults():
    config = AppConfig()

    assert config.dialogue.history_window == 6
    assert config.dialogue.document_char_budget == 20_000
    assert config.dialogue.title_max_chars == 40
    assert config.index.char_budget == 8_000
    assert config.index.sentinel_label == "Index unavailable"
    assert config.voice.language == "en"
    assert config.voice.preferred_voices == ["coral", "nova", "alloy"]


def test_save_and_load_round_trip(tmp_path):
    config = AppConfig()
    config.dialogue.history_window = 4
    config.storage.path = tmp_path / "sessions.json"
    config.voice.enabled = False

    path = tmp_path / "config.json"
    config.save_to_file(path)
    loaded = AppConfig.load_from_file(path)

    assert loaded == config
    assert loaded.storage.path == tmp_path / "sessions.json"


def test_in_memory_storage_is_expressible(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"storage": {"path": null}}')

    assert AppConfig.load_from_file(path).storage.path is None


def test_invalid_values_are_rejected():
    with pytest.raises(ValidationError):
        DialogueConfig(history_window=0)


def test_error_codes():
    assert CapabilityUnavailableError.code == "capability_unavailable"
    assert StorageUnavailableError("x").code == "storage_unavailable"
    assert issubclass(StorageUnavailableError, CognifyError)


def test_session_not_found_is_a_key_error_with_readable_message():
    with pytest.raises(KeyError):
        raise SessionNotFoundError("Unknown session: abc")
    assert str(SessionNotFoundError("Unknown session: abc")) == "Unknown session: abc"

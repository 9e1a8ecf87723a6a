"""Tests for the session stores."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from lifepath.config import Settings
from lifepath.errors import SessionExistsError, SessionNotFoundError
from lifepath.sessions.db import Database
from lifepath.sessions.store import (
    InMemorySessionStore,
    JsonFileSessionStore,
    SqlSessionStore,
    get_session_store,
)

SESSION_INPUT = {"date": "1444-03-15", "location": "Florence, Italy"}


@pytest.fixture(params=["memory", "file", "sql"])
def any_store(request, tmp_path: Path):
    if request.param == "memory":
        return InMemorySessionStore()
    if request.param == "file":
        return JsonFileSessionStore(tmp_path / "sessions")
    return SqlSessionStore(Database("", sqlite_path=tmp_path / "sessions.db"))


class TestStoreContract:
    """Behaviour shared by every store."""

    def test_create_builds_initial_document(self, any_store) -> None:
        document = any_store.create("s1", SESSION_INPUT)

        assert document["metadata"]["session_id"] == "s1"
        assert document["metadata"]["status"] == "active"
        assert document["metadata"]["total_steps"] == 0
        assert document["config"] == {
            "number_of_persona_options": 4,
            "max_pivotal_moments": 5,
            "generate_images": False,
        }
        assert document["lifelines"] == []
        assert "historical_context" not in document
        assert any_store.read("s1") == document

    def test_config_overrides(self, any_store) -> None:
        document = any_store.create("s1", SESSION_INPUT, {"max_pivotal_moments": 2})

        assert document["config"]["max_pivotal_moments"] == 2
        assert document["config"]["number_of_persona_options"] == 4

    def test_create_duplicate_raises(self, any_store) -> None:
        any_store.create("s1", SESSION_INPUT)

        with pytest.raises(SessionExistsError):
            any_store.create("s1", SESSION_INPUT)

    def test_read_unknown_raises(self, any_store) -> None:
        with pytest.raises(SessionNotFoundError):
            any_store.read("missing")

    def test_write_overwrites(self, any_store) -> None:
        document = any_store.create("s1", SESSION_INPUT)
        document["historical_context"] = {"country": "Florence"}

        any_store.write("s1", document)

        assert any_store.read("s1")["historical_context"] == {"country": "Florence"}

    def test_exists_and_list_ids(self, any_store) -> None:
        any_store.create("b", SESSION_INPUT)
        any_store.create("a", SESSION_INPUT)

        assert any_store.exists("a")
        assert not any_store.exists("c")
        assert any_store.list_ids() == ["a", "b"]

    def test_invalid_input_rejected(self, any_store) -> None:
        with pytest.raises(ValidationError):
            any_store.create("s1", {"date": "1444"})


class TestInMemoryStore:
    def test_documents_are_copies(self) -> None:
        store = InMemorySessionStore()
        store.create("s1", SESSION_INPUT)

        store.read("s1")["lifelines"].append({"id": "x"})

        assert store.read("s1")["lifelines"] == []


class TestJsonFileStore:
    """Tests for the folder-per-session layout."""

    def test_folder_layout(self, tmp_path: Path) -> None:
        store = JsonFileSessionStore(tmp_path)
        store.create("s1", SESSION_INPUT)

        assert (tmp_path / "s1" / "session.json").exists()
        assert not list(tmp_path.glob("s1/*.tmp"))

    def test_legacy_flat_file_readable(self, tmp_path: Path) -> None:
        """Test that older flat <id>.json sessions are still found."""
        legacy = {"metadata": {"session_id": "old"}, "input": SESSION_INPUT}
        (tmp_path / "old.json").write_text(json.dumps(legacy))
        store = JsonFileSessionStore(tmp_path)

        assert store.exists("old")
        assert store.read("old") == legacy
        assert store.list_ids() == ["old"]

        store.write("old", legacy)
        assert (tmp_path / "old" / "session.json").exists()

    def test_list_ids_missing_root(self, tmp_path: Path) -> None:
        assert JsonFileSessionStore(tmp_path / "absent").list_ids() == []

    @pytest.mark.parametrize("session_id", ["../escape", "a/b", "..", ".hidden", "", "a..b"])
    def test_unsafe_session_id_rejected(self, tmp_path: Path, session_id: str) -> None:
        """Test that ids which would leave the store root never touch the disk."""
        store = JsonFileSessionStore(tmp_path / "sessions")

        with pytest.raises(ValueError, match="Invalid session id"):
            store.create(session_id, SESSION_INPUT)
        with pytest.raises(ValueError):
            store.read(session_id)
        with pytest.raises(ValueError):
            store.write(session_id, {"metadata": {}})
        with pytest.raises(ValueError):
            store.exists(session_id)

        assert not (tmp_path / "escape").exists()
        assert not (tmp_path / "sessions").exists()

    def test_generated_ids_accepted(self, tmp_path: Path) -> None:
        store = JsonFileSessionStore(tmp_path)
        store.create("session-20261019-101500-a1b2c3", SESSION_INPUT)

        assert store.list_ids() == ["session-20261019-101500-a1b2c3"]


class TestGetSessionStore:
    def test_selects_by_name(self, tmp_path: Path) -> None:
        assert isinstance(
            get_session_store(Settings(session_store="memory")), InMemorySessionStore
        )
        assert isinstance(
            get_session_store(Settings(session_store="file", sessions_dir=tmp_path)),
            JsonFileSessionStore,
        )

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown session store"):
            get_session_store(Settings(session_store="redis"))

"""Tests for the player session context."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from avventura.graph import StepNotFoundError, StoryGraph
from avventura.session import STEP_KEY, TOKEN_KEY, SessionContext, SessionStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "state" / "session.json")


class TestSessionStore:
    def test_missing_file_reads_empty(self, store: SessionStore) -> None:
        assert store.get(TOKEN_KEY) is None

    def test_set_get_delete(self, store: SessionStore) -> None:
        store.set("a", "1")
        store.set("b", "2")
        assert store.get("a") == "1"

        store.delete("a")
        assert store.get("a") is None
        assert store.get("b") == "2"

    def test_persists_to_json(self, store: SessionStore) -> None:
        store.set(TOKEN_KEY, "tok")
        assert json.loads(store.path.read_text()) == {TOKEN_KEY: "tok"}

    def test_corrupt_file_reads_empty(self, store: SessionStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.get(TOKEN_KEY) is None

    def test_default_path(self, isolated_config: Path) -> None:
        import avventura.session as session_module

        assert SessionStore().path == session_module.DEFAULT_SESSION_PATH


class TestSessionContext:
    def test_start_and_resume(self, store: SessionStore) -> None:
        SessionContext.start(store, "tok-1", "The Jade Island")

        resumed = SessionContext.resume(store)
        assert resumed == SessionContext("tok-1", "The Jade Island", 1)

    def test_start_requires_token(self, store: SessionStore) -> None:
        with pytest.raises(ValueError):
            SessionContext.start(store, "", "jade")

    def test_resume_without_session(self, store: SessionStore) -> None:
        assert SessionContext.resume(store) is None

    def test_resume_bad_step_falls_back_to_start(self, store: SessionStore) -> None:
        SessionContext.start(store, "tok", "jade")
        store.set(STEP_KEY, "four")
        resumed = SessionContext.resume(store)
        assert resumed is not None
        assert resumed.current_step == 1

    def test_advance_persists(self, store: SessionStore, jade_island: StoryGraph) -> None:
        session = SessionContext.start(store, "tok", "jade")
        session.advance(store, 3, jade_island)

        assert session.current_step == 3
        resumed = SessionContext.resume(store)
        assert resumed is not None
        assert resumed.current_step == 3

    def test_advance_to_missing_step(self, store: SessionStore, jade_island: StoryGraph) -> None:
        session = SessionContext.start(store, "tok", "jade")

        with pytest.raises(StepNotFoundError):
            session.advance(store, 42, jade_island)

        assert session.current_step == 1
        assert store.get(STEP_KEY) == "1"

    def test_advance_without_graph(self, store: SessionStore) -> None:
        session = SessionContext.start(store, "tok", "jade")
        session.advance(store, 42)
        assert session.current_step == 42

    def test_current(self, store: SessionStore, jade_island: StoryGraph) -> None:
        session = SessionContext.start(store, "tok", "jade")
        assert session.current(jade_island).step == 1

        session.advance(store, 4, jade_island)
        assert session.current(jade_island).is_ending

    def test_clear(self, store: SessionStore) -> None:
        session = SessionContext.start(store, "tok", "jade")
        session.clear(store)

        assert SessionContext.resume(store) is None
        assert json.loads(store.path.read_text()) == {}

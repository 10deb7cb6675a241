"""
Tests for the edit session registry.
"""

import pytest

from linenotes.errors import SessionConflictError, SessionNotFoundError
from linenotes.sessions import EditSessionRegistry


@pytest.fixture
def registry():
    return EditSessionRegistry()


class TestEditSessionRegistry:
    """Test EditSessionRegistry."""

    def test_open_and_get(self, registry, tmp_path):
        path = tmp_path / "note.md"
        session = registry.open(path, "initial", lambda content: None)

        assert registry.is_open(path)
        assert registry.get(path) is session
        assert session.initial_content == "initial"

    def test_second_open_conflicts(self, registry, tmp_path):
        path = tmp_path / "note.md"
        registry.open(path, "a", lambda content: None)

        with pytest.raises(SessionConflictError):
            registry.open(path, "b", lambda content: None)

    def test_complete_runs_callback_once(self, registry, tmp_path):
        path = tmp_path / "note.md"
        received = []
        registry.open(path, "a", lambda content: received.append(content) or "done")

        assert registry.complete(path, "saved text") == "done"
        assert received == ["saved text"]
        assert not registry.is_open(path)

        with pytest.raises(SessionNotFoundError):
            registry.complete(path, "again")
        assert received == ["saved text"]

    def test_failing_callback_still_closes(self, registry, tmp_path):
        path = tmp_path / "note.md"

        def boom(content):
            raise RuntimeError("callback failed")

        registry.open(path, "a", boom)
        with pytest.raises(RuntimeError):
            registry.complete(path, "x")

        assert not registry.is_open(path)

    def test_discard_is_idempotent(self, registry, tmp_path):
        path = tmp_path / "note.md"
        received = []
        registry.open(path, "a", received.append)

        registry.discard(path)
        registry.discard(path)

        assert received == []
        assert registry.list_sessions() == []

    def test_close_all_cancels(self, registry, tmp_path):
        received = []
        registry.open(tmp_path / "one.md", "1", received.append)
        registry.open(tmp_path / "two.md", "2", received.append)

        registry.close_all()

        assert received == [None, None]
        assert registry.list_sessions() == []

    def test_paths_normalized(self, registry, tmp_path):
        (tmp_path / "sub").mkdir()
        registry.open(tmp_path / "sub" / ".." / "note.md", "a", lambda content: None)
        assert registry.is_open(tmp_path / "note.md")

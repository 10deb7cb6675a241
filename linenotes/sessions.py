"""
Edit session registry.

Tracks scratch documents opened for editing one note, keyed by path.
Each path has a single owner: a second open for the same path is refused
until the first session is completed or discarded. The registry is passed
explicitly to whoever needs it; there is no module-level instance.

Launching editors and watching scratch files is left to the caller. The
registry only guarantees that each session's callback runs exactly once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .errors import SessionConflictError, SessionNotFoundError

logger = logging.getLogger(__name__)


CompletionCallback = Callable[[Optional[str]], Any]


@dataclass(frozen=True)
class EditSession:
    """
    One open scratch document.

    on_complete receives the saved content, or None when the session was
    closed without saving.
    """

    path: Path
    initial_content: str
    on_complete: CompletionCallback
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EditSessionRegistry:
    """In-memory registry of open edit sessions."""

    def __init__(self):
        self._sessions: Dict[str, EditSession] = {}

    @staticmethod
    def _key(path: Path) -> str:
        return str(Path(path).resolve())

    def open(self, path: Path, initial_content: str, on_complete: CompletionCallback) -> EditSession:
        """
        Register a new session.

        Raises:
            SessionConflictError: If a session is already open for path
        """
        key = self._key(path)
        if key in self._sessions:
            raise SessionConflictError(f"Edit session already open: {path}")

        session = EditSession(path=Path(path), initial_content=initial_content, on_complete=on_complete)
        self._sessions[key] = session
        logger.debug(f"Opened edit session {path}")
        return session

    def get(self, path: Path) -> Optional[EditSession]:
        return self._sessions.get(self._key(path))

    def is_open(self, path: Path) -> bool:
        return self._key(path) in self._sessions

    def list_sessions(self) -> List[EditSession]:
        """Open sessions, oldest first."""
        return sorted(self._sessions.values(), key=lambda s: s.opened_at)

    def complete(self, path: Path, content: Optional[str]) -> Any:
        """
        Close a session and run its callback once.

        The session is removed before the callback runs, so a failing
        callback cannot leave it registered.

        Args:
            path: Session path
            content: Saved content, or None if closed without saving

        Returns:
            Whatever the callback returns

        Raises:
            SessionNotFoundError: If no session is open for path
        """
        session = self._sessions.pop(self._key(path), None)
        if session is None:
            raise SessionNotFoundError(f"No edit session open: {path}")

        logger.debug(f"Completed edit session {path} ({'saved' if content is not None else 'cancelled'})")
        return session.on_complete(content)

    def discard(self, path: Path) -> None:
        """
        Drop a session without running its callback.

        Does not raise if no session is open (idempotent).
        """
        self._sessions.pop(self._key(path), None)

    def close_all(self) -> None:
        """Cancel every open session, running each callback with None."""
        for session in self.list_sessions():
            self.complete(session.path, None)

"""
linenotes error hierarchy.

Batch decode and extract passes never raise these; they collect ParseIssue
records instead. Exceptions are reserved for single-record APIs and for I/O
at the store and document boundary.
"""


class LineNotesError(Exception):
    """Base exception for all linenotes failures."""

    pass


class RecordValidationError(LineNotesError, ValueError):
    """A record matched the grammar but violates an invariant."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class StoreIOError(LineNotesError):
    """Canonical store could not be read or written. Store left unmodified."""

    pass


class DocumentIOError(LineNotesError):
    """Rendered document could not be read or written."""

    pass


class SettingsError(LineNotesError):
    """Settings file is unreadable or fails validation."""

    pass


class SyncError(LineNotesError):
    """Document sync could not be applied."""

    pass


class SessionError(LineNotesError):
    """Base exception for edit session bookkeeping."""

    pass


class SessionConflictError(SessionError):
    """An edit session is already open for this path."""

    pass


class SessionNotFoundError(SessionError):
    """No edit session is open for this path."""

    pass


class AnnotationNotFoundError(LineNotesError):
    """No store line matches the annotation being updated or deleted."""

    pass

"""Errors raised by the note stores and staging service."""


class CapsuleError(Exception):
    """Base class for time capsule errors."""
    pass


class NoteNotFoundError(CapsuleError):
    """Raised when a note or staged draft id does not exist."""

    def __init__(self, note_id: str, kind: str = "Note"):
        self.note_id = note_id
        self.kind = kind
        super().__init__(f"{kind} not found: {note_id}")


class NoteValidationError(CapsuleError):
    """Raised for empty content, malformed addresses or unknown fields. Never persisted."""
    pass


class StoreUnavailableError(CapsuleError):
    """Raised when the backing file or database cannot be read or written."""
    pass

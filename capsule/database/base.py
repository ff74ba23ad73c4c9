"""
Backend-agnostic store interfaces.

Callers above the database layer only ever see NoteStore and
UnsentNoteStore; which backend sits behind them is decided once at
startup by create_stores().
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping

from .models import Note, UnsentNote


class NoteStore(ABC):
    """
    Uniform read/update/delete interface over the note collection.

    Every method raises NoteNotFoundError for unknown ids and
    StoreUnavailableError on I/O or connection failure.
    """

    async def initialize(self) -> None:
        """Prepare the backing file or table. Safe to call more than once."""

    async def close(self) -> None:
        """Release held resources."""

    @abstractmethod
    async def list_all(self) -> List[Note]:
        ...

    @abstractmethod
    async def get_by_id(self, note_id: str) -> Note:
        ...

    @abstractmethod
    async def insert(self, note: Note) -> Note:
        """Persist a new note and return the committed record."""

    @abstractmethod
    async def update(self, note_id: str, fields: Mapping[str, Any]) -> Note:
        """Apply a partial update (content, author, name, email) and return the committed record."""

    @abstractmethod
    async def delete(self, note_id: str) -> None:
        ...

    @abstractmethod
    async def set_email_sent(self, note_id: str, sent: bool = True) -> Note:
        """Flip the delivery flag. Setting it on a note without an email is rejected."""


class UnsentNoteStore(ABC):
    """Storage for staged drafts. Only UnsentNoteService should use it directly."""

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def list_all(self) -> List[UnsentNote]:
        ...

    @abstractmethod
    async def get_by_id(self, unsent_id: str) -> UnsentNote:
        ...

    @abstractmethod
    async def insert(self, unsent: UnsentNote, keep_created_at: bool = False) -> UnsentNote:
        """Stage a draft. keep_created_at preserves the record's own timestamp (used on restore)."""

    @abstractmethod
    async def remove(self, unsent_id: str) -> UnsentNote:
        """Delete a staged draft and return it. Raises NoteNotFoundError if already gone."""

"""
Time Capsule Database Layer

Note and unsent-note records, the backend-agnostic store interfaces,
their JSON file and SQLite implementations, and the staging service.
"""

from .errors import CapsuleError, NoteNotFoundError, NoteValidationError, StoreUnavailableError
from .models import Note, UnsentNote, new_note, new_unsent_note, apply_update, ANONYMOUS_AUTHOR
from .base import NoteStore, UnsentNoteStore
from .file_store import JsonFileNoteStore, JsonFileUnsentNoteStore
from .sql_store import SqliteDatabase, SqlNoteStore, SqlUnsentNoteStore
from .unsent import UnsentNoteService
from .client import Stores, create_stores

__all__ = [
    "CapsuleError",
    "NoteNotFoundError",
    "NoteValidationError",
    "StoreUnavailableError",
    "Note",
    "UnsentNote",
    "new_note",
    "new_unsent_note",
    "apply_update",
    "ANONYMOUS_AUTHOR",
    "NoteStore",
    "UnsentNoteStore",
    "JsonFileNoteStore",
    "JsonFileUnsentNoteStore",
    "SqliteDatabase",
    "SqlNoteStore",
    "SqlUnsentNoteStore",
    "UnsentNoteService",
    "Stores",
    "create_stores",
]

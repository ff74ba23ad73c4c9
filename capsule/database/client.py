"""
Store construction.

The backend is chosen once, at startup, from configuration: a configured
DATABASE_URL selects the relational store, otherwise notes live in JSON
files. Nothing above this module knows which one is active.
"""

from dataclasses import dataclass
from typing import Optional

from capsule.config import AppConfig, config as default_config
from capsule.utils.logging import store_logger as logger

from .base import NoteStore, UnsentNoteStore
from .file_store import JsonFileNoteStore, JsonFileUnsentNoteStore
from .sql_store import SqliteDatabase, SqlNoteStore, SqlUnsentNoteStore
from .unsent import UnsentNoteService


@dataclass
class Stores:
    """The note store, the staging store, and the staging service built on both."""
    notes: NoteStore
    unsent: UnsentNoteStore
    staging: UnsentNoteService
    backend: str

    async def initialize(self):
        await self.notes.initialize()
        await self.unsent.initialize()

    async def close(self):
        await self.notes.close()
        await self.unsent.close()


def create_stores(app_config: Optional[AppConfig] = None) -> Stores:
    """
    Build the stores for this process.

    Call once at startup and pass the result to whoever needs it. The
    stores live for the life of the process; close() only releases the
    database connection.
    """
    app_config = app_config or default_config

    if app_config.use_database:
        db = SqliteDatabase(app_config.database_path)
        notes: NoteStore = SqlNoteStore(db)
        unsent: UnsentNoteStore = SqlUnsentNoteStore(db)
        backend = "database"
        logger.info("Using relational note store", db_path=app_config.database_path)
    else:
        notes = JsonFileNoteStore(app_config.NOTES_FILE)
        unsent = JsonFileUnsentNoteStore(app_config.UNSENT_NOTES_FILE)
        backend = "file"
        logger.info("Using JSON file note store", path=app_config.NOTES_FILE)

    return Stores(
        notes=notes,
        unsent=unsent,
        staging=UnsentNoteService(unsent, notes),
        backend=backend,
    )

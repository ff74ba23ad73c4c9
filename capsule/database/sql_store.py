"""
Relational backend using aiosqlite.

Each store operation is a single parameterized statement against one
table keyed by id. Creation timestamps are computed by the database;
mutations set updated_at explicitly.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiosqlite

from .base import NoteStore, UnsentNoteStore
from .errors import NoteNotFoundError, NoteValidationError, StoreUnavailableError
from .models import Note, UnsentNote, clean_update
from capsule.utils.logging import store_logger as logger

# ISO-8601 UTC with milliseconds, computed by SQLite
NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


class SqliteDatabase:
    """Owns the aiosqlite connection shared by the note and unsent-note stores."""

    def __init__(self, db_path: str = "capsule.db"):
        self.db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def connected(self) -> bool:
        return self._conn is not None

    async def connect(self):
        """Connect to the database and create tables if needed."""
        if self._conn is not None:
            return

        db_dir = Path(self.db_path).parent
        try:
            if str(db_dir) != "." and not db_dir.exists():
                db_dir.mkdir(parents=True, exist_ok=True)
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._create_tables()
        except (OSError, aiosqlite.Error) as e:
            logger.error("Could not open database", db_path=self.db_path, error=str(e))
            raise StoreUnavailableError(f"Cannot open database {self.db_path}: {e}") from e

        logger.info("Database connected", db_path=self.db_path)

    async def _create_tables(self):
        await self._conn.execute(f"""
            CREATE TABLE IF NOT EXISTS notes (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                author TEXT NOT NULL DEFAULT 'Anonymous',
                name TEXT,
                email TEXT,
                email_sent INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT ({NOW_SQL}),
                updated_at TEXT NOT NULL DEFAULT ({NOW_SQL})
            )
        """)

        await self._conn.execute(f"""
            CREATE TABLE IF NOT EXISTS unsent_notes (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT ({NOW_SQL})
            )
        """)

        await self._conn.commit()

    async def close(self):
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        fetch: str = "none",
    ):
        """
        Run one statement and commit.

        fetch is "one" (returns a row dict or None), "all" (list of dicts)
        or "none" (returns the affected row count).
        """
        if self._conn is None:
            await self.connect()
        try:
            async with self._conn.execute(sql, params) as cursor:
                if fetch == "one":
                    row = await cursor.fetchone()
                    result = dict(row) if row is not None else None
                elif fetch == "all":
                    result = [dict(r) for r in await cursor.fetchall()]
                else:
                    result = cursor.rowcount
            await self._conn.commit()
        except aiosqlite.IntegrityError as e:
            raise NoteValidationError(str(e)) from e
        except aiosqlite.Error as e:
            logger.error("Database statement failed", error=str(e))
            raise StoreUnavailableError(f"Database error: {e}") from e
        return result


def _sql_timestamp(value: datetime) -> str:
    """Format like NOW_SQL so stored timestamps sort consistently."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _to_note(row: Dict[str, Any]) -> Note:
    return Note.model_validate(row)


class SqlNoteStore(NoteStore):
    """NoteStore backed by the notes table."""

    def __init__(self, db: SqliteDatabase):
        self.db = db

    async def initialize(self) -> None:
        await self.db.connect()

    async def close(self) -> None:
        await self.db.close()

    async def list_all(self) -> List[Note]:
        rows = await self.db.execute(
            "SELECT * FROM notes ORDER BY created_at ASC, rowid ASC",
            fetch="all",
        )
        return [_to_note(r) for r in rows]

    async def get_by_id(self, note_id: str) -> Note:
        row = await self.db.execute("SELECT * FROM notes WHERE id = ?", (note_id,), fetch="one")
        if row is None:
            raise NoteNotFoundError(note_id)
        return _to_note(row)

    async def insert(self, note: Note) -> Note:
        row = await self.db.execute(
            """
            INSERT INTO notes (id, content, author, name, email, email_sent)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (note.id, note.content, note.author, note.name, note.email, int(note.email_sent)),
            fetch="one",
        )
        return _to_note(row)

    async def update(self, note_id: str, fields: Mapping[str, Any]) -> Note:
        cleaned = clean_update(fields)

        assignments = []
        params: List[Any] = []
        for column, value in cleaned.items():
            assignments.append(f"{column} = ?")
            params.append(value)
        if "email" in cleaned:
            # Right-hand sides see the pre-update row, so this compares old vs new address
            assignments.append("email_sent = CASE WHEN email IS ? THEN email_sent ELSE 0 END")
            params.append(cleaned["email"])
        assignments.append(f"updated_at = {NOW_SQL}")
        params.append(note_id)

        row = await self.db.execute(
            f"UPDATE notes SET {', '.join(assignments)} WHERE id = ? RETURNING *",
            params,
            fetch="one",
        )
        if row is None:
            raise NoteNotFoundError(note_id)
        return _to_note(row)

    async def delete(self, note_id: str) -> None:
        count = await self.db.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        if count == 0:
            raise NoteNotFoundError(note_id)

    async def set_email_sent(self, note_id: str, sent: bool = True) -> Note:
        row = await self.db.execute(
            f"""
            UPDATE notes SET email_sent = ?, updated_at = {NOW_SQL}
            WHERE id = ? AND (? = 0 OR email IS NOT NULL)
            RETURNING *
            """,
            (int(sent), note_id, int(sent)),
            fetch="one",
        )
        if row is None:
            # Distinguish a missing note from one without an address
            await self.get_by_id(note_id)
            raise NoteValidationError(f"Note {note_id} has no email address")
        return _to_note(row)


class SqlUnsentNoteStore(UnsentNoteStore):
    """UnsentNoteStore backed by the unsent_notes table."""

    def __init__(self, db: SqliteDatabase):
        self.db = db

    async def initialize(self) -> None:
        await self.db.connect()

    async def close(self) -> None:
        await self.db.close()

    async def list_all(self) -> List[UnsentNote]:
        rows = await self.db.execute(
            "SELECT * FROM unsent_notes ORDER BY created_at ASC, rowid ASC",
            fetch="all",
        )
        return [UnsentNote.model_validate(r) for r in rows]

    async def get_by_id(self, unsent_id: str) -> UnsentNote:
        row = await self.db.execute("SELECT * FROM unsent_notes WHERE id = ?", (unsent_id,), fetch="one")
        if row is None:
            raise NoteNotFoundError(unsent_id, kind="Unsent note")
        return UnsentNote.model_validate(row)

    async def insert(self, unsent: UnsentNote, keep_created_at: bool = False) -> UnsentNote:
        created_at = _sql_timestamp(unsent.created_at) if keep_created_at else None
        row = await self.db.execute(
            f"""
            INSERT INTO unsent_notes (id, content, created_at)
            VALUES (?, ?, COALESCE(?, {NOW_SQL}))
            RETURNING *
            """,
            (unsent.id, unsent.content, created_at),
            fetch="one",
        )
        return UnsentNote.model_validate(row)

    async def remove(self, unsent_id: str) -> UnsentNote:
        row = await self.db.execute(
            "DELETE FROM unsent_notes WHERE id = ? RETURNING *",
            (unsent_id,),
            fetch="one",
        )
        if row is None:
            raise NoteNotFoundError(unsent_id, kind="Unsent note")
        return UnsentNote.model_validate(row)

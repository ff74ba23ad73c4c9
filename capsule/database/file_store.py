"""
JSON file backend.

The whole collection lives in one JSON array. Every write reads the file,
modifies the list and serializes the entire collection back (written to a
temporary file, then renamed over the original). There is no per-record
locking: within one process an asyncio.Lock serializes read-modify-write,
across processes the last writer wins.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping

from pydantic import ValidationError

from .base import NoteStore, UnsentNoteStore
from .errors import NoteNotFoundError, NoteValidationError, StoreUnavailableError
from .models import Note, UnsentNote, apply_update, utcnow
from capsule.utils.logging import store_logger as logger


class JsonCollection:
    """A list of records serialized as a JSON array in a single file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.lock = asyncio.Lock()

    def _ensure_sync(self) -> None:
        if self.path.exists():
            return
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write_sync([])

    def _read_sync(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return data

    def _write_sync(self, records: List[Dict[str, Any]]) -> None:
        directory = self.path.parent if str(self.path.parent) else Path(".")
        fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def ensure(self) -> None:
        try:
            await asyncio.to_thread(self._ensure_sync)
        except OSError as e:
            logger.error("Could not create store file", path=str(self.path), error=str(e))
            raise StoreUnavailableError(f"Cannot create {self.path}: {e}") from e

    async def read(self) -> List[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._read_sync)
        except (OSError, ValueError) as e:
            logger.error("Error reading store file", path=str(self.path), error=str(e))
            raise StoreUnavailableError(f"Cannot read {self.path}: {e}") from e

    async def write(self, records: List[Dict[str, Any]]) -> None:
        try:
            await asyncio.to_thread(self._write_sync, records)
        except OSError as e:
            logger.error("Error writing store file", path=str(self.path), error=str(e))
            raise StoreUnavailableError(f"Cannot write {self.path}: {e}") from e


def _parse(model, record: Dict[str, Any], path: Path):
    try:
        return model.model_validate(record)
    except ValidationError as e:
        raise StoreUnavailableError(f"Malformed record in {path}: {e}") from e


def _index_of(records: List[Dict[str, Any]], record_id: str) -> int:
    for i, record in enumerate(records):
        if record.get("id") == record_id:
            return i
    return -1


class JsonFileNoteStore(NoteStore):
    """NoteStore backed by a JSON file (default: notes.json)."""

    def __init__(self, path: str | Path = "notes.json"):
        self._file = JsonCollection(path)

    @property
    def path(self) -> Path:
        return self._file.path

    async def initialize(self) -> None:
        await self._file.ensure()

    async def list_all(self) -> List[Note]:
        records = await self._file.read()
        return [_parse(Note, r, self.path) for r in records]

    async def get_by_id(self, note_id: str) -> Note:
        records = await self._file.read()
        i = _index_of(records, note_id)
        if i < 0:
            raise NoteNotFoundError(note_id)
        return _parse(Note, records[i], self.path)

    async def insert(self, note: Note) -> Note:
        async with self._file.lock:
            records = await self._file.read()
            if _index_of(records, note.id) >= 0:
                raise NoteValidationError(f"Duplicate note id: {note.id}")
            records.append(note.to_record())
            await self._file.write(records)
        return note

    async def update(self, note_id: str, fields: Mapping[str, Any]) -> Note:
        async with self._file.lock:
            records = await self._file.read()
            i = _index_of(records, note_id)
            if i < 0:
                raise NoteNotFoundError(note_id)
            updated = apply_update(_parse(Note, records[i], self.path), fields)
            records[i] = updated.to_record()
            await self._file.write(records)
        return updated

    async def delete(self, note_id: str) -> None:
        async with self._file.lock:
            records = await self._file.read()
            remaining = [r for r in records if r.get("id") != note_id]
            if len(remaining) == len(records):
                raise NoteNotFoundError(note_id)
            await self._file.write(remaining)

    async def set_email_sent(self, note_id: str, sent: bool = True) -> Note:
        async with self._file.lock:
            records = await self._file.read()
            i = _index_of(records, note_id)
            if i < 0:
                raise NoteNotFoundError(note_id)
            note = _parse(Note, records[i], self.path)
            if sent and not note.email:
                raise NoteValidationError(f"Note {note_id} has no email address")
            note = note.model_copy(update={"email_sent": sent, "updated_at": utcnow()})
            records[i] = note.to_record()
            await self._file.write(records)
        return note


class JsonFileUnsentNoteStore(UnsentNoteStore):
    """UnsentNoteStore backed by a JSON file (default: unsent_notes.json)."""

    def __init__(self, path: str | Path = "unsent_notes.json"):
        self._file = JsonCollection(path)

    @property
    def path(self) -> Path:
        return self._file.path

    async def initialize(self) -> None:
        await self._file.ensure()

    async def list_all(self) -> List[UnsentNote]:
        records = await self._file.read()
        return [_parse(UnsentNote, r, self.path) for r in records]

    async def get_by_id(self, unsent_id: str) -> UnsentNote:
        records = await self._file.read()
        i = _index_of(records, unsent_id)
        if i < 0:
            raise NoteNotFoundError(unsent_id, kind="Unsent note")
        return _parse(UnsentNote, records[i], self.path)

    async def insert(self, unsent: UnsentNote, keep_created_at: bool = False) -> UnsentNote:
        async with self._file.lock:
            records = await self._file.read()
            records.append(unsent.to_record())
            await self._file.write(records)
        return unsent

    async def remove(self, unsent_id: str) -> UnsentNote:
        async with self._file.lock:
            records = await self._file.read()
            i = _index_of(records, unsent_id)
            if i < 0:
                raise NoteNotFoundError(unsent_id, kind="Unsent note")
            removed = _parse(UnsentNote, records.pop(i), self.path)
            await self._file.write(records)
        return removed

"""
Unsent-note staging.

Drafts abandoned before submission are kept anonymously. A staged draft
can later be promoted into a regular Note (content only, no name or
email) or discarded.
"""

import asyncio
from typing import List

from .base import NoteStore, UnsentNoteStore
from .models import Note, UnsentNote, new_note, new_unsent_note
from capsule.utils.logging import store_logger as logger


class UnsentNoteService:
    """
    Service for staging, promoting and discarding drafts.

    Promotion claims the draft by removing it first, so a concurrent
    promote or discard of the same id sees NoteNotFoundError instead of
    a second copy. The lock serializes claims within this process.
    """

    def __init__(self, unsent_store: UnsentNoteStore, note_store: NoteStore):
        self.unsent_store = unsent_store
        self.note_store = note_store
        self._lock = asyncio.Lock()

    async def stage(self, content: str) -> UnsentNote:
        """Stage a draft. Empty content raises NoteValidationError."""
        unsent = await self.unsent_store.insert(new_unsent_note(content))
        logger.info("Staged unsent note", unsent_id=unsent.id)
        return unsent

    async def list_all(self) -> List[UnsentNote]:
        return await self.unsent_store.list_all()

    async def promote(self, unsent_id: str) -> Note:
        """Create a Note from a staged draft's content, then drop the draft."""
        async with self._lock:
            unsent = await self.unsent_store.remove(unsent_id)
            try:
                note = await self.note_store.insert(new_note(unsent.content))
            except BaseException as e:
                # Draft must survive any failure, cancellation included
                logger.error(
                    "Promotion failed, restoring unsent note",
                    unsent_id=unsent_id,
                    error=str(e),
                    error_type=type(e).__name__
                )
                await self.unsent_store.insert(unsent, keep_created_at=True)
                raise

        logger.info("Promoted unsent note", unsent_id=unsent_id, note_id=note.id)
        return note

    async def discard(self, unsent_id: str) -> None:
        async with self._lock:
            await self.unsent_store.remove(unsent_id)
        logger.info("Discarded unsent note", unsent_id=unsent_id)

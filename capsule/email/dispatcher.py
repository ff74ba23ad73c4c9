"""
Delivery Dispatcher

Sends one note's time capsule email and records success by flipping the
note's email_sent flag. The flag is the only idempotence marker: it is
written after the transport accepts the message and before the note is
reported as sent. A crash in between means the note is sent again on the
next cycle, which is preferred over losing the delivery.
"""

import asyncio
from enum import Enum
from typing import Optional

from capsule.database.base import NoteStore
from capsule.database.errors import CapsuleError
from capsule.database.models import Note
from capsule.utils.logging import delivery_logger as logger

from .templates import render_capsule_email
from .transport import MailTransport, MailTransportError

DEFAULT_PROBE_TIMEOUT = 5.0
DEFAULT_SEND_TIMEOUT = 30.0


class DispatchOutcome(str, Enum):
    """Result of one dispatch attempt"""
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class DeliveryDispatcher:
    """
    Dispatches due notes through a mail transport.

    - No transport configured: every dispatch is SKIPPED and the store is untouched
    - Connectivity probe is bounded by probe_timeout; failure only logs a warning
    - Send is bounded by send_timeout; timeout or rejection is FAILED
    - FAILED never touches the store, so the next cycle retries the note
    """

    def __init__(
        self,
        note_store: NoteStore,
        transport: Optional[MailTransport],
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ):
        self.note_store = note_store
        self.transport = transport
        self.probe_timeout = probe_timeout
        self.send_timeout = send_timeout

    @property
    def configured(self) -> bool:
        return self.transport is not None

    async def probe(self) -> bool:
        """Check transport connectivity within the probe deadline."""
        if self.transport is None:
            return False
        try:
            await asyncio.wait_for(self.transport.verify(), timeout=self.probe_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning("Transport verify timed out, sending anyway", timeout=self.probe_timeout)
        except MailTransportError as e:
            # Many providers reject verification but still accept mail
            logger.warning("Transport verify failed, sending anyway", error=str(e))
        except Exception as e:
            logger.warning(
                "Transport verify raised unexpectedly, sending anyway",
                error=str(e),
                error_type=type(e).__name__
            )
        return False

    async def dispatch(self, note: Note) -> DispatchOutcome:
        """Send one note's email and mark it sent."""
        if self.transport is None:
            return DispatchOutcome.SKIPPED

        if not note.email or note.email_sent:
            logger.info("Note has no pending delivery, skipping", note_id=note.id)
            return DispatchOutcome.SKIPPED

        message = render_capsule_email(note)

        await self.probe()

        try:
            provider_id = await asyncio.wait_for(
                self.transport.send(message),
                timeout=self.send_timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                "Delivery timed out",
                note_id=note.id,
                email=note.email,
                timeout=self.send_timeout
            )
            return DispatchOutcome.FAILED
        except MailTransportError as e:
            logger.error(
                "Delivery failed",
                note_id=note.id,
                email=note.email,
                error=str(e)
            )
            return DispatchOutcome.FAILED

        try:
            await self.note_store.set_email_sent(note.id, True)
        except CapsuleError as e:
            # Sent but not recorded: the next cycle will send it again
            logger.error(
                "Email sent but marking note failed",
                note_id=note.id,
                email=note.email,
                error=str(e)
            )
            return DispatchOutcome.FAILED

        logger.info(
            "Time capsule delivered",
            note_id=note.id,
            email=note.email,
            transport=self.transport.name,
            provider_id=provider_id
        )
        return DispatchOutcome.SENT

"""
Time Capsule Delivery Scheduler

Once per cycle (daily by default), reads every note, keeps the ones that
are due, and dispatches them one at a time with a pause between sends.

Scheduled runs and manual runs (trigger_now, the --once CLI flag) go
through the same run_once() code path. Runs are not mutually excluded: a
manual trigger during a scheduled run can overlap with it.
"""

import asyncio
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from capsule.database.base import NoteStore
from capsule.database.errors import StoreUnavailableError
from capsule.email.dispatcher import DeliveryDispatcher, DispatchOutcome
from capsule.jobs.eligibility import age_in_days, is_due
from capsule.utils.logging import scheduler_logger as logger

DEFAULT_SCHEDULE = "0 9 * * *"


@dataclass
class RunSummary:
    """Counts from one delivery run."""
    checked: int = 0
    due: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    aborted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeliveryScheduler:
    """
    Drives the dispatcher over due notes on a cron schedule.

    The store and dispatcher are created once at startup and passed in;
    the scheduler owns only its APScheduler instance.
    """

    def __init__(
        self,
        note_store: NoteStore,
        dispatcher: DeliveryDispatcher,
        schedule: str = DEFAULT_SCHEDULE,
        pacing_seconds: float = 1.0,
        timezone_name: str = "UTC",
    ):
        self.note_store = note_store
        self.dispatcher = dispatcher
        self.schedule = schedule
        self.pacing_seconds = pacing_seconds
        self.timezone_name = timezone_name
        self.scheduler = AsyncIOScheduler(timezone=timezone_name)

    async def run_once(self, now: Optional[datetime] = None) -> RunSummary:
        """
        One delivery cycle.

        A store read failure aborts the cycle with zero sends; the next
        cycle tries again. A failure on one note never stops the others.
        """
        now = now or datetime.now(timezone.utc)
        summary = RunSummary()

        try:
            notes = await self.note_store.list_all()
        except StoreUnavailableError as e:
            logger.error("Could not read notes, aborting delivery run", error=str(e))
            summary.aborted = True
            return summary

        summary.checked = len(notes)
        due_notes = [n for n in notes if is_due(n, now)]
        summary.due = len(due_notes)

        if not due_notes:
            logger.info("No notes due for delivery", checked=summary.checked)
            return summary

        logger.info("Processing due notes", count=len(due_notes))

        for i, note in enumerate(due_notes):
            try:
                outcome = await self.dispatcher.dispatch(note)
            except Exception as e:
                logger.error("Unexpected error dispatching note", note_id=note.id, error=str(e))
                outcome = DispatchOutcome.FAILED

            if outcome == DispatchOutcome.SENT:
                summary.sent += 1
            elif outcome == DispatchOutcome.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1

            # Pace real send attempts so the transport is not hit in a burst
            if outcome != DispatchOutcome.SKIPPED and i < len(due_notes) - 1:
                await asyncio.sleep(self.pacing_seconds)

        logger.info("Delivery run complete", **summary.to_dict())
        return summary

    async def trigger_now(self) -> RunSummary:
        """Manually triggered run, identical to a scheduled one."""
        logger.info("Manual delivery run triggered")
        return await self.run_once()

    async def get_status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Aggregate delivery status.

        Pending means the note has an address and has not been sent yet;
        each pending note reports its age and whether it is due right now.
        """
        now = now or datetime.now(timezone.utc)
        notes = await self.note_store.list_all()

        with_email = [n for n in notes if n.email]
        pending = [n for n in with_email if not n.email_sent]
        pending_notes: List[Dict[str, Any]] = [
            {
                "id": n.id,
                "email": n.email,
                "age_days": age_in_days(n, now),
                "due": is_due(n, now),
            }
            for n in pending
        ]

        return {
            "configured": self.dispatcher.configured,
            "total": len(notes),
            "pending": len(pending),
            "sent": len(with_email) - len(pending),
            "pending_notes": pending_notes,
        }

    def start(self):
        """Register the cron job and start the scheduler. Needs a running event loop."""
        self.scheduler.add_job(
            self.run_once,
            trigger=CronTrigger.from_crontab(self.schedule, timezone=self.timezone_name),
            id="time_capsule_delivery",
            name="Deliver due time capsule notes",
            replace_existing=True,
            max_instances=1
        )
        self.scheduler.start()
        logger.info(
            "Delivery scheduler started",
            schedule=self.schedule,
            timezone=self.timezone_name,
            transport_configured=self.dispatcher.configured
        )

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("Delivery scheduler stopped")

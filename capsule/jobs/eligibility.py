"""
Delivery eligibility.

A note is due once it has an address, has not been sent, and is at least
364 days old: one year of 365 days minus one day of tolerance for
scheduler jitter and calendar irregularities.
"""

from datetime import datetime, timedelta, timezone

from capsule.database.models import Note

DELIVERY_AGE = timedelta(days=365) - timedelta(days=1)


def note_age(note: Note, now: datetime) -> timedelta:
    return _as_utc(now) - _as_utc(note.created_at)


def is_due(note: Note, now: datetime) -> bool:
    """True iff the note has an email, is not yet sent, and is old enough."""
    if not note.email or note.email_sent:
        return False
    return note_age(note, now) >= DELIVERY_AGE


def age_in_days(note: Note, now: datetime) -> int:
    """Whole days since the note was created."""
    return note_age(note, now).days


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

"""
Note and UnsentNote records.

Attributes are snake_case in Python and serialize to the persisted
camelCase representation:

    Note:       {id, content, author, name, email, emailSent, createdAt, updatedAt}
    UnsentNote: {id, content, createdAt}
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import NoteValidationError

ANONYMOUS_AUTHOR = "Anonymous"

# Fields a caller may change through NoteStore.update()
UPDATABLE_FIELDS = ("content", "author", "name", "email")

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def clean_content(content: Any) -> str:
    """Strip content and reject it if empty."""
    if not isinstance(content, str) or not content.strip():
        raise NoteValidationError("Note content is required")
    return content.strip()


def clean_label(value: Any) -> Optional[str]:
    """Strip an optional display label; blank becomes None."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise NoteValidationError(f"Expected text, got {type(value).__name__}")
    value = value.strip()
    return value or None


def clean_email(value: Any) -> Optional[str]:
    """
    Normalize an optional email address.

    Blank input means "no address". A non-blank value that fails the basic
    local@domain.tld check raises NoteValidationError.
    """
    value = clean_label(value)
    if value is None:
        return None
    if not _EMAIL_RE.match(value):
        raise NoteValidationError(f"Invalid email address: {value}")
    return value


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    @field_validator("created_at", "updated_at", mode="after", check_fields=False)
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Stores may hand back naive timestamps; they are UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def to_record(self) -> Dict[str, Any]:
        """Persisted (camelCase, JSON-safe) representation."""
        return self.model_dump(mode="json", by_alias=True)


class Note(_Record):
    """A stored note, optionally bound to an email address for delivery."""

    id: str
    content: str
    author: str = ANONYMOUS_AUTHOR
    name: Optional[str] = None
    email: Optional[str] = None
    email_sent: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UnsentNote(_Record):
    """An anonymous draft staged when the compose form was closed without saving."""

    id: str
    content: str
    created_at: datetime = Field(default_factory=utcnow)


def new_note(
    content: Any,
    author: Any = None,
    name: Any = None,
    email: Any = None,
    now: Optional[datetime] = None,
) -> Note:
    """Build a validated Note with a fresh id."""
    now = now or utcnow()
    return Note(
        id=new_id(),
        content=clean_content(content),
        author=clean_label(author) or ANONYMOUS_AUTHOR,
        name=clean_label(name),
        email=clean_email(email),
        email_sent=False,
        created_at=now,
        updated_at=now,
    )


def new_unsent_note(content: Any, now: Optional[datetime] = None) -> UnsentNote:
    return UnsentNote(id=new_id(), content=clean_content(content), created_at=now or utcnow())


def clean_update(fields: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate a partial update.

    Returns the cleaned values keyed by attribute name. Unknown fields and
    invalid values raise NoteValidationError.
    """
    unknown = set(fields) - set(UPDATABLE_FIELDS)
    if unknown:
        raise NoteValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    cleaned: Dict[str, Any] = {}
    if "content" in fields:
        cleaned["content"] = clean_content(fields["content"])
    if "author" in fields:
        cleaned["author"] = clean_label(fields["author"]) or ANONYMOUS_AUTHOR
    if "name" in fields:
        cleaned["name"] = clean_label(fields["name"])
    if "email" in fields:
        cleaned["email"] = clean_email(fields["email"])
    return cleaned


def apply_update(note: Note, fields: Mapping[str, Any], now: Optional[datetime] = None) -> Note:
    """
    Return a copy of note with the partial update applied.

    Changing the email address (including removing it) resets email_sent:
    the one-year delivery commitment starts over for the new destination.
    """
    cleaned = clean_update(fields)
    previous_email = note.email

    updated = note.model_copy(update=cleaned)
    if "email" in cleaned and cleaned["email"] != previous_email:
        updated.email_sent = False
    updated.updated_at = now or utcnow()
    return updated

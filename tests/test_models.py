from datetime import datetime, timezone

import pytest

from capsule.database.errors import NoteValidationError
from capsule.database.models import (
    ANONYMOUS_AUTHOR,
    Note,
    UnsentNote,
    apply_update,
    new_note,
    new_unsent_note,
)

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_new_note_defaults() -> None:
    note = new_note("  remember the lake  ", now=T0)

    assert note.content == "remember the lake"
    assert note.author == ANONYMOUS_AUTHOR
    assert note.name is None
    assert note.email is None
    assert note.email_sent is False
    assert note.created_at == T0
    assert note.updated_at == T0
    assert note.id


def test_new_note_ids_are_unique() -> None:
    assert new_note("a").id != new_note("a").id


@pytest.mark.parametrize("content", ["", "   ", None, 42])
def test_new_note_rejects_empty_content(content) -> None:
    with pytest.raises(NoteValidationError):
        new_note(content)


def test_blank_name_and_email_become_none() -> None:
    note = new_note("hello", name="  ", email="")
    assert note.name is None
    assert note.email is None


@pytest.mark.parametrize("email", ["not-an-email", "a@b", "two words@x.com", "@x.com"])
def test_malformed_email_is_rejected(email) -> None:
    with pytest.raises(NoteValidationError):
        new_note("hello", email=email)


def test_email_is_trimmed() -> None:
    assert new_note("hello", email="  me@example.com ").email == "me@example.com"


def test_record_uses_camel_case_keys() -> None:
    note = new_note("hello", name="Sam", email="sam@example.com", now=T0)
    record = note.to_record()

    assert set(record) == {"id", "content", "author", "name", "email", "emailSent", "createdAt", "updatedAt"}
    assert record["emailSent"] is False
    assert Note.model_validate(record) == note


def test_unsent_record_shape() -> None:
    unsent = new_unsent_note("draft", now=T0)
    assert set(unsent.to_record()) == {"id", "content", "createdAt"}
    assert UnsentNote.model_validate(unsent.to_record()) == unsent


def test_naive_timestamps_are_read_as_utc() -> None:
    note = Note(id="n1", content="x", created_at=datetime(2025, 1, 1), updated_at=datetime(2025, 1, 1))
    assert note.created_at.tzinfo == timezone.utc


def test_changing_email_resets_sent_flag() -> None:
    note = new_note("hello", email="old@example.com", now=T0).model_copy(update={"email_sent": True})

    updated = apply_update(note, {"email": "new@example.com"})

    assert updated.email == "new@example.com"
    assert updated.email_sent is False
    assert updated.updated_at > T0


def test_removing_email_resets_sent_flag() -> None:
    note = new_note("hello", email="old@example.com").model_copy(update={"email_sent": True})
    assert apply_update(note, {"email": ""}).email_sent is False


def test_same_email_keeps_sent_flag() -> None:
    note = new_note("hello", email="me@example.com").model_copy(update={"email_sent": True})

    updated = apply_update(note, {"email": " me@example.com ", "content": "edited"})

    assert updated.email_sent is True
    assert updated.content == "edited"


def test_update_without_email_keeps_sent_flag() -> None:
    note = new_note("hello", email="me@example.com").model_copy(update={"email_sent": True})
    assert apply_update(note, {"name": "Sam"}).email_sent is True


def test_update_rejects_unknown_fields() -> None:
    note = new_note("hello")
    with pytest.raises(NoteValidationError):
        apply_update(note, {"email_sent": True})


def test_update_rejects_empty_content() -> None:
    with pytest.raises(NoteValidationError):
        apply_update(new_note("hello"), {"content": "  "})


def test_update_does_not_mutate_original() -> None:
    note = new_note("hello", now=T0)
    apply_update(note, {"content": "changed"})
    assert note.content == "hello"
    assert note.updated_at == T0

"""
Tests for email/dispatcher.py and email/templates.py

Covers the unconfigured no-op, probe handling, send deadlines, and the
ordering of the email_sent write-back.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

from capsule.database.errors import StoreUnavailableError
from capsule.database.models import new_note
from capsule.email.dispatcher import DeliveryDispatcher, DispatchOutcome
from capsule.email.templates import render_capsule_email
from capsule.email.transport import MailTransportError
from capsule.utils.logging import LogLevel, get_log_buffer

from conftest import FakeTransport

T0 = datetime(2025, 1, 5, 8, 0, tzinfo=timezone.utc)


async def _insert(stores, **kwargs):
    kwargs.setdefault("email", "future@example.com")
    return await stores.notes.insert(new_note("dear future me", **kwargs))


def test_unconfigured_transport_skips_without_touching_store(stores, run_with) -> None:
    dispatcher = DeliveryDispatcher(stores.notes, None)

    async def scenario():
        note = await _insert(stores)
        outcome = await dispatcher.dispatch(note)
        return note, outcome, await stores.notes.get_by_id(note.id)

    note, outcome, stored = run_with(stores, scenario)

    assert outcome == DispatchOutcome.SKIPPED
    assert dispatcher.configured is False
    assert stored == note


def test_successful_dispatch_marks_note_sent(stores, run_with) -> None:
    transport = FakeTransport()
    dispatcher = DeliveryDispatcher(stores.notes, transport)

    async def scenario():
        note = await _insert(stores, name="Sam")
        outcome = await dispatcher.dispatch(note)
        return note, outcome, await stores.notes.get_by_id(note.id)

    note, outcome, stored = run_with(stores, scenario)

    assert outcome == DispatchOutcome.SENT
    assert stored.email_sent is True
    assert transport.verify_calls == 1
    assert len(transport.sent) == 1
    assert transport.sent[0] == render_capsule_email(note)


def test_probe_failure_still_sends(stores, run_with) -> None:
    transport = FakeTransport(fail_verify=True)
    dispatcher = DeliveryDispatcher(stores.notes, transport)

    async def scenario():
        note = await _insert(stores)
        return await dispatcher.dispatch(note)

    assert run_with(stores, scenario) == DispatchOutcome.SENT
    assert len(transport.sent) == 1
    warnings = get_log_buffer().get_recent(level=LogLevel.WARNING, source="delivery")
    assert any("verify failed" in w["message"] for w in warnings)


def test_probe_timeout_still_sends(file_stores, run_with) -> None:
    transport = FakeTransport(verify_delay=1.0)
    dispatcher = DeliveryDispatcher(file_stores.notes, transport, probe_timeout=0.01)

    async def scenario():
        note = await _insert(file_stores)
        return await dispatcher.dispatch(note)

    assert run_with(file_stores, scenario) == DispatchOutcome.SENT
    assert len(transport.sent) == 1


class RaisingVerifyTransport(FakeTransport):
    async def verify(self) -> None:
        self.verify_calls += 1
        raise RuntimeError("verify blew up")


def test_unexpected_verify_error_still_sends(stores, run_with) -> None:
    transport = RaisingVerifyTransport()
    dispatcher = DeliveryDispatcher(stores.notes, transport)

    async def scenario():
        note = await _insert(stores)
        outcome = await dispatcher.dispatch(note)
        return outcome, await stores.notes.get_by_id(note.id)

    outcome, stored = run_with(stores, scenario)

    assert outcome == DispatchOutcome.SENT
    assert stored.email_sent is True
    assert transport.verify_calls == 1
    assert len(transport.sent) == 1
    warnings = get_log_buffer().get_recent(level=LogLevel.WARNING, source="delivery")
    assert any(w["metadata"].get("error_type") == "RuntimeError" for w in warnings)


def test_send_timeout_fails_and_leaves_note_unmodified(stores, run_with) -> None:
    transport = FakeTransport(send_delay=1.0)
    dispatcher = DeliveryDispatcher(stores.notes, transport, send_timeout=0.01)

    async def scenario():
        note = await _insert(stores)
        outcome = await dispatcher.dispatch(note)
        return note, outcome, await stores.notes.get_by_id(note.id)

    note, outcome, stored = run_with(stores, scenario)

    assert outcome == DispatchOutcome.FAILED
    assert stored == note
    assert transport.sent == []


def test_transport_rejection_fails(file_stores, run_with) -> None:
    transport = FakeTransport(send_error=MailTransportError("550 mailbox unavailable"))
    dispatcher = DeliveryDispatcher(file_stores.notes, transport)

    async def scenario():
        note = await _insert(file_stores)
        outcome = await dispatcher.dispatch(note)
        return outcome, await file_stores.notes.get_by_id(note.id)

    outcome, stored = run_with(file_stores, scenario)

    assert outcome == DispatchOutcome.FAILED
    assert stored.email_sent is False
    errors = get_log_buffer().get_errors()
    assert errors[0]["metadata"]["error"] == "550 mailbox unavailable"


def test_already_sent_note_is_skipped(file_stores, run_with) -> None:
    transport = FakeTransport()
    dispatcher = DeliveryDispatcher(file_stores.notes, transport)

    async def scenario():
        note = await _insert(file_stores)
        sent = await file_stores.notes.set_email_sent(note.id, True)
        return await dispatcher.dispatch(sent)

    assert run_with(file_stores, scenario) == DispatchOutcome.SKIPPED
    assert transport.sent == []


def test_flag_write_failure_reports_failed(file_stores, run_with) -> None:
    transport = FakeTransport()
    dispatcher = DeliveryDispatcher(file_stores.notes, transport)

    async def scenario():
        note = await _insert(file_stores)
        file_stores.notes.set_email_sent = AsyncMock(side_effect=StoreUnavailableError("disk full"))
        return await dispatcher.dispatch(note)

    assert run_with(file_stores, scenario) == DispatchOutcome.FAILED
    # The message went out; the next cycle will send it again
    assert len(transport.sent) == 1


def test_template_is_deterministic() -> None:
    note = new_note("Line one\nLine two\n\n<b>second</b> paragraph", name="Sam", email="sam@example.com", now=T0)

    first = render_capsule_email(note)
    second = render_capsule_email(note.model_copy())

    assert first == second
    assert first.to == "sam@example.com"
    assert first.subject == "Your time capsule from January 5, 2025"
    assert first.text.startswith("Hi Sam,")
    assert "Line one\nLine two" in first.text
    assert "Line one<br>Line two" in first.html
    assert "&lt;b&gt;second&lt;/b&gt;" in first.html
    assert "<b>second</b>" not in first.html


def test_template_without_name() -> None:
    note = new_note("hello", email="sam@example.com", now=T0)
    assert render_capsule_email(note).text.startswith("Hi there,")

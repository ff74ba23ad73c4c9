import asyncio
from typing import List, Optional

import pytest

from capsule.config import AppConfig
from capsule.database.client import create_stores
from capsule.email.templates import CapsuleEmail
from capsule.email.transport import MailTransport, MailTransportError
from capsule.utils.logging import get_log_buffer


class FakeTransport(MailTransport):
    """In-memory transport with switchable failures and delays."""

    name = "fake"

    def __init__(
        self,
        fail_verify: bool = False,
        verify_delay: float = 0.0,
        send_delay: float = 0.0,
        send_error: Optional[Exception] = None,
        fail_for: Optional[set] = None,
    ):
        self.fail_verify = fail_verify
        self.verify_delay = verify_delay
        self.send_delay = send_delay
        self.send_error = send_error
        self.fail_for = fail_for or set()
        self.verify_calls = 0
        self.sent: List[CapsuleEmail] = []

    async def verify(self) -> None:
        self.verify_calls += 1
        if self.verify_delay:
            await asyncio.sleep(self.verify_delay)
        if self.fail_verify:
            raise MailTransportError("verification rejected")

    async def send(self, message: CapsuleEmail) -> Optional[str]:
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.send_error is not None:
            raise self.send_error
        if message.to in self.fail_for:
            raise MailTransportError(f"mailbox unavailable: {message.to}")
        self.sent.append(message)
        return f"fake-{len(self.sent)}"


def file_config(tmp_path) -> AppConfig:
    return AppConfig(
        _env_file=None,
        DATABASE_URL=None,
        NOTES_FILE=str(tmp_path / "notes.json"),
        UNSENT_NOTES_FILE=str(tmp_path / "unsent_notes.json"),
        SMTP_HOST=None,
        SMTP_USER=None,
        SMTP_PASSWORD=None,
        RESEND_API_KEY=None,
    )


def database_config(tmp_path) -> AppConfig:
    return AppConfig(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'capsule.db'}",
        SMTP_HOST=None,
        SMTP_USER=None,
        SMTP_PASSWORD=None,
        RESEND_API_KEY=None,
    )


@pytest.fixture(autouse=True)
def clear_log_buffer():
    get_log_buffer().clear()
    yield
    get_log_buffer().clear()


@pytest.fixture(params=["file", "database"])
def stores(request, tmp_path):
    """Stores for each backend; every store test runs against both."""
    if request.param == "file":
        return create_stores(file_config(tmp_path))
    return create_stores(database_config(tmp_path))


@pytest.fixture
def file_stores(tmp_path):
    return create_stores(file_config(tmp_path))


@pytest.fixture
def database_stores(tmp_path):
    return create_stores(database_config(tmp_path))


@pytest.fixture
def run_with():
    """Run an async scenario against initialized stores, closing them afterwards."""

    def _run(stores, scenario):
        async def _go():
            await stores.initialize()
            try:
                return await scenario()
            finally:
                await stores.close()

        return asyncio.run(_go())

    return _run

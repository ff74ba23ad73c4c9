"""
Mail transports.

A transport is created once at startup (see create_transport) and handed
to the DeliveryDispatcher. It lives for the life of the process; there is
nothing to tear down. Deadlines are applied by the dispatcher, not here.
"""

import asyncio
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

import aiosmtplib
import resend

from capsule.config import AppConfig, config as default_config
from capsule.utils.logging import delivery_logger as logger

from .templates import CapsuleEmail


class MailTransportError(Exception):
    """Raised when the transport rejects or cannot deliver a message."""
    pass


class MailTransport(ABC):
    """Opaque capability to deliver one message."""

    name: str = "transport"

    async def verify(self) -> None:
        """Connectivity probe. Raises MailTransportError if the server cannot be reached."""

    @abstractmethod
    async def send(self, message: CapsuleEmail) -> Optional[str]:
        """Deliver a message. Returns the provider's message id when there is one."""


class SmtpTransport(MailTransport):
    """SMTP delivery via aiosmtplib. Port 465 uses implicit TLS, other ports STARTTLS."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address or user

    @property
    def _tls_options(self) -> dict:
        if self.port == 465:
            return {"use_tls": True}
        return {"start_tls": True}

    def build_message(self, message: CapsuleEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_address
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        msg.add_alternative(message.html, subtype="html")
        return msg

    async def verify(self) -> None:
        smtp = aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            username=self.user,
            password=self.password,
            **self._tls_options,
        )
        try:
            await smtp.connect()
            await smtp.quit()
        except (aiosmtplib.SMTPException, OSError) as e:
            raise MailTransportError(f"SMTP verify failed: {e}") from e

    async def send(self, message: CapsuleEmail) -> Optional[str]:
        msg = self.build_message(message)
        try:
            await aiosmtplib.send(
                msg,
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self.password,
                **self._tls_options,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise MailTransportError(f"SMTP send failed: {e}") from e
        return None


class ResendTransport(MailTransport):
    """Delivery through the Resend API. The SDK is blocking, so calls run in a worker thread."""

    name = "resend"

    def __init__(self, api_key: str, from_address: Optional[str] = None):
        resend.api_key = api_key
        self.from_address = from_address or "onboarding@resend.dev"

    async def send(self, message: CapsuleEmail) -> Optional[str]:
        params = {
            "from": self.from_address,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        try:
            response = await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            # The SDK raises its own ResendError hierarchy plus requests errors
            raise MailTransportError(f"Resend send failed: {e}") from e
        return response.get("id") if isinstance(response, dict) else getattr(response, "id", None)


def create_transport(app_config: Optional[AppConfig] = None) -> Optional[MailTransport]:
    """
    Build the configured transport, or None when delivery is disabled.

    Complete SMTP credentials win; otherwise a Resend API key is used.
    Missing credentials disable delivery without affecting storage.
    """
    app_config = app_config or default_config

    if app_config.smtp_configured:
        logger.info("Using SMTP transport", host=app_config.SMTP_HOST, port=app_config.SMTP_PORT)
        return SmtpTransport(
            host=app_config.SMTP_HOST,
            port=app_config.SMTP_PORT,
            user=app_config.SMTP_USER,
            password=app_config.SMTP_PASSWORD,
            from_address=app_config.EMAIL_FROM_ADDRESS,
        )

    if any([app_config.SMTP_HOST, app_config.SMTP_USER, app_config.SMTP_PASSWORD]):
        logger.warning(
            "Incomplete SMTP configuration - SMTP disabled",
            host_set=app_config.SMTP_HOST is not None,
            user_set=app_config.SMTP_USER is not None,
            password_set=app_config.SMTP_PASSWORD is not None,
        )

    if app_config.RESEND_API_KEY:
        logger.info("Using Resend transport")
        return ResendTransport(app_config.RESEND_API_KEY, from_address=app_config.EMAIL_FROM_ADDRESS)

    logger.info("No mail transport configured - delivery disabled")
    return None

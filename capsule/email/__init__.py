"""
Email module for the time capsule service.

The DeliveryDispatcher renders a note's message and sends it through the
configured MailTransport (SMTP or Resend).
"""

from capsule.email.templates import CapsuleEmail, render_capsule_email
from capsule.email.transport import (
    MailTransport,
    MailTransportError,
    SmtpTransport,
    ResendTransport,
    create_transport,
)
from capsule.email.dispatcher import DeliveryDispatcher, DispatchOutcome

__all__ = [
    "CapsuleEmail",
    "render_capsule_email",
    "MailTransport",
    "MailTransportError",
    "SmtpTransport",
    "ResendTransport",
    "create_transport",
    "DeliveryDispatcher",
    "DispatchOutcome",
]

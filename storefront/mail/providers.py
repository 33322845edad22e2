"""Delivery backends for outbound mail.

A provider takes a fully rendered :class:`OutboundEmail` and either hands it
to a transport or raises. Retry and failure reporting live in the notifier.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Dict

from .config import EmailConfig, SmtpSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEmail:
    to: str
    subject: str
    text_body: str
    html_body: str
    kind: str = "transactional"


class EmailProvider:
    """Base class; subclasses implement :meth:`send`."""

    name = "base"

    def __init__(self, *, sender: str, sender_name: str = "") -> None:
        self.sender = sender
        self.sender_name = sender_name

    @property
    def from_header(self) -> str:
        if not self.sender_name:
            return self.sender
        return formataddr((self.sender_name, self.sender))

    def send(self, message: OutboundEmail) -> None:
        raise NotImplementedError

    def describe(self) -> Dict[str, str]:
        return {"email_provider": self.name, "email_sender": self.sender}


class ConsoleProvider(EmailProvider):
    """Writes mail to the log. Used in development and when nothing is configured."""

    name = "dev"

    def send(self, message: OutboundEmail) -> None:
        logger.info(
            "Dev %s email for %s: %s",
            message.kind,
            message.to,
            message.subject,
            extra={"email_recipient": message.to, **self.describe()},
        )
        logger.debug("Body:\n%s", message.text_body)


class SMTPProvider(EmailProvider):
    name = "smtp"

    def __init__(self, settings: SmtpSettings, *, sender: str, sender_name: str = "") -> None:
        super().__init__(sender=sender, sender_name=sender_name)
        self.settings = settings

    def compose(self, message: OutboundEmail) -> EmailMessage:
        composed = EmailMessage()
        composed["From"] = self.from_header
        composed["To"] = message.to
        composed["Subject"] = message.subject
        composed.set_content(message.text_body)
        composed.add_alternative(message.html_body, subtype="html")
        return composed

    def send(self, message: OutboundEmail) -> None:
        composed = self.compose(message)
        settings = self.settings
        with smtplib.SMTP(settings.host, settings.port, timeout=settings.timeout_seconds) as client:
            if settings.use_tls:
                client.starttls()
            if settings.authenticated:
                client.login(settings.username, settings.password)
            client.send_message(composed, from_addr=self.sender, to_addrs=[message.to])


def _smtp(config: EmailConfig) -> EmailProvider:
    return SMTPProvider(config.smtp, sender=config.sender, sender_name=config.sender_name)


def _console(config: EmailConfig) -> EmailProvider:
    return ConsoleProvider(sender=config.sender, sender_name=config.sender_name)


PROVIDERS: Dict[str, Callable[[EmailConfig], EmailProvider]] = {
    "dev": _console,
    "smtp": _smtp,
}


def create_email_provider(config: EmailConfig) -> EmailProvider:
    factory = PROVIDERS.get(config.provider_name)
    if factory is None:
        logger.warning("Unknown EMAIL_PROVIDER %r; mail will only be logged", config.provider_name)
        factory = _console
    return factory(config)


__all__ = [
    "ConsoleProvider",
    "EmailProvider",
    "OutboundEmail",
    "PROVIDERS",
    "SMTPProvider",
    "create_email_provider",
]

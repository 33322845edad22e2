"""Outbound mail settings read from the environment."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

from ..settings import EnvReader


@dataclass(frozen=True)
class SmtpSettings:
    host: str = "localhost"
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    timeout_seconds: float = 30.0

    @property
    def authenticated(self) -> bool:
        return bool(self.username and self.password)


@dataclass(frozen=True)
class EmailConfig:
    """Which provider delivers mail, who it comes from, and where links point."""

    provider_name: str = "dev"
    sender: str = "noreply@example.com"
    sender_name: str = "Storefront"
    app_base_url: str = "http://localhost:5000"
    smtp: SmtpSettings = field(default_factory=SmtpSettings)


def load_email_config(env: Optional[Mapping[str, str]] = None) -> EmailConfig:
    reader = EnvReader(env)
    smtp = SmtpSettings(
        host=reader.text("SMTP_HOST", "localhost"),
        port=reader.integer("SMTP_PORT", 587),
        username=reader.optional("SMTP_USER"),
        password=reader.optional("SMTP_PASS"),
        use_tls=reader.flag("SMTP_USE_TLS", True),
        # smtplib treats a zero timeout as non-blocking
        timeout_seconds=max(1.0, reader.number("SMTP_TIMEOUT_SECONDS", 30.0)),
    )
    return EmailConfig(
        provider_name=reader.text("EMAIL_PROVIDER", "dev").strip().lower(),
        sender=reader.text("FROM_EMAIL", "noreply@example.com"),
        sender_name=reader.text("FROM_NAME", "Storefront"),
        app_base_url=reader.text("APP_BASE_URL", "http://localhost:5000").rstrip("/"),
        smtp=smtp,
    )


__all__ = ["EmailConfig", "SmtpSettings", "load_email_config"]

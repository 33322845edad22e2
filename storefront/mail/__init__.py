"""Outbound email: configuration, providers, templates and notifications."""

from .config import EmailConfig, SmtpSettings, load_email_config
from .notifications import EmailNotifier
from .providers import ConsoleProvider, EmailProvider, OutboundEmail, SMTPProvider, create_email_provider
from .renderer import render_verification_email, render_welcome_email

__all__ = [
    "ConsoleProvider",
    "EmailConfig",
    "EmailNotifier",
    "EmailProvider",
    "OutboundEmail",
    "SMTPProvider",
    "SmtpSettings",
    "create_email_provider",
    "load_email_config",
    "render_verification_email",
    "render_welcome_email",
]

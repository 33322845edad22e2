"""Transactional emails sent on behalf of the verification flow."""
from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlencode

from email_validator import EmailNotValidError, validate_email

from .config import EmailConfig
from .providers import EmailProvider, OutboundEmail
from .renderer import render_verification_email, render_welcome_email

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Sends verification and welcome emails.

    Both senders report delivery as a boolean; provider failures are logged
    and never raised to the caller.
    """

    def __init__(
        self,
        provider: EmailProvider,
        config: EmailConfig,
        *,
        site_name: str = "Storefront",
        token_ttl_hours: int = 24,
    ) -> None:
        self.provider = provider
        self.config = config
        self.site_name = site_name
        self.token_ttl_hours = token_ttl_hours

    def verification_url(self, token: str) -> str:
        return f"{self.config.app_base_url}/verify-email?{urlencode({'token': token})}"

    def _recipient(self, to: Optional[str], username: str) -> Optional[str]:
        if not to:
            logger.warning("Cannot email %s: no address on file", username)
            return None
        try:
            return validate_email(to, check_deliverability=False).normalized
        except EmailNotValidError as exc:
            logger.warning("Cannot email %s: %s", username, exc)
            return None

    def send_verification_email(self, to: Optional[str], username: str, token: str) -> bool:
        recipient = self._recipient(to, username)
        if recipient is None:
            return False
        subject, text_body, html_body = render_verification_email(
            {
                "username": username,
                "verification_url": self.verification_url(token),
                "expires_hours": self.token_ttl_hours,
            }
        )
        return self._deliver(OutboundEmail(recipient, subject, text_body, html_body, kind="verification"))

    def send_welcome_email(self, to: Optional[str], username: str) -> bool:
        recipient = self._recipient(to, username)
        if recipient is None:
            return False
        subject, text_body, html_body = render_welcome_email(
            {
                "username": username,
                "site_name": self.site_name,
                "plans_url": f"{self.config.app_base_url}/plans",
            }
        )
        return self._deliver(OutboundEmail(recipient, subject, text_body, html_body, kind="welcome"))

    def _deliver(self, message: OutboundEmail) -> bool:
        try:
            self.provider.send(message)
        except Exception:
            logger.exception(
                "Failed to send %s email",
                message.kind,
                extra={"email_recipient": message.to, **self.provider.describe()},
            )
            return False
        logger.info("Sent %s email", message.kind, extra={"email_recipient": message.to})
        return True


__all__ = ["EmailNotifier"]

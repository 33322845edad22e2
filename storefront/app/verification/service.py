"""Issue and confirm email verification tokens under a resend rate limit."""
from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from ..billing.errors import ConflictError, NotFoundError, ValidationError
from .models import ResendResult, VerificationAccount
from .rate_limit import VerificationRateLimiter

logger = logging.getLogger("verification")


class VerificationUsers(Protocol):
    def get_account(self, user_id: int) -> Optional[VerificationAccount]:
        ...

    def store_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        ...

    def confirm_token(self, token_hash: str, now: datetime) -> Optional[VerificationAccount]:
        ...


class VerificationMailer(Protocol):
    def send_verification_email(self, to: Optional[str], username: str, token: str) -> bool:
        ...

    def send_welcome_email(self, to: Optional[str], username: str) -> bool:
        ...


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class VerificationService:
    users: VerificationUsers
    limiter: VerificationRateLimiter
    mailer: VerificationMailer
    token_ttl: timedelta = timedelta(hours=24)
    clock: Callable[[], datetime] = _utcnow

    def resend_verification(self, user_id: int) -> ResendResult:
        account = self.users.get_account(user_id)
        if account is None:
            raise NotFoundError(f"User {user_id} not found")
        if account.is_email_verified:
            raise ConflictError("Email address is already verified")

        now = self.clock()
        decision = self.limiter.check(user_id, now)

        token = secrets.token_urlsafe(32)
        expires_at = now + self.token_ttl
        # Only the digest is stored; the raw token exists in the email alone.
        self.users.store_token(user_id, hash_token(token), expires_at)
        sent = self.mailer.send_verification_email(account.email, account.username, token)
        if not sent:
            logger.warning("Verification email for user %s was not delivered", user_id)

        return ResendResult(
            sent=sent,
            attempt_count=decision.attempt_count,
            remaining_attempts=decision.remaining_attempts(self.limiter.policy),
            cooldown_seconds=self.limiter.policy.cooldown_seconds,
            expires_at=expires_at,
        )

    def confirm(self, token: str) -> VerificationAccount:
        cleaned = (token or "").strip()
        if not cleaned:
            raise ValidationError("A verification token is required", fields={"token": "required"})
        account = self.users.confirm_token(hash_token(cleaned), self.clock())
        if account is None:
            raise ValidationError("Invalid or expired verification token", fields={"token": "invalid"})
        logger.info("Email verified for user %s", account.id)
        self.mailer.send_welcome_email(account.email, account.username)
        return account


__all__ = ["VerificationMailer", "VerificationService", "VerificationUsers", "hash_token"]

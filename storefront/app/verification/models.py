"""Models for the email verification flow."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class VerificationAccount(BaseModel):
    id: int
    username: str
    email: Optional[str] = None
    is_email_verified: bool = False

    model_config = ConfigDict(frozen=True)


class ResendResult(BaseModel):
    """Outcome of a permitted resend."""

    sent: bool
    attempt_count: int
    remaining_attempts: int
    cooldown_seconds: int
    expires_at: datetime

    model_config = ConfigDict(frozen=True)


__all__ = ["ResendResult", "VerificationAccount"]

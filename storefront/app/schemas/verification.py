"""API schemas for email verification endpoints."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..verification import ResendResult


class RateLimitInfo(BaseModel):
    attempt_count: int = Field(alias="attemptCount")
    remaining_attempts: int = Field(alias="remainingAttempts")
    cooldown_seconds: int = Field(alias="cooldownSeconds")

    model_config = ConfigDict(populate_by_name=True)


class ResendVerificationResponse(BaseModel):
    success: bool
    message: str
    expires_at: datetime = Field(alias="expiresAt")
    rate_limit_info: RateLimitInfo = Field(alias="rateLimitInfo")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: ResendResult) -> "ResendVerificationResponse":
        message = (
            "Verification email sent"
            if result.sent
            else "Verification email could not be delivered; please try again later"
        )
        return cls(
            success=result.sent,
            message=message,
            expires_at=result.expires_at,
            rate_limit_info=RateLimitInfo(
                attempt_count=result.attempt_count,
                remaining_attempts=result.remaining_attempts,
                cooldown_seconds=result.cooldown_seconds,
            ),
        )


class VerifyEmailRequest(BaseModel):
    token: str


class VerifyEmailResponse(BaseModel):
    success: bool
    user_id: int = Field(alias="userId")

    model_config = ConfigDict(populate_by_name=True)

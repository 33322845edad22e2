"""API routes for email verification."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth.policy import current_user as _get_current_user
from ..schemas.verification import (
    ResendVerificationResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from ..services.verification import get_verification_service

router = APIRouter(prefix="/api/verification", tags=["verification"])


@router.post("/resend", response_model=ResendVerificationResponse)
def resend_verification_email(*, current_user=Depends(_get_current_user)) -> ResendVerificationResponse:
    """Send a fresh verification link, subject to the resend rate limit."""

    result = get_verification_service().resend_verification(current_user.id)
    return ResendVerificationResponse.from_result(result)


@router.post("/verify", response_model=VerifyEmailResponse)
def verify_email(payload: VerifyEmailRequest) -> VerifyEmailResponse:
    account = get_verification_service().confirm(payload.token)
    return VerifyEmailResponse(success=True, user_id=account.id)

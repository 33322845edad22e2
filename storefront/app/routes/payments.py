"""API routes for the payment ledger and invoices."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth.policy import current_user as _get_current_user
from ..schemas.billing import (
    InvoiceListResponse,
    InvoiceResponse,
    PaymentListResponse,
    PaymentResponse,
    RefundRequest,
)
from ..services.billing import get_subscription_service

router = APIRouter(prefix="/api", tags=["payments"])


@router.get("/payments", response_model=PaymentListResponse)
def list_payments(*, current_user=Depends(_get_current_user)) -> PaymentListResponse:
    service = get_subscription_service()
    payments = service.list_user_payments(current_user.id)
    return PaymentListResponse(payments=[PaymentResponse.from_payment(item) for item in payments])


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse)
def refund_payment(
    payment_id: int,
    payload: RefundRequest,
    *,
    current_user=Depends(_get_current_user),
) -> PaymentResponse:
    """Refund a payment; administrators only."""

    service = get_subscription_service()
    refund = service.refund_payment(payment_id, reason=payload.reason, actor=current_user)
    return PaymentResponse.from_payment(refund)


@router.get("/invoices", response_model=InvoiceListResponse)
def list_invoices(*, current_user=Depends(_get_current_user)) -> InvoiceListResponse:
    service = get_subscription_service()
    invoices = service.list_user_invoices(current_user.id)
    return InvoiceListResponse(invoices=[InvoiceResponse.from_invoice(item) for item in invoices])

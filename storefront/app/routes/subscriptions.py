"""API routes for a user's own subscriptions."""
from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends, Query

from ..auth.policy import current_user as _get_current_user
from ..billing import CardCheckout
from ..schemas.billing import (
    CancelSubscriptionResponse,
    CardCheckoutResponse,
    CreateSubscriptionRequest,
    CryptoCheckoutResponse,
    SubscriptionListResponse,
    SubscriptionResponse,
)
from ..services.billing import get_subscription_service

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


@router.post("", response_model=Union[CardCheckoutResponse, CryptoCheckoutResponse])
def create_subscription(
    payload: CreateSubscriptionRequest,
    *,
    current_user=Depends(_get_current_user),
) -> Union[CardCheckoutResponse, CryptoCheckoutResponse]:
    """Start a card checkout or a pending crypto subscription."""

    service = get_subscription_service()
    checkout = service.create_subscription(
        user_id=current_user.id,
        plan_id=payload.plan_id,
        payment_method=payload.payment_method,
    )
    if isinstance(checkout, CardCheckout):
        return CardCheckoutResponse.from_checkout(checkout)
    return CryptoCheckoutResponse.from_checkout(checkout)


@router.get("", response_model=SubscriptionListResponse)
def list_subscriptions(*, current_user=Depends(_get_current_user)) -> SubscriptionListResponse:
    service = get_subscription_service()
    subscriptions = service.list_user_subscriptions(current_user.id)
    return SubscriptionListResponse(
        subscriptions=[SubscriptionResponse.from_subscription(item) for item in subscriptions]
    )


@router.get("/checkout", response_model=CardCheckoutResponse)
def get_pending_checkout(*, current_user=Depends(_get_current_user)) -> CardCheckoutResponse:
    """Return the payment secret for the user's latest card subscription."""

    service = get_subscription_service()
    return CardCheckoutResponse.from_checkout(service.get_pending_checkout(current_user.id))


@router.delete("/{subscription_id}", response_model=CancelSubscriptionResponse)
def cancel_subscription(
    subscription_id: int,
    *,
    cancel_remote: bool = Query(default=False, alias="cancelRemote"),
    current_user=Depends(_get_current_user),
) -> CancelSubscriptionResponse:
    service = get_subscription_service()
    cancelled = service.cancel_subscription(
        subscription_id,
        actor=current_user,
        cancel_remote=cancel_remote,
    )
    return CancelSubscriptionResponse.from_subscription(cancelled)

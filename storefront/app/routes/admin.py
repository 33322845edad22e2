"""Administrative routes for plans, users, the ledger and invoices."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from ..auth.policy import require_admin_user
from ..schemas.billing import (
    InvoiceListResponse,
    InvoiceResponse,
    PaymentListResponse,
    PaymentResponse,
    PlanCreateRequest,
    PlanListResponse,
    PlanResponse,
    PlanUpdateRequest,
    SubscriptionListResponse,
    SubscriptionResponse,
    UserDeletionResponse,
)
from ..services.billing import get_plan_catalog_service, get_subscription_service

_DEFAULT_PAGE_SIZE = 50
_MAX_PAGE_SIZE = 200

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/plans", response_model=PlanListResponse)
def list_all_plans(*, admin=Depends(require_admin_user)) -> PlanListResponse:
    plans = get_plan_catalog_service().list_all_plans(actor=admin)
    return PlanListResponse(plans=[PlanResponse.from_plan(plan) for plan in plans])


@router.post("/plans", response_model=PlanResponse, status_code=status.HTTP_201_CREATED)
def create_plan(payload: PlanCreateRequest, *, admin=Depends(require_admin_user)) -> PlanResponse:
    plan = get_plan_catalog_service().create_plan(payload.changes(), actor=admin)
    return PlanResponse.from_plan(plan)


@router.patch("/plans/{plan_id}", response_model=PlanResponse)
def update_plan(
    plan_id: int,
    payload: PlanUpdateRequest,
    *,
    admin=Depends(require_admin_user),
) -> PlanResponse:
    plan = get_plan_catalog_service().update_plan(plan_id, payload.changes(), actor=admin)
    return PlanResponse.from_plan(plan)


@router.get("/subscriptions", response_model=SubscriptionListResponse)
def list_all_subscriptions(
    *,
    limit: int = Query(default=_DEFAULT_PAGE_SIZE, ge=1, le=_MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    admin=Depends(require_admin_user),
) -> SubscriptionListResponse:
    subscriptions = get_subscription_service().list_all_subscriptions(
        actor=admin, limit=limit, offset=offset
    )
    return SubscriptionListResponse(
        subscriptions=[SubscriptionResponse.from_subscription(item) for item in subscriptions]
    )


@router.get("/payments", response_model=PaymentListResponse)
def list_all_payments(
    *,
    limit: int = Query(default=_DEFAULT_PAGE_SIZE, ge=1, le=_MAX_PAGE_SIZE),
    offset: int = Query(default=0, ge=0),
    admin=Depends(require_admin_user),
) -> PaymentListResponse:
    payments = get_subscription_service().list_all_payments(actor=admin, limit=limit, offset=offset)
    return PaymentListResponse(payments=[PaymentResponse.from_payment(item) for item in payments])


@router.delete("/users/{user_id}", response_model=UserDeletionResponse)
def delete_user(user_id: int, *, admin=Depends(require_admin_user)) -> UserDeletionResponse:
    """Delete a user, cancelling their remote subscriptions first."""

    result = get_subscription_service().delete_user(user_id, actor=admin)
    return UserDeletionResponse.from_result(result)


@router.post("/users/{user_id}/invoices/sync", response_model=InvoiceListResponse)
def sync_user_invoices(user_id: int, *, admin=Depends(require_admin_user)) -> InvoiceListResponse:
    invoices = get_subscription_service().sync_invoices(user_id, actor=admin)
    return InvoiceListResponse(invoices=[InvoiceResponse.from_invoice(item) for item in invoices])


@router.delete("/invoices/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: int, *, admin=Depends(require_admin_user)) -> Response:
    get_subscription_service().delete_invoice(invoice_id, actor=admin)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

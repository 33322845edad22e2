"""API schemas for subscription, payment, plan and invoice endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..billing import (
    BillingCycle,
    CardCheckout,
    CryptoCheckout,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Plan,
    Subscription,
    SubscriptionStatus,
    UserDeletionResult,
)


class CreateSubscriptionRequest(BaseModel):
    plan_id: int = Field(alias="planId")
    payment_method: PaymentMethod = Field(alias="paymentMethod", default=PaymentMethod.CARD)

    model_config = ConfigDict(populate_by_name=True)


class CardCheckoutResponse(BaseModel):
    subscription_id: int = Field(alias="subscriptionId")
    remote_subscription_id: str = Field(alias="remoteSubscriptionId")
    client_secret: str = Field(alias="clientSecret")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_checkout(cls, checkout: CardCheckout) -> "CardCheckoutResponse":
        return cls(
            subscription_id=checkout.subscription_id,
            remote_subscription_id=checkout.remote_subscription_id,
            client_secret=checkout.client_secret,
        )


class CryptoCheckoutResponse(BaseModel):
    subscription_id: int = Field(alias="subscriptionId")
    transaction_id: str = Field(alias="transactionId")
    accepted_coins: List[str] = Field(alias="acceptedCoins")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_checkout(cls, checkout: CryptoCheckout) -> "CryptoCheckoutResponse":
        return cls(
            subscription_id=checkout.subscription_id,
            transaction_id=checkout.transaction_id,
            accepted_coins=list(checkout.accepted_coins),
        )


class SubscriptionResponse(BaseModel):
    id: int
    user_id: int = Field(alias="userId")
    plan_id: int = Field(alias="planId")
    status: SubscriptionStatus
    is_active: bool = Field(alias="isActive")
    start_date: datetime = Field(alias="startDate")
    end_date: Optional[datetime] = Field(alias="endDate", default=None)
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    remote_subscription_id: Optional[str] = Field(alias="remoteSubscriptionId", default=None)
    payment_reference: Optional[str] = Field(alias="paymentReference", default=None)
    twitch_channel: Optional[str] = Field(alias="twitchChannel", default=None)
    settings: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            user_id=subscription.user_id,
            plan_id=subscription.plan_id,
            status=subscription.status,
            is_active=subscription.is_active,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            payment_method=subscription.payment_method,
            remote_subscription_id=subscription.remote_subscription_id,
            payment_reference=subscription.payment_reference,
            twitch_channel=subscription.twitch_channel,
            settings=subscription.settings.model_dump(),
        )


class SubscriptionListResponse(BaseModel):
    subscriptions: List[SubscriptionResponse]


class CancelSubscriptionResponse(BaseModel):
    id: int
    status: SubscriptionStatus
    is_active: bool = Field(alias="isActive")
    end_date: Optional[datetime] = Field(alias="endDate", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "CancelSubscriptionResponse":
        return cls(
            id=subscription.id,
            status=subscription.status,
            is_active=subscription.is_active,
            end_date=subscription.end_date,
        )


class PaymentResponse(BaseModel):
    id: int
    user_id: int = Field(alias="userId")
    subscription_id: Optional[int] = Field(alias="subscriptionId", default=None)
    invoice_id: Optional[int] = Field(alias="invoiceId", default=None)
    amount: int
    currency: str
    status: PaymentStatus
    payment_method: PaymentMethod = Field(alias="paymentMethod")
    payment_type: PaymentType = Field(alias="paymentType")
    refund_reason: Optional[str] = Field(alias="refundReason", default=None)
    refunded_payment_id: Optional[int] = Field(alias="refundedPaymentId", default=None)
    created_at: datetime = Field(alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=payment.id,
            user_id=payment.user_id,
            subscription_id=payment.subscription_id,
            invoice_id=payment.invoice_id,
            amount=payment.amount,
            currency=payment.currency,
            status=payment.status,
            payment_method=payment.payment_method,
            payment_type=payment.payment_type,
            refund_reason=payment.refund_reason,
            refunded_payment_id=payment.refunded_payment_id,
            created_at=payment.created_at,
        )


class PaymentListResponse(BaseModel):
    payments: List[PaymentResponse]


class RefundRequest(BaseModel):
    reason: Optional[str] = None


class PlanResponse(BaseModel):
    id: int
    name: str
    price: int
    billing_cycle: BillingCycle = Field(alias="billingCycle")
    is_visible: bool = Field(alias="isVisible")
    is_active: bool = Field(alias="isActive")
    sort_order: int = Field(alias="sortOrder")
    description: str
    features: List[str]
    platform: str
    viewer_count: int = Field(alias="viewerCount")
    chat_count: int = Field(alias="chatCount")
    follower_count: int = Field(alias="followerCount")
    is_popular: bool = Field(alias="isPopular")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            billing_cycle=plan.billing_cycle,
            is_visible=plan.is_visible,
            is_active=plan.is_active,
            sort_order=plan.sort_order,
            description=plan.description,
            features=list(plan.features),
            platform=plan.platform,
            viewer_count=plan.viewer_count,
            chat_count=plan.chat_count,
            follower_count=plan.follower_count,
            is_popular=plan.is_popular,
        )


class PlanListResponse(BaseModel):
    plans: List[PlanResponse]


class PlanUpdateRequest(BaseModel):
    """Partial plan change; only fields present in the request are applied."""

    name: Optional[str] = None
    price: Optional[int] = None
    billing_cycle: Optional[BillingCycle] = Field(alias="billingCycle", default=None)
    remote_price_id: Optional[str] = Field(alias="remotePriceId", default=None)
    is_visible: Optional[bool] = Field(alias="isVisible", default=None)
    is_active: Optional[bool] = Field(alias="isActive", default=None)
    sort_order: Optional[int] = Field(alias="sortOrder", default=None)
    description: Optional[str] = None
    features: Optional[List[str]] = None
    platform: Optional[str] = None
    viewer_count: Optional[int] = Field(alias="viewerCount", default=None)
    chat_count: Optional[int] = Field(alias="chatCount", default=None)
    follower_count: Optional[int] = Field(alias="followerCount", default=None)
    is_popular: Optional[bool] = Field(alias="isPopular", default=None)

    model_config = ConfigDict(populate_by_name=True)

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, mode="json")


class PlanCreateRequest(PlanUpdateRequest):
    name: str
    price: int


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str = Field(alias="invoiceNumber")
    amount: int
    currency: str
    status: InvoiceStatus
    issued_at: datetime = Field(alias="issuedAt")
    paid_at: Optional[datetime] = Field(alias="paidAt", default=None)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            invoice_number=invoice.invoice_number,
            amount=invoice.amount,
            currency=invoice.currency,
            status=invoice.status,
            issued_at=invoice.issued_at,
            paid_at=invoice.paid_at,
        )


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]


class RemoteCancellationFailureResponse(BaseModel):
    subscription_id: int = Field(alias="subscriptionId")
    remote_subscription_id: str = Field(alias="remoteSubscriptionId")
    error: str

    model_config = ConfigDict(populate_by_name=True)


class UserDeletionResponse(BaseModel):
    user_id: int = Field(alias="userId")
    deleted: bool
    fully_reconciled: bool = Field(alias="fullyReconciled")
    cancelled_remote_ids: List[str] = Field(alias="cancelledRemoteIds")
    failed_remote_cancellations: List[RemoteCancellationFailureResponse] = Field(
        alias="failedRemoteCancellations"
    )

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_result(cls, result: UserDeletionResult) -> "UserDeletionResponse":
        return cls(
            user_id=result.user_id,
            deleted=result.deleted,
            fully_reconciled=result.fully_reconciled,
            cancelled_remote_ids=list(result.cancelled_remote_ids),
            failed_remote_cancellations=[
                RemoteCancellationFailureResponse(
                    subscription_id=failure.subscription_id,
                    remote_subscription_id=failure.remote_subscription_id,
                    error=failure.error,
                )
                for failure in result.failed_remote_cancellations
            ],
        )

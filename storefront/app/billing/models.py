"""Domain models for the subscription billing system."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class BillingCycle(str, Enum):
    """Billing frequencies a plan can renew on."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def period(self) -> timedelta:
        return _CYCLE_PERIODS[self]


_CYCLE_PERIODS = {
    BillingCycle.DAY: timedelta(days=1),
    BillingCycle.WEEK: timedelta(days=7),
    BillingCycle.MONTH: timedelta(days=30),
    BillingCycle.YEAR: timedelta(days=365),
}


class SubscriptionStatus(str, Enum):
    """Lifecycle state for a user subscription."""

    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PaymentMethod(str, Enum):
    CARD = "card"
    CRYPTO = "crypto"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentType(str, Enum):
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"
    REFUND = "refund"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    PAID = "paid"
    VOID = "void"
    OVERDUE = "overdue"


class AuditAction(str, Enum):
    """Privileged state changes recorded in the audit log."""

    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_PENDING = "subscription.pending_crypto"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    PAYMENT_REFUNDED = "payment.refunded"
    USER_DELETED = "user.deleted"
    PLAN_CREATED = "plan.created"
    PLAN_UPDATED = "plan.updated"
    INVOICE_DELETED = "invoice.deleted"


class Plan(BaseModel):
    """A purchasable subscription tier."""

    id: int
    name: str
    price: int = Field(ge=0, description="Price in minor currency units")
    billing_cycle: BillingCycle = BillingCycle.MONTH
    remote_price_id: Optional[str] = None
    is_visible: bool = True
    is_active: bool = True
    sort_order: int = 0
    description: str = ""
    features: List[str] = Field(default_factory=list)
    platform: str = "twitch"
    viewer_count: int = 0
    chat_count: int = 0
    follower_count: int = 0
    is_popular: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


# Columns an administrator may write on a plan row.
PLAN_EDITABLE_FIELDS = (
    "name",
    "price",
    "billing_cycle",
    "remote_price_id",
    "is_visible",
    "is_active",
    "sort_order",
    "description",
    "features",
    "platform",
    "viewer_count",
    "chat_count",
    "follower_count",
    "is_popular",
)

# Fields that define what a subscriber is charged. They are frozen once an
# active subscription references the plan.
PLAN_PRICING_FIELDS = frozenset({"price", "billing_cycle", "remote_price_id"})


class ServiceSettings(BaseModel):
    """Versioned per-subscription service configuration.

    Unknown keys written by newer clients are kept so that a round trip
    through an older deployment never drops them.
    """

    schema_version: int = 1
    viewer: Dict[str, Any] = Field(default_factory=dict)
    chat: Dict[str, Any] = Field(default_factory=dict)
    follower: Dict[str, Any] = Field(default_factory=dict)
    geographic_targeting: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="allow", frozen=True)

    @classmethod
    def from_legacy(
        cls,
        *,
        viewer_settings: Optional[str] = None,
        chat_settings: Optional[str] = None,
        follower_settings: Optional[str] = None,
        geographic_targeting: Optional[str] = None,
    ) -> "ServiceSettings":
        """Upgrade the serialized-string columns of older rows."""

        def _load(raw: Optional[str]) -> Dict[str, Any]:
            if not raw:
                return {}
            try:
                value = json.loads(raw)
            except ValueError:
                return {}
            return value if isinstance(value, dict) else {}

        countries = [
            item.strip().upper()
            for item in (geographic_targeting or "").split(",")
            if item.strip()
        ]
        return cls(
            viewer=_load(viewer_settings),
            chat=_load(chat_settings),
            follower=_load(follower_settings),
            geographic_targeting=countries,
        )


class Subscription(BaseModel):
    """A user's association with a plan over a time window."""

    id: int
    user_id: int
    plan_id: int
    status: SubscriptionStatus
    is_active: bool = False
    start_date: datetime
    end_date: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.CARD
    remote_subscription_id: Optional[str] = None
    payment_reference: Optional[str] = None
    twitch_channel: Optional[str] = None
    settings: ServiceSettings = Field(default_factory=ServiceSettings)

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def _check_window(self) -> "Subscription":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self

    @property
    def in_grace_period(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED and self.is_active


class NewSubscription(BaseModel):
    """Subscription fields supplied before the store assigns an id."""

    user_id: int
    plan_id: int
    status: SubscriptionStatus
    is_active: bool
    start_date: datetime
    end_date: Optional[datetime] = None
    payment_method: PaymentMethod
    remote_subscription_id: Optional[str] = None
    payment_reference: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class Payment(BaseModel):
    """A single monetary event in the ledger."""

    id: int
    user_id: int
    subscription_id: Optional[int] = None
    invoice_id: Optional[int] = None
    amount: int
    currency: str = "usd"
    status: PaymentStatus
    payment_method: PaymentMethod
    payment_type: PaymentType = PaymentType.SUBSCRIPTION
    remote_payment_intent_id: Optional[str] = None
    refund_reason: Optional[str] = None
    refunded_payment_id: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("currency")
    @classmethod
    def _lower_currency(cls, value: str) -> str:
        return value.lower()

    @property
    def is_refund(self) -> bool:
        return self.payment_type == PaymentType.REFUND


class NewPayment(BaseModel):
    user_id: int
    subscription_id: Optional[int] = None
    invoice_id: Optional[int] = None
    amount: int
    currency: str = "usd"
    status: PaymentStatus
    payment_method: PaymentMethod
    payment_type: PaymentType
    remote_payment_intent_id: Optional[str] = None
    refund_reason: Optional[str] = None
    refunded_payment_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class Invoice(BaseModel):
    id: int
    user_id: int
    invoice_number: str
    amount: int = 0
    currency: str = "usd"
    status: InvoiceStatus
    remote_invoice_id: Optional[str] = None
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AuditLogEntry(BaseModel):
    """Immutable record of a privileged action."""

    user_id: Optional[int]
    action: AuditAction
    entity_type: str
    entity_id: str
    details: Dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class BillingAccount(BaseModel):
    """The slice of a user record the billing engine reads and writes."""

    id: int
    username: str
    email: Optional[str] = None
    role: str = "user"
    remote_customer_id: Optional[str] = None
    remote_subscription_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class CardCheckout(BaseModel):
    """Result of starting a card subscription."""

    subscription_id: int
    remote_subscription_id: str
    client_secret: str

    model_config = ConfigDict(frozen=True)


class CryptoCheckout(BaseModel):
    """Result of starting a crypto subscription awaiting confirmation."""

    subscription_id: int
    transaction_id: str
    accepted_coins: List[str]

    model_config = ConfigDict(frozen=True)


class RemoteCancellationFailure(BaseModel):
    subscription_id: int
    remote_subscription_id: str
    error: str

    model_config = ConfigDict(frozen=True)


class UserDeletionResult(BaseModel):
    """Two-outcome result of deleting a user: local state and remote cascade."""

    user_id: int
    deleted: bool
    cancelled_remote_ids: List[str] = Field(default_factory=list)
    failed_remote_cancellations: List[RemoteCancellationFailure] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def fully_reconciled(self) -> bool:
        return self.deleted and not self.failed_remote_cancellations


__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "BillingAccount",
    "BillingCycle",
    "CardCheckout",
    "CryptoCheckout",
    "Invoice",
    "InvoiceStatus",
    "NewPayment",
    "NewSubscription",
    "PLAN_EDITABLE_FIELDS",
    "PLAN_PRICING_FIELDS",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "Plan",
    "RemoteCancellationFailure",
    "ServiceSettings",
    "Subscription",
    "SubscriptionStatus",
    "UserDeletionResult",
]

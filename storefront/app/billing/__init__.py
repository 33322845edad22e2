"""Billing domain package: plans, subscriptions, the ledger and the gateway seam.

The engine lives in :mod:`.service`; it is not re-exported here so that the
authorization package can depend on :mod:`.errors` without an import cycle.
"""

from .errors import (
    AuthorizationError,
    BillingError,
    ConflictError,
    GatewayError,
    GatewayIncomplete,
    GatewayRefundFailed,
    GatewayRejected,
    GatewayUnavailable,
    InvalidGatewayPrice,
    NotFoundError,
    PlanNotFound,
    RateLimited,
    RefundReconciliationRequired,
    ValidationError,
)
from .models import (
    AuditAction,
    AuditLogEntry,
    BillingAccount,
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
    ServiceSettings,
    Subscription,
    SubscriptionStatus,
    UserDeletionResult,
)

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "AuthorizationError",
    "BillingAccount",
    "BillingCycle",
    "BillingError",
    "CardCheckout",
    "ConflictError",
    "CryptoCheckout",
    "GatewayError",
    "GatewayIncomplete",
    "GatewayRefundFailed",
    "GatewayRejected",
    "GatewayUnavailable",
    "InvalidGatewayPrice",
    "Invoice",
    "InvoiceStatus",
    "NotFoundError",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "Plan",
    "PlanNotFound",
    "RateLimited",
    "RefundReconciliationRequired",
    "ServiceSettings",
    "Subscription",
    "SubscriptionStatus",
    "UserDeletionResult",
    "ValidationError",
]

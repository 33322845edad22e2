"""Capability interface for the remote card-payment provider."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence


@dataclass(frozen=True)
class RemotePrice:
    id: str
    unit_amount: Optional[int]
    currency: str
    active: bool = True


@dataclass(frozen=True)
class RemotePaymentIntent:
    id: str
    client_secret: Optional[str]
    amount: Optional[int] = None
    status: Optional[str] = None


@dataclass(frozen=True)
class RemoteInvoice:
    id: str
    status: Optional[str]
    amount_due: int = 0
    currency: str = "usd"
    payment_intent: Optional[RemotePaymentIntent] = None
    # Identifier of the payment intent when the provider did not expand it.
    payment_intent_id: Optional[str] = None
    number: Optional[str] = None
    paid_at: Optional[int] = None


@dataclass(frozen=True)
class RemoteSubscription:
    id: str
    status: Optional[str]
    customer_id: Optional[str] = None
    latest_invoice: Optional[RemoteInvoice] = None
    # Identifier of the latest invoice when the provider did not expand it.
    latest_invoice_id: Optional[str] = None


@dataclass(frozen=True)
class RemoteRefund:
    id: str
    status: Optional[str]
    amount: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


class PaymentGateway(Protocol):
    """Operations the billing engine needs from the payment provider.

    Implementations translate provider failures into
    :class:`~storefront.app.billing.errors.GatewayRejected` or
    :class:`~storefront.app.billing.errors.GatewayUnavailable`.
    """

    def create_customer(
        self, *, email: Optional[str], name: str, idempotency_key: Optional[str] = None
    ) -> str:
        ...

    def retrieve_price(self, price_id: str) -> Optional[RemotePrice]:
        """Return the price, or ``None`` when the provider does not know it."""

    def create_subscription(
        self, *, customer_id: str, price_id: str, idempotency_key: Optional[str] = None
    ) -> RemoteSubscription:
        ...

    def retrieve_subscription(self, subscription_id: str) -> RemoteSubscription:
        ...

    def retrieve_invoice(self, invoice_id: str, *, expand: Sequence[str] = ()) -> RemoteInvoice:
        ...

    def create_payment_intent(
        self,
        *,
        customer_id: str,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> RemotePaymentIntent:
        ...

    def create_refund(
        self, *, payment_intent_id: str, reason: str, idempotency_key: Optional[str] = None
    ) -> RemoteRefund:
        ...

    def list_invoices(self, customer_id: str, *, limit: int = 20) -> List[RemoteInvoice]:
        ...

    def cancel_subscription(self, subscription_id: str) -> None:
        ...


__all__ = [
    "PaymentGateway",
    "RemoteInvoice",
    "RemotePaymentIntent",
    "RemotePrice",
    "RemoteRefund",
    "RemoteSubscription",
]

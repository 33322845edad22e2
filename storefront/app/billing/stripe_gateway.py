"""Stripe implementation of the payment gateway capability."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import stripe

from .config import BillingConfig
from .errors import GatewayRejected, GatewayUnavailable
from .gateway import (
    RemoteInvoice,
    RemotePaymentIntent,
    RemotePrice,
    RemoteRefund,
    RemoteSubscription,
)

logger = logging.getLogger("billing.stripe")

T = TypeVar("T")

# Stripe only accepts a fixed vocabulary for refund reasons; the operator's
# free-text reason travels in metadata instead.
_STRIPE_REFUND_REASON = "requested_by_customer"


def configure_stripe(config: BillingConfig) -> None:
    """Apply global client settings for the ``stripe`` module."""

    stripe.api_key = config.stripe_secret_key
    stripe.api_version = config.stripe_api_version
    # Retries are left to callers so that idempotency keys stay meaningful.
    stripe.max_network_retries = 0
    stripe.default_http_client = stripe.RequestsClient(timeout=config.stripe_timeout_seconds)


def _value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _to_payment_intent(obj: Any) -> Optional[RemotePaymentIntent]:
    if obj is None or isinstance(obj, str):
        return None
    return RemotePaymentIntent(
        id=str(_value(obj, "id")),
        client_secret=_value(obj, "client_secret"),
        amount=_value(obj, "amount"),
        status=_value(obj, "status"),
    )


def _to_invoice(obj: Any) -> Optional[RemoteInvoice]:
    if obj is None or isinstance(obj, str):
        return None
    raw_intent = _value(obj, "payment_intent")
    status_transitions = _value(obj, "status_transitions")
    return RemoteInvoice(
        id=str(_value(obj, "id")),
        status=_value(obj, "status"),
        amount_due=int(_value(obj, "amount_due") or 0),
        currency=str(_value(obj, "currency") or "usd"),
        payment_intent=_to_payment_intent(raw_intent),
        payment_intent_id=raw_intent if isinstance(raw_intent, str) else _value(raw_intent, "id"),
        number=_value(obj, "number"),
        paid_at=_value(status_transitions, "paid_at"),
    )


def _to_subscription(obj: Any) -> RemoteSubscription:
    raw_invoice = _value(obj, "latest_invoice")
    raw_customer = _value(obj, "customer")
    return RemoteSubscription(
        id=str(_value(obj, "id")),
        status=_value(obj, "status"),
        customer_id=raw_customer if isinstance(raw_customer, str) else _value(raw_customer, "id"),
        latest_invoice=_to_invoice(raw_invoice),
        latest_invoice_id=raw_invoice if isinstance(raw_invoice, str) else _value(raw_invoice, "id"),
    )


class StripePaymentGateway:
    """Thin adapter over the ``stripe`` SDK resource classes."""

    def _call(self, operation: str, func: Callable[[], T]) -> T:
        try:
            return func()
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            logger.warning("Stripe %s unavailable: %s", operation, exc)
            raise GatewayUnavailable(
                f"Payment provider unavailable during {operation}",
                detail={"operation": operation},
            ) from exc
        except stripe.StripeError as exc:
            logger.warning(
                "Stripe %s rejected: %s",
                operation,
                exc,
                extra={"stripe_code": getattr(exc, "code", None)},
            )
            raise GatewayRejected(
                f"Payment provider rejected {operation}: {exc.user_message or exc}",
                detail={"operation": operation, "providerCode": getattr(exc, "code", None)},
            ) from exc

    def create_customer(
        self, *, email: Optional[str], name: str, idempotency_key: Optional[str] = None
    ) -> str:
        customer = self._call(
            "create_customer",
            lambda: stripe.Customer.create(
                email=email,
                name=name,
                idempotency_key=idempotency_key,
            ),
        )
        return str(customer.id)

    def retrieve_price(self, price_id: str) -> Optional[RemotePrice]:
        try:
            price = stripe.Price.retrieve(price_id)
        except stripe.InvalidRequestError as exc:
            if getattr(exc, "code", None) == "resource_missing":
                return None
            raise GatewayRejected(
                f"Payment provider rejected retrieve_price: {exc}",
                detail={"operation": "retrieve_price"},
            ) from exc
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            raise GatewayUnavailable(
                "Payment provider unavailable during retrieve_price",
                detail={"operation": "retrieve_price"},
            ) from exc
        except stripe.StripeError as exc:
            raise GatewayRejected(
                f"Payment provider rejected retrieve_price: {exc}",
                detail={"operation": "retrieve_price"},
            ) from exc
        return RemotePrice(
            id=str(price.id),
            unit_amount=_value(price, "unit_amount"),
            currency=str(_value(price, "currency") or "usd"),
            active=bool(_value(price, "active")),
        )

    def create_subscription(
        self, *, customer_id: str, price_id: str, idempotency_key: Optional[str] = None
    ) -> RemoteSubscription:
        subscription = self._call(
            "create_subscription",
            lambda: stripe.Subscription.create(
                customer=customer_id,
                items=[{"price": price_id}],
                payment_behavior="default_incomplete",
                expand=["latest_invoice.payment_intent"],
                idempotency_key=idempotency_key,
            ),
        )
        return _to_subscription(subscription)

    def retrieve_subscription(self, subscription_id: str) -> RemoteSubscription:
        subscription = self._call(
            "retrieve_subscription",
            lambda: stripe.Subscription.retrieve(
                subscription_id, expand=["latest_invoice.payment_intent"]
            ),
        )
        return _to_subscription(subscription)

    def retrieve_invoice(self, invoice_id: str, *, expand: Sequence[str] = ()) -> RemoteInvoice:
        invoice = self._call(
            "retrieve_invoice",
            lambda: stripe.Invoice.retrieve(invoice_id, expand=list(expand)),
        )
        result = _to_invoice(invoice)
        if result is None:
            raise GatewayRejected(
                "Payment provider returned an empty invoice",
                detail={"operation": "retrieve_invoice"},
            )
        return result

    def create_payment_intent(
        self,
        *,
        customer_id: str,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> RemotePaymentIntent:
        intent = self._call(
            "create_payment_intent",
            lambda: stripe.PaymentIntent.create(
                customer=customer_id,
                amount=amount,
                currency=currency,
                metadata=metadata,
                setup_future_usage="off_session",
                idempotency_key=idempotency_key,
            ),
        )
        converted = _to_payment_intent(intent)
        if converted is None:
            raise GatewayRejected(
                "Payment provider returned an empty payment intent",
                detail={"operation": "create_payment_intent"},
            )
        return converted

    def create_refund(
        self, *, payment_intent_id: str, reason: str, idempotency_key: Optional[str] = None
    ) -> RemoteRefund:
        refund = self._call(
            "create_refund",
            lambda: stripe.Refund.create(
                payment_intent=payment_intent_id,
                reason=_STRIPE_REFUND_REASON,
                metadata={"reason": reason},
                idempotency_key=idempotency_key,
            ),
        )
        return RemoteRefund(
            id=str(refund.id),
            status=_value(refund, "status"),
            amount=_value(refund, "amount"),
            metadata={"reason": reason},
        )

    def list_invoices(self, customer_id: str, *, limit: int = 20) -> List[RemoteInvoice]:
        listing = self._call(
            "list_invoices",
            lambda: stripe.Invoice.list(customer=customer_id, limit=limit),
        )
        invoices = []
        for raw in _value(listing, "data") or []:
            invoice = _to_invoice(raw)
            if invoice is not None:
                invoices.append(invoice)
        return invoices

    def cancel_subscription(self, subscription_id: str) -> None:
        self._call("cancel_subscription", lambda: stripe.Subscription.cancel(subscription_id))


__all__ = ["StripePaymentGateway", "configure_stripe"]

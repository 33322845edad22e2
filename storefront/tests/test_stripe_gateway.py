"""The Stripe adapter, with the SDK resource classes patched out."""
from __future__ import annotations

from types import SimpleNamespace

import pytest
import stripe

from storefront.app.billing.errors import GatewayRejected, GatewayUnavailable
from storefront.app.billing.stripe_gateway import StripePaymentGateway, configure_stripe

from conftest import make_billing_config


@pytest.fixture
def gateway():
    return StripePaymentGateway()


def _recorder(result, calls):
    def _call(*args, **kwargs):
        calls.append((args, kwargs))
        if isinstance(result, Exception):
            raise result
        return result

    return _call


def test_create_customer_passes_idempotency_key(monkeypatch, gateway):
    calls = []
    monkeypatch.setattr(stripe.Customer, "create", _recorder(SimpleNamespace(id="cus_9"), calls))

    customer_id = gateway.create_customer(
        email="alice@example.com", name="alice", idempotency_key="customer-user-1"
    )

    assert customer_id == "cus_9"
    assert calls == [
        ((), {"email": "alice@example.com", "name": "alice", "idempotency_key": "customer-user-1"})
    ]


def test_create_subscription_expands_payment_intent(monkeypatch, gateway):
    calls = []
    payload = {
        "id": "sub_1",
        "status": "incomplete",
        "customer": "cus_1",
        "latest_invoice": {
            "id": "in_1",
            "status": "open",
            "amount_due": 7500,
            "currency": "usd",
            "payment_intent": {"id": "pi_1", "client_secret": "pi_1_secret", "amount": 7500},
        },
    }
    monkeypatch.setattr(stripe.Subscription, "create", _recorder(payload, calls))

    subscription = gateway.create_subscription(
        customer_id="cus_1", price_id="price_1", idempotency_key="subscription-1-1-abc"
    )

    [(_, kwargs)] = calls
    assert kwargs["items"] == [{"price": "price_1"}]
    assert kwargs["payment_behavior"] == "default_incomplete"
    assert kwargs["expand"] == ["latest_invoice.payment_intent"]
    assert kwargs["idempotency_key"] == "subscription-1-1-abc"
    assert subscription.customer_id == "cus_1"
    assert subscription.latest_invoice_id == "in_1"
    assert subscription.latest_invoice.payment_intent.client_secret == "pi_1_secret"


def test_unexpanded_invoice_is_kept_as_identifier(monkeypatch, gateway):
    payload = {"id": "sub_2", "status": "incomplete", "latest_invoice": "in_2"}
    monkeypatch.setattr(stripe.Subscription, "retrieve", _recorder(payload, []))

    subscription = gateway.retrieve_subscription("sub_2")

    assert subscription.latest_invoice is None
    assert subscription.latest_invoice_id == "in_2"


def test_retrieve_invoice_passes_expand(monkeypatch, gateway):
    calls = []
    payload = {"id": "in_3", "status": "paid", "payment_intent": "pi_3", "status_transitions": {"paid_at": 1700000000}}
    monkeypatch.setattr(stripe.Invoice, "retrieve", _recorder(payload, calls))

    invoice = gateway.retrieve_invoice("in_3", expand=["payment_intent"])

    assert calls == [(("in_3",), {"expand": ["payment_intent"]})]
    assert invoice.payment_intent is None
    assert invoice.payment_intent_id == "pi_3"
    assert invoice.paid_at == 1700000000


def test_missing_price_is_none(monkeypatch, gateway):
    error = stripe.InvalidRequestError("No such price", "price", code="resource_missing")
    monkeypatch.setattr(stripe.Price, "retrieve", _recorder(error, []))

    assert gateway.retrieve_price("price_missing") is None


def test_price_lookup_other_errors_are_rejections(monkeypatch, gateway):
    error = stripe.InvalidRequestError("Invalid API version", None, code="invalid_request")
    monkeypatch.setattr(stripe.Price, "retrieve", _recorder(error, []))

    with pytest.raises(GatewayRejected):
        gateway.retrieve_price("price_1")


def test_active_price_is_converted(monkeypatch, gateway):
    price = {"id": "price_1", "unit_amount": 7500, "currency": "usd", "active": True}
    monkeypatch.setattr(stripe.Price, "retrieve", _recorder(SimpleNamespace(**price), []))

    remote = gateway.retrieve_price("price_1")

    assert remote.unit_amount == 7500
    assert remote.active is True


def test_connection_errors_are_unavailable(monkeypatch, gateway):
    monkeypatch.setattr(
        stripe.Customer, "create", _recorder(stripe.APIConnectionError("network down"), [])
    )

    with pytest.raises(GatewayUnavailable) as excinfo:
        gateway.create_customer(email=None, name="alice")

    assert excinfo.value.status_code == 503
    assert excinfo.value.detail == {"operation": "create_customer"}


def test_card_errors_are_rejections(monkeypatch, gateway):
    error = stripe.CardError("Your card was declined.", None, code="card_declined")
    monkeypatch.setattr(stripe.Subscription, "create", _recorder(error, []))

    with pytest.raises(GatewayRejected) as excinfo:
        gateway.create_subscription(customer_id="cus_1", price_id="price_1")

    assert "Your card was declined." in excinfo.value.message
    assert excinfo.value.detail["providerCode"] == "card_declined"


def test_refund_keeps_operator_reason_in_metadata(monkeypatch, gateway):
    calls = []
    refund = SimpleNamespace(id="re_1", status="succeeded", amount=7500)
    monkeypatch.setattr(stripe.Refund, "create", _recorder(refund, calls))

    result = gateway.create_refund(
        payment_intent_id="pi_1", reason="duplicate charge", idempotency_key="refund-payment-4"
    )

    [(_, kwargs)] = calls
    assert kwargs == {
        "payment_intent": "pi_1",
        "reason": "requested_by_customer",
        "metadata": {"reason": "duplicate charge"},
        "idempotency_key": "refund-payment-4",
    }
    assert result.id == "re_1"
    assert result.metadata == {"reason": "duplicate charge"}


def test_list_invoices_converts_each_entry(monkeypatch, gateway):
    listing = {"data": [{"id": "in_a", "status": "paid", "amount_due": 100}, {"id": "in_b", "status": "open"}]}
    calls = []
    monkeypatch.setattr(stripe.Invoice, "list", _recorder(listing, calls))

    invoices = gateway.list_invoices("cus_1", limit=5)

    assert calls == [((), {"customer": "cus_1", "limit": 5})]
    assert [invoice.id for invoice in invoices] == ["in_a", "in_b"]
    assert invoices[1].amount_due == 0


def test_cancel_subscription(monkeypatch, gateway):
    calls = []
    monkeypatch.setattr(stripe.Subscription, "cancel", _recorder({"id": "sub_1"}, calls))

    gateway.cancel_subscription("sub_1")

    assert calls == [(("sub_1",), {})]


def test_configure_stripe_disables_sdk_retries(monkeypatch):
    monkeypatch.setattr(stripe, "api_key", None)
    monkeypatch.setattr(stripe, "api_version", None)
    monkeypatch.setattr(stripe, "max_network_retries", 2)
    monkeypatch.setattr(stripe, "default_http_client", None)

    configure_stripe(make_billing_config(stripe_timeout_seconds=7.0))

    assert stripe.api_key == "sk_test_123"
    assert stripe.api_version == "2023-10-16"
    assert stripe.max_network_retries == 0
    assert isinstance(stripe.default_http_client, stripe.RequestsClient)

"""In-memory stand-ins for the billing stores and the payment gateway."""
from __future__ import annotations

import pathlib
import sys
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from storefront.app.billing.config import DEFAULT_ACCEPTED_COINS, BillingConfig  # noqa: E402
from storefront.app.billing.errors import GatewayRejected, GatewayUnavailable  # noqa: E402
from storefront.app.billing.gateway import (  # noqa: E402
    RemoteInvoice,
    RemotePaymentIntent,
    RemotePrice,
    RemoteRefund,
    RemoteSubscription,
)
from storefront.app.billing.locks import InProcessUserLocks  # noqa: E402
from storefront.app.billing.models import (  # noqa: E402
    AuditLogEntry,
    BillingAccount,
    BillingCycle,
    Invoice,
    InvoiceStatus,
    NewPayment,
    NewSubscription,
    Payment,
    PaymentStatus,
    Plan,
    RemoteCancellationFailure,
    Subscription,
    SubscriptionStatus,
)
from storefront.app.billing.service import SubscriptionService  # noqa: E402

FIXED_NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class InMemoryPlanCatalog:
    def __init__(self) -> None:
        self.plans: Dict[int, Plan] = {}
        self.active_plan_ids: set[int] = set()

    def add(self, plan: Plan) -> Plan:
        self.plans[plan.id] = plan
        return plan

    def get_plan(self, plan_id: int) -> Optional[Plan]:
        return self.plans.get(plan_id)

    def list_plans(self, *, include_hidden: bool = False) -> List[Plan]:
        plans = sorted(self.plans.values(), key=lambda plan: (plan.sort_order, plan.id))
        if include_hidden:
            return plans
        return [plan for plan in plans if plan.is_visible and plan.is_active]

    def insert_plan(self, fields: Mapping[str, Any]) -> Plan:
        plan_id = max(self.plans, default=0) + 1
        return self.add(Plan(id=plan_id, **fields))

    def update_plan(
        self,
        plan_id: int,
        changes: Mapping[str, Any],
        *,
        require_unreferenced: bool = False,
    ) -> Optional[Plan]:
        plan = self.plans.get(plan_id)
        if plan is None:
            return None
        if require_unreferenced and plan_id in self.active_plan_ids:
            return None
        return self.add(Plan.model_validate({**plan.model_dump(), **changes}))

    def has_active_subscriptions(self, plan_id: int) -> bool:
        return plan_id in self.active_plan_ids


class InMemoryBillingAccounts:
    def __init__(self) -> None:
        self.accounts: Dict[int, BillingAccount] = {}
        # Simulates another request persisting a customer id first.
        self.concurrent_customer_id: Optional[str] = None
        self.claims: List[tuple[int, str]] = []
        self.fail_remote_subscription_stamp = False

    def add(self, account: BillingAccount) -> BillingAccount:
        self.accounts[account.id] = account
        return account

    def get_account(self, user_id: int) -> Optional[BillingAccount]:
        return self.accounts.get(user_id)

    def claim_remote_customer_id(self, user_id: int, customer_id: str) -> str:
        self.claims.append((user_id, customer_id))
        account = self.accounts[user_id]
        if self.concurrent_customer_id and not account.remote_customer_id:
            account = self.add(account.model_copy(update={"remote_customer_id": self.concurrent_customer_id}))
        if account.remote_customer_id:
            return account.remote_customer_id
        self.add(account.model_copy(update={"remote_customer_id": customer_id}))
        return customer_id

    def set_remote_subscription_id(self, user_id: int, remote_subscription_id: Optional[str]) -> None:
        if self.fail_remote_subscription_stamp:
            raise RuntimeError("users table locked")
        account = self.accounts[user_id]
        self.add(account.model_copy(update={"remote_subscription_id": remote_subscription_id}))

    def delete_user(self, user_id: int) -> bool:
        return self.accounts.pop(user_id, None) is not None


class InMemoryLedger:
    def __init__(self) -> None:
        self.payments: Dict[int, Payment] = {}
        self.fail_refund_write = False

    def add(self, new: NewPayment, **overrides: Any) -> Payment:
        payment_id = max(self.payments, default=0) + 1
        payment = Payment(id=payment_id, **{**new.model_dump(), **overrides})
        self.payments[payment_id] = payment
        return payment

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        return self.payments.get(payment_id)

    def list_for_user(self, user_id: int) -> List[Payment]:
        return [payment for payment in self.payments.values() if payment.user_id == user_id]

    def list_all(self, *, limit: int = 100, offset: int = 0) -> List[Payment]:
        return list(self.payments.values())[offset : offset + limit]

    def record_refund(self, original_id: int, refund: NewPayment) -> Optional[Payment]:
        if self.fail_refund_write:
            raise RuntimeError("ledger write failed")
        original = self.payments[original_id]
        if original.status != PaymentStatus.COMPLETED:
            return None
        self.payments[original_id] = original.model_copy(update={"status": PaymentStatus.REFUNDED})
        return self.add(refund)

    def count_for_invoice(self, invoice_id: int) -> int:
        return sum(1 for payment in self.payments.values() if payment.invoice_id == invoice_id)


class InMemorySubscriptionStore:
    def __init__(self, ledger: InMemoryLedger) -> None:
        self.ledger = ledger
        self.subscriptions: Dict[int, Subscription] = {}
        self.fail_on_create = False

    def add(self, subscription: Subscription) -> Subscription:
        self.subscriptions[subscription.id] = subscription
        return subscription

    def create_subscription(
        self,
        subscription: NewSubscription,
        *,
        initial_payment: Optional[NewPayment] = None,
    ) -> Subscription:
        if self.fail_on_create:
            raise RuntimeError("database unavailable")
        subscription_id = max(self.subscriptions, default=0) + 1
        created = self.add(Subscription(id=subscription_id, **subscription.model_dump()))
        if initial_payment is not None:
            self.ledger.add(initial_payment, subscription_id=subscription_id)
        return created

    def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        return self.subscriptions.get(subscription_id)

    def list_for_user(self, user_id: int) -> List[Subscription]:
        return sorted(
            (item for item in self.subscriptions.values() if item.user_id == user_id),
            key=lambda item: item.id,
            reverse=True,
        )

    def list_all(self, *, limit: int = 100, offset: int = 0) -> List[Subscription]:
        return list(self.subscriptions.values())[offset : offset + limit]

    def mark_cancelled(
        self, subscription_id: int, *, end_date: datetime, keep_active: bool = True
    ) -> Optional[Subscription]:
        subscription = self.subscriptions.get(subscription_id)
        if subscription is None:
            return None
        return self.add(
            subscription.model_copy(
                update={
                    "status": SubscriptionStatus.CANCELLED,
                    "is_active": keep_active,
                    "end_date": max(subscription.end_date or end_date, end_date),
                }
            )
        )


class InMemoryInvoiceStore:
    def __init__(self) -> None:
        self.invoices: Dict[int, Invoice] = {}

    def add(self, invoice: Invoice) -> Invoice:
        self.invoices[invoice.id] = invoice
        return invoice

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        return self.invoices.get(invoice_id)

    def list_for_user(self, user_id: int) -> List[Invoice]:
        return [invoice for invoice in self.invoices.values() if invoice.user_id == user_id]

    def upsert_remote_invoice(
        self,
        *,
        user_id: int,
        remote_invoice_id: str,
        invoice_number: str,
        amount: int,
        currency: str,
        status: InvoiceStatus,
        paid_at: Optional[datetime],
    ) -> Invoice:
        existing = next(
            (item for item in self.invoices.values() if item.remote_invoice_id == remote_invoice_id),
            None,
        )
        if existing is not None:
            return self.add(
                existing.model_copy(
                    update={"amount": amount, "currency": currency, "status": status, "paid_at": paid_at}
                )
            )
        return self.add(
            Invoice(
                id=max(self.invoices, default=0) + 1,
                user_id=user_id,
                invoice_number=invoice_number,
                amount=amount,
                currency=currency,
                status=status,
                remote_invoice_id=remote_invoice_id,
                paid_at=paid_at,
            )
        )

    def delete_invoice_if_unreferenced(self, invoice_id: int) -> bool:
        return self.invoices.pop(invoice_id, None) is not None


class RecordingAuditLog:
    def __init__(self) -> None:
        self.entries: List[AuditLogEntry] = []
        self.fail_appends = False

    def append(self, entry: AuditLogEntry) -> None:
        if self.fail_appends:
            raise RuntimeError("audit_log insert failed")
        self.entries.append(entry)


class RecordingReconciliationQueue:
    def __init__(self) -> None:
        self.cancellations: List[tuple[int, RemoteCancellationFailure]] = []
        self.refund_flags: List[tuple[int, str, str]] = []

    def enqueue_remote_cancellation(self, user_id: int, failure: RemoteCancellationFailure) -> None:
        self.cancellations.append((user_id, failure))

    def flag_refund_inconsistency(self, payment_id: int, remote_refund_id: str, error: str) -> None:
        self.refund_flags.append((payment_id, remote_refund_id, error))


class StaticFlags:
    def __init__(self, values: Optional[Dict[str, bool]] = None) -> None:
        self.values = dict(values or {})

    def is_enabled(self, name: str, *, default: bool = False) -> bool:
        return self.values.get(name, default)


class FakePaymentGateway:
    def __init__(self) -> None:
        self.calls: List[tuple[str, Dict[str, Any]]] = []
        self.prices: Dict[str, RemotePrice] = {}
        self.invoices: Dict[str, RemoteInvoice] = {}
        self.remote_subscriptions: Dict[str, RemoteSubscription] = {}
        self.remote_invoices: List[RemoteInvoice] = []
        self.next_subscription: Optional[RemoteSubscription] = None
        self.create_subscription_error: Optional[Exception] = None
        self.retrieve_invoice_error: Optional[Exception] = None
        self.refund_error: Optional[Exception] = None
        self.cancel_failures: set[str] = set()
        self.cancelled: List[str] = []
        self.manual_intent = RemotePaymentIntent(id="pi_manual", client_secret="pi_manual_secret")

    def _record(self, operation: str, **kwargs: Any) -> None:
        self.calls.append((operation, kwargs))

    def calls_to(self, operation: str) -> List[Dict[str, Any]]:
        return [kwargs for call, kwargs in self.calls if call == operation]

    def create_customer(
        self, *, email: Optional[str], name: str, idempotency_key: Optional[str] = None
    ) -> str:
        self._record("create_customer", email=email, name=name, idempotency_key=idempotency_key)
        return f"cus_{len(self.calls_to('create_customer'))}"

    def retrieve_price(self, price_id: str) -> Optional[RemotePrice]:
        self._record("retrieve_price", price_id=price_id)
        return self.prices.get(price_id)

    def create_subscription(
        self, *, customer_id: str, price_id: str, idempotency_key: Optional[str] = None
    ) -> RemoteSubscription:
        self._record(
            "create_subscription",
            customer_id=customer_id,
            price_id=price_id,
            idempotency_key=idempotency_key,
        )
        if self.create_subscription_error is not None:
            raise self.create_subscription_error
        if self.next_subscription is not None:
            subscription = self.next_subscription
        else:
            subscription = RemoteSubscription(
                id="sub_remote_1",
                status="incomplete",
                customer_id=customer_id,
                latest_invoice=RemoteInvoice(
                    id="in_1",
                    status="open",
                    payment_intent=RemotePaymentIntent(id="pi_1", client_secret="pi_1_secret"),
                ),
                latest_invoice_id="in_1",
            )
        self.remote_subscriptions[subscription.id] = subscription
        return subscription

    def retrieve_subscription(self, subscription_id: str) -> RemoteSubscription:
        self._record("retrieve_subscription", subscription_id=subscription_id)
        subscription = self.remote_subscriptions.get(subscription_id)
        if subscription is None:
            raise GatewayRejected("No such subscription")
        return subscription

    def retrieve_invoice(self, invoice_id: str, *, expand: Sequence[str] = ()) -> RemoteInvoice:
        self._record("retrieve_invoice", invoice_id=invoice_id, expand=list(expand))
        if self.retrieve_invoice_error is not None:
            raise self.retrieve_invoice_error
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise GatewayRejected("No such invoice")
        return invoice

    def create_payment_intent(
        self,
        *,
        customer_id: str,
        amount: int,
        currency: str,
        metadata: Dict[str, str],
        idempotency_key: Optional[str] = None,
    ) -> RemotePaymentIntent:
        self._record(
            "create_payment_intent",
            customer_id=customer_id,
            amount=amount,
            currency=currency,
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        return self.manual_intent

    def create_refund(
        self, *, payment_intent_id: str, reason: str, idempotency_key: Optional[str] = None
    ) -> RemoteRefund:
        self._record(
            "create_refund",
            payment_intent_id=payment_intent_id,
            reason=reason,
            idempotency_key=idempotency_key,
        )
        if self.refund_error is not None:
            raise self.refund_error
        return RemoteRefund(id=f"re_{len(self.calls_to('create_refund'))}", status="succeeded")

    def list_invoices(self, customer_id: str, *, limit: int = 20) -> List[RemoteInvoice]:
        self._record("list_invoices", customer_id=customer_id, limit=limit)
        return list(self.remote_invoices[:limit])

    def cancel_subscription(self, subscription_id: str) -> None:
        self._record("cancel_subscription", subscription_id=subscription_id)
        if subscription_id in self.cancel_failures:
            raise GatewayUnavailable("Payment provider unavailable during cancel_subscription")
        self.cancelled.append(subscription_id)


def make_billing_config(**overrides: Any) -> BillingConfig:
    values: Dict[str, Any] = dict(
        stripe_secret_key="sk_test_123",
        stripe_api_version="2023-10-16",
        stripe_timeout_seconds=20.0,
        currency="usd",
        coinpayments_enabled=False,
        accepted_coins=DEFAULT_ACCEPTED_COINS,
        lock_backend="memory",
    )
    values.update(overrides)
    return BillingConfig(**values)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def alice():
    return SimpleNamespace(id=1, username="alice", role="user")


@pytest.fixture
def bob():
    return SimpleNamespace(id=2, username="bob", role="user")


@pytest.fixture
def admin():
    return SimpleNamespace(id=9, username="root", role="admin")


@pytest.fixture
def billing():
    plans = InMemoryPlanCatalog()
    accounts = InMemoryBillingAccounts()
    ledger = InMemoryLedger()
    subscriptions = InMemorySubscriptionStore(ledger)
    invoices = InMemoryInvoiceStore()
    audit_log = RecordingAuditLog()
    gateway = FakePaymentGateway()
    reconciliation = RecordingReconciliationQueue()
    flags = StaticFlags()

    plans.add(
        Plan(
            id=1,
            name="Starter",
            price=7500,
            billing_cycle=BillingCycle.MONTH,
            remote_price_id="price_starter",
            viewer_count=25,
        )
    )
    plans.add(Plan(id=2, name="Unpriced", price=1500, billing_cycle=BillingCycle.WEEK))
    gateway.prices["price_starter"] = RemotePrice(id="price_starter", unit_amount=7500, currency="usd")

    accounts.add(BillingAccount(id=1, username="alice", email="alice@example.com"))
    accounts.add(BillingAccount(id=2, username="bob", email="bob@example.com"))
    accounts.add(BillingAccount(id=9, username="root", email="root@example.com", role="admin"))

    service = SubscriptionService(
        plans=plans,
        accounts=accounts,
        subscriptions=subscriptions,
        ledger=ledger,
        invoices=invoices,
        audit_log=audit_log,
        gateway=gateway,
        reconciliation=reconciliation,
        flags=flags,
        locks=InProcessUserLocks(),
        config=make_billing_config(),
        clock=lambda: FIXED_NOW,
    )
    return SimpleNamespace(
        service=service,
        plans=plans,
        accounts=accounts,
        ledger=ledger,
        subscriptions=subscriptions,
        invoices=invoices,
        audit_log=audit_log,
        gateway=gateway,
        reconciliation=reconciliation,
        flags=flags,
    )

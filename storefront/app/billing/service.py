"""Subscription lifecycle and payment reconciliation engine."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple, Union
from uuid import uuid4

from ..auth.policy import AuthorizationPolicy, Principal
from .config import BillingConfig
from .errors import (
    ConflictError,
    GatewayError,
    GatewayIncomplete,
    GatewayRefundFailed,
    InvalidGatewayPrice,
    NotFoundError,
    PlanNotFound,
    RefundReconciliationRequired,
    ValidationError,
)
from .gateway import PaymentGateway, RemoteSubscription
from .locks import UserLockProvider
from .models import (
    AuditAction,
    AuditLogEntry,
    BillingAccount,
    CardCheckout,
    CryptoCheckout,
    Invoice,
    InvoiceStatus,
    NewPayment,
    NewSubscription,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Plan,
    RemoteCancellationFailure,
    Subscription,
    SubscriptionStatus,
    UserDeletionResult,
)

logger = logging.getLogger("billing")

COINPAYMENTS_FLAG = "coinpayments_enabled"

_REMOTE_INVOICE_STATUS = {
    "draft": InvoiceStatus.DRAFT,
    "open": InvoiceStatus.ISSUED,
    "paid": InvoiceStatus.PAID,
    "void": InvoiceStatus.VOID,
    "uncollectible": InvoiceStatus.OVERDUE,
}


class PlanCatalog(Protocol):
    def get_plan(self, plan_id: int) -> Optional[Plan]:
        ...

    def list_plans(self, *, include_hidden: bool = False) -> List[Plan]:
        ...

    def insert_plan(self, fields: Mapping[str, Any]) -> Plan:
        ...

    def update_plan(
        self,
        plan_id: int,
        changes: Mapping[str, Any],
        *,
        require_unreferenced: bool = False,
    ) -> Optional[Plan]:
        ...

    def has_active_subscriptions(self, plan_id: int) -> bool:
        ...


class BillingAccounts(Protocol):
    """Billing columns of the user record."""

    def get_account(self, user_id: int) -> Optional[BillingAccount]:
        ...

    def claim_remote_customer_id(self, user_id: int, customer_id: str) -> str:
        """Compare-and-swap write; returns whichever id ends up persisted."""

    def set_remote_subscription_id(self, user_id: int, remote_subscription_id: Optional[str]) -> None:
        ...

    def delete_user(self, user_id: int) -> bool:
        ...


class SubscriptionStore(Protocol):
    def create_subscription(
        self,
        subscription: NewSubscription,
        *,
        initial_payment: Optional[NewPayment] = None,
    ) -> Subscription:
        ...

    def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        ...

    def list_for_user(self, user_id: int) -> List[Subscription]:
        ...

    def list_all(self, *, limit: int = 100, offset: int = 0) -> List[Subscription]:
        ...

    def mark_cancelled(
        self, subscription_id: int, *, end_date: datetime, keep_active: bool = True
    ) -> Optional[Subscription]:
        ...


class Ledger(Protocol):
    def get_payment(self, payment_id: int) -> Optional[Payment]:
        ...

    def list_for_user(self, user_id: int) -> List[Payment]:
        ...

    def list_all(self, *, limit: int = 100, offset: int = 0) -> List[Payment]:
        ...

    def record_refund(self, original_id: int, refund: NewPayment) -> Optional[Payment]:
        """Atomically insert ``refund`` and flip the original; ``None`` if already refunded."""

    def count_for_invoice(self, invoice_id: int) -> int:
        ...


class InvoiceStore(Protocol):
    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        ...

    def list_for_user(self, user_id: int) -> List[Invoice]:
        ...

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
        ...

    def delete_invoice_if_unreferenced(self, invoice_id: int) -> bool:
        ...


class AuditLog(Protocol):
    """Append-only record of privileged actions."""

    def append(self, entry: AuditLogEntry) -> None:
        ...


class ReconciliationQueue(Protocol):
    """Holds remote/local mismatches for retry or operator follow-up."""

    def enqueue_remote_cancellation(self, user_id: int, failure: RemoteCancellationFailure) -> None:
        ...

    def flag_refund_inconsistency(self, payment_id: int, remote_refund_id: str, error: str) -> None:
        ...


class SystemFlags(Protocol):
    def is_enabled(self, name: str, *, default: bool = False) -> bool:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SubscriptionService:
    """Creates, cancels and refunds subscriptions against the payment gateway.

    Local rows are written only after the gateway has answered, so a failed
    remote call never leaves a half-created subscription behind.
    """

    plans: PlanCatalog
    accounts: BillingAccounts
    subscriptions: SubscriptionStore
    ledger: Ledger
    invoices: InvoiceStore
    audit_log: AuditLog
    gateway: PaymentGateway
    reconciliation: ReconciliationQueue
    flags: SystemFlags
    locks: UserLockProvider
    config: BillingConfig
    policy: AuthorizationPolicy = field(default_factory=AuthorizationPolicy)
    clock: Callable[[], datetime] = _utcnow

    def _now(self) -> datetime:
        return self.clock()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def create_subscription(
        self,
        *,
        user_id: int,
        plan_id: int,
        payment_method: PaymentMethod,
    ) -> Union[CardCheckout, CryptoCheckout]:
        plan = self.plans.get_plan(plan_id)
        if plan is None:
            raise PlanNotFound(f"Plan {plan_id} not found", detail={"planId": plan_id})
        if self.accounts.get_account(user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        if payment_method == PaymentMethod.CRYPTO:
            return self._create_crypto_subscription(user_id, plan)
        return self._create_card_subscription(user_id, plan)

    def _create_crypto_subscription(self, user_id: int, plan: Plan) -> CryptoCheckout:
        if not self.flags.is_enabled(COINPAYMENTS_FLAG, default=self.config.coinpayments_enabled):
            raise ConflictError("Crypto payments are currently disabled")

        now = self._now()
        transaction_id = self._mint_transaction_id(now)
        subscription = self.subscriptions.create_subscription(
            NewSubscription(
                user_id=user_id,
                plan_id=plan.id,
                status=SubscriptionStatus.PENDING,
                is_active=False,
                start_date=now,
                payment_method=PaymentMethod.CRYPTO,
                payment_reference=transaction_id,
            ),
            initial_payment=NewPayment(
                user_id=user_id,
                amount=plan.price,
                currency=self.config.currency,
                status=PaymentStatus.PENDING,
                payment_method=PaymentMethod.CRYPTO,
                payment_type=PaymentType.SUBSCRIPTION,
            ),
        )
        self._audit(
            user_id,
            AuditAction.SUBSCRIPTION_PENDING,
            "subscription",
            subscription.id,
            {"planId": plan.id, "transactionId": transaction_id},
        )
        logger.info(
            "Crypto subscription %s pending for user %s",
            subscription.id,
            user_id,
            extra={"transaction_id": transaction_id},
        )
        return CryptoCheckout(
            subscription_id=subscription.id,
            transaction_id=transaction_id,
            accepted_coins=list(self.config.accepted_coins),
        )

    def _create_card_subscription(self, user_id: int, plan: Plan) -> CardCheckout:
        if not plan.remote_price_id:
            raise ConflictError(
                "Plan has no payment price configured",
                detail={"planId": plan.id},
            )

        with self.locks.hold(user_id):
            account = self.accounts.get_account(user_id)
            if account is None:
                raise NotFoundError(f"User {user_id} not found")
            customer_id = self._ensure_customer(account)

            price = self.gateway.retrieve_price(plan.remote_price_id)
            if price is None or not price.active:
                raise InvalidGatewayPrice(
                    "Plan price is not valid at the payment provider",
                    detail={"planId": plan.id, "priceId": plan.remote_price_id},
                )

            remote = self.gateway.create_subscription(
                customer_id=customer_id,
                price_id=plan.remote_price_id,
                idempotency_key=f"subscription-{user_id}-{plan.id}-{uuid4().hex}",
            )
            resolved = self._resolve_client_secret(remote, customer_id=customer_id, plan=plan)
            if resolved is None:
                # Incomplete subscriptions lapse on the provider side.
                logger.error(
                    "No client secret for remote subscription %s (user %s)",
                    remote.id,
                    user_id,
                )
                raise GatewayIncomplete(
                    "Payment provider did not return a payment secret",
                    detail={"remoteSubscriptionId": remote.id},
                )
            client_secret, intent_id = resolved

            now = self._now()
            try:
                subscription = self.subscriptions.create_subscription(
                    NewSubscription(
                        user_id=user_id,
                        plan_id=plan.id,
                        status=SubscriptionStatus.ACTIVE,
                        is_active=True,
                        start_date=now,
                        end_date=now + plan.billing_cycle.period,
                        payment_method=PaymentMethod.CARD,
                        remote_subscription_id=remote.id,
                    ),
                    initial_payment=NewPayment(
                        user_id=user_id,
                        amount=plan.price,
                        currency=self.config.currency,
                        status=PaymentStatus.PENDING,
                        payment_method=PaymentMethod.CARD,
                        payment_type=PaymentType.SUBSCRIPTION,
                        remote_payment_intent_id=intent_id,
                    ),
                )
            except Exception:
                logger.exception(
                    "Failed to persist subscription for remote %s (user %s)",
                    remote.id,
                    user_id,
                )
                raise

            # The subscription row already carries the remote id; the account stamp only
            # points pending-checkout lookups at it.
            try:
                self.accounts.set_remote_subscription_id(user_id, remote.id)
            except Exception:
                logger.exception(
                    "Subscription %s saved but remote id %s was not stamped on user %s",
                    subscription.id,
                    remote.id,
                    user_id,
                )

        self._audit(
            user_id,
            AuditAction.SUBSCRIPTION_CREATED,
            "subscription",
            subscription.id,
            {"planId": plan.id, "remoteSubscriptionId": remote.id},
        )
        return CardCheckout(
            subscription_id=subscription.id,
            remote_subscription_id=remote.id,
            client_secret=client_secret,
        )

    def _ensure_customer(self, account: BillingAccount) -> str:
        if account.remote_customer_id:
            return account.remote_customer_id

        created = self.gateway.create_customer(
            email=account.email,
            name=account.username,
            idempotency_key=f"customer-user-{account.id}",
        )
        persisted = self.accounts.claim_remote_customer_id(account.id, created)
        if persisted != created:
            logger.warning(
                "Remote customer for user %s already stored as %s; discarding %s",
                account.id,
                persisted,
                created,
            )
        return persisted

    def _resolve_client_secret(
        self,
        remote: RemoteSubscription,
        *,
        customer_id: Optional[str],
        plan: Optional[Plan],
    ) -> Optional[Tuple[str, Optional[str]]]:
        """Find a client secret for ``remote``.

        Tries the expanded invoice payment intent, then a re-fetch of the
        invoice, then (when ``plan`` is given) a fresh payment intent for the
        plan price. Returns ``(client_secret, payment_intent_id)`` or ``None``.
        """

        invoice = remote.latest_invoice
        if invoice is not None and invoice.payment_intent is not None:
            if invoice.payment_intent.client_secret:
                return invoice.payment_intent.client_secret, invoice.payment_intent.id

        invoice_id = invoice.id if invoice is not None else remote.latest_invoice_id
        if invoice_id:
            logger.info("Re-fetching invoice %s for subscription %s", invoice_id, remote.id)
            try:
                refreshed = self.gateway.retrieve_invoice(invoice_id, expand=["payment_intent"])
            except GatewayError as exc:
                logger.warning("Invoice %s re-fetch failed: %s", invoice_id, exc)
            else:
                intent = refreshed.payment_intent
                if intent is not None and intent.client_secret:
                    return intent.client_secret, intent.id

        if plan is None or customer_id is None:
            return None

        logger.warning(
            "Creating payment intent manually for subscription %s",
            remote.id,
            extra={"plan_id": plan.id},
        )
        intent = self.gateway.create_payment_intent(
            customer_id=customer_id,
            amount=plan.price,
            currency=self.config.currency,
            metadata={
                "subscriptionId": remote.id,
                "planId": str(plan.id),
            },
            idempotency_key=f"subscription-intent-{remote.id}",
        )
        if intent.client_secret:
            return intent.client_secret, intent.id
        return None

    def get_pending_checkout(self, user_id: int) -> CardCheckout:
        """Return the client secret of the user's most recent card subscription."""

        account = self.accounts.get_account(user_id)
        if account is None:
            raise NotFoundError(f"User {user_id} not found")
        if not account.remote_subscription_id:
            raise NotFoundError("No pending checkout for this user")

        local = next(
            (
                subscription
                for subscription in self.subscriptions.list_for_user(user_id)
                if subscription.remote_subscription_id == account.remote_subscription_id
            ),
            None,
        )
        if local is None:
            raise NotFoundError("No pending checkout for this user")

        remote = self.gateway.retrieve_subscription(account.remote_subscription_id)
        resolved = self._resolve_client_secret(remote, customer_id=None, plan=None)
        if resolved is None:
            raise GatewayIncomplete(
                "Payment provider did not return a payment secret",
                detail={"remoteSubscriptionId": remote.id},
            )
        return CardCheckout(
            subscription_id=local.id,
            remote_subscription_id=remote.id,
            client_secret=resolved[0],
        )

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------
    def cancel_subscription(
        self,
        subscription_id: int,
        *,
        actor: Principal,
        cancel_remote: bool = False,
    ) -> Subscription:
        subscription = self.subscriptions.get_subscription(subscription_id)
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        self.policy.require_owner_or_admin(actor, subscription.user_id)

        if subscription.status == SubscriptionStatus.CANCELLED:
            return subscription
        if subscription.status == SubscriptionStatus.EXPIRED:
            raise ConflictError("Subscription has already expired")

        now = self._now()
        # An unpaid crypto subscription has nothing to run out.
        keep_active = subscription.status == SubscriptionStatus.ACTIVE
        if subscription.end_date is not None:
            end_date = max(subscription.end_date, now)
            if subscription.end_date <= now:
                # Paid period already ran out; there is no grace left to keep.
                keep_active = False
        elif keep_active:
            plan = self.plans.get_plan(subscription.plan_id)
            if plan is None:
                raise PlanNotFound(f"Plan {subscription.plan_id} not found")
            end_date = now + plan.billing_cycle.period
        else:
            end_date = max(now, subscription.start_date)

        updated = self.subscriptions.mark_cancelled(
            subscription.id, end_date=end_date, keep_active=keep_active
        )
        if updated is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")

        if cancel_remote and updated.remote_subscription_id:
            self._cancel_remote(updated)

        self._audit(
            getattr(actor, "id", None),
            AuditAction.SUBSCRIPTION_CANCELLED,
            "subscription",
            updated.id,
            {
                "endDate": updated.end_date.isoformat() if updated.end_date else "",
                "cancelRemote": cancel_remote,
            },
        )
        return updated

    def _cancel_remote(self, subscription: Subscription) -> Optional[RemoteCancellationFailure]:
        remote_id = subscription.remote_subscription_id
        if not remote_id:
            return None
        try:
            self.gateway.cancel_subscription(remote_id)
        except GatewayError as exc:
            failure = RemoteCancellationFailure(
                subscription_id=subscription.id,
                remote_subscription_id=remote_id,
                error=exc.message,
            )
            logger.warning(
                "Remote cancellation of %s failed; queued for retry: %s",
                remote_id,
                exc.message,
                extra={"subscription_id": subscription.id, "user_id": subscription.user_id},
            )
            self.reconciliation.enqueue_remote_cancellation(subscription.user_id, failure)
            return failure
        return None

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------
    def refund_payment(self, payment_id: int, *, reason: Optional[str], actor: Principal) -> Payment:
        self.policy.require_admin(actor)
        cleaned_reason = (reason or "").strip()
        if not cleaned_reason:
            raise ValidationError("A refund reason is required", fields={"reason": "required"})

        payment = self.ledger.get_payment(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        if payment.is_refund:
            raise ConflictError("Refund entries cannot be refunded")
        if payment.status == PaymentStatus.REFUNDED:
            raise ConflictError("Payment has already been refunded")
        if payment.status != PaymentStatus.COMPLETED:
            raise ConflictError(
                "Only completed payments can be refunded",
                detail={"paymentId": payment.id, "status": payment.status.value},
            )

        remote_refund_id: Optional[str] = None
        if payment.remote_payment_intent_id:
            try:
                refund = self.gateway.create_refund(
                    payment_intent_id=payment.remote_payment_intent_id,
                    reason=cleaned_reason,
                    idempotency_key=f"refund-payment-{payment.id}",
                )
            except GatewayError as exc:
                raise GatewayRefundFailed(
                    f"Refund failed at the payment provider: {exc.message}",
                    detail={"paymentId": payment.id},
                ) from exc
            remote_refund_id = refund.id

        refund_row = NewPayment(
            user_id=payment.user_id,
            subscription_id=payment.subscription_id,
            invoice_id=payment.invoice_id,
            amount=-payment.amount,
            currency=payment.currency,
            status=PaymentStatus.COMPLETED,
            payment_method=payment.payment_method,
            payment_type=PaymentType.REFUND,
            refund_reason=cleaned_reason,
            refunded_payment_id=payment.id,
        )
        try:
            recorded = self.ledger.record_refund(payment.id, refund_row)
        except Exception as exc:
            if remote_refund_id is None:
                raise
            logger.exception(
                "Refund %s succeeded remotely but the ledger write failed for payment %s",
                remote_refund_id,
                payment.id,
            )
            self.reconciliation.flag_refund_inconsistency(payment.id, remote_refund_id, str(exc))
            raise RefundReconciliationRequired(
                "Refund was issued but could not be recorded; it has been queued for reconciliation",
                payment_id=payment.id,
                remote_refund_id=remote_refund_id,
            ) from exc

        if recorded is None:
            # A concurrent refund won; the shared idempotency key kept the provider at one refund.
            raise ConflictError("Payment has already been refunded")

        self._audit(
            getattr(actor, "id", None),
            AuditAction.PAYMENT_REFUNDED,
            "payment",
            payment.id,
            {
                "refundPaymentId": recorded.id,
                "amount": payment.amount,
                "reason": cleaned_reason,
                "remoteRefundId": remote_refund_id or "",
            },
        )
        return recorded

    # ------------------------------------------------------------------
    # Users and invoices
    # ------------------------------------------------------------------
    def delete_user(self, user_id: int, *, actor: Principal) -> UserDeletionResult:
        """Cancel remote subscriptions, then delete the user.

        Local deletion always proceeds; remote failures are queued and
        reported on the result.
        """

        self.policy.require_admin(actor)
        account = self.accounts.get_account(user_id)
        if account is None:
            raise NotFoundError(f"User {user_id} not found")

        cancelled: List[str] = []
        failures: List[RemoteCancellationFailure] = []
        seen = set()
        for subscription in self.subscriptions.list_for_user(user_id):
            remote_id = subscription.remote_subscription_id
            if not remote_id or remote_id in seen:
                continue
            if subscription.status == SubscriptionStatus.EXPIRED:
                continue
            seen.add(remote_id)
            failure = self._cancel_remote(subscription)
            if failure is None:
                cancelled.append(remote_id)
            else:
                failures.append(failure)

        deleted = self.accounts.delete_user(user_id)
        self._audit(
            getattr(actor, "id", None),
            AuditAction.USER_DELETED,
            "user",
            user_id,
            {
                "username": account.username,
                "cancelledRemote": len(cancelled),
                "failedRemote": len(failures),
            },
        )
        if failures:
            logger.warning(
                "User %s deleted with %s remote cancellation(s) pending",
                user_id,
                len(failures),
            )
        return UserDeletionResult(
            user_id=user_id,
            deleted=deleted,
            cancelled_remote_ids=cancelled,
            failed_remote_cancellations=failures,
        )

    def sync_invoices(self, user_id: int, *, actor: Principal, limit: int = 20) -> List[Invoice]:
        """Mirror the user's invoices at the payment provider into local rows."""

        self.policy.require_admin(actor)
        account = self.accounts.get_account(user_id)
        if account is None:
            raise NotFoundError(f"User {user_id} not found")
        if not account.remote_customer_id:
            return []

        now = self._now()
        synced = []
        for remote in self.gateway.list_invoices(account.remote_customer_id, limit=limit):
            paid_at = (
                datetime.fromtimestamp(remote.paid_at, tz=timezone.utc) if remote.paid_at else None
            )
            synced.append(
                self.invoices.upsert_remote_invoice(
                    user_id=user_id,
                    remote_invoice_id=remote.id,
                    invoice_number=self._mint_invoice_number(now),
                    amount=remote.amount_due,
                    currency=remote.currency,
                    status=_REMOTE_INVOICE_STATUS.get(remote.status or "", InvoiceStatus.ISSUED),
                    paid_at=paid_at,
                )
            )
        logger.info("Synced %s invoice(s) for user %s", len(synced), user_id)
        return synced

    def delete_invoice(self, invoice_id: int, *, actor: Principal) -> None:
        self.policy.require_admin(actor)
        invoice = self.invoices.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if self.ledger.count_for_invoice(invoice_id) > 0:
            raise ConflictError(
                "Invoice has associated payments and cannot be deleted",
                detail={"invoiceId": invoice_id},
            )
        if not self.invoices.delete_invoice_if_unreferenced(invoice_id):
            raise ConflictError(
                "Invoice has associated payments and cannot be deleted",
                detail={"invoiceId": invoice_id},
            )
        self._audit(
            getattr(actor, "id", None),
            AuditAction.INVOICE_DELETED,
            "invoice",
            invoice_id,
            {"invoiceNumber": invoice.invoice_number},
        )

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    def list_user_subscriptions(self, user_id: int) -> List[Subscription]:
        return self.subscriptions.list_for_user(user_id)

    def list_user_payments(self, user_id: int) -> List[Payment]:
        return self.ledger.list_for_user(user_id)

    def list_user_invoices(self, user_id: int) -> List[Invoice]:
        return self.invoices.list_for_user(user_id)

    def list_all_subscriptions(
        self, *, actor: Principal, limit: int = 100, offset: int = 0
    ) -> List[Subscription]:
        self.policy.require_admin(actor)
        return self.subscriptions.list_all(limit=limit, offset=offset)

    def list_all_payments(self, *, actor: Principal, limit: int = 100, offset: int = 0) -> List[Payment]:
        self.policy.require_admin(actor)
        return self.ledger.list_all(limit=limit, offset=offset)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _mint_transaction_id(now: datetime) -> str:
        return f"CP-{now:%Y%m%d}-{secrets.token_hex(4).upper()}"

    @staticmethod
    def _mint_invoice_number(now: datetime) -> str:
        return f"INV-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"

    def _audit(
        self,
        user_id: Optional[int],
        action: AuditAction,
        entity_type: str,
        entity_id: Any,
        details: Dict[str, Any],
    ) -> None:
        """Append an audit entry for a change that has already been committed.

        A failing append is logged rather than raised so callers never retry a
        write that went through.
        """

        entry = AuditLogEntry(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            details={key: str(value) for key, value in details.items()},
            created_at=self._now(),
        )
        try:
            self.audit_log.append(entry)
        except Exception:
            logger.exception(
                "Audit entry %s for %s %s was not written",
                action.value,
                entity_type,
                entry.entity_id,
                extra={"audit_details": entry.details},
            )


__all__ = [
    "AuditLog",
    "BillingAccounts",
    "COINPAYMENTS_FLAG",
    "InvoiceStore",
    "Ledger",
    "PlanCatalog",
    "ReconciliationQueue",
    "SubscriptionService",
    "SubscriptionStore",
    "SystemFlags",
]

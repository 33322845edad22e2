"""PostgreSQL persistence for plans, subscriptions, the ledger and audit trail."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from .models import (
    AuditLogEntry,
    BillingAccount,
    BillingCycle,
    Invoice,
    InvoiceStatus,
    NewPayment,
    NewSubscription,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    PLAN_EDITABLE_FIELDS,
    Plan,
    RemoteCancellationFailure,
    ServiceSettings,
    Subscription,
    SubscriptionStatus,
)

PLAN_COLUMNS = PLAN_EDITABLE_FIELDS


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def _row_to_plan(row: dict) -> Plan:
    return Plan(
        id=row["id"],
        name=row["name"],
        price=int(row["price"]),
        billing_cycle=BillingCycle(row["billing_cycle"]),
        remote_price_id=row.get("remote_price_id"),
        is_visible=bool(row["is_visible"]),
        is_active=bool(row["is_active"]),
        sort_order=int(row.get("sort_order") or 0),
        description=row.get("description") or "",
        features=list(row.get("features") or []),
        platform=row.get("platform") or "twitch",
        viewer_count=int(row.get("viewer_count") or 0),
        chat_count=int(row.get("chat_count") or 0),
        follower_count=int(row.get("follower_count") or 0),
        is_popular=bool(row.get("is_popular")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_subscription(row: dict) -> Subscription:
    return Subscription(
        id=row["id"],
        user_id=row["user_id"],
        plan_id=row["plan_id"],
        status=SubscriptionStatus(row["status"]),
        is_active=bool(row["is_active"]),
        start_date=row["start_date"],
        end_date=row.get("end_date"),
        payment_method=PaymentMethod(row["payment_method"]),
        remote_subscription_id=row.get("remote_subscription_id"),
        payment_reference=row.get("payment_reference"),
        twitch_channel=row.get("twitch_channel"),
        settings=ServiceSettings.model_validate(row.get("settings") or {}),
    )


def _row_to_payment(row: dict) -> Payment:
    return Payment(
        id=row["id"],
        user_id=row["user_id"],
        subscription_id=row.get("subscription_id"),
        invoice_id=row.get("invoice_id"),
        amount=int(row["amount"]),
        currency=row["currency"],
        status=PaymentStatus(row["status"]),
        payment_method=PaymentMethod(row["payment_method"]),
        payment_type=PaymentType(row["payment_type"]),
        remote_payment_intent_id=row.get("remote_payment_intent_id"),
        refund_reason=row.get("refund_reason"),
        refunded_payment_id=row.get("refunded_payment_id"),
        created_at=row["created_at"],
    )


def _row_to_invoice(row: dict) -> Invoice:
    return Invoice(
        id=row["id"],
        user_id=row["user_id"],
        invoice_number=row["invoice_number"],
        amount=int(row["amount"]),
        currency=row["currency"],
        status=InvoiceStatus(row["status"]),
        remote_invoice_id=row.get("remote_invoice_id"),
        issued_at=row["issued_at"],
        paid_at=row.get("paid_at"),
    )


def _row_to_account(row: dict) -> BillingAccount:
    return BillingAccount(
        id=row["id"],
        username=row["username"],
        email=row.get("email"),
        role=row.get("role") or "user",
        remote_customer_id=row.get("remote_customer_id"),
        remote_subscription_id=row.get("remote_subscription_id"),
    )


def _payment_params(payment: NewPayment) -> Dict[str, Any]:
    return {
        "user_id": payment.user_id,
        "subscription_id": payment.subscription_id,
        "invoice_id": payment.invoice_id,
        "amount": payment.amount,
        "currency": payment.currency.lower(),
        "status": payment.status.value,
        "payment_method": payment.payment_method.value,
        "payment_type": payment.payment_type.value,
        "remote_payment_intent_id": payment.remote_payment_intent_id,
        "refund_reason": payment.refund_reason,
        "refunded_payment_id": payment.refunded_payment_id,
    }


_INSERT_PAYMENT = """
    INSERT INTO payments (
        user_id,
        subscription_id,
        invoice_id,
        amount,
        currency,
        status,
        payment_method,
        payment_type,
        remote_payment_intent_id,
        refund_reason,
        refunded_payment_id
    )
    VALUES (%(user_id)s, %(subscription_id)s, %(invoice_id)s, %(amount)s, %(currency)s,
            %(status)s, %(payment_method)s, %(payment_type)s,
            %(remote_payment_intent_id)s, %(refund_reason)s, %(refunded_payment_id)s)
    RETURNING *
"""


class _PostgresStore:
    """Shared cursor handling for the PostgreSQL stores."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        with managed_connection(self._conn) as (connection, _managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
            finally:
                cursor.close()


class PostgresPlanCatalog(_PostgresStore):
    """Plan rows in ``subscription_plans``."""

    def get_plan(self, plan_id: int) -> Optional[Plan]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM subscription_plans WHERE id = %s LIMIT 1", (plan_id,))
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def list_plans(self, *, include_hidden: bool = False) -> List[Plan]:
        with self._cursor() as cursor:
            if include_hidden:
                cursor.execute("SELECT * FROM subscription_plans ORDER BY sort_order ASC, id ASC")
            else:
                cursor.execute(
                    """
                    SELECT *
                    FROM subscription_plans
                    WHERE is_visible AND is_active
                    ORDER BY sort_order ASC, id ASC
                    """
                )
            return [_row_to_plan(row) for row in cursor.fetchall() or []]

    def insert_plan(self, fields: Mapping[str, Any]) -> Plan:
        columns = [column for column in PLAN_COLUMNS if column in fields]
        placeholders = ", ".join(f"%({column})s" for column in columns)
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                INSERT INTO subscription_plans ({", ".join(columns)})
                VALUES ({placeholders})
                RETURNING *
                """,
                {column: fields[column] for column in columns},
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist plan")
            return _row_to_plan(row)

    def update_plan(
        self,
        plan_id: int,
        changes: Mapping[str, Any],
        *,
        require_unreferenced: bool = False,
    ) -> Optional[Plan]:
        """Apply ``changes``; with ``require_unreferenced`` the write only lands
        when no active subscription points at the plan."""

        columns = [column for column in PLAN_COLUMNS if column in changes]
        if not columns:
            return self.get_plan(plan_id)
        assignments = ", ".join(f"{column} = %({column})s" for column in columns)
        guard = ""
        if require_unreferenced:
            guard = """
                AND NOT EXISTS (
                    SELECT 1 FROM user_subscriptions
                    WHERE plan_id = %(plan_id)s AND is_active
                )
            """
        params: Dict[str, Any] = {column: changes[column] for column in columns}
        params["plan_id"] = plan_id
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE subscription_plans
                SET {assignments}, updated_at = NOW()
                WHERE id = %(plan_id)s {guard}
                RETURNING *
                """,
                params,
            )
            row = cursor.fetchone()
            return _row_to_plan(row) if row else None

    def has_active_subscriptions(self, plan_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT EXISTS (
                    SELECT 1 FROM user_subscriptions WHERE plan_id = %s AND is_active
                ) AS referenced
                """,
                (plan_id,),
            )
            row = cursor.fetchone()
            return bool(row and row["referenced"])


class PostgresBillingAccounts(_PostgresStore):
    """Billing columns of the ``users`` table."""

    def get_account(self, user_id: int) -> Optional[BillingAccount]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id, username, email, role, remote_customer_id, remote_subscription_id
                FROM users
                WHERE id = %s
                """,
                (user_id,),
            )
            row = cursor.fetchone()
            return _row_to_account(row) if row else None

    def claim_remote_customer_id(self, user_id: int, customer_id: str) -> str:
        """Store ``customer_id`` unless another writer got there first.

        Returns the id that is persisted after the call.
        """

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                SET remote_customer_id = %s
                WHERE id = %s AND remote_customer_id IS NULL
                RETURNING remote_customer_id
                """,
                (customer_id, user_id),
            )
            row = cursor.fetchone()
            if row:
                return row["remote_customer_id"]
            cursor.execute("SELECT remote_customer_id FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            if not row or not row["remote_customer_id"]:
                raise LookupError(f"User {user_id} not found")
            return row["remote_customer_id"]

    def set_remote_subscription_id(self, user_id: int, remote_subscription_id: Optional[str]) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "UPDATE users SET remote_subscription_id = %s WHERE id = %s",
                (remote_subscription_id, user_id),
            )

    def delete_user(self, user_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM users WHERE id = %s", (user_id,))
            return cursor.rowcount > 0


class PostgresSubscriptionStore(_PostgresStore):
    """Rows in ``user_subscriptions``."""

    def create_subscription(
        self,
        subscription: NewSubscription,
        *,
        initial_payment: Optional[NewPayment] = None,
    ) -> Subscription:
        """Insert the subscription and, in the same transaction, its first ledger row."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO user_subscriptions (
                    user_id,
                    plan_id,
                    status,
                    is_active,
                    start_date,
                    end_date,
                    payment_method,
                    remote_subscription_id,
                    payment_reference,
                    settings
                )
                VALUES (%(user_id)s, %(plan_id)s, %(status)s, %(is_active)s, %(start_date)s,
                        %(end_date)s, %(payment_method)s, %(remote_subscription_id)s,
                        %(payment_reference)s, %(settings)s)
                RETURNING *
                """,
                {
                    "user_id": subscription.user_id,
                    "plan_id": subscription.plan_id,
                    "status": subscription.status.value,
                    "is_active": subscription.is_active,
                    "start_date": subscription.start_date,
                    "end_date": subscription.end_date,
                    "payment_method": subscription.payment_method.value,
                    "remote_subscription_id": subscription.remote_subscription_id,
                    "payment_reference": subscription.payment_reference,
                    "settings": psycopg2.extras.Json(ServiceSettings().model_dump()),
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist subscription")
            created = _row_to_subscription(row)
            if initial_payment is not None:
                params = _payment_params(initial_payment)
                params["subscription_id"] = created.id
                cursor.execute(_INSERT_PAYMENT, params)
            return created

    def get_subscription(self, subscription_id: int) -> Optional[Subscription]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM user_subscriptions WHERE id = %s LIMIT 1", (subscription_id,))
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None

    def list_for_user(self, user_id: int) -> List[Subscription]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM user_subscriptions WHERE user_id = %s ORDER BY created_at DESC",
                (user_id,),
            )
            return [_row_to_subscription(row) for row in cursor.fetchall() or []]

    def list_all(self, *, limit: int = 100, offset: int = 0) -> List[Subscription]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM user_subscriptions ORDER BY created_at DESC LIMIT %s OFFSET %s",
                (limit, offset),
            )
            return [_row_to_subscription(row) for row in cursor.fetchall() or []]

    def mark_cancelled(
        self, subscription_id: int, *, end_date: datetime, keep_active: bool = True
    ) -> Optional[Subscription]:
        # An end date another writer stamped first is kept unless it is earlier.
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE user_subscriptions
                SET status = %s,
                    is_active = %s,
                    end_date = GREATEST(COALESCE(end_date, %s), %s),
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (SubscriptionStatus.CANCELLED.value, keep_active, end_date, end_date, subscription_id),
            )
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None


class PostgresLedger(_PostgresStore):
    """Rows in ``payments``."""

    def get_payment(self, payment_id: int) -> Optional[Payment]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM payments WHERE id = %s LIMIT 1", (payment_id,))
            row = cursor.fetchone()
            return _row_to_payment(row) if row else None

    def list_for_user(self, user_id: int) -> List[Payment]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM payments WHERE user_id = %s ORDER BY created_at DESC, id DESC",
                (user_id,),
            )
            return [_row_to_payment(row) for row in cursor.fetchall() or []]

    def list_all(self, *, limit: int = 100, offset: int = 0) -> List[Payment]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM payments ORDER BY created_at DESC, id DESC LIMIT %s OFFSET %s",
                (limit, offset),
            )
            return [_row_to_payment(row) for row in cursor.fetchall() or []]

    def record_refund(self, original_id: int, refund: NewPayment) -> Optional[Payment]:
        """Flip the original to refunded and insert the refund row atomically.

        Returns ``None`` without writing unless the original is still completed.
        """

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE payments
                SET status = %s, updated_at = NOW()
                WHERE id = %s AND status = %s AND payment_type <> %s
                RETURNING id
                """,
                (
                    PaymentStatus.REFUNDED.value,
                    original_id,
                    PaymentStatus.COMPLETED.value,
                    PaymentType.REFUND.value,
                ),
            )
            if cursor.fetchone() is None:
                return None
            cursor.execute(_INSERT_PAYMENT, _payment_params(refund))
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist refund")
            return _row_to_payment(row)

    def count_for_invoice(self, invoice_id: int) -> int:
        with self._cursor() as cursor:
            cursor.execute("SELECT COUNT(*) AS total FROM payments WHERE invoice_id = %s", (invoice_id,))
            row = cursor.fetchone()
            return int(row["total"]) if row else 0


class PostgresInvoiceStore(_PostgresStore):
    """Rows in ``invoices``."""

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM invoices WHERE id = %s LIMIT 1", (invoice_id,))
            row = cursor.fetchone()
            return _row_to_invoice(row) if row else None

    def list_for_user(self, user_id: int) -> List[Invoice]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM invoices WHERE user_id = %s ORDER BY issued_at DESC",
                (user_id,),
            )
            return [_row_to_invoice(row) for row in cursor.fetchall() or []]

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
        # The invoice number is assigned once; later syncs only refresh state.
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO invoices (
                    user_id,
                    invoice_number,
                    amount,
                    currency,
                    status,
                    remote_invoice_id,
                    paid_at
                )
                VALUES (%(user_id)s, %(invoice_number)s, %(amount)s, %(currency)s,
                        %(status)s, %(remote_invoice_id)s, %(paid_at)s)
                ON CONFLICT (remote_invoice_id) DO UPDATE SET
                    amount = EXCLUDED.amount,
                    currency = EXCLUDED.currency,
                    status = EXCLUDED.status,
                    paid_at = EXCLUDED.paid_at,
                    updated_at = NOW()
                RETURNING *
                """,
                {
                    "user_id": user_id,
                    "invoice_number": invoice_number,
                    "amount": amount,
                    "currency": currency.lower(),
                    "status": status.value,
                    "remote_invoice_id": remote_invoice_id,
                    "paid_at": paid_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist invoice")
            return _row_to_invoice(row)

    def delete_invoice_if_unreferenced(self, invoice_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute(
                """
                DELETE FROM invoices
                WHERE id = %s
                  AND NOT EXISTS (SELECT 1 FROM payments WHERE invoice_id = %s)
                """,
                (invoice_id, invoice_id),
            )
            return cursor.rowcount > 0


class PostgresAuditLog(_PostgresStore):
    """Append-only writer for ``audit_logs``."""

    def append(self, entry: AuditLogEntry) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO audit_logs (user_id, action, entity_type, entity_id, details, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    entry.user_id,
                    entry.action.value,
                    entry.entity_type,
                    entry.entity_id,
                    psycopg2.extras.Json(entry.details),
                    entry.created_at,
                ),
            )


class PostgresReconciliationQueue(_PostgresStore):
    """Durable queue of remote/local mismatches awaiting an operator or retry job."""

    def enqueue_remote_cancellation(self, user_id: int, failure: RemoteCancellationFailure) -> None:
        self._insert(
            "remote_cancellation",
            "subscription",
            str(failure.subscription_id),
            {
                "user_id": user_id,
                "remote_subscription_id": failure.remote_subscription_id,
                "error": failure.error,
            },
        )

    def flag_refund_inconsistency(self, payment_id: int, remote_refund_id: str, error: str) -> None:
        self._insert(
            "refund_inconsistency",
            "payment",
            str(payment_id),
            {"remote_refund_id": remote_refund_id, "error": error},
        )

    def _insert(self, kind: str, entity_type: str, entity_id: str, details: Dict[str, Any]) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO billing_reconciliation_issues (kind, entity_type, entity_id, details)
                VALUES (%s, %s, %s, %s)
                """,
                (kind, entity_type, entity_id, psycopg2.extras.Json(details)),
            )


class PostgresSystemFlags(_PostgresStore):
    """Boolean switches read from ``system_config``."""

    def is_enabled(self, name: str, *, default: bool = False) -> bool:
        with self._cursor() as cursor:
            cursor.execute("SELECT value FROM system_config WHERE key = %s", (name,))
            row = cursor.fetchone()
        if not row:
            return default
        return str(row["value"]).strip().lower() in {"1", "true", "yes", "on"}


__all__ = [
    "PLAN_COLUMNS",
    "PostgresAuditLog",
    "PostgresBillingAccounts",
    "PostgresInvoiceStore",
    "PostgresLedger",
    "PostgresPlanCatalog",
    "PostgresReconciliationQueue",
    "PostgresSubscriptionStore",
    "PostgresSystemFlags",
    "managed_connection",
]

"""SQL-level behaviour of the PostgreSQL stores against a scripted connection."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Optional

import pytest

from storefront.app.billing.models import NewPayment, PaymentMethod, PaymentStatus, PaymentType
from storefront.app.billing.repository import (
    PostgresBillingAccounts,
    PostgresLedger,
    PostgresSystemFlags,
)

CREATED = datetime(2024, 1, 15, tzinfo=timezone.utc)


class _ScriptedCursor:
    def __init__(self, results: List[Optional[Any]]) -> None:
        self.results = results
        self.executed: List[tuple[str, Any]] = []
        self.rowcount = 0

    def execute(self, sql, params=None):
        self.executed.append((" ".join(sql.split()), params))

    def fetchone(self):
        return self.results.pop(0)

    def close(self):
        pass


class _ScriptedConnection:
    def __init__(self, results: List[Optional[Any]]) -> None:
        self.cursor_obj = _ScriptedCursor(results)

    def cursor(self, cursor_factory=None):
        return self.cursor_obj


def test_claim_customer_id_wins_when_unset():
    connection = _ScriptedConnection([{"remote_customer_id": "cus_new"}])
    accounts = PostgresBillingAccounts(conn=connection)

    assert accounts.claim_remote_customer_id(1, "cus_new") == "cus_new"
    [(sql, params)] = connection.cursor_obj.executed
    assert "remote_customer_id IS NULL" in sql
    assert params == ("cus_new", 1)


def test_claim_customer_id_returns_existing_on_lost_race():
    connection = _ScriptedConnection([None, {"remote_customer_id": "cus_first"}])
    accounts = PostgresBillingAccounts(conn=connection)

    assert accounts.claim_remote_customer_id(1, "cus_second") == "cus_first"
    assert len(connection.cursor_obj.executed) == 2


def test_claim_customer_id_for_missing_user():
    accounts = PostgresBillingAccounts(conn=_ScriptedConnection([None, None]))

    with pytest.raises(LookupError):
        accounts.claim_remote_customer_id(404, "cus_x")


def _refund_row():
    return NewPayment(
        user_id=1,
        amount=-7500,
        status=PaymentStatus.COMPLETED,
        payment_method=PaymentMethod.CARD,
        payment_type=PaymentType.REFUND,
        refund_reason="duplicate",
        refunded_payment_id=3,
    )


def test_record_refund_flips_original_then_inserts():
    inserted = {
        "id": 4,
        "user_id": 1,
        "subscription_id": None,
        "invoice_id": None,
        "amount": -7500,
        "currency": "usd",
        "status": "completed",
        "payment_method": "card",
        "payment_type": "refund",
        "remote_payment_intent_id": None,
        "refund_reason": "duplicate",
        "refunded_payment_id": 3,
        "created_at": CREATED,
    }
    connection = _ScriptedConnection([{"id": 3}, inserted])

    refund = PostgresLedger(conn=connection).record_refund(3, _refund_row())

    assert refund.id == 4
    assert refund.refunded_payment_id == 3
    update_sql, update_params = connection.cursor_obj.executed[0]
    assert update_sql.startswith("UPDATE payments SET status = %s")
    assert update_params == ("refunded", 3, "completed", "refund")
    insert_sql, insert_params = connection.cursor_obj.executed[1]
    assert insert_sql.startswith("INSERT INTO payments")
    assert insert_params["amount"] == -7500


def test_record_refund_skips_insert_when_already_refunded():
    connection = _ScriptedConnection([None])

    assert PostgresLedger(conn=connection).record_refund(3, _refund_row()) is None
    assert len(connection.cursor_obj.executed) == 1


@pytest.mark.parametrize(
    "row, default, expected",
    [
        (None, True, True),
        (None, False, False),
        ({"value": "true"}, False, True),
        ({"value": " Off "}, True, False),
    ],
)
def test_system_flags(row, default, expected):
    flags = PostgresSystemFlags(conn=_ScriptedConnection([row]))

    assert flags.is_enabled("coinpayments_enabled", default=default) is expected

"""Verification columns of the ``users`` table."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..billing.repository import _PostgresStore
from .models import VerificationAccount

_ACCOUNT_COLUMNS = "id, username, email, is_email_verified"


def _row_to_account(row: dict) -> VerificationAccount:
    return VerificationAccount(
        id=row["id"],
        username=row["username"],
        email=row.get("email"),
        is_email_verified=bool(row.get("is_email_verified")),
    )


class PostgresVerificationUsers(_PostgresStore):
    def get_account(self, user_id: int) -> Optional[VerificationAccount]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_ACCOUNT_COLUMNS} FROM users WHERE id = %s", (user_id,))
            row = cursor.fetchone()
            return _row_to_account(row) if row else None

    def store_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                SET verification_token_hash = %s, verification_token_expiry = %s
                WHERE id = %s
                """,
                (token_hash, expires_at, user_id),
            )

    def confirm_token(self, token_hash: str, now: datetime) -> Optional[VerificationAccount]:
        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE users
                SET is_email_verified = TRUE,
                    verification_token_hash = NULL,
                    verification_token_expiry = NULL
                WHERE verification_token_hash = %s
                  AND verification_token_expiry > %s
                  AND NOT is_email_verified
                RETURNING {_ACCOUNT_COLUMNS}
                """,
                (token_hash, now),
            )
            row = cursor.fetchone()
            return _row_to_account(row) if row else None


__all__ = ["PostgresVerificationUsers"]

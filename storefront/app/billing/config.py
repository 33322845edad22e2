"""Billing configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from ...settings import EnvReader

DEFAULT_ACCEPTED_COINS = ("BTC", "ETH", "LTC", "USDT")


@dataclass(frozen=True)
class BillingConfig:
    """Configuration for the payment gateway and checkout flows."""

    stripe_secret_key: Optional[str]
    stripe_api_version: str
    stripe_timeout_seconds: float
    currency: str
    coinpayments_enabled: bool
    accepted_coins: Tuple[str, ...]
    lock_backend: str

    @property
    def gateway_configured(self) -> bool:
        return bool(self.stripe_secret_key)


def _to_coins(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return DEFAULT_ACCEPTED_COINS
    coins = tuple(part.strip().upper() for part in value.split(",") if part.strip())
    return coins or DEFAULT_ACCEPTED_COINS


def load_billing_config(env: Optional[Mapping[str, str]] = None) -> BillingConfig:
    """Load :class:`BillingConfig` from environment variables."""

    reader = EnvReader(env)

    timeout = reader.number("STRIPE_TIMEOUT_SECONDS", 20.0)
    if timeout <= 0:
        raise ValueError("STRIPE_TIMEOUT_SECONDS must be positive")

    return BillingConfig(
        stripe_secret_key=reader.optional("STRIPE_SECRET_KEY"),
        stripe_api_version=reader.text("STRIPE_API_VERSION", "2023-10-16"),
        stripe_timeout_seconds=timeout,
        currency=reader.text("BILLING_CURRENCY", "usd").strip().lower(),
        coinpayments_enabled=reader.flag("COINPAYMENTS_ENABLED", False),
        accepted_coins=_to_coins(reader.optional("COINPAYMENTS_ACCEPTED_COINS")),
        lock_backend=reader.choice("BILLING_LOCK_BACKEND", ("memory", "postgres"), "memory"),
    )


__all__ = ["BillingConfig", "DEFAULT_ACCEPTED_COINS", "load_billing_config"]

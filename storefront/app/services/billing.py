"""Application wiring for the billing engine and plan catalog."""
from __future__ import annotations

import logging
from functools import lru_cache

from ..billing.catalog import PlanCatalogService
from ..billing.config import BillingConfig, load_billing_config
from ..billing.gateway import PaymentGateway
from ..billing.locks import build_lock_provider
from ..billing.repository import (
    PostgresAuditLog,
    PostgresBillingAccounts,
    PostgresInvoiceStore,
    PostgresLedger,
    PostgresPlanCatalog,
    PostgresReconciliationQueue,
    PostgresSubscriptionStore,
    PostgresSystemFlags,
)
from ..billing.service import SubscriptionService
from ..billing.stripe_gateway import StripePaymentGateway, configure_stripe

logger = logging.getLogger("billing")


@lru_cache(maxsize=1)
def get_billing_config() -> BillingConfig:
    return load_billing_config()


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    config = get_billing_config()
    if not config.gateway_configured:
        logger.warning("STRIPE_SECRET_KEY is not set; card checkout requests will be rejected")
    configure_stripe(config)
    return StripePaymentGateway()


@lru_cache(maxsize=1)
def get_subscription_service() -> SubscriptionService:
    config = get_billing_config()
    service = SubscriptionService(
        plans=PostgresPlanCatalog(),
        accounts=PostgresBillingAccounts(),
        subscriptions=PostgresSubscriptionStore(),
        ledger=PostgresLedger(),
        invoices=PostgresInvoiceStore(),
        audit_log=PostgresAuditLog(),
        gateway=get_payment_gateway(),
        reconciliation=PostgresReconciliationQueue(),
        flags=PostgresSystemFlags(),
        locks=build_lock_provider(config.lock_backend),
        config=config,
    )
    logger.info(
        "Billing engine ready",
        extra={"lock_backend": config.lock_backend, "currency": config.currency},
    )
    return service


@lru_cache(maxsize=1)
def get_plan_catalog_service() -> PlanCatalogService:
    return PlanCatalogService(plans=PostgresPlanCatalog(), audit_log=PostgresAuditLog())


__all__ = [
    "get_billing_config",
    "get_payment_gateway",
    "get_plan_catalog_service",
    "get_subscription_service",
]

"""Application wiring for email verification."""
from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from ...mail import EmailNotifier, create_email_provider, load_email_config
from ..verification.config import RateLimitConfig, load_rate_limit_config
from ..verification.rate_limit import RateLimitPolicy, VerificationRateLimiter, build_rate_limit_store
from ..verification.repository import PostgresVerificationUsers
from ..verification.service import VerificationService


@lru_cache(maxsize=1)
def get_rate_limit_config() -> RateLimitConfig:
    return load_rate_limit_config()


@lru_cache(maxsize=1)
def get_email_notifier() -> EmailNotifier:
    config = load_email_config()
    return EmailNotifier(
        create_email_provider(config),
        config,
        token_ttl_hours=get_rate_limit_config().token_ttl_hours,
    )


@lru_cache(maxsize=1)
def get_verification_service() -> VerificationService:
    config = get_rate_limit_config()
    limiter = VerificationRateLimiter(
        build_rate_limit_store(config),
        RateLimitPolicy.from_config(config),
        key_prefix=config.key_prefix,
    )
    return VerificationService(
        users=PostgresVerificationUsers(),
        limiter=limiter,
        mailer=get_email_notifier(),
        token_ttl=timedelta(hours=config.token_ttl_hours),
    )


__all__ = ["get_email_notifier", "get_rate_limit_config", "get_verification_service"]

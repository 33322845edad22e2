"""Email verification with a shared-store resend rate limiter."""

from .config import RateLimitConfig, load_rate_limit_config
from .models import ResendResult, VerificationAccount
from .rate_limit import (
    InMemoryRateLimitStore,
    RateLimitDecision,
    RateLimitPolicy,
    RateLimitStore,
    RedisRateLimitStore,
    VerificationRateLimiter,
)
from .service import VerificationService

__all__ = [
    "InMemoryRateLimitStore",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RateLimitStore",
    "RedisRateLimitStore",
    "ResendResult",
    "VerificationAccount",
    "VerificationRateLimiter",
    "VerificationService",
    "load_rate_limit_config",
]

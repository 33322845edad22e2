"""Verification email and rate limit configuration."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from ...settings import EnvReader


@dataclass(frozen=True)
class RateLimitConfig:
    """Limits applied to verification email resends."""

    cooldown_seconds: int
    max_attempts: int
    reset_window_seconds: int
    backend: str
    redis_url: Optional[str]
    key_prefix: str
    token_ttl_hours: int


def load_rate_limit_config(env: Optional[Mapping[str, str]] = None) -> RateLimitConfig:
    """Load :class:`RateLimitConfig` from environment variables."""

    reader = EnvReader(env)

    cooldown = reader.integer("VERIFICATION_COOLDOWN_SECONDS", 60)
    max_attempts = reader.integer("VERIFICATION_MAX_ATTEMPTS", 5)
    window = reader.integer("VERIFICATION_RESET_WINDOW_SECONDS", 3600)
    if cooldown < 0 or max_attempts < 1 or window <= 0:
        raise ValueError("Verification rate limits must be positive")

    backend = reader.choice("RATE_LIMIT_BACKEND", ("memory", "redis"), "memory")
    redis_url = reader.optional("REDIS_URL")
    if backend == "redis" and not redis_url:
        raise ValueError("REDIS_URL is required when RATE_LIMIT_BACKEND=redis")

    return RateLimitConfig(
        cooldown_seconds=cooldown,
        max_attempts=max_attempts,
        reset_window_seconds=window,
        backend=backend,
        redis_url=redis_url,
        key_prefix=reader.text("RATE_LIMIT_KEY_PREFIX", "verification:resend:"),
        token_ttl_hours=max(1, reader.integer("VERIFICATION_TOKEN_TTL_HOURS", 24)),
    )


__all__ = ["RateLimitConfig", "load_rate_limit_config"]

"""Cooldown and windowed attempt limits for verification email resends.

A resend is rejected when it comes within the cooldown of the previous
successful send, or when the attempt budget for the current window is spent.
Rejected calls never move ``last_sent_at``.
"""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Protocol, Tuple

import redis

from ..billing.errors import RateLimited
from .config import RateLimitConfig

logger = logging.getLogger("verification")


@dataclass(frozen=True)
class RateLimitPolicy:
    cooldown_seconds: int = 60
    max_attempts: int = 5
    reset_window_seconds: int = 3600

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> "RateLimitPolicy":
        return cls(
            cooldown_seconds=config.cooldown_seconds,
            max_attempts=config.max_attempts,
            reset_window_seconds=config.reset_window_seconds,
        )


@dataclass(frozen=True)
class RateLimitState:
    last_sent_at: datetime
    attempt_count: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    attempt_count: int
    remaining_seconds: Optional[int] = None
    reset_time: Optional[datetime] = None

    def remaining_attempts(self, policy: RateLimitPolicy) -> int:
        return max(0, policy.max_attempts - self.attempt_count)


def evaluate(
    state: Optional[RateLimitState], now: datetime, policy: RateLimitPolicy
) -> Tuple[RateLimitDecision, Optional[RateLimitState]]:
    """Decide one resend attempt; returns the decision and the state to store.

    The returned state is ``None`` when the attempt is rejected.
    """

    if state is None:
        return RateLimitDecision(allowed=True, attempt_count=1), RateLimitState(now, 1)

    elapsed = (now - state.last_sent_at).total_seconds()
    if elapsed < policy.cooldown_seconds:
        remaining = math.ceil(policy.cooldown_seconds - elapsed)
        return (
            RateLimitDecision(
                allowed=False,
                attempt_count=state.attempt_count,
                remaining_seconds=remaining,
            ),
            None,
        )

    window = timedelta(seconds=policy.reset_window_seconds)
    if state.attempt_count >= policy.max_attempts and elapsed < policy.reset_window_seconds:
        return (
            RateLimitDecision(
                allowed=False,
                attempt_count=state.attempt_count,
                reset_time=state.last_sent_at + window,
            ),
            None,
        )

    attempts = state.attempt_count + 1 if elapsed < policy.reset_window_seconds else 1
    return RateLimitDecision(allowed=True, attempt_count=attempts), RateLimitState(now, attempts)


class RateLimitStore(Protocol):
    """Shared keyed store that applies :func:`evaluate` atomically per key."""

    def check_and_record(self, key: str, now: datetime, policy: RateLimitPolicy) -> RateLimitDecision:
        ...


class InMemoryRateLimitStore:
    """Process-local store for development and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: Dict[str, RateLimitState] = {}

    def check_and_record(self, key: str, now: datetime, policy: RateLimitPolicy) -> RateLimitDecision:
        with self._lock:
            state = self._states.get(key)
            if state is not None:
                age = (now - state.last_sent_at).total_seconds()
                if age >= policy.reset_window_seconds:
                    # Same effect as the key TTL in the Redis store.
                    del self._states[key]
                    state = None
            decision, new_state = evaluate(state, now, policy)
            if new_state is not None:
                self._states[key] = new_state
            return decision

    def get_state(self, key: str) -> Optional[RateLimitState]:
        with self._lock:
            return self._states.get(key)


# KEYS[1] = state hash; ARGV = now_ms, cooldown_ms, max_attempts, window_ms.
# Returns {allowed, attempts, remaining_ms, reset_at_ms}.
_CHECK_AND_RECORD_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local cooldown = tonumber(ARGV[2])
local max_attempts = tonumber(ARGV[3])
local window = tonumber(ARGV[4])
local last = tonumber(redis.call('HGET', key, 'last_sent_ms'))
local attempts = tonumber(redis.call('HGET', key, 'attempts')) or 0
if last then
  local elapsed = now - last
  if elapsed < cooldown then
    return {0, attempts, cooldown - elapsed, 0}
  end
  if attempts >= max_attempts and elapsed < window then
    return {0, attempts, 0, last + window}
  end
  if elapsed < window then
    attempts = attempts + 1
  else
    attempts = 1
  end
else
  attempts = 1
end
redis.call('HSET', key, 'last_sent_ms', now, 'attempts', attempts)
redis.call('PEXPIRE', key, window)
return {1, attempts, 0, 0}
"""


def _to_ms(moment: datetime) -> int:
    return int(round(moment.timestamp() * 1000))


class RedisRateLimitStore:
    """Redis-backed store; one Lua script makes check-and-set atomic across workers."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def check_and_record(self, key: str, now: datetime, policy: RateLimitPolicy) -> RateLimitDecision:
        keys = [key]
        args = [
            _to_ms(now),
            policy.cooldown_seconds * 1000,
            policy.max_attempts,
            policy.reset_window_seconds * 1000,
        ]
        allowed, attempts, remaining_ms, reset_at_ms = (
            int(value) for value in self._client.eval(_CHECK_AND_RECORD_SCRIPT, len(keys), *keys, *args)
        )
        if allowed:
            return RateLimitDecision(allowed=True, attempt_count=attempts)
        if remaining_ms > 0:
            return RateLimitDecision(
                allowed=False,
                attempt_count=attempts,
                remaining_seconds=math.ceil(remaining_ms / 1000),
            )
        return RateLimitDecision(
            allowed=False,
            attempt_count=attempts,
            reset_time=datetime.fromtimestamp(reset_at_ms / 1000, tz=timezone.utc),
        )


class VerificationRateLimiter:
    """Applies a :class:`RateLimitPolicy` per user and raises :class:`RateLimited`."""

    def __init__(self, store: RateLimitStore, policy: RateLimitPolicy, *, key_prefix: str = "verification:resend:") -> None:
        self.store = store
        self.policy = policy
        self.key_prefix = key_prefix

    def check(self, user_id: int, now: datetime) -> RateLimitDecision:
        decision = self.store.check_and_record(f"{self.key_prefix}{user_id}", now, self.policy)
        if decision.allowed:
            return decision
        if decision.remaining_seconds is not None:
            logger.info("Verification resend for user %s in cooldown", user_id)
            raise RateLimited(
                f"Please wait {decision.remaining_seconds} seconds before requesting another email",
                remaining_seconds=decision.remaining_seconds,
            )
        logger.info("Verification resend limit reached for user %s", user_id)
        raise RateLimited(
            "Too many verification emails requested; try again later",
            reset_time=decision.reset_time,
        )


def build_rate_limit_store(config: RateLimitConfig) -> RateLimitStore:
    if config.backend == "redis":
        return RedisRateLimitStore.from_url(config.redis_url or "")
    return InMemoryRateLimitStore()


__all__ = [
    "InMemoryRateLimitStore",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RateLimitState",
    "RateLimitStore",
    "RedisRateLimitStore",
    "VerificationRateLimiter",
    "build_rate_limit_store",
    "evaluate",
]

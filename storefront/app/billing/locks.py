"""Per-user mutual exclusion for checkout flows."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, ContextManager, Dict, Iterator, Protocol

from ...app_context import get_conn

logger = logging.getLogger("billing")

# First half of the two-key advisory lock, reserving a namespace for billing.
_ADVISORY_NAMESPACE = 0x5B111


class UserLockProvider(Protocol):
    """Serializes work for a single user across concurrent requests."""

    def hold(self, user_id: int) -> ContextManager[None]:
        ...


class InProcessUserLocks:
    """One ``threading.Lock`` per user; enough for a single worker process.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the table only grows with concurrent users.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}
        self._holders: Dict[int, int] = {}

    def _acquire_entry(self, user_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            self._holders[user_id] = self._holders.get(user_id, 0) + 1
            return lock

    def _release_entry(self, user_id: int) -> None:
        with self._guard:
            remaining = self._holders[user_id] - 1
            if remaining:
                self._holders[user_id] = remaining
            else:
                del self._holders[user_id]
                del self._locks[user_id]

    def tracked_users(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        lock = self._acquire_entry(user_id)
        try:
            with lock:
                yield
        finally:
            self._release_entry(user_id)


class PostgresAdvisoryLocks:
    """Session-level ``pg_advisory_lock`` held on a dedicated connection.

    Works across processes and hosts sharing the database.
    """

    def __init__(self, *, connection_factory: Callable[[], object] = get_conn) -> None:
        self._connection_factory = connection_factory

    @contextmanager
    def hold(self, user_id: int) -> Iterator[None]:
        connection = self._connection_factory()
        try:
            connection.autocommit = True
            with connection.cursor() as cursor:
                cursor.execute("SELECT pg_advisory_lock(%s, %s)", (_ADVISORY_NAMESPACE, user_id))
            try:
                yield
            finally:
                with connection.cursor() as cursor:
                    cursor.execute(
                        "SELECT pg_advisory_unlock(%s, %s)", (_ADVISORY_NAMESPACE, user_id)
                    )
        finally:
            connection.close()


def build_lock_provider(backend: str) -> UserLockProvider:
    if backend == "postgres":
        return PostgresAdvisoryLocks()
    if backend != "memory":
        raise ValueError(f"Unsupported lock backend {backend!r}")
    logger.debug("Using in-process user locks for billing")
    return InProcessUserLocks()


__all__ = [
    "InProcessUserLocks",
    "PostgresAdvisoryLocks",
    "UserLockProvider",
    "build_lock_provider",
]

"""Single source of truth for who may act on billing resources."""
from __future__ import annotations

from functools import lru_cache
from typing import Any, FrozenSet, Optional, Protocol

from fastapi import Cookie, Depends

from ... import app_context
from ..billing.errors import AuthorizationError
from .session import get_session_settings


class Principal(Protocol):
    """The authenticated caller; any object exposing ``id`` and ``role``."""

    id: int
    role: str


class AuthorizationPolicy:
    """Role and ownership checks raised as :class:`AuthorizationError`."""

    def __init__(self, *, admin_roles: FrozenSet[str] = frozenset({"admin"})) -> None:
        self.admin_roles = admin_roles

    def is_admin(self, principal: Optional[Principal]) -> bool:
        if principal is None:
            return False
        return getattr(principal, "role", None) in self.admin_roles

    def require_admin(self, principal: Optional[Principal]) -> None:
        if not self.is_admin(principal):
            raise AuthorizationError("Admin access required")

    def require_owner_or_admin(self, principal: Optional[Principal], owner_id: int) -> None:
        if principal is None:
            raise AuthorizationError("Authentication required")
        if self.is_admin(principal):
            return
        if getattr(principal, "id", None) != owner_id:
            raise AuthorizationError("You do not have access to this resource")


@lru_cache(maxsize=1)
def get_policy() -> AuthorizationPolicy:
    return AuthorizationPolicy()


def current_user(
    session_token: Optional[str] = Cookie(None, alias=get_session_settings().cookie_name),
) -> Any:
    return app_context.get_current_user(session_token=session_token)


def require_admin_user(user: Any = Depends(current_user)) -> Any:
    get_policy().require_admin(user)
    return user


__all__ = [
    "AuthorizationPolicy",
    "Principal",
    "current_user",
    "get_policy",
    "require_admin_user",
]

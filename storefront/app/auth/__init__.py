"""Session cookies and the authorization rules shared by the billing routes."""

from .policy import AuthorizationPolicy, Principal, current_user, get_policy, require_admin_user
from .session import SessionSettings, SessionTokens, get_session_settings

__all__ = [
    "AuthorizationPolicy",
    "Principal",
    "SessionSettings",
    "SessionTokens",
    "current_user",
    "get_policy",
    "get_session_settings",
    "require_admin_user",
]

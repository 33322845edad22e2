"""Late-bound hooks that let routers and stores reach objects built in ``main``.

``main`` owns the database settings and the session cookie logic; the billing
and verification packages only see them through this module, which keeps
them importable (and testable) without the FastAPI app.
"""
from __future__ import annotations

from typing import Any, Callable, Dict

_hooks: Dict[str, Callable[..., Any]] = {}


def configure(
    *,
    get_conn: Callable[[], Any],
    get_current_user: Callable[..., Any],
) -> None:
    _hooks.update(get_conn=get_conn, get_current_user=get_current_user)


def _hook(name: str) -> Callable[..., Any]:
    try:
        return _hooks[name]
    except KeyError:
        raise RuntimeError(f"{name} was requested before app_context.configure() ran") from None


def get_conn() -> Any:
    """Open a new psycopg2 connection via the configured factory."""

    return _hook("get_conn")()


def get_current_user(*args: Any, **kwargs: Any) -> Any:
    return _hook("get_current_user")(*args, **kwargs)


__all__ = ["configure", "get_conn", "get_current_user"]

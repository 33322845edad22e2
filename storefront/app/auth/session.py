"""Signed session cookies carrying the user id as a JWT subject."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from fastapi import Response
from jose import JWTError, jwt

from ...settings import EnvReader

load_dotenv()


@dataclass(frozen=True)
class SessionSettings:
    secret_key: str = "dev-secret-change-me"
    algorithm: str = "HS256"
    lifetime: timedelta = timedelta(days=7)
    cookie_name: str = "session"
    cookie_secure: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SessionSettings":
        reader = EnvReader(env)
        minutes = reader.integer("JWT_EXP_MINUTES", 60 * 24 * 7)
        if minutes <= 0:
            raise ValueError("JWT_EXP_MINUTES must be positive")
        return cls(
            secret_key=reader.text("JWT_SECRET_KEY", cls.secret_key),
            lifetime=timedelta(minutes=minutes),
            cookie_name=reader.text("SESSION_COOKIE_NAME", cls.cookie_name),
            cookie_secure=reader.flag("SESSION_COOKIE_SECURE", False),
        )

    def cookie_options(self) -> Dict[str, Any]:
        return {"httponly": True, "samesite": "lax", "secure": self.cookie_secure, "path": "/"}


@lru_cache(maxsize=1)
def get_session_settings() -> SessionSettings:
    return SessionSettings.from_env()


class SessionTokens:
    """Issues and reads session tokens, and moves them in and out of cookies."""

    def __init__(self, settings: SessionSettings) -> None:
        self.settings = settings

    def issue(self, user_id: int, *, lifetime: Optional[timedelta] = None, now: Optional[datetime] = None) -> str:
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": issued_at + (self.settings.lifetime if lifetime is None else lifetime),
        }
        return jwt.encode(claims, self.settings.secret_key, algorithm=self.settings.algorithm)

    def user_id(self, token: Optional[str]) -> Optional[int]:
        """The subject of a valid, unexpired token; ``None`` otherwise."""

        if not token:
            return None
        try:
            claims = jwt.decode(token, self.settings.secret_key, algorithms=[self.settings.algorithm])
            return int(claims["sub"])
        except (JWTError, KeyError, TypeError, ValueError):
            return None

    def attach(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.settings.cookie_name,
            value=token,
            max_age=int(self.settings.lifetime.total_seconds()),
            **self.settings.cookie_options(),
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(self.settings.cookie_name, **self.settings.cookie_options())


__all__ = ["SessionSettings", "SessionTokens", "get_session_settings"]

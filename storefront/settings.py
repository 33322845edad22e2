"""Typed reads of environment variables shared by the config loaders."""
from __future__ import annotations

import os
from typing import Iterable, Mapping, Optional

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


class EnvReader:
    """Wraps ``os.environ`` (or any mapping handed in by tests).

    Blank values count as unset. Numbers that fail to parse raise
    ``ValueError`` naming the variable; flags that fail to parse fall back to
    their default.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self._env = os.environ if env is None else env

    def optional(self, name: str) -> Optional[str]:
        value = self._env.get(name)
        if value is None or not value.strip():
            return None
        return value

    def text(self, name: str, default: str) -> str:
        value = self.optional(name)
        return default if value is None else value

    def flag(self, name: str, default: bool) -> bool:
        value = self.optional(name)
        if value is None:
            return default
        lowered = value.strip().lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        return default

    def integer(self, name: str, default: int) -> int:
        value = self.optional(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise ValueError(f"{name} must be an integer, got {value!r}") from exc

    def number(self, name: str, default: float) -> float:
        value = self.optional(name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError as exc:
            raise ValueError(f"{name} must be a number, got {value!r}") from exc

    def choice(self, name: str, options: Iterable[str], default: str) -> str:
        value = self.text(name, default).strip().lower()
        allowed = set(options)
        if value not in allowed:
            raise ValueError(f"Unsupported {name} {value!r}; expected one of {sorted(allowed)}")
        return value


__all__ = ["EnvReader"]

"""PostgreSQL connection settings."""
from __future__ import annotations

import math
from typing import Any, Dict, Mapping, Optional

import psycopg2
from dotenv import load_dotenv

from .settings import EnvReader

load_dotenv()


def load_db_config(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Keyword arguments for ``psycopg2.connect``."""

    reader = EnvReader(env)
    connect_timeout = reader.number("DB_CONNECT_TIMEOUT", 5.0)
    if connect_timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    return {
        "host": reader.text("DB_HOST", "127.0.0.1"),
        "port": reader.integer("DB_PORT", 5432),
        "dbname": reader.text("DB_NAME", "storefront_db"),
        "user": reader.text("DB_USER", "storefront"),
        "password": reader.text("DB_PASSWORD", "storefront"),
        # libpq only takes whole seconds
        "connect_timeout": int(math.ceil(connect_timeout)),
    }


DB_CFG = load_db_config()


def connect():
    return psycopg2.connect(**DB_CFG)


__all__ = ["DB_CFG", "connect", "load_db_config"]

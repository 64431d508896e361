"""
Settings — read once from the environment (and a .env file found from the
working directory upwards, if present).

    settings = Settings.from_env()
    session_factory, engine = create_database(settings.database_url, echo=settings.echo_sql)

Variables:
- CIRCULATION_DATABASE_URL  SQLAlchemy async URL
- CIRCULATION_LOAN_DAYS     loan period at checkout (default 14)
- CIRCULATION_RENEWAL_DAYS  extension per renewal (default 14)
- CIRCULATION_ECHO_SQL      log every statement (default false)
- CIRCULATION_LOG_LEVEL     DEBUG | INFO | WARNING | ERROR (default INFO)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta

from dotenv import find_dotenv, load_dotenv

DEFAULT_DATABASE_URL = "postgresql+asyncpg://postgres@localhost:5432/library"

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off", ""})
_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _positive_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be at least 1, got {value}")
    return value


def _flag(env: Mapping[str, str], name: str) -> bool:
    raw = env.get(name, "").strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    loan_days: int = 14
    renewal_days: int = 14
    echo_sql: bool = False
    log_level: str = "INFO"

    @property
    def loan_period(self) -> timedelta:
        return timedelta(days=self.loan_days)

    @property
    def log_level_number(self) -> int:
        return logging.getLevelNamesMapping()[self.log_level]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """
        Build settings from `environ`, or from os.environ after loading .env.

        Raises ValueError on malformed values.
        """
        if environ is None:
            load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        level = environ.get("CIRCULATION_LOG_LEVEL", "INFO").strip().upper() or "INFO"
        if level not in _LEVELS:
            raise ValueError(f"CIRCULATION_LOG_LEVEL must be one of {', '.join(_LEVELS)}, got {level!r}")

        url = environ.get("CIRCULATION_DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL

        return cls(
            database_url=url,
            loan_days=_positive_int(environ, "CIRCULATION_LOAN_DAYS", 14),
            renewal_days=_positive_int(environ, "CIRCULATION_RENEWAL_DAYS", 14),
            echo_sql=_flag(environ, "CIRCULATION_ECHO_SQL"),
            log_level=level,
        )


__all__ = ("Settings", "DEFAULT_DATABASE_URL")

"""Environment driven settings for the booking engine entry points."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

_DEFAULT_DB_URL = "sqlite+pysqlite:///airline.db"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    db_url: str = _DEFAULT_DB_URL
    echo_sql: bool = False
    log_level: str = "INFO"
    sqlite_timeout: float = 30.0


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read ``AIRLINE_BOOKING_*`` variables, falling back to defaults."""

    env = os.environ if environ is None else environ
    return Settings(
        db_url=env.get("AIRLINE_BOOKING_DB_URL", _DEFAULT_DB_URL),
        echo_sql=_as_bool(env.get("AIRLINE_BOOKING_ECHO_SQL", "0")),
        log_level=env.get("AIRLINE_BOOKING_LOG_LEVEL", "INFO").upper(),
        sqlite_timeout=float(env.get("AIRLINE_BOOKING_SQLITE_TIMEOUT", "30")),
    )


def configure_logging(level: str = "INFO") -> None:
    """Install a basic root handler. Only entry points call this."""

    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=_LOG_FORMAT)

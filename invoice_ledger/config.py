# invoice_ledger/config.py

import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

DEFAULT_DB_URL = "sqlite:///db.sqlite"  # file in project root
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DB_URL
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: float = 30.0
    read_attempts: int = 3
    write_attempts: int = 3
    retry_delay: float = 0.1
    timezone: str = "UTC"
    create_schema: bool = True
    sql_echo: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from LEDGER_* environment variables (plus DATABASE_URL).
        Unset variables fall back to the dataclass defaults.
        """
        return cls(
            database_url=os.getenv("DATABASE_URL") or DEFAULT_DB_URL,
            pool_size=_env_int("LEDGER_POOL_SIZE", cls.pool_size),
            max_overflow=_env_int("LEDGER_MAX_OVERFLOW", cls.max_overflow),
            pool_timeout=_env_float("LEDGER_POOL_TIMEOUT", cls.pool_timeout),
            read_attempts=_env_int("LEDGER_READ_ATTEMPTS", cls.read_attempts),
            write_attempts=_env_int("LEDGER_WRITE_ATTEMPTS", cls.write_attempts),
            retry_delay=_env_float("LEDGER_RETRY_DELAY", cls.retry_delay),
            timezone=os.getenv("LEDGER_TIMEZONE") or cls.timezone,
            create_schema=_env_bool("LEDGER_CREATE_SCHEMA", cls.create_schema),
            sql_echo=_env_bool("LEDGER_SQL_ECHO", cls.sql_echo),
            log_level=os.getenv("LEDGER_LOG_LEVEL") or cls.log_level,
        )

    def today(self) -> date:
        # Business "today" in the configured timezone, not the server's
        return datetime.now(ZoneInfo(self.timezone)).date()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

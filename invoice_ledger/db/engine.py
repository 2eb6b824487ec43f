# invoice_ledger/db/engine.py
"""
Connection gateway: an explicitly constructed database handle.

``Database`` owns the SQLAlchemy engine and its bounded connection pool. It is
created once at process start, handed to whoever needs it, and disposed on
shutdown. All access goes through two entry points:

* ``run_read(work, ...)`` for idempotent queries; transient disconnects are
  retried with exponential backoff.
* ``run_in_transaction(work, ...)`` for mutations; ``work`` runs inside one
  transaction, and on a conflict or transient failure before COMMIT the whole
  unit of work is replayed from the start.
"""

import logging
import time
from typing import Any, Callable, TypeVar

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)

from invoice_ledger.config import Settings
from invoice_ledger.db.schema import metadata
from invoice_ledger.errors import (
    ConflictError,
    FatalError,
    LedgerError,
    TransientError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

WRITE_OPTION = "ledger_write"

# SQLSTATE codes signalling lock contention / serialization failure
_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}
# MySQL error codes: lock wait timeout, deadlock
_CONFLICT_MYSQL_CODES = {1205, 1213}
_SQLITE_LOCK_MESSAGES = ("database is locked", "database table is locked")


def translate_db_error(exc: SQLAlchemyError) -> LedgerError:
    """
    Map a SQLAlchemy / DBAPI exception onto the ledger taxonomy.
    """
    if isinstance(exc, PoolTimeoutError):
        return TransientError("Timed out waiting for a database connection.", code="pool_timeout")
    if isinstance(exc, DisconnectionError):
        return TransientError("Database connection lost.", code="connection_lost")

    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return TransientError("Database connection lost.", code="connection_lost")

        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in _CONFLICT_SQLSTATES:
            return ConflictError("Concurrent modification detected; retry the request.")

        args = getattr(orig, "args", ()) or ()
        if args and isinstance(args[0], int) and args[0] in _CONFLICT_MYSQL_CODES:
            return ConflictError("Concurrent modification detected; retry the request.")

        message = str(orig).lower()
        if any(text in message for text in _SQLITE_LOCK_MESSAGES):
            return ConflictError("Concurrent modification detected; retry the request.")

        if isinstance(exc, OperationalError):
            return TransientError("Database temporarily unavailable.", code="db_unavailable")

        if isinstance(exc, IntegrityError):
            return FatalError("Database constraint violated.", code="constraint_violation")

    return FatalError("Unexpected database error.")


class Database:
    def __init__(self, settings: Settings, engine: Engine = None):
        self.settings = settings
        self.engine = engine or self._build_engine(settings)
        if self.engine.dialect.name == "sqlite":
            _install_sqlite_hooks(self.engine)

    @staticmethod
    def _build_engine(settings: Settings) -> Engine:
        kwargs = {"echo": settings.sql_echo, "pool_pre_ping": True}
        if not settings.database_url.startswith("sqlite:///:memory:"):
            kwargs.update(
                pool_size=settings.pool_size,
                max_overflow=settings.max_overflow,
                pool_timeout=settings.pool_timeout,
            )
        return create_engine(settings.database_url, **kwargs)

    # ---- lifecycle ----

    def create_schema(self, drop_existing: bool = False) -> None:
        if drop_existing:
            metadata.drop_all(self.engine)
        metadata.create_all(self.engine)
        logger.info("Schema ensured on %s", self.engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Connection pool disposed.")

    # ---- access ----

    def run_read(self, work: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run an idempotent read with retry on transient connection failures.
        """
        attempts = max(1, self.settings.read_attempts)
        for attempt in range(1, attempts + 1):
            try:
                with self.engine.connect() as conn:
                    return work(conn, *args, **kwargs)
            except SQLAlchemyError as exc:
                error = translate_db_error(exc)
                if isinstance(error, TransientError) and attempt < attempts:
                    self._backoff("read", work, attempt, attempts, error)
                    continue
                raise error from exc

    def run_in_transaction(self, work: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``work(conn, ...)`` as one unit of work.

        Either everything ``work`` wrote is committed, or nothing is. Conflict
        and transient errors raised before COMMIT replay the whole unit of
        work; a failure during COMMIT itself is surfaced without retry because
        its outcome is unknown.
        """
        attempts = max(1, self.settings.write_attempts)
        attempt = 1
        while True:
            try:
                return self._attempt_write(work, args, kwargs)
            except LedgerError as error:
                if not error.retryable or attempt >= attempts:
                    raise
                self._backoff("write", work, attempt, attempts, error)
                attempt += 1

    def _attempt_write(self, work, args, kwargs):
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc

        # Closing the connection rolls back anything not committed
        with conn:
            conn.execution_options(**{WRITE_OPTION: True})
            try:
                conn.begin()
                result = work(conn, *args, **kwargs)
            except SQLAlchemyError as exc:
                raise translate_db_error(exc) from exc

            try:
                conn.commit()
            except SQLAlchemyError as exc:
                logger.error("COMMIT failed for %s; outcome unknown", _name(work))
                raise TransientError(
                    "Commit failed; the outcome is unknown. Verify before retrying.",
                    code="commit_failed",
                    retryable=False,
                ) from exc
        return result

    def _backoff(self, mode: str, work, attempt: int, attempts: int, error: LedgerError) -> None:
        delay = self.settings.retry_delay * (2 ** (attempt - 1))
        logger.warning(
            "Retrying %s %s (attempt %s/%s) after %s: %s",
            mode, _name(work), attempt + 1, attempts, error.code, error.message,
        )
        time.sleep(delay)


def _name(work) -> str:
    return getattr(work, "__name__", repr(work))


def _install_sqlite_hooks(engine: Engine) -> None:
    """
    SQLite has no row locks; write transactions take the database write lock
    up front with BEGIN IMMEDIATE so read-then-write sequences cannot interleave.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON;")
        cursor.execute("PRAGMA busy_timeout = 5000;")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection):
        if conn.get_execution_options().get(WRITE_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

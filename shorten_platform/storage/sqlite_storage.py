"""
SQLiteStorage – file-backed storage for Shorten Platform
=======================================================

Default backend. Implements the `Transactioner` contract on top of the
standard library `sqlite3` driver. Connections are pooled by a SQLAlchemy
engine (`QueuePool`); units of work run on the raw DBAPI connection, so the
runner below issues plain parameterized SQL exactly like the PostgreSQL
backend does.

Key Design Points
-----------------
- **Autocommit connections**: connections are opened with
  `isolation_level=None`; `with_tx` issues `BEGIN`/`COMMIT` explicitly and
  rolls back on any exception.
- **Pool bounds**: `max_idle` maps to the pool's `pool_size` (connections
  kept open), `max_open - max_idle` to `max_overflow`, and `max_lifetime` to
  `pool_recycle`. A checkout that finds no free connection within
  `pool_timeout` seconds fails with `TimeoutError`.
- **Deadlines**: a progress handler aborts a running statement once the
  caller's deadline passes; the abort surfaces as `TimeoutError`.
- **Error translation**: UNIQUE violations become `NOT_UNIQUE`, any other
  constraint or data error becomes `BAD_INPUT`.

Requires SQLite >= 3.35 for `INSERT ... RETURNING`.

Example
-------
>>> storage = SQLiteStorage("shorten.db")
>>> storage.without_tx(lambda run: run.query_one("SELECT 1"))
(1,)
"""

import contextlib
import logging
import sqlite3
from typing import Any, Iterator, List, Optional

from sqlalchemy import create_engine, event
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import QueuePool

from ..errors import ErrorKind, ShortenError
from .base import Deadline, ExecResult, Params, Row, Runner, Transactioner, UnitOfWork

log = logging.getLogger("shorten.storage")

# Number of SQLite VM instructions between deadline checks.
_PROGRESS_STEPS = 1000


def translate_error(err: sqlite3.Error) -> BaseException:
    """Map a driver error onto the platform error kinds; unknown errors pass through."""
    message = str(err)
    if isinstance(err, sqlite3.IntegrityError):
        name = getattr(err, "sqlite_errorname", "")
        if name == "SQLITE_CONSTRAINT_UNIQUE" or message.startswith("UNIQUE constraint failed"):
            return ShortenError(message, kind=ErrorKind.NOT_UNIQUE)
        return ShortenError(message, kind=ErrorKind.BAD_INPUT)
    if isinstance(err, sqlite3.DataError):
        return ShortenError(message, kind=ErrorKind.BAD_INPUT)
    if isinstance(err, sqlite3.OperationalError) and message == "interrupted":
        return TimeoutError("storage deadline exceeded")
    return err


@contextlib.contextmanager
def _translated() -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as err:
        translated = translate_error(err)
        if translated is err:
            raise
        raise translated from err


def _qmark(query: str) -> str:
    return query.replace("%s", "?")


def _enable_wal(dbapi_conn, connection_record) -> None:
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SQLiteRunner(Runner):
    """Runs statements on one checked-out connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def execute(self, query: str, params: Params = ()) -> ExecResult:
        with _translated():
            cur = self.conn.execute(_qmark(query), tuple(params))
            try:
                if cur.description is not None:
                    rows = cur.fetchall()
                    last_id = rows[0][0] if rows else None
                else:
                    last_id = cur.lastrowid
                return ExecResult(affected=cur.rowcount, last_id=last_id)
            finally:
                cur.close()

    def query_one(self, query: str, params: Params = ()) -> Optional[Row]:
        with _translated():
            cur = self.conn.execute(_qmark(query), tuple(params))
            try:
                row = cur.fetchone()
                return tuple(row) if row is not None else None
            finally:
                cur.close()

    def query(self, query: str, params: Params = ()) -> List[Row]:
        with _translated():
            cur = self.conn.execute(_qmark(query), tuple(params))
            try:
                return [tuple(row) for row in cur.fetchall()]
            finally:
                cur.close()


class SQLiteStorage(Transactioner):
    """SQLite implementation of the Transactioner contract.

    Parameters
    ----------
    filepath : str
        Database file; created on first connection.
    max_open, max_idle, max_lifetime
        Pool bounds (see module notes). `max_lifetime <= 0` disables recycling.
    pool_timeout : float
        Seconds to wait for a free connection before failing.
    busy_timeout : float
        Seconds SQLite waits on a locked database before raising.
    """

    dialect = "sqlite"

    def __init__(
        self,
        filepath: str,
        max_open: int = 16,
        max_idle: int = 4,
        max_lifetime: float = 30.0,
        pool_timeout: float = 5.0,
        busy_timeout: float = 5.0,
    ) -> None:
        self.filepath = filepath
        self.max_open = max(1, max_open)
        # QueuePool treats pool_size=0 as "unbounded", so keep at least one.
        self.max_idle = max(1, min(max_idle, self.max_open))
        self.max_lifetime = max_lifetime
        self._closed = False

        self.engine = create_engine(
            f"sqlite:///{filepath}",
            poolclass=QueuePool,
            pool_size=self.max_idle,
            max_overflow=self.max_open - self.max_idle,
            pool_recycle=max_lifetime if max_lifetime > 0 else -1,
            pool_timeout=pool_timeout,
            connect_args={
                "check_same_thread": False,
                "isolation_level": None,
                "timeout": busy_timeout,
            },
        )
        event.listen(self.engine, "connect", _enable_wal)
        log.debug("sqlite engine for %s (max_open=%d, max_idle=%d)", filepath, self.max_open, self.max_idle)

    @property
    def idle_count(self) -> int:
        """Connections currently parked in the pool."""
        return self.engine.pool.checkedin()

    @contextlib.contextmanager
    def connection(self, deadline: Optional[Deadline] = None) -> Iterator[sqlite3.Connection]:
        """Check out a raw `sqlite3` connection for the duration of the block."""
        if self._closed:
            raise RuntimeError("sqlite storage is closed")
        try:
            proxied = self.engine.raw_connection()
        except sa_exc.TimeoutError as err:
            raise TimeoutError("timed out waiting for a storage connection") from err
        conn = proxied.driver_connection
        try:
            if deadline is not None:
                if deadline.expired():
                    raise TimeoutError("storage deadline exceeded")
                conn.set_progress_handler(deadline.expired, _PROGRESS_STEPS)
            yield conn
        finally:
            if deadline is not None:
                conn.set_progress_handler(None, 0)
            if conn.in_transaction:
                conn.rollback()
            proxied.close()

    def with_tx(self, action: UnitOfWork, timeout: Optional[float] = None) -> Any:
        with self.connection(Deadline.after(timeout)) as conn:
            with _translated():
                conn.execute("BEGIN")
            try:
                result = action(SQLiteRunner(conn))
            except BaseException:
                if conn.in_transaction:
                    conn.rollback()
                raise
            with _translated():
                conn.execute("COMMIT")
            return result

    def without_tx(self, action: UnitOfWork, timeout: Optional[float] = None) -> Any:
        with self.connection(Deadline.after(timeout)) as conn:
            return action(SQLiteRunner(conn))

    def close(self) -> None:
        self._closed = True
        self.engine.dispose()

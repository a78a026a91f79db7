"""SQLite access for JanusLeaf

One database file holds users, journal entries, the mood analysis queue and
inspirational quotes. Components never open connections themselves; they
receive a ``Database`` built by the composition root and go through
``Database.connection()`` / ``Database.transaction()``.

Provides:
- Connection pooling (WAL mode, foreign keys on, Row factory)
- Transactions that join an already-open transaction on the same thread, so
  a service can make several repository calls commit or roll back together
- ``retry_on_db_lock`` for transient SQLITE_BUSY contention
- Pool statistics for the health endpoint
"""

from __future__ import annotations

import atexit
import random
import sqlite3
import threading
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from janusleaf.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
    DB_TEMP_CONN_MAX,
)
from janusleaf.infrastructure.database_schema import init_database
from janusleaf.infrastructure.database_schema import validate_schema as _validate_schema
from janusleaf.observability.logging import get_logger
from janusleaf.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)

# Open transaction per (thread, database); lets nested transaction() calls join it
_active = threading.local()


def _active_transactions() -> dict[int, sqlite3.Connection]:
    txns = getattr(_active, "transactions", None)
    if txns is None:
        txns = {}
        _active.transactions = txns
    return txns


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Decorator to retry database operations on SQLITE_BUSY errors

    Only the outermost call retries. When the wrapped function runs inside an
    already-open transaction the error propagates so the owner of that
    transaction rolls back and retries the whole unit.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries

    Side Effects:
        - Sleeps between retries (exponential backoff with jitter)
        - Logs a warning per retry and an error when retries are exhausted
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if _active_transactions():
                return func(*args, **kwargs)

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except sqlite3.OperationalError as e:
                    message = str(e).lower()
                    if "locked" not in message and "busy" not in message:
                        raise

                    if attempt >= max_retries:
                        logger.error(
                            "Database lock retry exhausted after %d attempts: %s",
                            max_retries,
                            e,
                        )
                        counter("database.lock_exhausted")
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    sleep_time = delay + random.uniform(0, delay * DB_RETRY_JITTER)

                    logger.warning(
                        "Database locked (attempt %d/%d), retrying in %.2fs: %s",
                        attempt + 1,
                        max_retries,
                        sleep_time,
                        e,
                    )
                    time.sleep(sleep_time)

            raise RuntimeError("unreachable")

        return wrapper  # type: ignore[return-value]

    return decorator


class DatabaseConnectionPool:
    """
    Thread-safe connection pool for SQLite

    Connections are created up front; if the pool runs dry a bounded number of
    temporary connections is handed out and closed on return.
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE):
        self.db_path = db_path
        self.pool_size = pool_size
        self.pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self.lock = Lock()
        self.closed = False
        self.temp_conn_count = 0
        self.temp_conn_max = DB_TEMP_CONN_MAX
        self._temp_ids: set[int] = set()
        self._initialize_pool()

        atexit.register(self.close_all)

    def _create_connection(self) -> sqlite3.Connection:
        """
        Create a configured SQLite connection

        Raises:
            RuntimeError: If the quick integrity check fails
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=DB_CONNECT_TIMEOUT,
            check_same_thread=False,
        )

        try:
            result = conn.execute("PRAGMA quick_check(1)").fetchone()
            if result[0] != "ok":
                conn.close()
                logger.critical("Database corruption detected: %s", result[0])
                counter("database.corruption_detected")
                raise RuntimeError(f"Database corruption detected: {result[0]}")
        except sqlite3.DatabaseError as e:
            conn.close()
            logger.critical("Database corruption or error during integrity check: %s", e)
            counter("database.corruption_detected")
            raise RuntimeError(f"Database corruption detected: {e}") from e

        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_pool(self) -> None:
        for _ in range(self.pool_size):
            try:
                self.pool.put(self._create_connection())
            except Exception as e:
                logger.warning("Failed to create pooled connection: %s", e)

    def get_connection(self) -> sqlite3.Connection:
        """
        Get connection from pool (or a temporary one if the pool is exhausted)

        Raises:
            RuntimeError: If pool closed or temporary connection limit exceeded
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")

        try:
            return self.pool.get(block=True, timeout=DB_POOL_TIMEOUT)
        except Empty:
            with self.lock:
                if self.temp_conn_count >= self.temp_conn_max:
                    logger.critical(
                        "Temporary connection limit reached: %d/%d (pool_size=%d)",
                        self.temp_conn_count,
                        self.temp_conn_max,
                        self.pool_size,
                    )
                    raise RuntimeError(
                        "Database connection pool exhausted and temporary "
                        f"connection limit reached. pool_size={self.pool_size}, "
                        f"temp_conn_max={self.temp_conn_max}."
                    ) from None

                self.temp_conn_count += 1
                temp_count = self.temp_conn_count

            logger.error(
                "Connection pool exhausted (pool_size=%d). Creating temporary connection %d/%d.",
                self.pool_size,
                temp_count,
                self.temp_conn_max,
            )
            log_event(
                "database.pool_exhausted",
                pool_size=self.pool_size,
                temp_conn_count=temp_count,
            )

            conn = self._create_connection()
            self._temp_ids.add(id(conn))
            return conn

    def return_connection(self, conn: sqlite3.Connection) -> None:
        is_temp = id(conn) in self._temp_ids

        if self.closed or is_temp:
            conn.close()
            if is_temp:
                with self.lock:
                    self._temp_ids.discard(id(conn))
                    self.temp_conn_count -= 1
                logger.debug("Closed temporary connection (remaining: %d)", self.temp_conn_count)
            return

        try:
            self.pool.put_nowait(conn)
        except Full:
            logger.warning("Failed to return connection to pool (pool full), closing")
            conn.close()

    def close_all(self) -> None:
        self.closed = True
        while not self.pool.empty():
            try:
                self.pool.get_nowait().close()
            except Empty:
                break


class Database:
    """
    Handle on the JanusLeaf SQLite file, passed to every repository.

    Usage:
        db = Database(Path("data/janusleaf.db"))
        db.init_schema()
        with db.transaction() as conn:
            conn.execute("INSERT INTO ...")
    """

    def __init__(self, db_path: Path, pool_size: int = DB_POOL_SIZE):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.pool = DatabaseConnectionPool(self.db_path, pool_size=pool_size)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Pooled connection for reads

        Inside an open transaction on this thread, yields that transaction's
        connection so reads observe its uncommitted writes.
        """
        active = _active_transactions().get(id(self))
        if active is not None:
            yield active
            return

        conn = self.pool.get_connection()
        try:
            yield conn
        finally:
            self.pool.return_connection(conn)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Commit on success, roll back on error

        A nested call on the same thread joins the outer transaction; only the
        outermost block commits or rolls back.

        Side Effects:
            - Commits or rolls back on the pooled connection
        """
        txns = _active_transactions()
        active = txns.get(id(self))
        if active is not None:
            yield active
            return

        conn = self.pool.get_connection()
        txns[id(self)] = conn
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            txns.pop(id(self), None)
            self.pool.return_connection(conn)

    def init_schema(self) -> None:
        """Create tables and indexes (idempotent)."""
        with self.transaction() as conn:
            init_database(conn)
        logger.info("Database schema ready at %s", self.db_path)

    def validate_schema(self) -> bool:
        with self.connection() as conn:
            return _validate_schema(conn)

    def pool_stats(self) -> dict[str, Any]:
        """Connection pool health metrics."""
        available = self.pool.pool.qsize()
        in_use = self.pool.pool_size - available
        usage_percent = (in_use / self.pool.pool_size) * 100 if self.pool.pool_size > 0 else 0

        return {
            "pool_size": self.pool.pool_size,
            "available": available,
            "in_use": in_use,
            "usage_percent": round(usage_percent, 1),
            "temp_connections": self.pool.temp_conn_count,
            "closed": self.pool.closed,
        }

    def close(self) -> None:
        self.pool.close_all()

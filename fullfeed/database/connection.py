"""
FullFeed Database Connection Management
=======================================

Small SQLite connection pool. Connections are opened lazily up to
``pool_size``; the duplicate check runs once per crawled entry, so checkout
has to stay cheap. Writes go through ``transaction()``.
"""

import sqlite3
import threading
import logging
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Generator
from queue import LifoQueue, Empty, Full

logger = logging.getLogger(__name__)

# Seconds SQLite waits on a locked database before raising
BUSY_TIMEOUT = 30.0
# Seconds a caller waits for a pooled connection once the pool is at capacity
CHECKOUT_TIMEOUT = 10.0

_PRAGMAS = (
    "PRAGMA foreign_keys = ON",
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
)


class DatabaseConnection:
    """Thread-safe SQLite database connection manager with pooling."""

    def __init__(self, db_path: str = "data/fullfeed.db", pool_size: int = 5):
        """Initialize database connection manager.

        Args:
            db_path: Path to SQLite database file
            pool_size: Maximum number of idle connections kept open
        """
        self.db_path = Path(db_path)
        self.pool_size = pool_size
        # Most recently returned connection first; it is the warmest
        self.pool: LifoQueue = LifoQueue(maxsize=pool_size)
        self.lock = threading.Lock()
        self._open_connections = 0

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def open_connections(self) -> int:
        return self._open_connections

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=BUSY_TIMEOUT)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        conn.row_factory = sqlite3.Row

        with self.lock:
            self._open_connections += 1
            opened = self._open_connections

        logger.debug(f"Opened database connection #{opened} to {self.db_path}")
        return conn

    def _checkout(self) -> sqlite3.Connection:
        try:
            return self.pool.get_nowait()
        except Empty:
            pass

        with self.lock:
            at_capacity = self._open_connections >= self.pool_size
        if not at_capacity:
            return self._create_connection()

        started = time.monotonic()
        try:
            conn = self.pool.get(timeout=CHECKOUT_TIMEOUT)
        except Empty:
            logger.warning(f"Connection pool exhausted after {CHECKOUT_TIMEOUT:.0f}s, opening an extra connection")
            return self._create_connection()

        waited = time.monotonic() - started
        if waited > 1.0:
            logger.warning(f"Waited {waited:.2f}s for a database connection")
        return conn

    def _checkin(self, conn: sqlite3.Connection) -> None:
        try:
            self.pool.put_nowait(conn)
        except Full:
            conn.close()
            with self.lock:
                self._open_connections -= 1

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Borrow a connection; it goes back to the pool on exit.

        Usage:
            with db.get_connection() as conn:
                row = conn.execute("SELECT 1 FROM entries WHERE url = ?", (url,)).fetchone()
        """
        conn = self._checkout()
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error on {self.db_path}: {e}")
            conn.rollback()
            raise
        finally:
            self._checkin(conn)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Run writes inside ``BEGIN IMMEDIATE``; commit on success, roll back on any exception."""
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except Exception as e:
                conn.rollback()
                logger.error(f"Transaction rolled back: {e}")
                raise
            conn.commit()

    def close_all_connections(self) -> None:
        """Close every idle connection in the pool."""
        closed = 0
        while True:
            try:
                conn = self.pool.get_nowait()
            except Empty:
                break
            conn.close()
            closed += 1

        with self.lock:
            self._open_connections = max(0, self._open_connections - closed)

        logger.info(f"Closed {closed} database connection(s)")


_db_manager: Optional[DatabaseConnection] = None


def get_db_manager(db_path: Optional[str] = None) -> DatabaseConnection:
    """Get the process-wide connection manager.

    Args:
        db_path: Path to database file; defaults to the configured path.
            Only used on the first call.
    """
    global _db_manager

    if _db_manager is None:
        from ..config.settings import get_settings
        settings = get_settings()
        _db_manager = DatabaseConnection(db_path or settings.database.path, settings.database.pool_size)

    return _db_manager

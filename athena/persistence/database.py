"""
Database management, connection handling and transaction boundaries.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ..core.exceptions import PersistenceError, TransientStorageError, ConfigurationError

logger = logging.getLogger(__name__)

_TRANSIENT_MARKERS = ("locked", "busy", "timeout")


def translate_error(error: sqlite3.Error, action: str) -> PersistenceError:
    """Map a driver error onto the portal's storage error taxonomy."""
    message = str(error)
    if isinstance(error, sqlite3.OperationalError) and any(m in message.lower() for m in _TRANSIENT_MARKERS):
        return TransientStorageError(f"{action}: {message}", details={'retryable': True})
    return PersistenceError(f"{action}: {message}")


class DatabaseManager(ABC):
    """Abstract base class for database management."""

    @abstractmethod
    def connect(self) -> Any:
        """Create a database connection."""
        pass

    @abstractmethod
    def transaction(self):
        """Context manager binding one write transaction to the calling thread."""
        pass

    @abstractmethod
    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """Execute a query and return results."""
        pass

    @abstractmethod
    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """Execute an update query and return affected rows."""
        pass

    @abstractmethod
    def execute_script(self, script: str) -> None:
        """Execute several semicolon-separated statements."""
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        pass


class SQLiteDatabase(DatabaseManager):
    """SQLite database implementation.

    Statements issued outside ``transaction()`` run in autocommit mode on a
    short-lived connection. Inside ``transaction()`` every statement from the
    same thread shares one connection holding a ``BEGIN IMMEDIATE`` write
    lock, so reads made there are consistent with the writes that follow.
    """

    def __init__(self, database_path: str = "athena.db", timeout: float = 5.0):
        self._database_path = database_path
        self._timeout = timeout
        self._local = threading.local()

    @property
    def database_path(self) -> str:
        return self._database_path

    def connect(self) -> sqlite3.Connection:
        """Create a database connection."""
        try:
            conn = sqlite3.connect(self._database_path, timeout=self._timeout,
                                   isolation_level=None, check_same_thread=False)
        except sqlite3.Error as e:
            raise translate_error(e, "Database connection error")
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "connection", None) is not None

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed block as one atomic unit; nested calls join the outer one."""
        current = getattr(self._local, "connection", None)
        if current is not None:
            yield current
            return

        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            conn.close()
            raise translate_error(e, "Could not begin transaction")

        self._local.connection = conn
        try:
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            self._rollback(conn)
            raise translate_error(e, "Transaction failed")
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._local.connection = None
            conn.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back")

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Get the thread's transaction connection, or a short-lived autocommit one."""
        current = getattr(self._local, "connection", None)
        if current is not None:
            yield current
            return

        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        """Execute a query and return results."""
        with self._get_connection() as conn:
            try:
                cursor = conn.execute(query, params or ())
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.Error as e:
                raise translate_error(e, "Query failed")

    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """Execute an update query and return affected rows."""
        with self._get_connection() as conn:
            try:
                cursor = conn.execute(query, params or ())
                return cursor.rowcount
            except sqlite3.Error as e:
                raise translate_error(e, "Update failed")

    def execute_script(self, script: str) -> None:
        statements = [stmt.strip() for stmt in script.split(';') if stmt.strip()]
        with self._get_connection() as conn:
            try:
                for statement in statements:
                    conn.execute(statement)
            except sqlite3.Error as e:
                raise translate_error(e, "Script failed")

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        query = "SELECT name FROM sqlite_master WHERE type='table' AND name=?"
        results = self.execute_query(query, (table_name,))
        return len(results) > 0


class DatabaseFactory:
    """Factory for creating database instances."""

    @staticmethod
    def create_database(database_type: str, **kwargs) -> DatabaseManager:
        """Create a database instance based on type."""
        if database_type.lower() == "sqlite":
            return SQLiteDatabase(**kwargs)
        raise ConfigurationError(f"Unsupported database type: {database_type}")

"""SQLite connection and initialization utilities."""

import sqlite3
from pathlib import Path
import threading

from .schema import get_init_schema
from ..core.exceptions import StorageError


class DatabaseConnection:
    """Manage SQLite connections and schema init for the blob store."""

    __slots__ = ("db_path", "_local", "_lock", "_initialized")

    def __init__(self, db_path="./sealvault.db"):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

    def initialize(self):
        """Create tables and indexes if not already done."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = self._get_connection()
                for statement in get_init_schema():
                    conn.execute(statement)
                conn.commit()
                self._initialized = True

            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Failed to initialize database: {e}") from e

    def _get_connection(self):
        """Get or create a thread-local SQLite connection."""
        if not hasattr(self._local, "connection") or self._local.connection is None:
            self._local.connection = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            self._local.connection.row_factory = sqlite3.Row

        return self._local.connection

    def get_transaction_context(self):
        """Return a transaction context manager (BEGIN/COMMIT/ROLLBACK)."""
        return TransactionContext(self._get_connection())

    def execute(self, query, params=()):
        """Execute a single statement and return the affected row count."""
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(query, params)
            return cursor.rowcount
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        finally:
            cursor.close()

    def fetch_one(self, query, params=()):
        """Fetch a single row as a dict or None."""
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(query, params)
            row = cursor.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        finally:
            cursor.close()

    def fetch_all(self, query, params=()):
        """Fetch all rows as a list of dicts."""
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StorageError(f"Database error: {e}") from e
        finally:
            cursor.close()

    def get_version(self):
        """Return current schema version number."""
        try:
            result = self.fetch_one("SELECT MAX(version) as version FROM schema_version")
            return result["version"] if result and result["version"] else 0
        except StorageError:
            return 0

    def close(self):
        """Close the thread-local connection if open."""
        if hasattr(self._local, "connection") and self._local.connection:
            self._local.connection.close()
            self._local.connection = None


class TransactionContext:
    """Context manager for transactions (BEGIN/COMMIT/ROLLBACK)."""

    __slots__ = ("connection", "cursor")

    def __init__(self, connection):
        """Initialize with a SQLite connection."""
        self.connection = connection
        self.cursor = None

    def __enter__(self):
        """Begin a transaction and return a cursor."""
        self.cursor = self.connection.cursor()
        self.cursor.execute("BEGIN")
        return self.cursor

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Commit on success, rollback on error, then close cursor."""
        try:
            if exc_type is None:
                self.connection.commit()
            else:
                self.connection.rollback()
        except sqlite3.Error as e:
            action = "commit" if exc_type is None else "roll back"
            raise StorageError(f"Failed to {action} transaction: {e}") from e
        finally:
            if self.cursor:
                self.cursor.close()

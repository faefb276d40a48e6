"""SQLite connection utilities for the encrypted database.

The database key comes from a :class:`~applock.security.session.SessionKey`
passed in by the caller and is applied with ``PRAGMA key`` each time a
connection is opened (SQLCipher builds of SQLite honour it). The key is read
only at open time: close the database before locking and reopen it after
unlocking.
"""

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path

from ..core.exceptions import DatabaseLockedError, StorageError


class SecureDatabase:
    """Manage keyed SQLite connections."""

    __slots__ = ("db_path", "credential", "_local", "_lock")

    def __init__(self, db_path, credential):
        """Initialize connection state."""
        self.db_path = Path(db_path)
        self.credential = credential
        self._local = threading.local()
        self._lock = threading.Lock()

    def _open(self):
        key_hex = self.credential.get()
        if not key_hex:
            raise DatabaseLockedError("Database is locked; unlock the app first")

        with self._lock:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to create database directory: {e}") from e

        try:
            conn = sqlite3.connect(
                str(self.db_path), check_same_thread=False, isolation_level=None
            )
            # raw key form skips SQLCipher's own passphrase KDF
            conn.execute(f"PRAGMA key = \"x'{key_hex}'\"")
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database: {e}") from e
        return conn

    def _get_connection(self):
        """Get or create a thread-local SQLite connection."""
        if getattr(self._local, "connection", None) is None:
            self._local.connection = self._open()
        return self._local.connection

    @contextmanager
    def _statement(self, query, params=None):
        cursor = self._get_connection().cursor()
        try:
            cursor.execute(query, params or ())
            yield cursor
        except sqlite3.Error as e:
            raise StorageError(f"Database statement failed: {e}") from e
        finally:
            cursor.close()

    def execute(self, query, params=None):
        """Execute a single SQL statement in autocommit mode."""
        with self._statement(query, params):
            pass

    def fetch_one(self, query, params=None):
        """Fetch a single row as a dict or None."""
        with self._statement(query, params) as cursor:
            row = cursor.fetchone()
        return dict(row) if row else None

    def close(self):
        """Close the thread-local connection if open."""
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            self._local.connection = None
            conn.close()

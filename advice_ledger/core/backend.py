"""
Key-value store collaborators.

The ledger only relies on get_data/set_data/is_available. Stores that can do
more advertise it through the optional compare_and_set() and keys() methods;
the index manager and repair tooling probe for them with supports_*().
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Generator, List

from util.logging import logger


class KeyValueStore(ABC):
    """Abstract interface for the externally-owned ledger store."""

    @abstractmethod
    def get_data(self, key: str) -> bytes:
        """Return the value stored at key, or b"" when the key is absent."""
        pass

    @abstractmethod
    def set_data(self, key: str, value: bytes) -> bool:
        """Store value at key. Returns False when the write did not happen."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Liveness probe consulted before reads."""
        pass

    def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        """Write value only if the key still holds expected (b"" for absent)."""
        raise NotImplementedError

    def keys(self, prefix: str = "") -> List[str]:
        """Enumerate stored keys starting with prefix."""
        raise NotImplementedError

    def supports_compare_and_set(self) -> bool:
        return type(self).compare_and_set is not KeyValueStore.compare_and_set

    def supports_enumeration(self) -> bool:
        return type(self).keys is not KeyValueStore.keys


class InMemoryStore(KeyValueStore):
    """Dict-backed store. Single-key operations are serialized by a lock."""

    def __init__(self, initial: Dict[str, bytes] = None):
        self._data: Dict[str, bytes] = dict(initial or {})
        self._lock = threading.Lock()
        self.available = True

    def get_data(self, key: str) -> bytes:
        with self._lock:
            return self._data.get(key, b"")

    def set_data(self, key: str, value: bytes) -> bool:
        with self._lock:
            self._data[key] = bytes(value)
        return True

    def is_available(self) -> bool:
        return self.available

    def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        with self._lock:
            if self._data.get(key, b"") != expected:
                return False
            self._data[key] = bytes(value)
            return True

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))


class SqliteStore(KeyValueStore):
    """Durable store on a single SQLite table."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.init_db()

    @contextmanager
    def get_db(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite database connection."""
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self):
        """Initialize the database with the key-value table."""
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()

    def get_data(self, key: str) -> bytes:
        with self.get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
            row = cursor.fetchone()
            return bytes(row[0]) if row else b""

    def set_data(self, key: str, value: bytes) -> bool:
        try:
            with self.get_db() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                    (key, sqlite3.Binary(value))
                )
                conn.commit()
            return True
        except sqlite3.Error as e:
            logger.error(f"Database error during set_data for key '{key}': {e}")
            return False

    def is_available(self) -> bool:
        return self.health_check()

    def compare_and_set(self, key: str, expected: bytes, value: bytes) -> bool:
        try:
            with self.get_db() as conn:
                cursor = conn.cursor()
                # Take the write lock before reading so the comparison holds until commit
                cursor.execute("BEGIN IMMEDIATE")
                cursor.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                row = cursor.fetchone()
                current = bytes(row[0]) if row else b""
                if current != expected:
                    conn.rollback()
                    return False
                cursor.execute(
                    "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                    (key, sqlite3.Binary(value))
                )
                conn.commit()
                return True
        except sqlite3.Error as e:
            logger.error(f"Database error during compare_and_set for key '{key}': {e}")
            return False

    def keys(self, prefix: str = "") -> List[str]:
        with self.get_db() as conn:
            cursor = conn.cursor()
            # substr() keeps '_' and '%' in the prefix literal
            cursor.execute(
                "SELECT key FROM kv_store WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix)
            )
            return [row[0] for row in cursor.fetchall()]

    def health_check(self) -> bool:
        """Check database health."""
        try:
            with self.get_db() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='kv_store';")
                return cursor.fetchone() is not None
        except Exception:
            return False

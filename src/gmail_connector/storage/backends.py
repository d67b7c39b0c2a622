"""Key-value store backends.

The credential, context and cursor stores all sit on top of a namespaced
string key-value store. Three backends are provided:

- InMemoryKeyValueStore: process-local dict, used in tests and by ``--store memory``
- SQLiteKeyValueStore: single SQLite file shared by every namespace
- KeyringKeyValueStore: OS keyring (Keychain, Credential Locker, Secret Service)
"""

import json
import sqlite3
import threading
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import keyring
from keyring.errors import PasswordDeleteError

from gmail_connector.lib.logger import get_logger

logger = get_logger(__name__)


# ============================================================================
# KeyValueStore Protocol
# ============================================================================


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for a string key-value store.

    Methods:
        get: Return the value for a key, or None
        put: Create or overwrite the value for a key
        remove: Delete a key; returns False when it was absent
        keys: List every key currently stored
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> bool:
        ...

    def keys(self) -> set[str]:
        ...


# ============================================================================
# In-memory backend
# ============================================================================


class InMemoryKeyValueStore:
    """Thread-safe dict-backed store."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def keys(self) -> set[str]:
        with self._lock:
            return set(self._data)


# ============================================================================
# SQLite backend
# ============================================================================


class SQLiteKeyValueStore:
    """SQLite-backed store; one table shared by all namespaces."""

    def __init__(self, db_path: Path, namespace: str):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file
            namespace: Logical store name (e.g. "credentials", "contexts")
        """
        from gmail_connector.lib.utils import ensure_private_directory, ensure_private_file

        self.db_path = db_path
        self.namespace = namespace
        self._lock = threading.Lock()

        ensure_private_directory(self.db_path.parent, mode=0o700)

        self._connection = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._connection.execute("PRAGMA journal_mode = WAL")
        with self._connection:
            self._connection.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
                """
            )

        # Tokens live in this file
        ensure_private_file(self.db_path, mode=0o600)
        logger.debug(f"Opened {namespace} store at {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._connection.execute(
                "SELECT value FROM kv_store WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            ).fetchone()
        return row[0] if row else None

    def put(self, key: str, value: str) -> None:
        with self._lock, self._connection:
            self._connection.execute(
                "INSERT OR REPLACE INTO kv_store (namespace, key, value) VALUES (?, ?, ?)",
                (self.namespace, key, value),
            )

    def remove(self, key: str) -> bool:
        with self._lock, self._connection:
            cursor = self._connection.execute(
                "DELETE FROM kv_store WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
        return cursor.rowcount > 0

    def keys(self) -> set[str]:
        with self._lock:
            rows = self._connection.execute(
                "SELECT key FROM kv_store WHERE namespace = ?",
                (self.namespace,),
            ).fetchall()
        return {row[0] for row in rows}


# ============================================================================
# Keyring backend
# ============================================================================


class KeyringKeyValueStore:
    """OS keyring-backed store.

    Keyring backends cannot enumerate entries, so the store keeps a JSON index
    of its keys under a reserved entry.

    Security considerations:
    - Values are encrypted by the OS keyring
    - Entries are isolated per user account
    """

    INDEX_KEY = "__index__"

    def __init__(self, service_name: str, namespace: str):
        """
        Initialize the store.

        Args:
            service_name: Keyring service prefix (default config: gmail_connector)
            namespace: Logical store name, appended to the service name
        """
        self._service_name = f"{service_name}_{namespace}"
        self._lock = threading.Lock()
        logger.debug(f"KeyringKeyValueStore initialized: service={self._service_name}")

    def _read_index(self) -> set[str]:
        raw = keyring.get_password(self._service_name, self.INDEX_KEY)
        return set(json.loads(raw)) if raw else set()

    def _write_index(self, index: set[str]) -> None:
        keyring.set_password(self._service_name, self.INDEX_KEY, json.dumps(sorted(index)))

    def get(self, key: str) -> Optional[str]:
        return keyring.get_password(self._service_name, key)

    def put(self, key: str, value: str) -> None:
        if key == self.INDEX_KEY:
            raise ValueError(f"{self.INDEX_KEY} is a reserved key")
        with self._lock:
            keyring.set_password(self._service_name, key, value)
            index = self._read_index()
            if key not in index:
                index.add(key)
                self._write_index(index)

    def remove(self, key: str) -> bool:
        with self._lock:
            index = self._read_index()
            if key in index:
                index.discard(key)
                self._write_index(index)
            try:
                keyring.delete_password(self._service_name, key)
            except PasswordDeleteError:
                return False
        return True

    def keys(self) -> set[str]:
        with self._lock:
            return self._read_index()


def create_key_value_store(namespace: str, config=None) -> KeyValueStore:
    """
    Create the configured backend for a store namespace.

    Args:
        namespace: Logical store name ("credentials", "contexts", "cursor")
        config: StorageConfig (default: environment-backed storage_config)

    Returns:
        KeyValueStore for the namespace
    """
    if config is None:
        from gmail_connector.lib.config import storage_config as config

    if config.backend == "keyring":
        return KeyringKeyValueStore(config.keyring_service, namespace)
    if config.backend == "memory":
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(config.store_db_path, namespace)

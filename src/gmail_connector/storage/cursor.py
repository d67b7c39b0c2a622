"""History cursor storage."""

from contextlib import contextmanager
from typing import Iterator, Optional

from gmail_connector.lib.logger import get_logger
from gmail_connector.storage.backends import KeyValueStore
from gmail_connector.storage.locks import KeyedLock

logger = get_logger(__name__)

# Fixed synchronization key for the configured mailbox
CURSOR_KEY = "toBeUsedHistoryID"


class CursorStore:
    """Single-slot, non-decreasing history id.

    ``baseline`` overwrites the cursor (watch setup); ``advance`` only ever
    moves it forward, so a slower duplicate notification cannot rewind it.
    """

    def __init__(self, store: KeyValueStore, key: str = CURSOR_KEY) -> None:
        self._store = store
        self._key = key
        self._locks = KeyedLock()

    @property
    def key(self) -> str:
        return self._key

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Serialize a read-fetch-advance sequence on the cursor."""
        with self._locks.hold(self._key):
            yield

    def get(self) -> Optional[int]:
        """Return the stored history id, or None before the first baseline."""
        raw = self._store.get(self._key)
        return int(raw) if raw is not None else None

    def baseline(self, history_id: int) -> None:
        """Overwrite the cursor with a provider-reported baseline."""
        if history_id < 0:
            raise ValueError("History id cannot be negative")

        with self._locks.hold(self._key):
            self._store.put(self._key, str(history_id))
        logger.info(f"History cursor baselined at {history_id}")

    def advance(self, history_id: int) -> int:
        """
        Move the cursor to a provider-reported history id.

        Args:
            history_id: Latest history id from a history fetch

        Returns:
            The cursor value after the call
        """
        with self._locks.hold(self._key):
            current = self.get()
            if current is not None and history_id < current:
                logger.warning(
                    f"Ignoring stale history id {history_id} (cursor at {current})"
                )
                return current
            self._store.put(self._key, str(history_id))
        return history_id

    def clear(self) -> bool:
        """Remove the cursor (watch stopped)."""
        with self._locks.hold(self._key):
            return self._store.remove(self._key)

"""Per-key mutual exclusion for store read-modify-write sequences."""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """Hand out one re-entrant lock per key.

    Two callbacks racing on the same identity key (duplicate webhook or
    redirect delivery) serialize on the key's lock; different keys proceed in
    parallel. A key's lock is dropped once nobody holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}
        self._users: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._users[key] = self._users.get(key, 0) + 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                # Holders and waiters all counted, so nobody still needs it
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]

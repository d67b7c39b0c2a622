"""Credential storage for OAuth grants.

One long-lived credential is kept per identity key: a refresh token, or for
contact identities that were granted no refresh token, a bare access token.

Security Features:
- Tokens are never logged in clear (see lib.logger.LogRedactor)
- Per-key serialization of read-modify-write sequences
"""

from contextlib import contextmanager
from typing import Iterator, Optional

from gmail_connector.lib.logger import get_logger
from gmail_connector.storage.backends import KeyValueStore
from gmail_connector.storage.locks import KeyedLock

logger = get_logger(__name__)


class CredentialStore:
    """Long-lived credential per identity key.

    Attributes:
        _store: Backing key-value store
        _locks: Per-identity locks guarding read-decide-write sequences
    """

    def __init__(self, store: KeyValueStore) -> None:
        """Initialize credential storage.

        Args:
            store: Backing key-value store
        """
        self._store = store
        self._locks = KeyedLock()

    @contextmanager
    def locked(self, identity_key: str) -> Iterator[None]:
        """Serialize a read-modify-write sequence on one identity key.

        Example:
            >>> with credentials.locked(key):
            ...     if credentials.get(key) is None:
            ...         credentials.put(key, token)
        """
        with self._locks.hold(identity_key):
            yield

    def get(self, identity_key: str) -> Optional[str]:
        """Return the stored credential, or None if the identity never authorized."""
        return self._store.get(identity_key)

    def put(self, identity_key: str, credential: str) -> None:
        """Store (overwrite) the credential for an identity key.

        Raises:
            ValueError: If the credential is empty
        """
        if not credential:
            raise ValueError("Credential cannot be empty")

        with self._locks.hold(identity_key):
            self._store.put(identity_key, credential)
        logger.info(f"Credential stored for {identity_key}")

    def remove(self, identity_key: str) -> bool:
        """Delete the credential for an identity key.

        Returns:
            True if a credential was deleted, False if none was stored
        """
        with self._locks.hold(identity_key):
            removed = self._store.remove(identity_key)

        if removed:
            logger.info(f"Credential removed for {identity_key}")
        else:
            logger.debug(f"No credential to remove for {identity_key}")
        return removed

    def has_credential(self, identity_key: str) -> bool:
        """Check if a credential exists for the identity key."""
        return self._store.get(identity_key) is not None

    def list_identity_keys(self) -> list[str]:
        """List every identity key with a stored credential."""
        return sorted(self._store.keys())

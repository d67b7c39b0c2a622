"""Single-use storage for non-default application credentials."""

import json
import uuid
from typing import Optional

from gmail_connector.lib.logger import get_logger
from gmail_connector.models.identity import AppCredentials
from gmail_connector.storage.backends import KeyValueStore

logger = get_logger(__name__)


class ContextStore:
    """Randomly keyed AppCredentials records.

    A context record lets one OAuth round-trip authenticate with application
    credentials other than the default configuration. The record is deleted
    when the callback that consumed it completes.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def save(self, app: AppCredentials) -> str:
        """
        Persist application credentials under a fresh random reference.

        Args:
            app: Application credentials to persist

        Returns:
            Context reference (UUID4 string)
        """
        context_ref = str(uuid.uuid4())
        self._store.put(context_ref, json.dumps(app.to_dict()))
        logger.debug(f"Saved auth context {context_ref} for {app.mailbox}")
        return context_ref

    def load(self, context_ref: str) -> Optional[AppCredentials]:
        """
        Load the application credentials for a reference.

        Returns:
            AppCredentials, or None if the reference is unknown
        """
        raw = self._store.get(context_ref)
        if raw is None:
            return None
        return AppCredentials.from_dict(json.loads(raw))

    def remove(self, context_ref: str) -> bool:
        """Delete a context record; returns False when it was already gone."""
        removed = self._store.remove(context_ref)
        logger.debug(f"Removed auth context {context_ref}: {removed}")
        return removed

    def list_refs(self) -> list[str]:
        """List outstanding context references."""
        return sorted(self._store.keys())

"""Exception taxonomy for the Gmail connector.

Every error raised by the authorization and synchronization core derives from
GmailConnectorError so the host can catch the whole family at its boundary.
"""

from typing import Optional


class GmailConnectorError(Exception):
    """Base class for all Gmail connector errors."""
    pass


# ============================================================================
# Authorization state errors
# ============================================================================


class StateError(GmailConnectorError):
    """Raised when an OAuth state token cannot be produced or accepted."""
    pass


class MalformedIdentity(StateError):
    """Raised when an identity key cannot be encoded into a state token.

    This includes:
    - Empty or blank identity keys
    - Identity keys (or context references) containing the state delimiter
    """
    pass


class InvalidState(StateError):
    """Raised when a state token returned by the provider is rejected.

    This includes:
    - Blank identity segment
    - More than two delimiter-separated segments
    - Empty context segment
    - A context reference with no stored context record
    """
    pass


# ============================================================================
# Provider errors
# ============================================================================


class ProviderUnreachable(GmailConnectorError):
    """Raised when the provider cannot be reached or the call timed out.

    Transient: no credential or cursor state has been mutated, so the whole
    operation is safe to retry.
    """
    pass


class TokenExchangeError(GmailConnectorError):
    """Raised when the provider rejects an authorization code exchange.

    The message is built from the provider's ``error`` and
    ``error_description`` fields when they are available.
    """

    def __init__(
        self,
        message: str,
        error: Optional[str] = None,
        description: Optional[str] = None,
    ):
        super().__init__(message)
        self.error = error
        self.description = description


class UnauthorizedUser(GmailConnectorError):
    """Raised when the consenting account does not own the configured mailbox."""

    def __init__(self, mailbox: str):
        super().__init__(
            f"Unauthorised user. User email '{mailbox}' configured in the setup "
            "does not match with authenticated user."
        )
        self.mailbox = mailbox


# ============================================================================
# Watch / synchronization errors
# ============================================================================


class InvalidTopicFormat(GmailConnectorError):
    """Raised when the provider rejects the push-notification topic name."""

    def __init__(self, topic: str):
        super().__init__(
            "Invalid topic name format. Should follow "
            "projects/my-project-id/topics/my-topic-id"
        )
        self.topic = topic


class CursorExpired(GmailConnectorError):
    """Raised when the stored history id is too old for the provider.

    The caller must re-run the watch setup to re-baseline the cursor.
    """

    def __init__(self, history_id: int):
        super().__init__(
            f"History id {history_id} has expired. Re-initiate the watch to re-baseline."
        )
        self.history_id = history_id


class WatchNotActive(GmailConnectorError):
    """Raised when notifications are processed before a watch was initiated."""
    pass


# ============================================================================
# Raised forms of the authorization gate outcomes
# ============================================================================


class MustAuthorizeError(GmailConnectorError):
    """Raised by ``MustAuthorize.unwrap()``; carries the signal for the host."""

    def __init__(self, signal):
        super().__init__(signal.message)
        self.signal = signal


class AdministratorActionRequiredError(GmailConnectorError):
    """Raised by ``AdministratorActionRequired.unwrap()``.

    Fatal for the current invocation: an administrator has to re-validate the
    configuration out of band.
    """

    def __init__(self, signal):
        super().__init__(signal.message)
        self.signal = signal

"""Protocol definitions for the authorization collaborators.

Protocols use structural subtyping (PEP 544): any class implementing the
required methods satisfies the protocol without explicit inheritance. The
Authorizer, the gate and the HTTP endpoints only depend on these interfaces,
so tests substitute in-memory fakes without touching the network.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class TokenGrant:
    """Tokens returned by an authorization code exchange.

    Attributes:
        access_token: Short-lived access token (always present)
        refresh_token: Long-lived refresh token, None when the provider
            granted none (returning user without forced consent)
    """

    access_token: str
    refresh_token: Optional[str] = None

    def __repr__(self) -> str:
        return f"TokenGrant(refresh_token={'yes' if self.refresh_token else 'no'})"


# ============================================================================
# OAuth Client Protocol
# ============================================================================


@runtime_checkable
class OAuthClientProtocol(Protocol):
    """Protocol for the provider's OAuth 2.0 client.

    Methods:
        authorization_url: Build the consent URL carrying ``state``
        exchange_code: Exchange an authorization code for tokens
        revoke: Revoke an access or refresh token

    Example:
        >>> # GoogleOAuthClient implicitly satisfies this protocol
        >>> client: OAuthClientProtocol = GoogleOAuthClient(app)
        >>> url = client.authorization_url("admin@x.com#ab12")

        >>> # Fake for testing
        >>> class FakeOAuthClient:
        ...     def authorization_url(self, state): ...
        ...     def exchange_code(self, code): ...
        ...     def revoke(self, token): ...
    """

    def authorization_url(self, state: str) -> str:
        """Build an offline-access, forced-consent authorization URL.

        Raises:
            ProviderUnreachable: URL construction needed the network and failed
        """
        ...

    def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for tokens.

        Raises:
            TokenExchangeError: Provider rejected the code
            ProviderUnreachable: Network failure or timeout
        """
        ...

    def revoke(self, token: str) -> None:
        """Revoke a token at the provider.

        Raises:
            TokenExchangeError: Provider refused the revocation
            ProviderUnreachable: Network failure or timeout
        """
        ...


# ============================================================================
# Host collaborator protocols
# ============================================================================


@runtime_checkable
class AuthorizationListener(Protocol):
    """Host hook notified when a callback completes for an authenticated session."""

    def is_authenticated(self) -> bool:
        """True when the host session that started consent is authenticated."""
        ...

    def authorized(self) -> None:
        """Called once the new credential is stored and verified."""
        ...


@runtime_checkable
class EventHandler(Protocol):
    """Host event system receiving webhook payloads."""

    def handle_event(self, event_name: str, payload: dict) -> None:
        """Deliver an event to the host.

        Args:
            event_name: Host event name (e.g. "Gmail Update")
            payload: Event fields
        """
        ...

"""OAuth authorization for Gmail mailboxes."""

from gmail_connector.auth.authorizer import (
    AUTHENTICATED,
    AUTHENTICATED_SAVE_CHANGES,
    REDO_CONSENT,
    Authorizer,
)
from gmail_connector.auth.gate import (
    AdministratorActionRequired,
    Authorized,
    GateOutcome,
    MustAuthorize,
    TokenRefreshGate,
)
from gmail_connector.auth.oauth_client import GoogleOAuthClient
from gmail_connector.auth.protocols import (
    AuthorizationListener,
    EventHandler,
    OAuthClientProtocol,
    TokenGrant,
)
from gmail_connector.auth.state import AuthorizationState, decode_state, encode_state

__all__ = [
    # Redirect flow
    "Authorizer",
    "AUTHENTICATED",
    "AUTHENTICATED_SAVE_CHANGES",
    "REDO_CONSENT",
    "GoogleOAuthClient",
    # Gate outcomes
    "TokenRefreshGate",
    "GateOutcome",
    "Authorized",
    "MustAuthorize",
    "AdministratorActionRequired",
    # State codec
    "AuthorizationState",
    "encode_state",
    "decode_state",
    # Protocols
    "AuthorizationListener",
    "EventHandler",
    "OAuthClientProtocol",
    "TokenGrant",
]

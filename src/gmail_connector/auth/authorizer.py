"""OAuth 2.0 redirect flow: consent URL, callback handling and revocation."""

from typing import Callable, Optional

from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from gmail_connector.auth.gate import default_client_factory
from gmail_connector.auth.oauth_client import GoogleOAuthClient
from gmail_connector.auth.protocols import AuthorizationListener, OAuthClientProtocol, TokenGrant
from gmail_connector.auth.state import AuthorizationState, decode_state, encode_state
from gmail_connector.errors import (
    GmailConnectorError,
    InvalidState,
    ProviderUnreachable,
    UnauthorizedUser,
)
from gmail_connector.lib.config import GmailConfig, gmail_config
from gmail_connector.lib.logger import get_logger
from gmail_connector.lib.utils import is_retryable
from gmail_connector.models.identity import (
    AppCredentials,
    is_contact_identity,
    looks_like_access_token,
    mailbox_of,
)
from gmail_connector.services.gmail_client import TRANSPORT_ERRORS, GmailClient
from gmail_connector.storage.contexts import ContextStore
from gmail_connector.storage.credentials import CredentialStore

logger = get_logger(__name__)

# Callback outcomes. Support tooling greps logs for these exact strings.
AUTHENTICATED = "User authenticated successfully."
AUTHENTICATED_SAVE_CHANGES = "User authenticated successfully. Save the changes."
REDO_CONSENT = (
    "We need to remove your access token permissions. "
    "Please validate again to regain access."
)

OAuthClientFactory = Callable[[AppCredentials], OAuthClientProtocol]
MailboxClientFactory = Callable[[AppCredentials, str, GmailConfig], GmailClient]


class Authorizer:
    """Drive the redirect-based OAuth flow for admin and contact identities."""

    def __init__(
        self,
        credentials: CredentialStore,
        contexts: ContextStore,
        default_app: AppCredentials,
        oauth_client_factory: Optional[OAuthClientFactory] = None,
        mailbox_client_factory: Optional[MailboxClientFactory] = None,
        listener: Optional[AuthorizationListener] = None,
        config: Optional[GmailConfig] = None,
    ):
        """
        Initialize the authorizer.

        Args:
            credentials: Credential store
            contexts: Context store
            default_app: Application credentials from the platform configuration
            oauth_client_factory: Builds an OAuth client for an application
            mailbox_client_factory: Builds a GmailClient from (app, credential,
                config) for the ownership check
            listener: Host hook notified after a successful callback
            config: Gmail config
        """
        self.credentials = credentials
        self.contexts = contexts
        self.default_app = default_app
        self.config = config or gmail_config
        self.oauth_client_factory = oauth_client_factory or (
            lambda app: GoogleOAuthClient(app, self.config)
        )
        self.mailbox_client_factory = mailbox_client_factory or default_client_factory
        self.listener = listener

    def _resolve_app(self, context_ref: Optional[str]) -> AppCredentials:
        if context_ref is None:
            return self.default_app

        app = self.contexts.load(context_ref)
        if app is None:
            raise InvalidState(f"Unknown authorization context {context_ref}")
        return app

    # ------------------------------------------------------------------
    # Consent URL
    # ------------------------------------------------------------------

    def build_authorization_url(
        self,
        identity_key: str,
        context_ref: Optional[str] = None,
    ) -> str:
        """
        Build the consent URL for an identity.

        Args:
            identity_key: Identity that must authorize
            context_ref: Context reference when non-default application
                credentials apply

        Returns:
            Authorization URL with offline access and forced consent

        Raises:
            MalformedIdentity: identity_key cannot be encoded
            InvalidState: context_ref has no stored record
            ProviderUnreachable: URL construction failed on the network
        """
        state = encode_state(identity_key, context_ref)
        app = self._resolve_app(context_ref)

        try:
            url = self.oauth_client_factory(app).authorization_url(state)
        except TRANSPORT_ERRORS as error:
            raise ProviderUnreachable("Failed to get authorize response ") from error

        logger.info(f"Authorization requested for {identity_key}")
        return url

    # ------------------------------------------------------------------
    # Callback
    # ------------------------------------------------------------------

    def handle_callback(self, code: Optional[str], state: Optional[str]) -> str:
        """
        Complete the flow when the provider redirects back.

        Args:
            code: Authorization code
            state: State token produced by build_authorization_url

        Returns:
            Human-readable outcome string

        Raises:
            InvalidState: Missing code, or a rejected state token
            TokenExchangeError: Provider rejected the code
            ProviderUnreachable: Network failure during the exchange
        """
        decoded = decode_state(state)

        try:
            if not code:
                raise InvalidState("Authorization code is missing")

            app = self._resolve_app(decoded.context_ref)
            oauth_client = self.oauth_client_factory(app)
            grant = oauth_client.exchange_code(code)

            return self._complete(decoded, app, oauth_client, grant)

        finally:
            if decoded.context_ref is not None:
                self.contexts.remove(decoded.context_ref)

    def _complete(
        self,
        decoded: AuthorizationState,
        app: AppCredentials,
        oauth_client: OAuthClientProtocol,
        grant: TokenGrant,
    ) -> str:
        key = decoded.identity_key
        contact = is_contact_identity(key)

        with self.credentials.locked(key):
            stored = self.credentials.get(key)

            if contact and grant.refresh_token is None:
                # Best credential available for a contact
                self.credentials.put(key, grant.access_token)

            elif not contact and (
                looks_like_access_token(stored) or grant.refresh_token is None
            ):
                # An admin identity never keeps a bare access token: drop the
                # grant so the next consent issues a refresh token.
                logger.error("Refresh token access removed. Re-authorization is needed.")
                self._revoke_quietly(oauth_client, grant.access_token)
                self.credentials.remove(key)
                return REDO_CONSENT

            else:
                self.credentials.put(key, grant.refresh_token)

            if not contact:
                try:
                    self._verify_ownership(app, key)
                except UnauthorizedUser as error:
                    self.credentials.remove(key)
                    return str(error)
                except ProviderUnreachable:
                    # Ownership unknown: put back what was there before the exchange
                    if stored is None:
                        self.credentials.remove(key)
                    else:
                        self.credentials.put(key, stored)
                    raise

        if self.listener is not None and self.listener.is_authenticated():
            self.listener.authorized()
            return AUTHENTICATED
        return AUTHENTICATED_SAVE_CHANGES

    def _verify_ownership(self, app: AppCredentials, identity_key: str) -> None:
        mailbox = mailbox_of(identity_key)
        stored = self.credentials.get(identity_key)

        try:
            client = self.mailbox_client_factory(app, stored, self.config)
            client.get_profile(mailbox)
        except TRANSPORT_ERRORS as error:
            logger.warning(f"Ownership check for {mailbox} could not reach the provider: {error}")
            raise ProviderUnreachable("Failed to verify the authenticated mailbox") from error
        except HttpError as error:
            if is_retryable(error):
                logger.warning(f"Ownership check for {mailbox} got HTTP {error.resp.status}")
                raise ProviderUnreachable("Failed to verify the authenticated mailbox") from error
            logger.error(f"Ownership check failed for {mailbox}: {error}")
            raise UnauthorizedUser(mailbox) from error
        except ProviderUnreachable:
            raise
        except (RefreshError, GmailConnectorError) as error:
            logger.error(f"Ownership check failed for {mailbox}: {error}")
            raise UnauthorizedUser(mailbox) from error

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def _revoke_quietly(self, oauth_client: OAuthClientProtocol, token: str) -> bool:
        try:
            oauth_client.revoke(token)
            return True
        except (GmailConnectorError, *TRANSPORT_ERRORS) as error:
            logger.warning(f"Token revocation failed, continuing with local removal: {error}")
            return False

    def revoke(self, identity_key: str, app: Optional[AppCredentials] = None) -> bool:
        """
        Revoke and delete the stored credential for an identity.

        Provider-side revocation is best effort; the local record is always
        removed.

        Args:
            identity_key: Identity whose credential is removed
            app: Application the credential was issued to (default application
                if omitted)

        Returns:
            True if a credential was stored and has been removed
        """
        with self.credentials.locked(identity_key):
            stored = self.credentials.get(identity_key)
            if stored is None:
                logger.info(f"No credential to revoke for {identity_key}")
                return False

            self._revoke_quietly(self.oauth_client_factory(app or self.default_app), stored)
            return self.credentials.remove(identity_key)

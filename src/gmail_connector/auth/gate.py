"""Token refresh gate around every provider call.

The gate resolves which identity a call runs as, rebuilds credentials from the
stored grant and runs the operation. Access-token refresh is left to
google-auth; the gate only decides what an unauthorized answer means for the
current invocation and reports it as a tagged outcome::

    outcome = gate.call(lambda client: client.get_profile())
    if isinstance(outcome, MustAuthorize):
        redirect_to(integration.must_authorize_response(outcome))
    elif isinstance(outcome, AdministratorActionRequired):
        fail(outcome.message)
    else:
        profile = outcome.value
"""

import threading
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar, Union

from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from gmail_connector.errors import (
    AdministratorActionRequiredError,
    MustAuthorizeError,
    ProviderUnreachable,
)
from gmail_connector.lib.config import GmailConfig, gmail_config
from gmail_connector.lib.logger import get_logger
from gmail_connector.models.identity import AppCredentials, InvocationContext
from gmail_connector.services.gmail_client import (
    TRANSPORT_ERRORS,
    GmailClient,
    build_credentials,
    is_unauthorized,
)
from gmail_connector.storage.contexts import ContextStore
from gmail_connector.storage.credentials import CredentialStore

logger = get_logger(__name__)

T = TypeVar("T")

AUTHENTICATION_REQUIRED = (
    "Authentication required. Please authenticate to access your Gmail account."
)
REAUTHENTICATION_REQUIRED = (
    "Authentication failed. Please re-authenticate to continue accessing your Gmail account."
)
AUTHORIZATION_PROMPT = (
    "Please authorize the application and click 'Validate Attributes' "
    "before saving changes to proceed."
)
ACCESS_TOKEN_EXPIRED = (
    "Your access token has expired. Please re-authorize the application to continue."
)
ADMINISTRATOR_ACTION_REQUIRED = (
    "You are not authorized. Please ask admin to validate the attributes."
)


# ============================================================================
# Outcomes
# ============================================================================


@dataclass(frozen=True)
class Authorized(Generic[T]):
    """The operation ran with a valid credential."""

    value: T

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class MustAuthorize:
    """An interactive user has to (re-)authorize before the call is reissued.

    Attributes:
        identity_key: Identity that needs a credential
        context_ref: ContextStore reference for non-default application credentials
        message: Prompt shown to the user
    """

    identity_key: str
    context_ref: Optional[str] = None
    message: str = AUTHORIZATION_PROMPT

    def unwrap(self):
        raise MustAuthorizeError(self)


@dataclass(frozen=True)
class AdministratorActionRequired:
    """No interactive user can authorize; an administrator must re-validate."""

    identity_key: str
    message: str = ADMINISTRATOR_ACTION_REQUIRED

    def unwrap(self):
        raise AdministratorActionRequiredError(self)


GateOutcome = Union[Authorized[T], MustAuthorize, AdministratorActionRequired]

ClientFactory = Callable[[AppCredentials, str, GmailConfig], GmailClient]


def default_client_factory(
    app: AppCredentials,
    stored_credential: str,
    config: GmailConfig,
) -> GmailClient:
    """Build a GmailClient from a stored credential."""
    credentials = build_credentials(app, stored_credential, config)
    return GmailClient.from_credentials(credentials, config.request_timeout)


# ============================================================================
# Gate
# ============================================================================


class TokenRefreshGate:
    """Run provider operations with the stored credential of the right identity."""

    def __init__(
        self,
        credentials: CredentialStore,
        contexts: ContextStore,
        app: AppCredentials,
        invocation: InvocationContext,
        config: Optional[GmailConfig] = None,
        client_factory: Optional[ClientFactory] = None,
        persist_context: bool = False,
    ):
        """
        Initialize the gate.

        Args:
            credentials: Credential store
            contexts: Context store (non-default application credentials)
            app: Application credentials used for this gate's calls
            invocation: Who is invoking the current request
            config: Gmail config (timeouts, token URI, scopes)
            client_factory: Builds a GmailClient from (app, credential, config)
            persist_context: True when ``app`` is not the default application;
                a context record is then saved the first time a MustAuthorize
                has to carry it
        """
        self.credentials = credentials
        self.contexts = contexts
        self.app = app
        self.invocation = invocation
        self.config = config or gmail_config
        self.client_factory = client_factory or default_client_factory
        self._persist_context = persist_context
        self._context_ref: Optional[str] = None
        self._context_lock = threading.Lock()

    def for_app(self, app: AppCredentials) -> "TokenRefreshGate":
        """Return a gate bound to non-default application credentials."""
        return TokenRefreshGate(
            self.credentials,
            self.contexts,
            app,
            self.invocation,
            config=self.config,
            client_factory=self.client_factory,
            persist_context=True,
        )

    def identity_key(self, as_admin: bool = False) -> str:
        """
        Resolve the identity key for a call.

        Args:
            as_admin: Force the configured mailbox owner's identity

        Returns:
            Identity key of the mailbox owner, or of the invoking account
        """
        if as_admin or not self.invocation.invoke_as_user:
            return self.app.identity_key()
        return self.app.identity_key(self.invocation.account_id)

    def call(
        self,
        operation: Callable[[GmailClient], T],
        as_admin: bool = False,
    ) -> GateOutcome[T]:
        """
        Run an operation against the provider.

        Args:
            operation: Receives a GmailClient; an HTTP 401 raised from it is
                turned into an authorization outcome
            as_admin: Run as the configured mailbox owner

        Returns:
            Authorized(result), MustAuthorize or AdministratorActionRequired

        Raises:
            ProviderUnreachable: Transport failure or timeout (nothing mutated)
        """
        identity_key = self.identity_key(as_admin)
        stored = self.credentials.get(identity_key)

        if stored is None:
            logger.warning(f"{AUTHENTICATION_REQUIRED} identity={identity_key}")
            return self._unauthorized(identity_key, reauthentication=False)

        try:
            client = self.client_factory(self.app, stored, self.config)
            return Authorized(operation(client))

        except RefreshError as error:
            logger.error(f"Credential refresh failed for {identity_key}: {error}")
            return self._unauthorized(identity_key, reauthentication=True)

        except HttpError as error:
            if is_unauthorized(error):
                logger.error(f"Provider rejected credential for {identity_key}")
                return self._unauthorized(identity_key, reauthentication=True)
            raise

        except TRANSPORT_ERRORS as error:
            logger.error(f"Provider unreachable for {identity_key}: {error}")
            raise ProviderUnreachable(
                "Unable to connect to Gmail services. Please check your configuration and try again."
            ) from error

    def _unauthorized(
        self,
        identity_key: str,
        reauthentication: bool,
    ) -> Union[MustAuthorize, AdministratorActionRequired]:
        if not self.invocation.interactive:
            return AdministratorActionRequired(identity_key=identity_key)

        if reauthentication:
            logger.error(REAUTHENTICATION_REQUIRED)

        return MustAuthorize(
            identity_key=identity_key,
            context_ref=self._ensure_context_ref(),
            message=ACCESS_TOKEN_EXPIRED if reauthentication else AUTHORIZATION_PROMPT,
        )

    def _ensure_context_ref(self) -> Optional[str]:
        if not self._persist_context:
            return None
        with self._context_lock:
            if self._context_ref is None:
                self._context_ref = self.contexts.save(self.app)
            return self._context_ref

"""Mailbox integration: wiring for the authorization and sync components.

This is the composition root. Stores, the token refresh gate, the authorizer
and the watch manager are built once from configuration and passed to each
other explicitly; the host talks to this class only.
"""

from typing import Any, Mapping, Optional

from gmail_connector.auth.authorizer import Authorizer, MailboxClientFactory, OAuthClientFactory
from gmail_connector.auth.gate import (
    Authorized,
    GateOutcome,
    MustAuthorize,
    TokenRefreshGate,
)
from gmail_connector.auth.protocols import AuthorizationListener
from gmail_connector.errors import CursorExpired
from gmail_connector.lib.config import GmailConfig, StorageConfig, gmail_config, storage_config
from gmail_connector.lib.logger import get_logger
from gmail_connector.models.identity import InvocationContext
from gmail_connector.models.settings import MailboxSettings
from gmail_connector.models.watch import WatchState, WatchSubscription
from gmail_connector.services.watch import ChangeWatchManager
from gmail_connector.storage.backends import create_key_value_store
from gmail_connector.storage.contexts import ContextStore
from gmail_connector.storage.credentials import CredentialStore
from gmail_connector.storage.cursor import CursorStore

logger = get_logger(__name__)


class MailboxIntegration:
    """Host-facing entry point for one configured mailbox."""

    def __init__(
        self,
        settings: MailboxSettings,
        credentials: CredentialStore,
        contexts: ContextStore,
        cursors: CursorStore,
        invocation: Optional[InvocationContext] = None,
        config: Optional[GmailConfig] = None,
        client_factory: Optional[MailboxClientFactory] = None,
        oauth_client_factory: Optional[OAuthClientFactory] = None,
        listener: Optional[AuthorizationListener] = None,
    ):
        """
        Initialize the integration.

        Args:
            settings: Mailbox settings (default application, topic, alert)
            credentials: Credential store
            contexts: Context store
            cursors: History cursor store
            invocation: Who is invoking (default: background)
            config: Gmail config
            client_factory: Builds a GmailClient from (app, credential, config)
            oauth_client_factory: Builds an OAuth client for an application
            listener: Host hook notified after a successful callback
        """
        self.settings = settings
        self.credentials = credentials
        self.contexts = contexts
        self.cursors = cursors
        self.invocation = invocation or InvocationContext.background()
        self.config = config or gmail_config
        self.client_factory = client_factory
        self.oauth_client_factory = oauth_client_factory
        self.listener = listener

        self.gate = TokenRefreshGate(
            credentials,
            contexts,
            settings.app_credentials,
            self.invocation,
            config=self.config,
            client_factory=client_factory,
        )
        self.authorizer = Authorizer(
            credentials,
            contexts,
            settings.app_credentials,
            oauth_client_factory=oauth_client_factory,
            mailbox_client_factory=client_factory,
            listener=listener,
            config=self.config,
        )
        self.watch = ChangeWatchManager(self.gate, cursors, settings)

    @classmethod
    def from_config(
        cls,
        config: Optional[GmailConfig] = None,
        storage: Optional[StorageConfig] = None,
        invocation: Optional[InvocationContext] = None,
        listener: Optional[AuthorizationListener] = None,
    ) -> "MailboxIntegration":
        """
        Build an integration from environment-backed configuration.

        Raises:
            ValueError: The default application is not configured
        """
        config = config or gmail_config
        storage = storage or storage_config

        if not config.is_configured:
            raise ValueError(
                "GMAIL_CLIENT_ID, GMAIL_CLIENT_SECRET and GMAIL_MAILBOX must be set"
            )

        return cls(
            MailboxSettings.from_config(config),
            CredentialStore(create_key_value_store("credentials", storage)),
            ContextStore(create_key_value_store("contexts", storage)),
            CursorStore(create_key_value_store("cursor", storage)),
            invocation=invocation,
            config=config,
            listener=listener,
        )

    def for_invocation(self, invocation: InvocationContext) -> "MailboxIntegration":
        """Return an integration sharing this one's stores under another invocation."""
        return self._rebuild(self.settings, invocation)

    def _rebuild(
        self,
        settings: MailboxSettings,
        invocation: InvocationContext,
    ) -> "MailboxIntegration":
        return MailboxIntegration(
            settings,
            self.credentials,
            self.contexts,
            self.cursors,
            invocation=invocation,
            config=self.config,
            client_factory=self.client_factory,
            oauth_client_factory=self.oauth_client_factory,
            listener=self.listener,
        )

    def _gate_for(self, settings: MailboxSettings) -> TokenRefreshGate:
        if settings.app_credentials == self.settings.app_credentials:
            return self.gate
        return self.gate.for_app(settings.app_credentials)

    # ------------------------------------------------------------------
    # Host hooks
    # ------------------------------------------------------------------

    def test_connection(self) -> GateOutcome[dict]:
        """Fetch the mailbox profile as the configured mailbox owner."""
        return self.gate.call(lambda client: client.get_profile(), as_admin=True)

    def validate_attributes(self, attributes: Mapping[str, Any]) -> GateOutcome[Any]:
        """
        Validate attributes entered by an administrator before they are saved.

        Checks topic/alert consistency, verifies the credentials can reach the
        mailbox and, when a topic is configured, registers the watch.

        Args:
            attributes: Host attribute map (clientId, clientSecret, email,
                topic, alert)

        Returns:
            Authorized(profile), or the first authorization outcome

        Raises:
            ValueError: Missing credentials or inconsistent topic/alert
            InvalidTopicFormat: Provider rejected the topic
        """
        settings = MailboxSettings.from_attributes(attributes)
        settings.validate_alert()

        gate = self._gate_for(settings)
        outcome = gate.call(lambda client: client.get_profile(), as_admin=True)
        if not isinstance(outcome, Authorized):
            return outcome

        if settings.has_topic:
            watch_outcome = ChangeWatchManager(gate, self.cursors, settings).initiate()
            if not isinstance(watch_outcome, Authorized):
                return watch_outcome

        logger.info(f"Attributes validated for {settings.mailbox}")
        return outcome

    def register_event_listener(self) -> GateOutcome[Optional[WatchSubscription]]:
        """Register the push-notification watch when a topic is configured."""
        return self.watch.initiate()

    def attributes_updated(
        self,
        attributes: Mapping[str, Any],
    ) -> GateOutcome[Optional[WatchSubscription]]:
        """
        Apply saved attributes and re-register the watch.

        A topic that was removed stops the existing watch.
        """
        settings = MailboxSettings.from_attributes(attributes)
        settings.validate_alert()

        previous = self.watch
        rebuilt = self._rebuild(settings, self.invocation)
        self.settings = settings
        self.gate = rebuilt.gate
        self.authorizer = rebuilt.authorizer
        self.watch = rebuilt.watch

        if not settings.has_topic and previous.state is WatchState.WATCHING:
            stopped = previous.stop()
            if not isinstance(stopped, Authorized):
                return stopped
            return Authorized(None)

        return self.register_event_listener()

    def must_authorize_response(self, signal: MustAuthorize) -> str:
        """Authorization URL the host redirects to for a MustAuthorize outcome."""
        return self.authorizer.build_authorization_url(signal.identity_key, signal.context_ref)

    def handle_callback(self, code: Optional[str], state: Optional[str]) -> str:
        """Complete an OAuth redirect (see Authorizer.handle_callback)."""
        return self.authorizer.handle_callback(code, state)

    def new_messages(self) -> GateOutcome[set[str]]:
        """
        Return ids of messages received since the last call.

        An expired cursor is re-baselined from the current mailbox state;
        changes between the expired cursor and now are not replayed.
        """
        try:
            return self.watch.on_notification()
        except CursorExpired as error:
            logger.warning(f"{error} Re-baselining from the current mailbox state.")
            outcome = self.watch.initiate()
            if not isinstance(outcome, Authorized):
                return outcome
            return Authorized(set())

    def revoke(self) -> bool:
        """Revoke and delete the configured mailbox owner's credential."""
        return self.authorizer.revoke(self.gate.identity_key(as_admin=True))

    def status(self) -> dict:
        """Summarize the stored authorization and watch state."""
        identity_key = self.gate.identity_key(as_admin=True)
        return {
            "mailbox": self.settings.mailbox,
            "identity_key": identity_key,
            "authorized": self.credentials.has_credential(identity_key),
            "topic": self.settings.topic,
            "watch_state": self.watch.state.value,
            "history_id": self.cursors.get(),
            "pending_contexts": len(self.contexts.list_refs()),
        }

"""Push-notification watch and history cursor synchronization.

The manager keeps no state of its own: WATCHING means a cursor is stored.
Every call goes through the TokenRefreshGate as the configured mailbox owner,
so an expired grant surfaces as MustAuthorize / AdministratorActionRequired
rather than as an exception.
"""

from typing import Optional

from googleapiclient.errors import HttpError

from gmail_connector.auth.gate import Authorized, GateOutcome, TokenRefreshGate
from gmail_connector.errors import CursorExpired, InvalidTopicFormat, WatchNotActive
from gmail_connector.lib.logger import get_sync_logger
from gmail_connector.models.settings import MailboxSettings
from gmail_connector.models.watch import SENT, WatchState, WatchSubscription
from gmail_connector.services.gmail_client import GmailClient, is_unauthorized
from gmail_connector.storage.cursor import CursorStore

logger = get_sync_logger(__name__)


def extract_new_message_ids(history: list[dict]) -> set[str]:
    """
    Collect inbound message ids from history records.

    Only ``messagesAdded`` entries are considered; messages carrying the SENT
    label are the mailbox owner's own outgoing mail and are skipped.

    Args:
        history: History records from users.history.list

    Returns:
        Deduplicated message ids
    """
    message_ids: set[str] = set()

    for record in history:
        for added in record.get("messagesAdded", []):
            message = added.get("message", {})
            message_id = message.get("id")
            if not message_id:
                continue
            if SENT in message.get("labelIds", []):
                continue
            message_ids.add(message_id)

    return message_ids


class ChangeWatchManager:
    """Register the mailbox watch and turn notifications into new message ids."""

    def __init__(
        self,
        gate: TokenRefreshGate,
        cursors: CursorStore,
        settings: MailboxSettings,
    ):
        """
        Initialize the manager.

        Args:
            gate: Token refresh gate bound to the mailbox's application
            cursors: History cursor store
            settings: Mailbox settings (mailbox address and topic)
        """
        self.gate = gate
        self.cursors = cursors
        self.settings = settings

    @property
    def state(self) -> WatchState:
        if self.cursors.get() is None:
            return WatchState.UNWATCHED
        return WatchState.WATCHING

    def initiate(
        self,
        settings: Optional[MailboxSettings] = None,
    ) -> GateOutcome[Optional[WatchSubscription]]:
        """
        Register the push-notification watch and baseline the cursor.

        Args:
            settings: Settings to use (default: the manager's settings)

        Returns:
            Authorized(WatchSubscription), Authorized(None) when no topic is
            configured, or an authorization outcome

        Raises:
            InvalidTopicFormat: Provider rejected the watch request
            ProviderUnreachable: Network failure or timeout
        """
        settings = settings or self.settings

        if not settings.has_topic:
            logger.info("No topic configured, skipping watch", mailbox=settings.mailbox)
            return Authorized(None)

        topic = settings.topic

        def register(client: GmailClient) -> WatchSubscription:
            try:
                response = client.watch(settings.mailbox, topic)
            except HttpError as error:
                if is_unauthorized(error):
                    raise
                raise InvalidTopicFormat(topic) from error
            return WatchSubscription.from_watch_response(topic, response)

        with self.cursors.locked():
            outcome = self.gate.call(register, as_admin=True)

            if isinstance(outcome, Authorized):
                subscription = outcome.value
                self.cursors.baseline(subscription.history_id)
                logger.info(
                    "Watch registered",
                    topic=topic,
                    history_id=subscription.history_id,
                    expiration=subscription.expiration,
                )

        return outcome

    def renew(self) -> GateOutcome[Optional[WatchSubscription]]:
        """Re-register the watch; Gmail requires this at least every 7 days."""
        return self.initiate()

    def on_notification(self) -> GateOutcome[set[str]]:
        """
        Fetch mailbox changes since the cursor and return new message ids.

        Returns:
            Authorized(set of message ids), possibly empty, or an
            authorization outcome

        Raises:
            WatchNotActive: No cursor stored (initiate was never run)
            CursorExpired: Provider no longer has history for the cursor
            ProviderUnreachable: Network failure or timeout
        """
        with self.cursors.locked():
            cursor = self.cursors.get()
            if cursor is None:
                raise WatchNotActive("Watch is not active. Initiate the watch first.")

            def fetch(client: GmailClient) -> dict:
                try:
                    return client.list_history(self.settings.mailbox, cursor)
                except HttpError as error:
                    if error.resp.status == 404:
                        raise CursorExpired(cursor) from error
                    raise

            outcome = self.gate.call(fetch, as_admin=True)
            if not isinstance(outcome, Authorized):
                return outcome

            result = outcome.value
            current = self.cursors.advance(result["historyId"])
            message_ids = extract_new_message_ids(result["history"])

        logger.log_cursor_advance(cursor, current, len(message_ids))
        return Authorized(message_ids)

    def stop(self) -> GateOutcome[bool]:
        """
        Stop push notifications and clear the cursor.

        Returns:
            Authorized(True) if a cursor was cleared, or an authorization outcome
        """
        with self.cursors.locked():
            outcome = self.gate.call(
                lambda client: client.stop(self.settings.mailbox),
                as_admin=True,
            )
            if not isinstance(outcome, Authorized):
                return outcome

            cleared = self.cursors.clear()

        logger.info("Watch stopped", mailbox=self.settings.mailbox)
        return Authorized(cleared)

"""Unit tests for the change-watch manager."""

from datetime import datetime, timezone

import pytest

from conftest import TOPIC, make_http_error
from gmail_connector.auth.gate import AdministratorActionRequired, Authorized, TokenRefreshGate
from gmail_connector.errors import CursorExpired, InvalidTopicFormat, WatchNotActive
from gmail_connector.models.settings import MailboxSettings
from gmail_connector.models.watch import WatchState, WatchSubscription
from gmail_connector.services.watch import ChangeWatchManager, extract_new_message_ids


def added(message_id, *labels):
    return {"message": {"id": message_id, "threadId": f"t-{message_id}", "labelIds": list(labels)}}


@pytest.fixture
def gate(credential_store, context_store, app_credentials, background, client_factory):
    credential_store.put(app_credentials.identity_key(), "1//R1")
    return TokenRefreshGate(
        credential_store,
        context_store,
        app_credentials,
        background,
        client_factory=client_factory,
    )


@pytest.fixture
def manager(gate, cursor_store, mailbox_settings):
    return ChangeWatchManager(gate, cursor_store, mailbox_settings)


@pytest.fixture
def watching(manager, gmail_client):
    gmail_client.watch.return_value = {"historyId": "1000", "expiration": "1767225600000"}
    manager.initiate()
    return manager


class TestExtractNewMessageIds:
    """Test extraction of inbound message ids from history records."""

    def test_messages_added_only(self):
        history = [
            {"id": "1", "messagesAdded": [added("m1", "INBOX")]},
            {"id": "2", "labelsAdded": [{"message": {"id": "m2"}, "labelIds": ["STARRED"]}]},
            {"id": "3", "messagesDeleted": [{"message": {"id": "m3"}}]},
        ]

        assert extract_new_message_ids(history) == {"m1"}

    def test_sent_messages_skipped(self):
        history = [
            {"id": "1", "messagesAdded": [added("m1", "INBOX", "UNREAD")]},
            {"id": "2", "messagesAdded": [added("m2", "SENT")]},
            {"id": "3", "messagesAdded": [added("m3", "INBOX", "SENT")]},
        ]

        assert extract_new_message_ids(history) == {"m1"}

    def test_duplicates_collapsed(self):
        history = [
            {"id": "1", "messagesAdded": [added("m1", "INBOX"), added("m1", "INBOX")]},
            {"id": "2", "messagesAdded": [added("m1", "INBOX"), added("m2", "INBOX")]},
        ]

        assert extract_new_message_ids(history) == {"m1", "m2"}

    def test_empty_history(self):
        assert extract_new_message_ids([]) == set()

    def test_fresh_set_per_call(self):
        history = [{"id": "1", "messagesAdded": [added("m1", "INBOX")]}]

        first = extract_new_message_ids(history)
        first.add("leaked")

        assert extract_new_message_ids(history) == {"m1"}


class TestInitiate:
    """Test watch registration."""

    def test_registers_inbox_and_sent_and_baselines(self, manager, gmail_client, cursor_store):
        gmail_client.watch.return_value = {"historyId": "1000", "expiration": "1767225600000"}

        outcome = manager.initiate()

        gmail_client.watch.assert_called_once_with("admin@x.com", TOPIC)
        assert isinstance(outcome, Authorized)
        assert outcome.value == WatchSubscription(
            topic=TOPIC,
            history_id=1000,
            expiration=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        assert cursor_store.get() == 1000
        assert manager.state is WatchState.WATCHING

    def test_no_topic_is_noop(self, gate, cursor_store, gmail_client):
        settings = MailboxSettings("id", "secret", "admin@x.com")
        manager = ChangeWatchManager(gate, cursor_store, settings)

        outcome = manager.initiate()

        assert outcome == Authorized(None)
        gmail_client.watch.assert_not_called()
        assert manager.state is WatchState.UNWATCHED

    def test_rejected_topic(self, manager, gmail_client, cursor_store):
        gmail_client.watch.side_effect = make_http_error(400)

        with pytest.raises(InvalidTopicFormat, match="projects/my-project-id/topics/my-topic-id"):
            manager.initiate()

        assert cursor_store.get() is None

    def test_unauthorized_is_gate_outcome(self, manager, gmail_client, cursor_store):
        gmail_client.watch.side_effect = make_http_error(401)

        outcome = manager.initiate()

        assert isinstance(outcome, AdministratorActionRequired)
        assert cursor_store.get() is None

    def test_renew_rebaselines(self, watching, gmail_client, cursor_store):
        gmail_client.watch.return_value = {"historyId": "1500"}

        outcome = watching.renew()

        assert outcome.value.history_id == 1500
        assert outcome.value.expiration is None
        assert cursor_store.get() == 1500
        assert gmail_client.watch.call_count == 2


class TestOnNotification:
    """Test history fetch and cursor advance."""

    def test_requires_watch(self, manager):
        with pytest.raises(WatchNotActive):
            manager.on_notification()

    def test_returns_new_ids_and_advances(self, watching, gmail_client, cursor_store):
        gmail_client.list_history.return_value = {
            "history": [
                {"id": "1001", "messagesAdded": [added("m1", "INBOX")]},
                {"id": "1002", "messagesAdded": [added("m2", "SENT")]},
                {"id": "1003", "messagesAdded": [added("m1", "INBOX"), added("m3", "INBOX")]},
            ],
            "historyId": 1003,
        }

        outcome = watching.on_notification()

        gmail_client.list_history.assert_called_once_with("admin@x.com", 1000)
        assert outcome == Authorized({"m1", "m3"})
        assert cursor_store.get() == 1003

    def test_cursor_advances_without_new_messages(self, watching, gmail_client, cursor_store):
        gmail_client.list_history.return_value = {"history": [], "historyId": 1010}

        assert watching.on_notification() == Authorized(set())
        assert cursor_store.get() == 1010

    def test_repeated_notification_is_idempotent(self, watching, gmail_client, cursor_store):
        gmail_client.list_history.return_value = {"history": [], "historyId": 1000}

        first = watching.on_notification()
        second = watching.on_notification()

        assert first == second == Authorized(set())
        assert cursor_store.get() == 1000
        assert gmail_client.list_history.call_count == 2

    def test_next_fetch_starts_from_advanced_cursor(self, watching, gmail_client):
        gmail_client.list_history.return_value = {"history": [], "historyId": 1200}
        watching.on_notification()
        watching.on_notification()

        assert gmail_client.list_history.call_args.args == ("admin@x.com", 1200)

    def test_expired_cursor(self, watching, gmail_client, cursor_store):
        gmail_client.list_history.side_effect = make_http_error(404)

        with pytest.raises(CursorExpired) as exc_info:
            watching.on_notification()

        assert exc_info.value.history_id == 1000
        # No fabricated cursor
        assert cursor_store.get() == 1000

    def test_unauthorized_leaves_cursor(self, watching, gmail_client, cursor_store):
        gmail_client.list_history.side_effect = make_http_error(401)

        outcome = watching.on_notification()

        assert isinstance(outcome, AdministratorActionRequired)
        assert cursor_store.get() == 1000


class TestStop:
    """Test stopping the watch."""

    def test_stop_clears_cursor(self, watching, gmail_client, cursor_store):
        outcome = watching.stop()

        gmail_client.stop.assert_called_once_with("admin@x.com")
        assert outcome == Authorized(True)
        assert cursor_store.get() is None
        assert watching.state is WatchState.UNWATCHED

    def test_stop_failure_keeps_cursor(self, watching, gmail_client, cursor_store):
        gmail_client.stop.side_effect = make_http_error(401)

        assert isinstance(watching.stop(), AdministratorActionRequired)
        assert cursor_store.get() == 1000

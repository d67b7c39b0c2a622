"""Integration tests for the authorization round trip and mailbox sync."""

import pytest

from conftest import TOPIC, make_http_error
from gmail_connector.auth.authorizer import AUTHENTICATED_SAVE_CHANGES
from gmail_connector.auth.gate import AdministratorActionRequired, Authorized, MustAuthorize
from gmail_connector.auth.state import decode_state
from gmail_connector.models.identity import InvocationContext
from gmail_connector.models.watch import WatchState
from gmail_connector.services.integration import MailboxIntegration


@pytest.fixture
def integration(
    mailbox_settings,
    credential_store,
    context_store,
    cursor_store,
    client_factory,
    oauth_client_factory,
):
    return MailboxIntegration(
        mailbox_settings,
        credential_store,
        context_store,
        cursor_store,
        invocation=InvocationContext.administrator(),
        client_factory=client_factory,
        oauth_client_factory=oauth_client_factory,
    )


def attributes(credentials, topic=TOPIC, alert=True):
    values = {
        "clientId": credentials.client_id,
        "clientSecret": credentials.client_secret,
        "email": credentials.mailbox,
    }
    if topic is not None:
        values["topic"] = topic
        values["alert"] = alert
    return values


@pytest.mark.integration
class TestAuthorizationRoundTrip:
    """MustAuthorize -> consent URL -> callback -> call succeeds."""

    def test_default_application(self, integration, fake_oauth, credential_store):
        outcome = integration.test_connection()
        assert isinstance(outcome, MustAuthorize)

        integration.must_authorize_response(outcome)
        state = fake_oauth.states[-1]

        assert integration.handle_callback("code-1", state) == AUTHENTICATED_SAVE_CHANGES
        assert isinstance(integration.test_connection(), Authorized)

    def test_non_default_application(
        self, integration, fake_oauth, context_store, credential_store, other_app_credentials
    ):
        outcome = integration.validate_attributes(attributes(other_app_credentials))
        assert isinstance(outcome, MustAuthorize)
        assert context_store.list_refs() == [outcome.context_ref]

        integration.must_authorize_response(outcome)
        state = fake_oauth.states[-1]
        assert decode_state(state).context_ref == outcome.context_ref

        integration.handle_callback("code-1", state)

        assert context_store.list_refs() == []
        assert credential_store.get(other_app_credentials.identity_key()) == "1//R1"

    def test_background_invocation_cannot_redirect(self, integration):
        background = integration.for_invocation(InvocationContext.background())

        assert isinstance(background.test_connection(), AdministratorActionRequired)


@pytest.mark.integration
class TestMailboxLifecycle:
    """Attribute validation, watch registration and notification sync."""

    @pytest.fixture
    def authorized(self, integration, credential_store, gmail_client):
        credential_store.put(integration.gate.identity_key(as_admin=True), "1//R1")
        gmail_client.watch.return_value = {"historyId": "1000"}
        return integration

    def test_validate_attributes_registers_watch(self, authorized, app_credentials, cursor_store):
        outcome = authorized.validate_attributes(attributes(app_credentials))

        assert isinstance(outcome, Authorized)
        assert cursor_store.get() == 1000

    def test_validate_attributes_rejects_topic_without_alert(self, authorized, app_credentials):
        with pytest.raises(ValueError, match="both topic and alert"):
            authorized.validate_attributes(attributes(app_credentials, alert=None))

    def test_validate_attributes_without_topic(self, authorized, app_credentials, gmail_client):
        outcome = authorized.validate_attributes(attributes(app_credentials, topic=None))

        assert isinstance(outcome, Authorized)
        gmail_client.watch.assert_not_called()

    def test_register_then_sync(self, authorized, gmail_client, cursor_store):
        authorized.register_event_listener()
        gmail_client.list_history.return_value = {
            "history": [{"messagesAdded": [{"message": {"id": "m1", "labelIds": ["INBOX"]}}]}],
            "historyId": 1001,
        }

        assert authorized.new_messages() == Authorized({"m1"})
        assert cursor_store.get() == 1001

    def test_expired_cursor_is_rebaselined(self, authorized, gmail_client, cursor_store):
        cursor_store.baseline(5)
        gmail_client.list_history.side_effect = make_http_error(404)
        gmail_client.watch.return_value = {"historyId": "2000"}

        assert authorized.new_messages() == Authorized(set())
        assert cursor_store.get() == 2000

    def test_removing_topic_stops_watch(self, authorized, app_credentials, gmail_client, cursor_store):
        authorized.register_event_listener()

        outcome = authorized.attributes_updated(attributes(app_credentials, topic=None))

        assert outcome == Authorized(None)
        gmail_client.stop.assert_called_once_with("admin@x.com")
        assert authorized.watch.state is WatchState.UNWATCHED

    def test_attributes_updated_renews_watch(self, authorized, app_credentials, gmail_client):
        authorized.attributes_updated(attributes(app_credentials, topic="projects/p/topics/other"))

        gmail_client.watch.assert_called_once_with("admin@x.com", "projects/p/topics/other")

    def test_status(self, authorized):
        authorized.register_event_listener()

        status = authorized.status()

        assert status["authorized"] is True
        assert status["watch_state"] == "watching"
        assert status["history_id"] == 1000

    def test_revoke(self, authorized, credential_store, fake_oauth):
        assert authorized.revoke() is True
        assert credential_store.list_identity_keys() == []
        assert fake_oauth.revoked == ["1//R1"]

"""Unit tests for identity keys, invocation context and mailbox settings."""

import pytest

from gmail_connector.models.identity import (
    AppCredentials,
    InvocationContext,
    is_contact_identity,
    looks_like_access_token,
    mailbox_of,
)
from gmail_connector.models.settings import TOPIC_ALERT_MISMATCH, MailboxSettings


class TestIdentityKeys:
    """Test identity key helpers."""

    def test_contact_detection_is_prefix_check(self):
        assert is_contact_identity("wsContact#123")
        assert is_contact_identity("wsContact42#abc")
        assert not is_contact_identity("admin@x.com#abc")
        assert not is_contact_identity("user-wsContact#abc")

    def test_mailbox_of(self):
        assert mailbox_of("admin@x.com#0123456789abcdef") == "admin@x.com"
        assert mailbox_of("admin@x.com") == "admin@x.com"

    def test_looks_like_access_token(self):
        assert looks_like_access_token("ya29.a0AfH6SM")
        assert not looks_like_access_token("1//0gRefresh")
        assert not looks_like_access_token(None)


class TestAppCredentials:
    """Test AppCredentials."""

    def test_identity_key_uses_mailbox_and_fingerprint(self, app_credentials):
        key = app_credentials.identity_key()

        assert key == f"admin@x.com#{app_credentials.fingerprint}"
        assert len(app_credentials.fingerprint) == 16

    def test_identity_key_for_account(self, app_credentials):
        key = app_credentials.identity_key("wsContact42")

        assert key.startswith("wsContact42#")
        assert is_contact_identity(key)

    def test_fingerprint_changes_with_secret(self, app_credentials):
        rotated = AppCredentials(
            client_id=app_credentials.client_id,
            client_secret="GOCSPX-rotated",
            mailbox=app_credentials.mailbox,
        )

        assert rotated.fingerprint != app_credentials.fingerprint

    def test_dict_round_trip(self, app_credentials):
        data = app_credentials.to_dict()

        assert data == {
            "clientId": app_credentials.client_id,
            "clientSecret": app_credentials.client_secret,
            "email": "admin@x.com",
        }
        assert AppCredentials.from_dict(data) == app_credentials

    @pytest.mark.parametrize("field", ["client_id", "client_secret", "mailbox"])
    def test_empty_fields_rejected(self, field):
        values = {"client_id": "id", "client_secret": "secret", "mailbox": "a@x.com"}
        values[field] = ""

        with pytest.raises(ValueError):
            AppCredentials(**values)

    def test_repr_hides_secret(self, app_credentials):
        assert "GOCSPX" not in repr(app_credentials)


class TestInvocationContext:
    """Test InvocationContext."""

    def test_background_is_not_interactive(self):
        assert not InvocationContext.background().interactive

    def test_end_user_requires_account(self):
        with pytest.raises(ValueError, match="Failed to get account."):
            InvocationContext(interactive=True, invoke_as_user=True)

    def test_end_user(self):
        invocation = InvocationContext.end_user("wsContact42")

        assert invocation.interactive
        assert invocation.invoke_as_user
        assert invocation.account_id == "wsContact42"


class TestMailboxSettings:
    """Test MailboxSettings."""

    def test_from_attributes(self):
        settings = MailboxSettings.from_attributes(
            {
                "clientId": " id ",
                "clientSecret": "secret",
                "email": "admin@x.com",
                "topic": "projects/p/topics/t",
                "alert": "true",
            }
        )

        assert settings.client_id == "id"
        assert settings.topic == "projects/p/topics/t"
        assert settings.alert is True
        assert settings.has_topic

    def test_blank_topic_is_none(self):
        settings = MailboxSettings.from_attributes(
            {"clientId": "id", "clientSecret": "s", "email": "a@x.com", "topic": "  "}
        )

        assert settings.topic is None
        assert not settings.has_topic

    @pytest.mark.parametrize(
        "topic,alert",
        [(None, None), (None, False), ("projects/p/topics/t", True)],
    )
    def test_consistent_topic_and_alert(self, topic, alert):
        MailboxSettings("id", "s", "a@x.com", topic=topic, alert=alert).validate_alert()

    @pytest.mark.parametrize(
        "topic,alert",
        [(None, True), ("projects/p/topics/t", None), ("projects/p/topics/t", False)],
    )
    def test_inconsistent_topic_and_alert(self, topic, alert):
        settings = MailboxSettings("id", "s", "a@x.com", topic=topic, alert=alert)

        with pytest.raises(ValueError, match=TOPIC_ALERT_MISMATCH):
            settings.validate_alert()

    def test_app_credentials(self, mailbox_settings, app_credentials):
        assert mailbox_settings.app_credentials == app_credentials

"""Pytest configuration and shared fixtures."""

import os
import sys
from pathlib import Path
from typing import Optional
from unittest.mock import MagicMock, Mock

import httplib2
import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Never touch the real keyring or ~/.gmail_connector from tests
os.environ.setdefault("GMAIL_CONNECTOR_STORE", "memory")

from googleapiclient.errors import HttpError  # noqa: E402

from gmail_connector.auth.protocols import TokenGrant  # noqa: E402
from gmail_connector.models.identity import AppCredentials, InvocationContext  # noqa: E402
from gmail_connector.models.settings import MailboxSettings  # noqa: E402
from gmail_connector.services.gmail_client import GmailClient  # noqa: E402
from gmail_connector.storage.backends import InMemoryKeyValueStore  # noqa: E402
from gmail_connector.storage.contexts import ContextStore  # noqa: E402
from gmail_connector.storage.credentials import CredentialStore  # noqa: E402
from gmail_connector.storage.cursor import CursorStore  # noqa: E402

TOPIC = "projects/my-project/topics/gmail-push"


def make_http_error(status: int, content: bytes = b"") -> HttpError:
    """Build a googleapiclient HttpError with the given HTTP status."""
    return HttpError(resp=httplib2.Response({"status": status}), content=content)


class FakeOAuthClient:
    """In-memory OAuthClientProtocol implementation."""

    def __init__(self, grant: Optional[TokenGrant] = None):
        self.grant = grant or TokenGrant(access_token="ya29.A1", refresh_token="1//R1")
        self.exchange_error: Optional[Exception] = None
        self.revoke_error: Optional[Exception] = None
        self.states: list[str] = []
        self.codes: list[str] = []
        self.revoked: list[str] = []

    def authorization_url(self, state: str) -> str:
        self.states.append(state)
        return f"https://accounts.google.com/o/oauth2/auth?state={state}&access_type=offline&prompt=consent"

    def exchange_code(self, code: str) -> TokenGrant:
        self.codes.append(code)
        if self.exchange_error is not None:
            raise self.exchange_error
        return self.grant

    def revoke(self, token: str) -> None:
        self.revoked.append(token)
        if self.revoke_error is not None:
            raise self.revoke_error


class FakeListener:
    """AuthorizationListener recording notifications."""

    def __init__(self, authenticated: bool = True):
        self.authenticated = authenticated
        self.calls = 0

    def is_authenticated(self) -> bool:
        return self.authenticated

    def authorized(self) -> None:
        self.calls += 1


@pytest.fixture
def app_credentials():
    """Default application credentials."""
    return AppCredentials(
        client_id="client-123.apps.googleusercontent.com",
        client_secret="GOCSPX-default-secret",
        mailbox="admin@x.com",
    )


@pytest.fixture
def other_app_credentials():
    """Non-default application credentials (entered by an administrator)."""
    return AppCredentials(
        client_id="client-456.apps.googleusercontent.com",
        client_secret="GOCSPX-other-secret",
        mailbox="ops@x.com",
    )


@pytest.fixture
def mailbox_settings(app_credentials):
    """Mailbox settings with push notifications enabled."""
    return MailboxSettings(
        client_id=app_credentials.client_id,
        client_secret=app_credentials.client_secret,
        mailbox=app_credentials.mailbox,
        topic=TOPIC,
        alert=True,
    )


@pytest.fixture
def credential_store():
    return CredentialStore(InMemoryKeyValueStore())


@pytest.fixture
def context_store():
    return ContextStore(InMemoryKeyValueStore())


@pytest.fixture
def cursor_store():
    return CursorStore(InMemoryKeyValueStore())


@pytest.fixture
def fake_oauth():
    return FakeOAuthClient()


@pytest.fixture
def oauth_client_factory(fake_oauth):
    """OAuth client factory returning the shared fake, recording the app used."""
    return Mock(side_effect=lambda app: fake_oauth)


@pytest.fixture
def gmail_client():
    """Mock GmailClient."""
    client = MagicMock(spec=GmailClient)
    client.get_profile.return_value = {
        "emailAddress": "admin@x.com",
        "messagesTotal": 42,
        "historyId": "1000",
    }
    return client


@pytest.fixture
def client_factory(gmail_client):
    """GmailClient factory returning the shared mock."""
    return Mock(return_value=gmail_client)


@pytest.fixture
def background():
    return InvocationContext.background()


@pytest.fixture
def administrator():
    return InvocationContext.administrator()


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "contract: marks tests as contract tests (API mocking)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (components wired together)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )

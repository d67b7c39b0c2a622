"""Identity keys, application credentials and invocation context."""

import hashlib
from dataclasses import dataclass
from typing import Optional

# Contact (end-user) identity keys start with this marker; everything else is
# an admin/studio identity bound to a configured mailbox.
CONTACT_MARKER = "wsContact"

# Separates the mailbox (or account id) from the application fingerprint
IDENTITY_SEPARATOR = "#"

# Google-issued access tokens carry this prefix; refresh tokens never do.
ACCESS_TOKEN_PREFIX = "ya29"


def is_contact_identity(identity_key: str) -> bool:
    """Check whether the identity key belongs to a contact (end user)."""
    return identity_key.startswith(CONTACT_MARKER)


def mailbox_of(identity_key: str) -> str:
    """Return the mailbox (or account id) embedded in an identity key."""
    return identity_key.split(IDENTITY_SEPARATOR)[0]


def looks_like_access_token(value: Optional[str]) -> bool:
    """Check whether a stored credential is a bare access token."""
    return value is not None and value.startswith(ACCESS_TOKEN_PREFIX)


@dataclass(frozen=True)
class AppCredentials:
    """
    Provider application attributes used for one OAuth client.

    Attributes:
        client_id: OAuth client id from Google Cloud Console
        client_secret: OAuth client secret
        mailbox: Mailbox owner configured for this application
    """

    client_id: str
    client_secret: str
    mailbox: str

    def __post_init__(self) -> None:
        if not self.client_id:
            raise ValueError("Client ID cannot be empty")
        if not self.client_secret:
            raise ValueError("Client secret cannot be empty")
        if not self.mailbox:
            raise ValueError("Mailbox cannot be empty")

    @property
    def fingerprint(self) -> str:
        """Stable short digest of the client id and secret.

        Credentials are namespaced by application so that rotating the OAuth
        client never reuses tokens issued to another client.
        """
        digest = hashlib.sha256(f"{self.client_id}:{self.client_secret}".encode("utf-8"))
        return digest.hexdigest()[:16]

    def identity_key(self, account_id: Optional[str] = None) -> str:
        """
        Build the identity key for an account under this application.

        Args:
            account_id: Invoking account id (default: the configured mailbox)

        Returns:
            Identity key ``<account>#<fingerprint>``
        """
        account = account_id or self.mailbox
        return f"{account}{IDENTITY_SEPARATOR}{self.fingerprint}"

    def to_dict(self) -> dict:
        """Convert to the dictionary persisted in the context store."""
        return {
            "clientId": self.client_id,
            "clientSecret": self.client_secret,
            "email": self.mailbox,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AppCredentials":
        """Create AppCredentials from a persisted context record."""
        return cls(
            client_id=data["clientId"],
            client_secret=data["clientSecret"],
            mailbox=data["email"],
        )

    def __repr__(self) -> str:
        return f"AppCredentials(client_id={self.client_id!r}, mailbox={self.mailbox!r})"


@dataclass(frozen=True)
class InvocationContext:
    """
    Who is invoking the connector for the current request.

    Attributes:
        interactive: True when someone can follow a consent redirect
        invoke_as_user: True when calls use the invoking account's identity
            instead of the configured mailbox owner
        account_id: Account id of the invoking end user, if any
    """

    interactive: bool = False
    invoke_as_user: bool = False
    account_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.invoke_as_user and not self.account_id:
            raise ValueError("Failed to get account.")

    @classmethod
    def background(cls) -> "InvocationContext":
        """Scheduled or event-driven invocation with no interactive user."""
        return cls(interactive=False)

    @classmethod
    def administrator(cls) -> "InvocationContext":
        """Interactive setup by the administrator of the configured mailbox."""
        return cls(interactive=True)

    @classmethod
    def end_user(cls, account_id: str) -> "InvocationContext":
        """Interactive invocation on behalf of an end user (contact)."""
        return cls(interactive=True, invoke_as_user=True, account_id=account_id)

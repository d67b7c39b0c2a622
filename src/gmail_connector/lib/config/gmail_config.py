"""Gmail API and OAuth configuration."""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class GmailConfig:
    """Configuration for the Gmail API and the OAuth application."""

    # OAuth Scopes
    scopes: list[str] = field(default_factory=lambda: [
        "https://www.googleapis.com/auth/gmail.modify",
    ])

    # Default application (from environment)
    client_id: str = ""
    client_secret: str = ""
    mailbox: str = ""
    redirect_uri: str = "http://localhost:8080/gmail/callback"

    # Google endpoints
    auth_uri: str = "https://accounts.google.com/o/oauth2/auth"
    token_uri: str = "https://oauth2.googleapis.com/token"
    revoke_uri: str = "https://oauth2.googleapis.com/revoke"

    # Push notifications
    topic: Optional[str] = None
    alert: Optional[bool] = None

    # Every provider call carries this timeout
    request_timeout: float = 30.0  # seconds

    # Retry settings (429 / 5xx only)
    max_retries: int = 3
    initial_backoff: float = 1.0  # seconds
    max_backoff: float = 30.0  # seconds
    backoff_multiplier: float = 2.0

    @classmethod
    def from_env(cls) -> "GmailConfig":
        """Create config from environment variables."""
        alert = os.getenv("GMAIL_ALERT")
        return cls(
            client_id=os.getenv("GMAIL_CLIENT_ID", ""),
            client_secret=os.getenv("GMAIL_CLIENT_SECRET", ""),
            mailbox=os.getenv("GMAIL_MAILBOX", ""),
            redirect_uri=os.getenv(
                "GMAIL_REDIRECT_URI", "http://localhost:8080/gmail/callback"
            ),
            topic=os.getenv("GMAIL_TOPIC") or None,
            alert=None if alert is None else alert.lower() == "true",
            request_timeout=float(os.getenv("GMAIL_REQUEST_TIMEOUT", "30.0")),
        )

    @property
    def is_configured(self) -> bool:
        """Check that the default application credentials are present."""
        return bool(self.client_id and self.client_secret and self.mailbox)

    def validate(self) -> None:
        """Validate configuration."""
        if not self.scopes:
            raise ValueError("Gmail scopes cannot be empty")

        if self.request_timeout <= 0:
            raise ValueError("Request timeout must be positive")

        if self.max_retries < 1:
            raise ValueError("Max retries must be at least 1")

        if self.initial_backoff <= 0 or self.max_backoff <= 0:
            raise ValueError("Backoff delays must be positive")

        if self.backoff_multiplier <= 1.0:
            raise ValueError("Backoff multiplier must be greater than 1.0")

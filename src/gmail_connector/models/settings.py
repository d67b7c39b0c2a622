"""Mailbox settings supplied by the host when the connector is configured."""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from gmail_connector.lib.config import GmailConfig
from gmail_connector.models.identity import AppCredentials

TOPIC_ALERT_MISMATCH = (
    "Either both topic and alert must be provided, or both must be missing."
)


def _string_or_none(attributes: Mapping[str, Any], key: str) -> Optional[str]:
    value = attributes.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _bool_or_none(attributes: Mapping[str, Any], key: str) -> Optional[bool]:
    value = attributes.get(key)
    if value is None or isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class MailboxSettings:
    """
    Connection attributes for one configured mailbox.

    Attributes:
        client_id: OAuth client id
        client_secret: OAuth client secret
        mailbox: Mailbox owner address
        topic: Pub/Sub topic for push notifications (optional)
        alert: Whether new-mail alerts are enabled (optional)
    """

    CLIENT_ID = "clientId"
    CLIENT_SECRET = "clientSecret"
    EMAIL = "email"
    TOPIC = "topic"
    ALERT = "alert"

    client_id: str
    client_secret: str
    mailbox: str
    topic: Optional[str] = None
    alert: Optional[bool] = None

    @property
    def app_credentials(self) -> AppCredentials:
        """Application credentials for the OAuth client."""
        return AppCredentials(
            client_id=self.client_id,
            client_secret=self.client_secret,
            mailbox=self.mailbox,
        )

    @property
    def has_topic(self) -> bool:
        return bool(self.topic)

    def validate_alert(self) -> None:
        """
        Check that topic and alert are configured together.

        Raises:
            ValueError: If only one of topic/alert is set, or alert is disabled
                while a topic is configured
        """
        if self.topic is None:
            if self.alert:
                raise ValueError(TOPIC_ALERT_MISMATCH)
        elif not self.alert:
            raise ValueError(TOPIC_ALERT_MISMATCH)

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "MailboxSettings":
        """Create settings from the host's attribute map."""
        return cls(
            client_id=_string_or_none(attributes, cls.CLIENT_ID) or "",
            client_secret=_string_or_none(attributes, cls.CLIENT_SECRET) or "",
            mailbox=_string_or_none(attributes, cls.EMAIL) or "",
            topic=_string_or_none(attributes, cls.TOPIC),
            alert=_bool_or_none(attributes, cls.ALERT),
        )

    @classmethod
    def from_config(cls, config: GmailConfig) -> "MailboxSettings":
        """Create settings from the environment-backed Gmail config."""
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            mailbox=config.mailbox,
            topic=config.topic,
            alert=config.alert,
        )

"""Gmail API client wrapper for the calls the synchronization core makes."""

import socket
from typing import Optional

import google.auth.exceptions
import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gmail_connector.lib.config import GmailConfig, gmail_config
from gmail_connector.lib.logger import get_logger
from gmail_connector.lib.utils import retry_on_provider_errors, timed
from gmail_connector.models.identity import AppCredentials, looks_like_access_token
from gmail_connector.models.watch import WatchSubscription

logger = get_logger(__name__)

# Transport-level failures: the request never produced an HTTP response.
TRANSPORT_ERRORS = (
    socket.timeout,
    TimeoutError,
    ConnectionError,
    httplib2.HttpLib2Error,
    google.auth.exceptions.TransportError,
)


def build_credentials(
    app: AppCredentials,
    stored_credential: str,
    config: Optional[GmailConfig] = None,
) -> Credentials:
    """
    Rebuild google-auth credentials from a stored credential.

    A refresh token yields credentials that refresh transparently before the
    first request and whenever the access token expires. A bare access token
    (contact identities only) is used as-is until it expires.

    Args:
        app: Application the credential was issued to
        stored_credential: Refresh token or bare access token
        config: Gmail config (token URI and scopes)

    Returns:
        Credentials object
    """
    config = config or gmail_config

    if looks_like_access_token(stored_credential):
        return Credentials(token=stored_credential)

    return Credentials(
        token=None,  # Refreshed on first use
        refresh_token=stored_credential,
        token_uri=config.token_uri,
        client_id=app.client_id,
        client_secret=app.client_secret,
        scopes=config.scopes,
    )


def build_gmail_service(credentials: Credentials, timeout: float):
    """
    Build a Gmail API resource whose every request carries ``timeout``.

    Args:
        credentials: OAuth credentials
        timeout: Socket timeout in seconds

    Returns:
        googleapiclient Resource for gmail v1
    """
    http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=timeout))
    return build("gmail", "v1", http=http, cache_discovery=False)


def is_unauthorized(error: HttpError) -> bool:
    """Check whether an HttpError is a 401 Unauthorized."""
    return error.resp.status == 401


class GmailClient:
    """Gmail API client for profile, watch and history calls."""

    def __init__(self, service):
        """
        Initialize Gmail client.

        Args:
            service: Gmail API resource (see build_gmail_service)
        """
        self.service = service

    @classmethod
    def from_credentials(
        cls,
        credentials: Credentials,
        timeout: Optional[float] = None,
    ) -> "GmailClient":
        """Create a client over a freshly built Gmail service."""
        return cls(build_gmail_service(credentials, timeout or gmail_config.request_timeout))

    @retry_on_provider_errors()
    def get_profile(self, user_id: str = "me") -> dict:
        """
        Get a mailbox profile.

        Args:
            user_id: Mailbox address or "me"

        Returns:
            Profile dictionary with emailAddress and historyId

        Raises:
            HttpError: If API request fails (403/404 for a mailbox the
                credential does not own)
        """
        try:
            with timed("get_profile"):
                profile = self.service.users().getProfile(userId=user_id).execute()
                logger.debug(f"Retrieved profile for {profile.get('emailAddress')}")
                return profile

        except HttpError as error:
            logger.error(f"Failed to fetch profile for {user_id}: {error}")
            raise

    @retry_on_provider_errors()
    def watch(self, user_id: str, topic: str) -> dict:
        """
        Register (or renew) a push-notification watch on INBOX and SENT.

        Args:
            user_id: Mailbox address
            topic: Pub/Sub topic name (projects/<project>/topics/<topic>)

        Returns:
            Watch response ({"historyId": ..., "expiration": ...})
        """
        try:
            with timed("watch"):
                response = (
                    self.service.users()
                    .watch(userId=user_id, body=WatchSubscription.request_for(topic))
                    .execute()
                )
                logger.info(f"Registered Gmail watch for {user_id} on topic {topic}")
                return response

        except HttpError as error:
            logger.error(f"Failed to set up mail alert for {user_id}: {error}")
            raise

    def stop(self, user_id: str) -> None:
        """Stop push notifications for a mailbox."""
        try:
            self.service.users().stop(userId=user_id).execute()
            logger.info(f"Stopped Gmail watch for {user_id}")

        except HttpError as error:
            logger.error(f"Failed to stop Gmail watch for {user_id}: {error}")
            raise

    @retry_on_provider_errors()
    def _history_page(self, user_id: str, start_history_id: int, page_token: Optional[str]) -> dict:
        params = {
            "userId": user_id,
            "startHistoryId": str(start_history_id),
            "historyTypes": ["messageAdded"],
            "maxResults": 500,
        }
        if page_token:
            params["pageToken"] = page_token

        return self.service.users().history().list(**params).execute()

    def list_history(self, user_id: str, start_history_id: int) -> dict:
        """
        List mailbox changes since a history id, following every page.

        Args:
            user_id: Mailbox address
            start_history_id: Cursor from the previous fetch

        Returns:
            {"history": [...], "historyId": <latest history id>}

        Raises:
            HttpError: 404 when start_history_id is too old, or any other
                API failure
        """
        history_records: list[dict] = []
        page_token = None
        latest_history_id = start_history_id

        with timed("list_history"):
            while True:
                result = self._history_page(user_id, start_history_id, page_token)

                history_records.extend(result.get("history", []))
                latest_history_id = int(result.get("historyId", latest_history_id))

                page_token = result.get("nextPageToken")
                if not page_token:
                    break

        logger.debug(
            f"Fetched {len(history_records)} history records since {start_history_id}"
        )
        return {"history": history_records, "historyId": latest_history_id}

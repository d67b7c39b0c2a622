"""Google OAuth 2.0 web-server flow client."""

import os
from typing import Optional

import requests
from google_auth_oauthlib.flow import Flow
from oauthlib.oauth2.rfc6749.errors import OAuth2Error

from gmail_connector.auth.protocols import TokenGrant
from gmail_connector.errors import ProviderUnreachable, TokenExchangeError
from gmail_connector.lib.config import GmailConfig, gmail_config
from gmail_connector.lib.logger import get_logger
from gmail_connector.models.identity import AppCredentials

logger = get_logger(__name__)

# Google may grant a superset of the requested scopes (include_granted_scopes)
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

GENERIC_EXCHANGE_ERROR = "Error occurred during authorization. "


def describe_oauth_error(error: Optional[str], description: Optional[str]) -> str:
    """
    Build the user-facing description of a failed code exchange.

    Args:
        error: Provider ``error`` field (e.g. "invalid_grant")
        description: Provider ``error_description`` field

    Returns:
        "Error occurred during authorization. <error>. <description>"
    """
    message = GENERIC_EXCHANGE_ERROR
    if error:
        message += f"{error}. "
    if description:
        message += description
    return message


class GoogleOAuthClient:
    """OAuth client for one Google application.

    The consent URL always asks for ``access_type=offline`` and
    ``prompt=consent``: without forced consent a returning user is not
    re-prompted and Google issues no new refresh token.
    """

    def __init__(self, app: AppCredentials, config: Optional[GmailConfig] = None):
        """
        Initialize the client.

        Args:
            app: Application credentials (default or from a context record)
            config: Gmail config for endpoints, scopes and timeout
        """
        self.app = app
        self.config = config or gmail_config

    def _client_config(self) -> dict:
        return {
            "web": {
                "client_id": self.app.client_id,
                "client_secret": self.app.client_secret,
                "auth_uri": self.config.auth_uri,
                "token_uri": self.config.token_uri,
                "redirect_uris": [self.config.redirect_uri],
            }
        }

    def _flow(self, state: Optional[str] = None) -> Flow:
        # PKCE is off: the exchange happens in a different request (and
        # possibly process) than the one that built the URL.
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.config.scopes,
            redirect_uri=self.config.redirect_uri,
            state=state,
            autogenerate_code_verifier=False,
        )

    def authorization_url(self, state: str) -> str:
        """Build the consent URL for ``state``."""
        url, _ = self._flow(state=state).authorization_url(
            access_type="offline",
            prompt="consent",
        )
        logger.debug(f"Built authorization URL for client {self.app.client_id}")
        return url

    def exchange_code(self, code: str) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the redirect callback

        Returns:
            TokenGrant with the access token and optional refresh token

        Raises:
            TokenExchangeError: Provider rejected the exchange
            ProviderUnreachable: Network failure or timeout
        """
        flow = self._flow()

        try:
            token = flow.fetch_token(code=code, timeout=self.config.request_timeout)

        except OAuth2Error as error:
            logger.error(f"Token exchange rejected: {error.error}")
            raise TokenExchangeError(
                describe_oauth_error(error.error, error.description),
                error=error.error,
                description=error.description,
            ) from error

        except requests.RequestException as error:
            logger.error(f"Token exchange failed: {error}")
            raise ProviderUnreachable("Error occurred during authorization ") from error

        access_token = token.get("access_token")
        if not access_token:
            raise TokenExchangeError(GENERIC_EXCHANGE_ERROR)

        return TokenGrant(
            access_token=access_token,
            refresh_token=token.get("refresh_token"),
        )

    def revoke(self, token: str) -> None:
        """
        Revoke a token at Google.

        Raises:
            TokenExchangeError: Google refused the revocation
            ProviderUnreachable: Network failure or timeout
        """
        try:
            response = requests.post(
                self.config.revoke_uri,
                params={"token": token},
                headers={"content-type": "application/x-www-form-urlencoded"},
                timeout=self.config.request_timeout,
            )
        except requests.RequestException as error:
            raise ProviderUnreachable(f"Token revocation failed: {error}") from error

        if response.status_code != 200:
            raise TokenExchangeError(
                f"Token revocation failed with HTTP {response.status_code}"
            )

        logger.info(f"Revoked token for client {self.app.client_id}")

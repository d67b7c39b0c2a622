"""HTTP endpoints: OAuth redirect callback and Gmail push webhook."""

import json
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from gmail_connector.auth.protocols import EventHandler
from gmail_connector.errors import ProviderUnreachable, StateError, TokenExchangeError
from gmail_connector.lib.logger import get_logger
from gmail_connector.services.integration import MailboxIntegration

logger = get_logger(__name__)

GMAIL_UPDATE_EVENT = "Gmail Update"
NEW_EMAIL_UPDATE_FIELD = "New Email Update"

WEBHOOK_ACCEPTED = "Webhook received and processed"
WEBHOOK_INVALID = "Invalid request"
WEBHOOK_FAILED = "Error processing email"


class LoggingEventHandler:
    """Event handler used when no host event system is attached."""

    def handle_event(self, event_name: str, payload: dict) -> None:
        logger.info(f"Event '{event_name}' received with fields {sorted(payload)}")


def create_app(
    integration: MailboxIntegration,
    event_handler: Optional[EventHandler] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        integration: Mailbox integration handling OAuth callbacks
        event_handler: Host event system receiving webhook payloads

    Returns:
        FastAPI app exposing /gmail/callback and /gmail/webhook
    """
    event_handler = event_handler or LoggingEventHandler()
    app = FastAPI(title="Gmail Connector")

    @app.get("/gmail/callback", response_class=PlainTextResponse)
    def gmail_callback(code: Optional[str] = None, state: Optional[str] = None):
        # Runs in the threadpool: the code exchange blocks on the network
        try:
            outcome = integration.handle_callback(code, state)
        except StateError as error:
            logger.warning(f"Rejected OAuth callback: {error}")
            return PlainTextResponse(str(error), status_code=400)
        except TokenExchangeError as error:
            return PlainTextResponse(str(error), status_code=400)
        except ProviderUnreachable as error:
            logger.error(f"OAuth callback failed: {error}")
            return PlainTextResponse(str(error), status_code=502)

        logger.info(outcome)
        return PlainTextResponse(outcome)

    @app.post("/gmail/webhook", response_class=PlainTextResponse)
    async def gmail_webhook(request: Request):
        body = await request.body()
        try:
            payload = json.loads(body) if body else None
        except ValueError:
            payload = None

        if payload is None:
            logger.warning("Webhook called without a JSON body")
            return PlainTextResponse(WEBHOOK_INVALID, status_code=400)

        try:
            await run_in_threadpool(
                event_handler.handle_event,
                GMAIL_UPDATE_EVENT,
                {NEW_EMAIL_UPDATE_FIELD: payload},
            )
        except Exception as error:
            logger.error(f"Webhook processing failed: {error}")
            return PlainTextResponse(WEBHOOK_FAILED, status_code=500)

        return PlainTextResponse(WEBHOOK_ACCEPTED)

    return app

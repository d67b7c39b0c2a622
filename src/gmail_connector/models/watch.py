"""Watch subscription entity model."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

INBOX = "INBOX"
SENT = "SENT"
INCLUDE = "include"


class WatchState(Enum):
    """Change-watch states.

    State transitions:
    - UNWATCHED → WATCHING (watch registered, cursor baselined)
    - WATCHING → WATCHING (renewal re-baselines the cursor)
    - WATCHING → UNWATCHED (watch stopped, cursor cleared)
    """
    UNWATCHED = "unwatched"
    WATCHING = "watching"


@dataclass(frozen=True)
class WatchSubscription:
    """
    Provider-side push-notification subscription.

    Attributes:
        topic: Pub/Sub topic receiving notifications
        history_id: Baseline history id reported by the provider
        label_ids: Labels the watch is filtered on
        label_filter_behavior: How label_ids are applied
        expiration: When the provider will drop the watch (None if not reported)
    """

    topic: str
    history_id: int
    label_ids: tuple[str, ...] = field(default=(INBOX, SENT))
    label_filter_behavior: str = INCLUDE
    expiration: Optional[datetime] = None

    @classmethod
    def request_for(cls, topic: str) -> dict:
        """Build the watch request body for a topic with the default label filter."""
        return {
            "topicName": topic,
            "labelIds": [INBOX, SENT],
            "labelFilterBehavior": INCLUDE,
        }

    @classmethod
    def from_watch_response(cls, topic: str, response: dict) -> "WatchSubscription":
        """
        Create WatchSubscription from a Gmail API watch response.

        Args:
            topic: Topic the watch was registered on
            response: users.watch response ({"historyId": ..., "expiration": ...})

        Returns:
            WatchSubscription instance
        """
        expiration = None
        if response.get("expiration"):
            expiration = datetime.fromtimestamp(
                int(response["expiration"]) / 1000, tz=timezone.utc
            )

        return cls(
            topic=topic,
            history_id=int(response["historyId"]),
            expiration=expiration,
        )

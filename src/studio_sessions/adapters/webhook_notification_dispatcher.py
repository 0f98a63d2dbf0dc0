"""Webhook notification dispatcher adapter."""

import logging
from dataclasses import dataclass

import httpx

from studio_sessions.domain.notifications import NotificationIntent
from studio_sessions.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class HttpxNotificationDispatcher(NotificationDispatcher):
    """Posts notification intents to a webhook with bounded retries."""

    webhook_url: str
    http_client: httpx.AsyncClient
    max_attempts: int = 3

    @classmethod
    def create(
        cls, webhook_url: str, max_attempts: int = 3
    ) -> "HttpxNotificationDispatcher":
        """Create a dispatcher with a managed httpx session."""
        return cls(
            webhook_url=webhook_url,
            http_client=httpx.AsyncClient(),
            max_attempts=max_attempts,
        )

    async def send(self, intent: NotificationIntent) -> None:
        """Post the intent; give up after ``max_attempts`` failures."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.http_client.post(
                    self.webhook_url, json=intent.to_dict(), timeout=10
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.warning(
                    "Notification %s attempt %d/%d failed: %s",
                    intent.event,
                    attempt,
                    self.max_attempts,
                    exc,
                )
                continue
            return
        logger.error(
            "Dropping notification %s for session %s",
            intent.event,
            intent.session_id,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client session."""
        await self.http_client.aclose()

"""Notification dispatch interface."""

import logging
from dataclasses import dataclass
from typing import Protocol

from studio_sessions.domain.notifications import NotificationIntent

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery of notification intents."""

    async def send(self, intent: NotificationIntent) -> None:
        """Deliver an intent; failures are handled by the dispatcher."""


@dataclass
class LoggingNotificationDispatcher(NotificationDispatcher):
    """Dispatcher that only logs intents, used when no webhook is set."""

    async def send(self, intent: NotificationIntent) -> None:
        logger.info(
            "Notification %s for session %s (%d recipients)",
            intent.event,
            intent.session_id,
            len(intent.recipients),
        )


async def dispatch_all(
    dispatcher: NotificationDispatcher, intents: list[NotificationIntent]
) -> None:
    """Send intents one by one after the transition has been committed."""
    for intent in intents:
        await dispatcher.send(intent)

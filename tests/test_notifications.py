"""Tests for the logging notification dispatcher."""

import asyncio
import logging
from uuid import uuid4

from studio_sessions.domain.notifications import NotificationIntent
from studio_sessions.services.notifications import (
    LoggingNotificationDispatcher,
    dispatch_all,
)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def _intent() -> NotificationIntent:
    return NotificationIntent(
        event="session.confirmed",
        session_id=uuid4(),
        recipients=(uuid4(), uuid4()),
        payload={"to_status": "Confirmed"},
    )


def test_logging_dispatcher_logs_without_keeping_intents() -> None:
    logger = logging.getLogger("studio_sessions.services.notifications")
    handler = _ListHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    dispatcher = LoggingNotificationDispatcher()
    try:
        asyncio.run(dispatch_all(dispatcher, [_intent() for _ in range(5000)]))
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)

    assert len(handler.records) == 5000
    assert "(2 recipients)" in handler.records[0].getMessage()
    assert vars(dispatcher) == {}

"""Domain models for notification intents."""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class NotificationIntent:
    """A notification to dispatch after a transition has been committed."""

    event: str
    session_id: UUID
    recipients: tuple[UUID, ...] = ()
    payload: dict[str, object] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "event": self.event,
            "session_id": str(self.session_id),
            "recipients": [str(recipient) for recipient in self.recipients],
            "payload": self.payload,
        }

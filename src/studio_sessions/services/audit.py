"""Status history audit trail."""

from dataclasses import dataclass, replace
from datetime import datetime
from uuid import UUID

from studio_sessions.domain.errors import ValidationError
from studio_sessions.domain.sessions import (
    Session,
    SessionStatus,
    SessionStatusHistoryEntry,
)


@dataclass(frozen=True)
class AuditTrail:
    """Append-only transition history carried on the session aggregate.

    Entries are written together with the status change they describe, so
    the repository commits both in the same unit.
    """

    def append(  # noqa: PLR0913
        self,
        session: Session,
        from_status: SessionStatus | None,
        to_status: SessionStatus,
        actor_id: UUID,
        changed_at: datetime,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Session:
        """Return a snapshot of ``session`` with a new history entry."""
        if session.history and changed_at < session.history[-1].changed_at:
            raise ValidationError("History entries must be appended in time order")
        entry = SessionStatusHistoryEntry(
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            changed_at=changed_at,
            reason=reason,
            notes=notes,
        )
        return replace(session, history=(*session.history, entry))

    def timeline(self, session: Session) -> tuple[SessionStatusHistoryEntry, ...]:
        return session.history

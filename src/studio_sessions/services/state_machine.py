"""Session lifecycle state machine."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from studio_sessions.domain.actors import Actor
from studio_sessions.domain.errors import (
    ConflictError,
    GuardViolationError,
    InfrastructureError,
    InvalidTransitionError,
    SessionError,
    TerminalStateError,
)
from studio_sessions.domain.notifications import NotificationIntent
from studio_sessions.domain.sessions import (
    CancellationInitiator,
    Session,
    SessionFilters,
    SessionPage,
    SessionStatus,
)
from studio_sessions.services.audit import AuditTrail
from studio_sessions.services.deadlines import DeadlineCalculator
from studio_sessions.services.guards import GuardEvaluator, TransitionContext
from studio_sessions.services.ledger import PaymentLedger

logger = logging.getLogger(__name__)

S = SessionStatus

TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    S.REQUEST: frozenset({S.NEGOTIATION, S.PRE_SCHEDULED}),
    S.NEGOTIATION: frozenset({S.PRE_SCHEDULED}),
    S.PRE_SCHEDULED: frozenset({S.CONFIRMED}),
    S.CONFIRMED: frozenset({S.ASSIGNED}),
    S.ASSIGNED: frozenset({S.ATTENDED}),
    S.ATTENDED: frozenset({S.IN_EDITING}),
    S.IN_EDITING: frozenset({S.READY_FOR_DELIVERY}),
    S.READY_FOR_DELIVERY: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.CANCELED: frozenset(),
}


def allowed_targets(status: SessionStatus) -> frozenset[SessionStatus]:
    """Table successors plus the global cancel edge for open sessions."""
    targets = TRANSITIONS[status]
    if targets:
        return targets | {S.CANCELED}
    return targets


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class SessionRepository(Protocol):
    """Transactional store for session aggregates."""

    def create(self, session: Session) -> Session:
        """Persist a new session and return it."""

    def load(self, session_id: UUID) -> Session:
        """Return a session by id or raise SessionNotFoundError."""

    def save(self, session: Session, expected_version: int) -> Session:
        """Atomically persist the aggregate if the stored version matches.

        Returns the stored snapshot with its version bumped; raises
        ConflictError when ``expected_version`` is stale.
        """

    def list_sessions(self, filters: SessionFilters) -> SessionPage:
        """Return the page of sessions matching ``filters``."""


@dataclass(frozen=True)
class TransitionResult:
    """A committed transition and the notifications it emits."""

    session: Session
    notifications: list[NotificationIntent]


@dataclass
class StateMachine:
    """Single choke point for every session status change."""

    repository: SessionRepository
    guard_evaluator: GuardEvaluator
    deadlines: DeadlineCalculator
    ledger: PaymentLedger
    audit: AuditTrail = field(default_factory=AuditTrail)
    clock: Callable[[], datetime] = utcnow

    def attempt_transition(  # noqa: PLR0913
        self,
        session: Session,
        to_status: SessionStatus,
        actor: Actor,
        reason: str | None = None,
        notes: str | None = None,
        initiated_by: CancellationInitiator | None = None,
    ) -> TransitionResult:
        """Validate, guard, compute side effects and commit a transition."""
        from_status = session.status
        if session.is_terminal:
            raise TerminalStateError(
                f"Session {session.id} is {from_status.value} and cannot change"
            )
        if to_status not in allowed_targets(from_status):
            raise InvalidTransitionError(
                f"Cannot move session from {from_status.value} to {to_status.value}"
            )

        now = self.clock()
        context = TransitionContext(
            session=session,
            to_status=to_status,
            actor=actor,
            now=now,
            reason=reason,
        )
        violations = self.guard_evaluator.evaluate(context)
        if violations:
            logger.info(
                "Rejected %s -> %s on session %s: %s",
                from_status.value,
                to_status.value,
                session.id,
                [violation.code for violation in violations],
            )
            raise GuardViolationError(violations)

        try:
            updated = self._apply(session, context, notes, initiated_by)
            saved = self.repository.save(updated, expected_version=session.version)
        except ConflictError:
            logger.warning(
                "Concurrent modification of session %s at version %d",
                session.id,
                session.version,
            )
            raise
        except SessionError:
            raise
        except Exception as exc:
            logger.exception("Failed to commit transition on session %s", session.id)
            raise InfrastructureError(
                f"Transition on session {session.id} was not committed"
            ) from exc

        logger.info(
            "Session %s moved %s -> %s by %s",
            session.id,
            from_status.value,
            to_status.value,
            actor.id,
        )
        return TransitionResult(
            session=saved,
            notifications=_notifications(session, saved, actor),
        )

    def _apply(
        self,
        session: Session,
        context: TransitionContext,
        notes: str | None,
        initiated_by: CancellationInitiator | None,
    ) -> Session:
        to_status = context.to_status
        actor = context.actor
        now = context.now
        changes = self.deadlines.compute(session, to_status, now)

        if to_status is S.ATTENDED:
            changes["photographers"] = tuple(
                replace(assignment, attended=True, attended_at=now)
                if assignment.photographer_id == actor.id
                else assignment
                for assignment in session.photographers
            )
        elif to_status is S.IN_EDITING:
            changes["assigned_editor_id"] = actor.id
            changes["editing_started_at"] = now
        elif to_status is S.READY_FOR_DELIVERY:
            changes["editing_completed_at"] = now
        elif to_status is S.COMPLETED:
            changes["delivered_at"] = now
        elif to_status is S.CANCELED:
            canceled = replace(
                session,
                cancellation_reason=(context.reason or "").strip(),
                cancellation_initiated_by=initiated_by or CancellationInitiator.CLIENT,
                canceled_at=now,
                canceled_by=actor.id,
            )
            refund = self.ledger.compute_refund(canceled, now)
            payments = canceled.payments
            if refund > 0:
                refund_payment = self.ledger.refund_payment(
                    canceled, refund, actor.id, now
                )
                payments = (*payments, refund_payment)
            session = replace(
                canceled,
                refund_amount=refund,
                payments=payments,
                photographers=(),
            )

        updated = replace(session, status=to_status, **changes)
        return self.audit.append(
            updated,
            from_status=context.session.status,
            to_status=to_status,
            actor_id=actor.id,
            changed_at=now,
            reason=context.reason,
            notes=notes,
        )


def _notifications(
    before: Session, after: Session, actor: Actor
) -> list[NotificationIntent]:
    recipients: list[UUID] = []
    candidates = [
        after.client_id,
        *before.photographer_ids(),
        *after.photographer_ids(),
        after.assigned_editor_id,
    ]
    for candidate in candidates:
        if candidate is not None and candidate != actor.id and (
            candidate not in recipients
        ):
            recipients.append(candidate)
    payload: dict[str, object] = {
        "from_status": before.status.value,
        "to_status": after.status.value,
        "actor_id": str(actor.id),
        "version": after.version,
    }
    if after.status is S.CANCELED:
        payload["cancellation_reason"] = after.cancellation_reason
        payload["refund_amount"] = str(after.refund_amount or 0)
    return [
        NotificationIntent(
            event=f"session.{after.status.slug}",
            session_id=after.id,
            recipients=tuple(recipients),
            payload=payload,
        )
    ]

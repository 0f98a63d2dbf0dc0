"""Application service for session operations."""

import logging
from dataclasses import dataclass, replace
from datetime import date, time
from decimal import Decimal
from uuid import UUID, uuid4

from studio_sessions.domain.actors import Actor
from studio_sessions.domain.errors import (
    ConflictError,
    GuardViolationError,
    InfrastructureError,
    SessionError,
    TerminalStateError,
    ValidationError,
    Violation,
)
from studio_sessions.domain.sessions import (
    CancellationInitiator,
    LineType,
    PaymentProjection,
    PaymentType,
    PhotographerRole,
    Session,
    SessionFilters,
    SessionLineItem,
    SessionPage,
    SessionPayment,
    SessionPhotographerAssignment,
    SessionStatus,
    SessionStatusHistoryEntry,
    SessionType,
    project_payments,
)
from studio_sessions.services import permissions as perms
from studio_sessions.services.deadlines import compute_deposit
from studio_sessions.services.permissions import PermissionChecker
from studio_sessions.services.state_machine import (
    SessionRepository,
    StateMachine,
    TransitionResult,
)

logger = logging.getLogger(__name__)

_QUOTE_STATUSES = {
    SessionStatus.REQUEST,
    SessionStatus.NEGOTIATION,
    SessionStatus.PRE_SCHEDULED,
}
_RESOURCE_STATUSES = {*_QUOTE_STATUSES, SessionStatus.CONFIRMED}
_UPDATABLE_FIELDS = frozenset(
    {
        "session_date",
        "session_time",
        "session_type",
        "location",
        "client_requirements",
        "internal_notes",
    }
)
_REQUIRED_FIELDS = frozenset({"session_date", "session_type"})
_MAX_PAGE_SIZE = 100


@dataclass
class SessionService:
    """Loads, mutates and saves session aggregates."""

    repository: SessionRepository
    state_machine: StateMachine
    permission_checker: PermissionChecker
    default_deposit_percentage: Decimal = Decimal("50")

    def create_session(  # noqa: PLR0913
        self,
        client_id: UUID,
        session_type: SessionType,
        session_date: date,
        actor: Actor,
        session_time: time | None = None,
        deposit_percentage: Decimal | None = None,
        room_id: UUID | None = None,
    ) -> Session:
        """Create a session in Request with its first history entry."""
        self._require(actor, perms.EDIT_PRE_ASSIGNED)
        percentage = (
            self.default_deposit_percentage
            if deposit_percentage is None
            else Decimal(deposit_percentage)
        )
        if not Decimal("0") <= percentage <= Decimal("100"):
            raise ValidationError("Deposit percentage must be between 0 and 100")
        now = self.state_machine.clock()
        session = Session(
            id=uuid4(),
            client_id=client_id,
            session_type=session_type,
            session_date=session_date,
            session_time=session_time,
            status=SessionStatus.REQUEST,
            created_at=now,
            deposit_percentage=percentage,
            room_id=room_id,
        )
        session = self.state_machine.audit.append(
            session,
            from_status=None,
            to_status=SessionStatus.REQUEST,
            actor_id=actor.id,
            changed_at=now,
            reason="Session requested",
        )
        try:
            created = self.repository.create(session)
        except SessionError:
            raise
        except Exception as exc:
            logger.exception("Failed to create session")
            raise InfrastructureError("Session was not created") from exc
        logger.info("Created session %s for client %s", created.id, client_id)
        return created

    def get_session(self, session_id: UUID) -> Session:
        return self.repository.load(session_id)

    def update_session(
        self,
        session_id: UUID,
        actor: Actor,
        expected_version: int | None = None,
        **changes: object,
    ) -> Session:
        """Edit session details while the quote is still editable.

        Derived deadlines are left alone; ``changes_deadline`` in particular
        keeps the value fixed at confirmation.
        """
        self._require(actor, perms.EDIT_PRE_ASSIGNED)
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if not changes:
            raise ValidationError("Nothing to update")
        cleared = {name for name in _REQUIRED_FIELDS if changes.get(name, True) is None}
        if cleared:
            raise ValidationError(f"Cannot clear fields: {', '.join(sorted(cleared))}")
        session = self._load(session_id, expected_version)
        self._require_editable(session)
        new_date = changes.get("session_date")
        if new_date is not None:
            today = self.state_machine.deadlines.local_today(self.state_machine.clock())
            if new_date <= today:
                raise ValidationError("Session date must be in the future")
        updated = replace(session, **changes)
        saved = self._save(session, updated)
        logger.info("Updated session %s fields %s", session_id, sorted(changes))
        return saved

    def list_sessions(self, filters: SessionFilters) -> SessionPage:
        _validate_filters(filters)
        return self.repository.list_sessions(filters)

    def list_my_assignments(
        self, actor: Actor, filters: SessionFilters | None = None
    ) -> SessionPage:
        """Sessions the actor is assigned to photograph."""
        return self.list_sessions(
            replace(filters or SessionFilters(), photographer_id=actor.id)
        )

    def list_my_editing(
        self, actor: Actor, filters: SessionFilters | None = None
    ) -> SessionPage:
        """Sessions the actor is editing."""
        return self.list_sessions(
            replace(filters or SessionFilters(), editor_id=actor.id)
        )

    def transition(  # noqa: PLR0913
        self,
        session_id: UUID,
        to_status: SessionStatus,
        actor: Actor,
        reason: str | None = None,
        notes: str | None = None,
        initiated_by: CancellationInitiator | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Load the session and hand it to the state machine."""
        session = self._load(session_id, expected_version)
        return self.state_machine.attempt_transition(
            session,
            to_status,
            actor,
            reason=reason,
            notes=notes,
            initiated_by=initiated_by,
        )

    def record_payment(  # noqa: PLR0913
        self,
        session_id: UUID,
        actor: Actor,
        payment_type: PaymentType,
        amount: Decimal,
        method: str,
        payment_date: date,
        reference: str | None = None,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> Session:
        """Append a payment through the ledger and save it."""
        self._require(actor, perms.RECORD_PAYMENT)
        session = self._load(session_id, expected_version)
        updated = self.state_machine.ledger.record_payment(
            session,
            payment_type=payment_type,
            amount=amount,
            method=method,
            payment_date=payment_date,
            recorded_by=actor.id,
            now=self.state_machine.clock(),
            reference=reference,
            notes=notes,
        )
        return self._save(session, updated)

    def payments(
        self, session_id: UUID
    ) -> tuple[tuple[SessionPayment, ...], PaymentProjection]:
        session = self.repository.load(session_id)
        return session.payments, project_payments(session.payments)

    def history(self, session_id: UUID) -> tuple[SessionStatusHistoryEntry, ...]:
        session = self.repository.load(session_id)
        return self.state_machine.audit.timeline(session)

    def add_line_item(  # noqa: PLR0913
        self,
        session_id: UUID,
        actor: Actor,
        line_type: LineType,
        item_code: str,
        item_name: str,
        quantity: int,
        unit_price: Decimal,
        reference_id: UUID | None = None,
        estimated_editing_days: int | None = None,
    ) -> Session:
        """Add a priced line while the quote is still editable."""
        self._require(actor, perms.EDIT_PRE_ASSIGNED)
        if quantity <= 0:
            raise ValidationError("Quantity must be positive")
        if Decimal(unit_price) < 0:
            raise ValidationError("Unit price cannot be negative")
        if estimated_editing_days is not None and estimated_editing_days < 0:
            raise ValidationError("Editing days cannot be negative")
        session = self._load(session_id)
        self._require_editable(session)
        item = SessionLineItem(
            id=uuid4(),
            line_type=line_type,
            item_code=item_code,
            item_name=item_name,
            quantity=quantity,
            unit_price=Decimal(unit_price),
            reference_id=reference_id,
            estimated_editing_days=estimated_editing_days,
        )
        updated = _reprice(replace(session, line_items=(*session.line_items, item)))
        return self._save(session, updated)

    def remove_line_item(
        self, session_id: UUID, actor: Actor, line_item_id: UUID
    ) -> Session:
        self._require(actor, perms.EDIT_PRE_ASSIGNED)
        session = self._load(session_id)
        self._require_editable(session)
        remaining = tuple(item for item in session.line_items if item.id != line_item_id)
        if len(remaining) == len(session.line_items):
            raise ValidationError(f"Line item {line_item_id} is not on this session")
        updated = _reprice(replace(session, line_items=remaining))
        return self._save(session, updated)

    def assign_photographer(
        self,
        session_id: UUID,
        actor: Actor,
        photographer_id: UUID,
        role: PhotographerRole | None = None,
    ) -> Session:
        self._require(actor, perms.ASSIGN_RESOURCES)
        session = self._load(session_id)
        self._require_status(session, _RESOURCE_STATUSES)
        if photographer_id in session.photographer_ids():
            raise ValidationError(f"Photographer {photographer_id} already assigned")
        assignment = SessionPhotographerAssignment(
            photographer_id=photographer_id,
            role=role,
            assigned_at=self.state_machine.clock(),
            assigned_by=actor.id,
        )
        updated = replace(session, photographers=(*session.photographers, assignment))
        return self._save(session, updated)

    def release_photographer(
        self, session_id: UUID, actor: Actor, photographer_id: UUID
    ) -> Session:
        self._require(actor, perms.ASSIGN_RESOURCES)
        session = self._load(session_id)
        self._require_status(session, _RESOURCE_STATUSES)
        if photographer_id not in session.photographer_ids():
            raise ValidationError(f"Photographer {photographer_id} is not assigned")
        updated = replace(
            session,
            photographers=tuple(
                assignment
                for assignment in session.photographers
                if assignment.photographer_id != photographer_id
            ),
        )
        return self._save(session, updated)

    def assign_room(
        self, session_id: UUID, actor: Actor, room_id: UUID | None
    ) -> Session:
        self._require(actor, perms.ASSIGN_RESOURCES)
        session = self._load(session_id)
        self._require_status(session, _RESOURCE_STATUSES)
        return self._save(session, replace(session, room_id=room_id))

    def _load(self, session_id: UUID, expected_version: int | None = None) -> Session:
        session = self.repository.load(session_id)
        if expected_version is not None and expected_version != session.version:
            raise ConflictError(
                f"Session {session_id} is at version {session.version}, "
                f"not {expected_version}"
            )
        return session

    def _save(self, original: Session, updated: Session) -> Session:
        try:
            return self.repository.save(updated, expected_version=original.version)
        except SessionError:
            raise
        except Exception as exc:
            logger.exception("Failed to save session %s", original.id)
            raise InfrastructureError(f"Session {original.id} was not saved") from exc

    def _require(self, actor: Actor, permission_code: str) -> None:
        if not self.permission_checker.has(actor, permission_code):
            raise GuardViolationError(
                [
                    Violation(
                        code=f"permission:{permission_code}",
                        message=f"Actor lacks permission {permission_code}",
                    )
                ]
            )

    def _require_status(
        self, session: Session, allowed: set[SessionStatus]
    ) -> None:
        if session.is_terminal:
            raise TerminalStateError(f"Session {session.id} is closed")
        if session.status not in allowed:
            raise GuardViolationError(
                [
                    Violation(
                        code="session_locked",
                        message=f"Session cannot be changed in {session.status.value}",
                    )
                ]
            )

    def _require_editable(self, session: Session) -> None:
        if session.status is SessionStatus.CONFIRMED:
            deadline = session.changes_deadline
            if deadline is not None and self.state_machine.clock() <= deadline:
                return
        self._require_status(session, _QUOTE_STATUSES)


def _reprice(session: Session) -> Session:
    """Keep the deposit in step with the total once it has been quoted."""
    if session.deposit_amount is None:
        return session
    return replace(
        session,
        deposit_amount=compute_deposit(session.total, session.deposit_percentage),
    )


def _validate_filters(filters: SessionFilters) -> None:
    if not 1 <= filters.limit <= _MAX_PAGE_SIZE:
        raise ValidationError(f"Limit must be between 1 and {_MAX_PAGE_SIZE}")
    if filters.offset < 0:
        raise ValidationError("Offset cannot be negative")
    if (
        filters.start_date is not None
        and filters.end_date is not None
        and filters.start_date > filters.end_date
    ):
        raise ValidationError("start_date must not be after end_date")

"""Transition guards and their evaluator."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from studio_sessions.domain.actors import EDITOR_ROLE, Actor
from studio_sessions.domain.errors import Violation
from studio_sessions.domain.sessions import (
    TERMINAL_STATUSES,
    PaymentType,
    Session,
    SessionStatus,
    SessionType,
)
from studio_sessions.services import permissions as perms
from studio_sessions.services.deadlines import DeadlineCalculator
from studio_sessions.services.permissions import PermissionChecker

S = SessionStatus

TransitionKey = tuple[SessionStatus | None, SessionStatus]

# ``None`` as the source matches every non-terminal status.
ANY_STATUS: None = None


@dataclass(frozen=True)
class TransitionContext:
    """Everything a guard may look at; already loaded, no I/O."""

    session: Session
    to_status: SessionStatus
    actor: Actor
    now: datetime
    reason: str | None = None


@dataclass(frozen=True)
class Guard:
    """A named precondition for a transition."""

    code: str
    message: str
    predicate: Callable[[TransitionContext], bool]

    def check(self, context: TransitionContext) -> Violation | None:
        if self.predicate(context):
            return None
        return Violation(code=self.code, message=self.message)


@dataclass
class GuardRegistry:
    """Ordered guards keyed by ``(from_status, to_status)``."""

    _guards: dict[TransitionKey, list[Guard]] = field(default_factory=dict)

    def register(
        self, from_status: SessionStatus | None, to_status: SessionStatus, *guards: Guard
    ) -> None:
        self._guards.setdefault((from_status, to_status), []).extend(guards)

    def guards_for(
        self, from_status: SessionStatus, to_status: SessionStatus
    ) -> list[Guard]:
        """Return the guards for an edge, wildcard registrations included."""
        found = [
            *self._guards.get((ANY_STATUS, to_status), []),
            *self._guards.get((from_status, to_status), []),
        ]
        seen: set[str] = set()
        unique = []
        for guard in found:
            if guard.code not in seen:
                seen.add(guard.code)
                unique.append(guard)
        return unique


@dataclass
class GuardEvaluator:
    """Runs every guard of a transition and reports all failures."""

    registry: GuardRegistry

    def evaluate(self, context: TransitionContext) -> list[Violation]:
        guards = self.registry.guards_for(context.session.status, context.to_status)
        violations = []
        for guard in guards:
            violation = guard.check(context)
            if violation is not None:
                violations.append(violation)
        return violations


def permission_guard(checker: PermissionChecker, permission_code: str) -> Guard:
    return Guard(
        code=f"permission:{permission_code}",
        message=f"Actor lacks permission {permission_code}",
        predicate=lambda ctx: checker.has(ctx.actor, permission_code),
    )


def _deposit_received(ctx: TransitionContext) -> bool:
    deposit = ctx.session.deposit_amount
    if deposit is None:
        return False
    return any(
        payment.payment_type is PaymentType.DEPOSIT and payment.amount >= deposit
        for payment in ctx.session.payments
    )


def _payment_deadline_open(ctx: TransitionContext) -> bool:
    deadline = ctx.session.payment_deadline
    return deadline is not None and ctx.now <= deadline


def _changes_deadline_passed(ctx: TransitionContext) -> bool:
    deadline = ctx.session.changes_deadline
    return deadline is not None and ctx.now > deadline


def _room_set_for_studio(ctx: TransitionContext) -> bool:
    return ctx.session.session_type is not SessionType.STUDIO or (
        ctx.session.room_id is not None
    )


def build_guard_registry(
    checker: PermissionChecker,
    deadlines: DeadlineCalculator,
    require_full_payment_for_completion: bool = True,
) -> GuardRegistry:
    """Register the guard matrix for every edge of the lifecycle."""
    registry = GuardRegistry()

    def today(ctx: TransitionContext) -> date:
        return deadlines.local_today(ctx.now)

    request_guards = (
        Guard(
            "client_required",
            "Session has no client",
            lambda ctx: ctx.session.client_id is not None,
        ),
        Guard(
            "session_date_in_future",
            "Session date must be in the future",
            lambda ctx: ctx.session.session_date > today(ctx),
        ),
        Guard(
            "session_type_required",
            "Session type is not set",
            lambda ctx: ctx.session.session_type is not None,
        ),
        permission_guard(checker, perms.EDIT_PRE_ASSIGNED),
    )
    quote_guards = (
        Guard(
            "line_items_required",
            "Session has no line items",
            lambda ctx: len(ctx.session.line_items) > 0,
        ),
        Guard(
            "total_positive",
            "Session total must be greater than zero",
            lambda ctx: ctx.session.total > 0,
        ),
        permission_guard(checker, perms.EDIT_PRE_ASSIGNED),
    )
    registry.register(S.REQUEST, S.NEGOTIATION, *request_guards)
    registry.register(S.NEGOTIATION, S.PRE_SCHEDULED, *quote_guards)
    registry.register(S.REQUEST, S.PRE_SCHEDULED, *request_guards, *quote_guards)

    registry.register(
        S.PRE_SCHEDULED,
        S.CONFIRMED,
        Guard(
            "deposit_required",
            "No deposit payment covering the deposit amount",
            _deposit_received,
        ),
        Guard(
            "payment_deadline_passed",
            "Payment deadline has passed",
            _payment_deadline_open,
        ),
        permission_guard(checker, perms.EDIT_PRE_ASSIGNED),
    )
    registry.register(
        S.CONFIRMED,
        S.ASSIGNED,
        Guard(
            "changes_deadline_not_passed",
            "changes_deadline not yet passed",
            _changes_deadline_passed,
        ),
        Guard(
            "photographer_required",
            "No photographer assigned",
            lambda ctx: len(ctx.session.photographers) > 0,
        ),
        Guard(
            "room_required",
            "Studio sessions need a room",
            _room_set_for_studio,
        ),
        permission_guard(checker, perms.ASSIGN_RESOURCES),
    )
    registry.register(
        S.ASSIGNED,
        S.ATTENDED,
        Guard(
            "session_date_not_reached",
            "Session date has not been reached",
            lambda ctx: today(ctx) >= ctx.session.session_date,
        ),
        Guard(
            "not_assigned_photographer",
            "Actor is not an assigned photographer",
            lambda ctx: ctx.actor.id in ctx.session.photographer_ids()
            or checker.has(ctx.actor, perms.EDIT_ALL),
        ),
        permission_guard(checker, perms.MARK_ATTENDED),
    )
    registry.register(
        S.ATTENDED,
        S.IN_EDITING,
        Guard(
            "editor_already_assigned",
            "An editor is already assigned",
            lambda ctx: ctx.session.assigned_editor_id is None,
        ),
        Guard(
            "editor_role_required",
            "Actor does not hold the Editor role",
            lambda ctx: ctx.actor.has_role(EDITOR_ROLE),
        ),
        permission_guard(checker, perms.VIEW_OWN),
    )
    registry.register(
        S.IN_EDITING,
        S.READY_FOR_DELIVERY,
        Guard(
            "not_assigned_editor",
            "Only the assigned editor can mark the session ready",
            lambda ctx: ctx.session.assigned_editor_id == ctx.actor.id,
        ),
        permission_guard(checker, perms.MARK_READY),
    )
    if require_full_payment_for_completion:
        registry.register(
            S.READY_FOR_DELIVERY,
            S.COMPLETED,
            Guard(
                "balance_outstanding",
                "Session is not fully paid",
                lambda ctx: ctx.session.paid_amount >= ctx.session.total,
            ),
        )
    registry.register(
        S.READY_FOR_DELIVERY,
        S.COMPLETED,
        permission_guard(checker, perms.EDIT_ALL),
    )
    registry.register(
        ANY_STATUS,
        S.CANCELED,
        Guard(
            "session_closed",
            "Session is already closed",
            lambda ctx: ctx.session.status not in TERMINAL_STATUSES,
        ),
        Guard(
            "cancellation_reason_required",
            "A cancellation reason is required",
            lambda ctx: bool(ctx.reason and ctx.reason.strip()),
        ),
        permission_guard(checker, perms.CANCEL),
    )
    return registry

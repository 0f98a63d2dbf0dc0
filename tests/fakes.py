"""In-memory collaborators and builders shared by the tests."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from studio_sessions.domain.actors import EDITOR_ROLE, Actor
from studio_sessions.domain.errors import ConflictError, SessionNotFoundError
from studio_sessions.domain.notifications import NotificationIntent
from studio_sessions.domain.sessions import (
    LineType,
    PaymentType,
    Session,
    SessionFilters,
    SessionLineItem,
    SessionPage,
    SessionPayment,
    SessionPhotographerAssignment,
    SessionStatus,
    SessionType,
)
from studio_sessions.services import permissions as perms
from studio_sessions.services.notifications import NotificationDispatcher
from studio_sessions.services.state_machine import SessionRepository

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=UTC)
SESSION_DATE = date(2026, 3, 20)

ALL_PERMISSIONS = frozenset(
    {
        perms.EDIT_PRE_ASSIGNED,
        perms.EDIT_ALL,
        perms.ASSIGN_RESOURCES,
        perms.MARK_ATTENDED,
        perms.VIEW_OWN,
        perms.MARK_READY,
        perms.CANCEL,
        perms.RECORD_PAYMENT,
    }
)


@dataclass
class FakeClock:
    """Clock returning a settable instant."""

    now: datetime = NOW

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository with version checks."""

    sessions: dict[UUID, Session] = field(default_factory=dict)
    fail_on_save: bool = False
    saves: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def add(self, session: Session) -> Session:
        self.sessions[session.id] = session
        return session

    def create(self, session: Session) -> Session:
        return self.save(session, expected_version=session.version)

    def load(self, session_id: UUID) -> Session:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    def save(self, session: Session, expected_version: int) -> Session:
        with self._lock:
            stored = self.sessions.get(session.id)
            current = stored.version if stored else 0
            if current != expected_version:
                raise ConflictError(f"Session {session.id} is at version {current}")
            if self.fail_on_save:
                raise RuntimeError("database unavailable")
            saved = replace(session, version=expected_version + 1)
            self.sessions[session.id] = saved
            self.saves += 1
            return saved

    def list_sessions(self, filters: SessionFilters) -> SessionPage:
        matches = sorted(
            (s for s in self.sessions.values() if _matches(s, filters)),
            key=lambda s: (s.session_date, s.created_at),
        )
        page = matches[filters.offset : filters.offset + filters.limit]
        return SessionPage(
            items=tuple(page),
            total=len(matches),
            limit=filters.limit,
            offset=filters.offset,
        )


def _matches(session: Session, filters: SessionFilters) -> bool:
    if filters.status is not None and session.status is not filters.status:
        return False
    if filters.client_id is not None and session.client_id != filters.client_id:
        return False
    if (
        filters.photographer_id is not None
        and filters.photographer_id not in session.photographer_ids()
    ):
        return False
    if (
        filters.editor_id is not None
        and session.assigned_editor_id != filters.editor_id
    ):
        return False
    if filters.start_date is not None and session.session_date < filters.start_date:
        return False
    return filters.end_date is None or session.session_date <= filters.end_date


@dataclass
class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that records intents."""

    sent: list[NotificationIntent] = field(default_factory=list)

    async def send(self, intent: NotificationIntent) -> None:
        self.sent.append(intent)


def manager(**kwargs: object) -> Actor:
    return Actor(id=uuid4(), permissions=ALL_PERMISSIONS, **kwargs)


def photographer(actor_id: UUID | None = None) -> Actor:
    return Actor(
        id=actor_id or uuid4(),
        permissions=frozenset({perms.MARK_ATTENDED}),
        roles=frozenset({"Photographer"}),
    )


def editor() -> Actor:
    return Actor(
        id=uuid4(),
        permissions=frozenset({perms.VIEW_OWN, perms.MARK_READY}),
        roles=frozenset({EDITOR_ROLE}),
    )


def line_item(
    unit_price: str = "500",
    quantity: int = 1,
    editing_days: int | None = None,
) -> SessionLineItem:
    return SessionLineItem(
        id=uuid4(),
        line_type=LineType.PACKAGE,
        item_code="PKG-01",
        item_name="Portrait package",
        quantity=quantity,
        unit_price=Decimal(unit_price),
        estimated_editing_days=editing_days,
    )


def payment(
    payment_type: PaymentType = PaymentType.DEPOSIT, amount: str = "300"
) -> SessionPayment:
    return SessionPayment(
        id=uuid4(),
        payment_type=payment_type,
        amount=Decimal(amount),
        method="Card",
        payment_date=NOW.date(),
        recorded_at=NOW - timedelta(hours=1),
        recorded_by=uuid4(),
    )


def assignment(photographer_id: UUID | None = None) -> SessionPhotographerAssignment:
    return SessionPhotographerAssignment(
        photographer_id=photographer_id or uuid4(),
        role=None,
        assigned_at=NOW - timedelta(days=1),
        assigned_by=uuid4(),
    )


def make_session(
    status: SessionStatus = SessionStatus.REQUEST, **overrides: object
) -> Session:
    values: dict[str, object] = {
        "id": uuid4(),
        "client_id": uuid4(),
        "session_type": SessionType.EXTERNAL,
        "session_date": SESSION_DATE,
        "status": status,
        "created_at": NOW - timedelta(days=1),
    }
    values.update(overrides)
    return Session(**values)  # type: ignore[arg-type]

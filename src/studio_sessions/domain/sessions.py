"""Domain models for studio sessions."""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import UUID

CENTS = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    """Round a money amount to cents, half up."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class SessionStatus(str, Enum):
    """Lifecycle status of a session."""

    REQUEST = "Request"
    NEGOTIATION = "Negotiation"
    PRE_SCHEDULED = "Pre-scheduled"
    CONFIRMED = "Confirmed"
    ASSIGNED = "Assigned"
    ATTENDED = "Attended"
    IN_EDITING = "In Editing"
    READY_FOR_DELIVERY = "Ready for Delivery"
    COMPLETED = "Completed"
    CANCELED = "Canceled"

    @property
    def slug(self) -> str:
        return self.value.lower().replace(" ", "_").replace("-", "_")


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.CANCELED})


class SessionType(str, Enum):
    STUDIO = "Studio"
    EXTERNAL = "External"
    BOTH = "Both"


class PaymentType(str, Enum):
    DEPOSIT = "Deposit"
    BALANCE = "Balance"
    PARTIAL = "Partial"
    REFUND = "Refund"


class PhotographerRole(str, Enum):
    LEAD = "Lead"
    ASSISTANT = "Assistant"


class LineType(str, Enum):
    ITEM = "Item"
    PACKAGE = "Package"
    CUSTOM = "Custom"


class CancellationInitiator(str, Enum):
    CLIENT = "Client"
    STUDIO = "Studio"


@dataclass(frozen=True)
class SessionLineItem:
    """A priced line on a session, owned by the session."""

    id: UUID
    line_type: LineType
    item_code: str
    item_name: str
    quantity: int
    unit_price: Decimal
    reference_id: UUID | None = None
    estimated_editing_days: int | None = None

    @property
    def subtotal(self) -> Decimal:
        return quantize_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class SessionPhotographerAssignment:
    """A photographer assigned to a session."""

    photographer_id: UUID
    role: PhotographerRole | None
    assigned_at: datetime
    assigned_by: UUID
    attended: bool = False
    attended_at: datetime | None = None


@dataclass(frozen=True)
class SessionPayment:
    """An append-only payment or refund record."""

    id: UUID
    payment_type: PaymentType
    amount: Decimal
    method: str
    payment_date: date
    recorded_at: datetime
    recorded_by: UUID
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class SessionStatusHistoryEntry:
    """An immutable record of an executed status change."""

    from_status: SessionStatus | None
    to_status: SessionStatus
    actor_id: UUID
    changed_at: datetime
    reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class PaymentProjection:
    """Amounts derived from a session's payment list."""

    received_amount: Decimal
    refunded_amount: Decimal

    @property
    def paid_amount(self) -> Decimal:
        return self.received_amount - self.refunded_amount


def project_payments(payments: tuple[SessionPayment, ...]) -> PaymentProjection:
    """Fold the ordered payment list into received/refunded totals."""
    received = Decimal("0")
    refunded = Decimal("0")
    for payment in payments:
        if payment.payment_type is PaymentType.REFUND:
            refunded += payment.amount
        else:
            received += payment.amount
    return PaymentProjection(
        received_amount=quantize_money(received),
        refunded_amount=quantize_money(refunded),
    )


@dataclass(frozen=True)
class Session:
    """The session aggregate root.

    Snapshots are immutable; every mutation produces a new snapshot with a
    bumped ``version`` that the repository compares on save.
    """

    id: UUID
    client_id: UUID | None
    session_type: SessionType | None
    session_date: date
    status: SessionStatus
    created_at: datetime
    session_time: time | None = None
    location: str | None = None
    client_requirements: str | None = None
    internal_notes: str | None = None
    deposit_percentage: Decimal = Decimal("50")
    deposit_amount: Decimal | None = None
    payment_deadline: datetime | None = None
    changes_deadline: datetime | None = None
    estimated_delivery_date: date | None = None
    room_id: UUID | None = None
    assigned_editor_id: UUID | None = None
    editing_started_at: datetime | None = None
    editing_completed_at: datetime | None = None
    delivered_at: datetime | None = None
    cancellation_reason: str | None = None
    cancellation_initiated_by: CancellationInitiator | None = None
    canceled_at: datetime | None = None
    canceled_by: UUID | None = None
    refund_amount: Decimal | None = None
    line_items: tuple[SessionLineItem, ...] = ()
    photographers: tuple[SessionPhotographerAssignment, ...] = ()
    payments: tuple[SessionPayment, ...] = ()
    history: tuple[SessionStatusHistoryEntry, ...] = ()
    version: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def total(self) -> Decimal:
        return quantize_money(
            sum((item.subtotal for item in self.line_items), Decimal("0"))
        )

    @property
    def paid_amount(self) -> Decimal:
        return project_payments(self.payments).paid_amount

    @property
    def balance_amount(self) -> Decimal:
        return self.total - self.paid_amount

    def photographer_ids(self) -> list[UUID]:
        return [assignment.photographer_id for assignment in self.photographers]


@dataclass(frozen=True)
class SessionFilters:
    """Criteria for listing sessions; ``None`` leaves a criterion open."""

    status: SessionStatus | None = None
    client_id: UUID | None = None
    photographer_id: UUID | None = None
    editor_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class SessionPage:
    """One page of sessions ordered by session date."""

    items: tuple[Session, ...]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.items) < self.total

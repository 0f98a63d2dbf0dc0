"""Payment ledger and refund policies."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from studio_sessions.domain.errors import TerminalStateError, ValidationError
from studio_sessions.domain.sessions import (
    CancellationInitiator,
    PaymentProjection,
    PaymentType,
    Session,
    SessionPayment,
    project_payments,
    quantize_money,
)

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


class RefundPolicy(Protocol):
    """Decides how much of the paid amount is returned on cancellation."""

    def __call__(self, session: Session, now: datetime) -> Decimal:
        """Return the refund owed for canceling ``session`` at ``now``."""


@dataclass(frozen=True)
class NoRefundPolicy(RefundPolicy):
    """Never refunds anything."""

    def __call__(self, session: Session, now: datetime) -> Decimal:
        return _ZERO


@dataclass(frozen=True)
class TieredRefundPolicy(RefundPolicy):
    """Refund a configured share of the paid amount by notice given.

    ``tiers`` holds ``(min_days_before_session, percentage)`` pairs; the tier
    with the largest threshold met by the cancellation applies. Without tiers
    nothing is refunded unless the studio initiated the cancellation and
    ``studio_initiated_full_refund`` is set.
    """

    tiers: tuple[tuple[int, Decimal], ...] = ()
    studio_initiated_full_refund: bool = True
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))

    def __call__(self, session: Session, now: datetime) -> Decimal:
        paid = session.paid_amount
        if paid <= _ZERO:
            return _ZERO
        if (
            self.studio_initiated_full_refund
            and session.cancellation_initiated_by is CancellationInitiator.STUDIO
        ):
            return paid
        days_before = (session.session_date - now.astimezone(self.timezone).date()).days
        for min_days, percentage in sorted(self.tiers, reverse=True):
            if days_before >= min_days:
                return quantize_money(paid * percentage / Decimal("100"))
        return _ZERO


@dataclass
class PaymentLedger:
    """Append-only payment records with derived paid/balance amounts."""

    refund_policy: RefundPolicy = field(default_factory=NoRefundPolicy)
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))

    def record_payment(  # noqa: PLR0913
        self,
        session: Session,
        payment_type: PaymentType,
        amount: Decimal,
        method: str,
        payment_date: date,
        recorded_by: UUID,
        now: datetime,
        reference: str | None = None,
        notes: str | None = None,
    ) -> Session:
        """Return a snapshot of ``session`` with the payment appended."""
        if session.is_terminal:
            raise TerminalStateError(
                f"Session {session.id} is {session.status.value}; payments are closed"
            )
        amount = quantize_money(Decimal(amount))
        if amount <= _ZERO:
            raise ValidationError("Payment amount must be positive")
        if not method.strip():
            raise ValidationError("Payment method is required")
        if payment_type is PaymentType.REFUND and amount > session.paid_amount:
            raise ValidationError("Refund exceeds the amount paid")
        payment = SessionPayment(
            id=uuid4(),
            payment_type=payment_type,
            amount=amount,
            method=method.strip(),
            payment_date=payment_date,
            recorded_at=now,
            recorded_by=recorded_by,
            reference=reference,
            notes=notes,
        )
        logger.info(
            "Recorded %s payment of %s on session %s",
            payment_type.value,
            amount,
            session.id,
        )
        return replace(session, payments=(*session.payments, payment))

    def project(self, session: Session) -> PaymentProjection:
        return project_payments(session.payments)

    def balance(self, session: Session) -> Decimal:
        return session.total - self.project(session).paid_amount

    def compute_refund(self, session: Session, now: datetime) -> Decimal:
        """Ask the refund policy, clamped to ``[0, paid_amount]``."""
        paid = session.paid_amount
        refund = quantize_money(Decimal(self.refund_policy(session, now)))
        return min(max(refund, _ZERO), max(paid, _ZERO))

    def refund_payment(
        self, session: Session, amount: Decimal, recorded_by: UUID, now: datetime
    ) -> SessionPayment:
        """Build the refund record written at cancellation."""
        return SessionPayment(
            id=uuid4(),
            payment_type=PaymentType.REFUND,
            amount=amount,
            method="Refund policy",
            payment_date=now.astimezone(self.timezone).date(),
            recorded_at=now,
            recorded_by=recorded_by,
            notes=f"Cancellation refund for session {session.id}",
        )

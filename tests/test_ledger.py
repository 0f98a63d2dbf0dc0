from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from studio_sessions.domain.errors import TerminalStateError, ValidationError
from studio_sessions.domain.sessions import (
    CancellationInitiator,
    PaymentType,
    SessionStatus,
    project_payments,
)
from studio_sessions.services.ledger import (
    NoRefundPolicy,
    PaymentLedger,
    TieredRefundPolicy,
)
from tests.fakes import NOW, line_item, make_session, payment

TIERS = ((14, Decimal("100")), (7, Decimal("50")), (2, Decimal("25")))


def _record(ledger: PaymentLedger, session, payment_type, amount, method="Card"):
    return ledger.record_payment(
        session,
        payment_type=payment_type,
        amount=Decimal(amount),
        method=method,
        payment_date=NOW.date(),
        recorded_by=uuid4(),
        now=NOW,
    )


def test_record_payment_appends_and_projects() -> None:
    ledger = PaymentLedger()
    session = make_session(
        SessionStatus.PRE_SCHEDULED, line_items=(line_item("1000"),)
    )

    session = _record(ledger, session, PaymentType.DEPOSIT, "300")
    session = _record(ledger, session, PaymentType.PARTIAL, "200.005")
    session = _record(ledger, session, PaymentType.REFUND, "50")

    assert [p.payment_type for p in session.payments] == [
        PaymentType.DEPOSIT,
        PaymentType.PARTIAL,
        PaymentType.REFUND,
    ]
    assert session.payments[1].amount == Decimal("200.01")
    projection = ledger.project(session)
    assert projection.received_amount == Decimal("500.01")
    assert projection.refunded_amount == Decimal("50.00")
    assert projection.paid_amount == Decimal("450.01")
    assert ledger.balance(session) == Decimal("549.99")


def test_projection_is_deterministic() -> None:
    payments = (
        payment(PaymentType.DEPOSIT, "300"),
        payment(PaymentType.BALANCE, "700"),
        payment(PaymentType.REFUND, "100"),
    )

    assert project_payments(payments) == project_payments(payments)
    assert project_payments(payments).paid_amount == Decimal("900")


@pytest.mark.parametrize(
    ("amount", "method"),
    [("0", "Card"), ("-10", "Card"), ("25", "   ")],
)
def test_invalid_payments_are_rejected(amount: str, method: str) -> None:
    session = make_session(SessionStatus.CONFIRMED)

    with pytest.raises(ValidationError):
        _record(PaymentLedger(), session, PaymentType.PARTIAL, amount, method)


def test_refund_cannot_exceed_paid_amount() -> None:
    session = make_session(
        SessionStatus.CONFIRMED, payments=(payment(PaymentType.DEPOSIT, "100"),)
    )

    with pytest.raises(ValidationError):
        _record(PaymentLedger(), session, PaymentType.REFUND, "100.01")


@pytest.mark.parametrize("status", [SessionStatus.COMPLETED, SessionStatus.CANCELED])
def test_closed_sessions_take_no_payments(status: SessionStatus) -> None:
    session = make_session(status)

    with pytest.raises(TerminalStateError):
        _record(PaymentLedger(), session, PaymentType.BALANCE, "10")


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (datetime(2026, 3, 1, 12, tzinfo=UTC), Decimal("400.00")),
        (datetime(2026, 3, 12, 12, tzinfo=UTC), Decimal("200.00")),
        (datetime(2026, 3, 17, 12, tzinfo=UTC), Decimal("100.00")),
        (datetime(2026, 3, 19, 12, tzinfo=UTC), Decimal("0")),
    ],
)
def test_tiered_refund_uses_notice_given(now: datetime, expected: Decimal) -> None:
    policy = TieredRefundPolicy(tiers=TIERS)
    session = make_session(
        SessionStatus.CONFIRMED, payments=(payment(PaymentType.DEPOSIT, "400"),)
    )

    assert policy(session, now) == expected


def test_studio_initiated_cancellation_refunds_everything() -> None:
    session = make_session(
        SessionStatus.CONFIRMED,
        payments=(payment(PaymentType.DEPOSIT, "400"),),
        cancellation_initiated_by=CancellationInitiator.STUDIO,
    )
    late = datetime(2026, 3, 19, 12, tzinfo=UTC)

    assert TieredRefundPolicy(tiers=TIERS)(session, late) == Decimal("400")
    assert TieredRefundPolicy(studio_initiated_full_refund=False)(
        session, late
    ) == Decimal("0")


def test_compute_refund_is_clamped() -> None:
    session = make_session(
        SessionStatus.CONFIRMED, payments=(payment(PaymentType.DEPOSIT, "250"),)
    )

    generous = PaymentLedger(refund_policy=lambda session, now: Decimal("999"))
    negative = PaymentLedger(refund_policy=lambda session, now: Decimal("-5"))

    assert generous.compute_refund(session, NOW) == Decimal("250.00")
    assert negative.compute_refund(session, NOW) == Decimal("0")
    assert PaymentLedger(NoRefundPolicy()).compute_refund(session, NOW) == 0


def test_refund_payment_record() -> None:
    session = make_session(SessionStatus.CONFIRMED)
    actor_id = uuid4()

    refund = PaymentLedger().refund_payment(session, Decimal("80.00"), actor_id, NOW)

    assert refund.payment_type is PaymentType.REFUND
    assert refund.amount == Decimal("80.00")
    assert refund.recorded_by == actor_id
    assert refund.recorded_at == NOW


def test_refund_payment_is_dated_on_the_studio_calendar() -> None:
    ledger = PaymentLedger(timezone=ZoneInfo("America/Mexico_City"))
    late_evening = datetime(2026, 3, 3, 3, 30, tzinfo=UTC)

    refund = ledger.refund_payment(
        make_session(SessionStatus.CONFIRMED), Decimal("80.00"), uuid4(), late_evening
    )

    assert refund.payment_date == date(2026, 3, 2)
    assert refund.recorded_at == late_evening

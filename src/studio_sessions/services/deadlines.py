"""Derived deadline and deposit computation."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from studio_sessions.domain.sessions import Session, SessionStatus, quantize_money

_END_OF_DAY = time(23, 59, 59)


def compute_deposit(total: Decimal, deposit_percentage: Decimal) -> Decimal:
    """Return the deposit owed for a total and a percentage."""
    return quantize_money(total * deposit_percentage / Decimal("100"))


@dataclass(frozen=True)
class DeadlineCalculator:
    """Pure functions deriving time-based session fields."""

    payment_deadline_days: int
    changes_deadline_days: int
    default_editing_days: int
    timezone: ZoneInfo

    def compute(
        self,
        session: Session,
        to_status: SessionStatus,
        now: datetime,
    ) -> dict[str, object]:
        """Return the fields to persist for a transition into ``to_status``."""
        if to_status is SessionStatus.PRE_SCHEDULED:
            return {
                "payment_deadline": self.payment_deadline(now),
                "deposit_amount": compute_deposit(
                    session.total, session.deposit_percentage
                ),
            }
        if to_status is SessionStatus.CONFIRMED:
            return {
                "payment_deadline": None,
                "changes_deadline": self.changes_deadline(session.session_date),
            }
        if to_status is SessionStatus.ASSIGNED:
            return {"estimated_delivery_date": self.estimated_delivery_date(session)}
        return {}

    def payment_deadline(self, now: datetime) -> datetime:
        return now + timedelta(days=self.payment_deadline_days)

    def changes_deadline(self, session_date: date) -> datetime:
        """Last moment client changes are accepted, local end of day."""
        day = session_date - timedelta(days=self.changes_deadline_days)
        return datetime.combine(day, _END_OF_DAY, tzinfo=self.timezone)

    def estimated_delivery_date(self, session: Session) -> date:
        return session.session_date + timedelta(days=self.editing_days(session))

    def editing_days(self, session: Session) -> int:
        """Largest editing estimate among the catalog lines, else the default."""
        estimates = [
            item.estimated_editing_days
            for item in session.line_items
            if item.estimated_editing_days is not None
        ]
        return max(estimates) if estimates else self.default_editing_days

    def local_today(self, now: datetime) -> date:
        return now.astimezone(self.timezone).date()

"""Supabase-backed session repository."""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from postgrest.types import CountMethod
from supabase import Client

from studio_sessions.domain.errors import (
    ConflictError,
    InfrastructureError,
    SessionNotFoundError,
)
from studio_sessions.domain.sessions import (
    CancellationInitiator,
    LineType,
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
)
from studio_sessions.services.state_machine import SessionRepository

logger = logging.getLogger(__name__)

_SELECT = (
    "*, session_line_items(*), session_photographers(*), "
    "session_payments(*), session_status_history(*)"
)


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for session aggregates.

    Writes go through the ``save_session_aggregate`` Postgres function so the
    session row, new payments and new history entries commit in one
    transaction, guarded by the stored version.
    """

    client: Client

    def create(self, session: Session) -> Session:
        """Insert the aggregate at version 1."""
        return self.save(session, expected_version=session.version)

    def load(self, session_id: UUID) -> Session:
        """Return a session with its owned records."""
        try:
            response = (
                self.client.table("sessions")
                .select(_SELECT)
                .eq("id", str(session_id))
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            logger.exception("Failed to load session %s", session_id)
            raise InfrastructureError(f"Could not load session {session_id}") from exc
        if not response.data:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return _row_to_session(response.data[0])

    def save(self, session: Session, expected_version: int) -> Session:
        """Commit the aggregate if the stored version still matches."""
        try:
            response = self.client.rpc(
                "save_session_aggregate",
                {
                    "p_session": _session_to_row(session),
                    "p_expected_version": expected_version,
                },
            ).execute()
        except (APIError, httpx.HTTPError) as exc:
            logger.exception("Failed to save session %s", session.id)
            raise InfrastructureError(f"Could not save session {session.id}") from exc
        new_version = response.data
        if isinstance(new_version, list):
            new_version = new_version[0] if new_version else None
        if new_version is None:
            raise ConflictError(
                f"Session {session.id} changed since version {expected_version}"
            )
        return replace(session, version=int(new_version))

    def list_sessions(self, filters: SessionFilters) -> SessionPage:
        """Return one page of sessions ordered by date, then creation time."""
        try:
            session_ids = None
            if filters.photographer_id is not None:
                assigned = (
                    self.client.table("session_photographers")
                    .select("session_id")
                    .eq("photographer_id", str(filters.photographer_id))
                    .execute()
                )
                session_ids = [row["session_id"] for row in assigned.data or []]
                if not session_ids:
                    return SessionPage(
                        items=(), total=0, limit=filters.limit, offset=filters.offset
                    )
            query = self.client.table("sessions").select(
                _SELECT, count=CountMethod.exact
            )
            if session_ids is not None:
                query = query.in_("id", session_ids)
            if filters.status is not None:
                query = query.eq("status", filters.status.value)
            if filters.client_id is not None:
                query = query.eq("client_id", str(filters.client_id))
            if filters.editor_id is not None:
                query = query.eq("assigned_editor_id", str(filters.editor_id))
            if filters.start_date is not None:
                query = query.gte("session_date", filters.start_date.isoformat())
            if filters.end_date is not None:
                query = query.lte("session_date", filters.end_date.isoformat())
            response = (
                query.order("session_date")
                .order("created_at")
                .range(filters.offset, filters.offset + filters.limit - 1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            logger.exception("Failed to list sessions")
            raise InfrastructureError("Could not list sessions") from exc
        rows = response.data or []
        total = response.count if response.count is not None else len(rows)
        return SessionPage(
            items=tuple(_row_to_session(row) for row in rows),
            total=total,
            limit=filters.limit,
            offset=filters.offset,
        )


def _iso(value: date | datetime | time | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str(value: object | None) -> str | None:
    return str(value) if value is not None else None


def _session_to_row(session: Session) -> dict[str, object]:
    return {
        "id": str(session.id),
        "client_id": _str(session.client_id),
        "session_type": session.session_type.value if session.session_type else None,
        "session_date": session.session_date.isoformat(),
        "session_time": _iso(session.session_time),
        "location": session.location,
        "client_requirements": session.client_requirements,
        "internal_notes": session.internal_notes,
        "status": session.status.value,
        "created_at": session.created_at.isoformat(),
        "deposit_percentage": str(session.deposit_percentage),
        "deposit_amount": _str(session.deposit_amount),
        "total_amount": str(session.total),
        "paid_amount": str(session.paid_amount),
        "balance_amount": str(session.balance_amount),
        "payment_deadline": _iso(session.payment_deadline),
        "changes_deadline": _iso(session.changes_deadline),
        "estimated_delivery_date": _iso(session.estimated_delivery_date),
        "room_id": _str(session.room_id),
        "assigned_editor_id": _str(session.assigned_editor_id),
        "editing_started_at": _iso(session.editing_started_at),
        "editing_completed_at": _iso(session.editing_completed_at),
        "delivered_at": _iso(session.delivered_at),
        "cancellation_reason": session.cancellation_reason,
        "cancellation_initiated_by": (
            session.cancellation_initiated_by.value
            if session.cancellation_initiated_by
            else None
        ),
        "canceled_at": _iso(session.canceled_at),
        "canceled_by": _str(session.canceled_by),
        "refund_amount": _str(session.refund_amount),
        "line_items": [
            {
                "id": str(item.id),
                "line_type": item.line_type.value,
                "item_code": item.item_code,
                "item_name": item.item_name,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
                "reference_id": _str(item.reference_id),
                "estimated_editing_days": item.estimated_editing_days,
            }
            for item in session.line_items
        ],
        "photographers": [
            {
                "photographer_id": str(assignment.photographer_id),
                "role": assignment.role.value if assignment.role else None,
                "assigned_at": assignment.assigned_at.isoformat(),
                "assigned_by": str(assignment.assigned_by),
                "attended": assignment.attended,
                "attended_at": _iso(assignment.attended_at),
            }
            for assignment in session.photographers
        ],
        "payments": [
            {
                "id": str(payment.id),
                "payment_type": payment.payment_type.value,
                "amount": str(payment.amount),
                "method": payment.method,
                "payment_date": payment.payment_date.isoformat(),
                "recorded_at": payment.recorded_at.isoformat(),
                "recorded_by": str(payment.recorded_by),
                "reference": payment.reference,
                "notes": payment.notes,
            }
            for payment in session.payments
        ],
        "history": [
            {
                "from_status": entry.from_status.value if entry.from_status else None,
                "to_status": entry.to_status.value,
                "actor_id": str(entry.actor_id),
                "changed_at": entry.changed_at.isoformat(),
                "reason": entry.reason,
                "notes": entry.notes,
            }
            for entry in session.history
        ],
    }


def _uuid(value: object | None) -> UUID | None:
    return UUID(str(value)) if value else None


def _decimal(value: object | None) -> Decimal | None:
    return Decimal(str(value)) if value is not None else None


def _datetime(value: object | None) -> datetime | None:
    return datetime.fromisoformat(str(value)) if value else None


def _row_to_session(row: dict[str, object]) -> Session:
    line_items = tuple(
        SessionLineItem(
            id=UUID(str(item["id"])),
            line_type=LineType(item["line_type"]),
            item_code=str(item["item_code"]),
            item_name=str(item["item_name"]),
            quantity=int(item["quantity"]),
            unit_price=Decimal(str(item["unit_price"])),
            reference_id=_uuid(item.get("reference_id")),
            estimated_editing_days=item.get("estimated_editing_days"),
        )
        for item in row.get("session_line_items") or []
    )
    photographers = tuple(
        SessionPhotographerAssignment(
            photographer_id=UUID(str(assignment["photographer_id"])),
            role=PhotographerRole(assignment["role"]) if assignment.get("role") else None,
            assigned_at=datetime.fromisoformat(str(assignment["assigned_at"])),
            assigned_by=UUID(str(assignment["assigned_by"])),
            attended=bool(assignment.get("attended")),
            attended_at=_datetime(assignment.get("attended_at")),
        )
        for assignment in row.get("session_photographers") or []
    )
    payments = tuple(
        SessionPayment(
            id=UUID(str(payment["id"])),
            payment_type=PaymentType(payment["payment_type"]),
            amount=Decimal(str(payment["amount"])),
            method=str(payment["method"]),
            payment_date=date.fromisoformat(str(payment["payment_date"])),
            recorded_at=datetime.fromisoformat(str(payment["recorded_at"])),
            recorded_by=UUID(str(payment["recorded_by"])),
            reference=payment.get("reference"),
            notes=payment.get("notes"),
        )
        for payment in sorted(
            row.get("session_payments") or [], key=lambda p: p["position"]
        )
    )
    history = tuple(
        SessionStatusHistoryEntry(
            from_status=(
                SessionStatus(entry["from_status"]) if entry.get("from_status") else None
            ),
            to_status=SessionStatus(entry["to_status"]),
            actor_id=UUID(str(entry["actor_id"])),
            changed_at=datetime.fromisoformat(str(entry["changed_at"])),
            reason=entry.get("reason"),
            notes=entry.get("notes"),
        )
        for entry in sorted(
            row.get("session_status_history") or [], key=lambda e: e["position"]
        )
    )
    session_time = row.get("session_time")
    initiated_by = row.get("cancellation_initiated_by")
    return Session(
        id=UUID(str(row["id"])),
        client_id=_uuid(row.get("client_id")),
        session_type=SessionType(row["session_type"]) if row.get("session_type") else None,
        session_date=date.fromisoformat(str(row["session_date"])),
        session_time=time.fromisoformat(str(session_time)) if session_time else None,
        location=row.get("location"),
        client_requirements=row.get("client_requirements"),
        internal_notes=row.get("internal_notes"),
        status=SessionStatus(row["status"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        deposit_percentage=Decimal(str(row["deposit_percentage"])),
        deposit_amount=_decimal(row.get("deposit_amount")),
        payment_deadline=_datetime(row.get("payment_deadline")),
        changes_deadline=_datetime(row.get("changes_deadline")),
        estimated_delivery_date=(
            date.fromisoformat(str(row["estimated_delivery_date"]))
            if row.get("estimated_delivery_date")
            else None
        ),
        room_id=_uuid(row.get("room_id")),
        assigned_editor_id=_uuid(row.get("assigned_editor_id")),
        editing_started_at=_datetime(row.get("editing_started_at")),
        editing_completed_at=_datetime(row.get("editing_completed_at")),
        delivered_at=_datetime(row.get("delivered_at")),
        cancellation_reason=row.get("cancellation_reason"),
        cancellation_initiated_by=(
            CancellationInitiator(initiated_by) if initiated_by else None
        ),
        canceled_at=_datetime(row.get("canceled_at")),
        canceled_by=_uuid(row.get("canceled_by")),
        refund_amount=_decimal(row.get("refund_amount")),
        line_items=line_items,
        photographers=photographers,
        payments=payments,
        history=history,
        version=int(row["version"]),
    )

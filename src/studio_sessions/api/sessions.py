"""Session API endpoints with simple token auth."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    Header,
    HTTPException,
    Query,
    Request,
    status,
)

from studio_sessions.api.session_models import (
    ActorPayload,
    LineItemRequest,
    PaymentRequest,
    PhotographerRequest,
    RoomRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
    TransitionRequest,
)
from studio_sessions.domain.sessions import SessionFilters, SessionStatus
from studio_sessions.services.notifications import dispatch_all

if TYPE_CHECKING:
    from studio_sessions.containers import AppContainer
    from studio_sessions.domain.sessions import (
        Session,
        SessionPage,
        SessionPayment,
        SessionStatusHistoryEntry,
    )

router = APIRouter(prefix="/sessions", tags=["sessions"])

_CONTROL_FIELDS = {"actor_id", "actor_permissions", "actor_roles", "expected_version"}


def _get_api_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.api_token


async def require_api_token(
    x_api_token: str | None = Header(default=None),
    api_token: str = Depends(_get_api_token),
) -> None:
    """Ensure requests include a valid API token."""
    if not x_api_token or x_api_token != api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
)
async def create_session(
    payload: SessionCreateRequest, request: Request
) -> dict[str, object]:
    """Create a session in Request."""
    session = _container(request).session_service.create_session(
        client_id=payload.client_id,
        session_type=payload.session_type,
        session_date=payload.session_date,
        actor=payload.to_actor(),
        session_time=payload.session_time,
        deposit_percentage=payload.deposit_percentage,
        room_id=payload.room_id,
    )
    return {"session": serialize_session(session)}


def _filters(  # noqa: PLR0913
    session_status: SessionStatus | None = Query(default=None, alias="status"),
    client_id: UUID | None = None,
    photographer_id: UUID | None = None,
    editor_id: UUID | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> SessionFilters:
    return SessionFilters(
        status=session_status,
        client_id=client_id,
        photographer_id=photographer_id,
        editor_id=editor_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )


@router.get("", dependencies=[Depends(require_api_token)])
async def list_sessions(
    request: Request, filters: SessionFilters = Depends(_filters)
) -> dict[str, object]:
    """List sessions matching the query filters."""
    page = _container(request).session_service.list_sessions(filters)
    return _serialize_page(page)


@router.get("/my-assignments", dependencies=[Depends(require_api_token)])
async def list_my_assignments(
    request: Request,
    actor_id: UUID,
    filters: SessionFilters = Depends(_filters),
) -> dict[str, object]:
    """List sessions the actor is assigned to photograph."""
    actor = ActorPayload(actor_id=actor_id).to_actor()
    page = _container(request).session_service.list_my_assignments(actor, filters)
    return _serialize_page(page)


@router.get("/my-editing", dependencies=[Depends(require_api_token)])
async def list_my_editing(
    request: Request,
    actor_id: UUID,
    filters: SessionFilters = Depends(_filters),
) -> dict[str, object]:
    """List sessions the actor is editing."""
    actor = ActorPayload(actor_id=actor_id).to_actor()
    page = _container(request).session_service.list_my_editing(actor, filters)
    return _serialize_page(page)


@router.get("/{session_id}", dependencies=[Depends(require_api_token)])
async def get_session(session_id: UUID, request: Request) -> dict[str, object]:
    """Return a session aggregate."""
    session = _container(request).session_service.get_session(session_id)
    return {"session": serialize_session(session)}


@router.patch("/{session_id}", dependencies=[Depends(require_api_token)])
async def update_session(
    session_id: UUID, payload: SessionUpdateRequest, request: Request
) -> dict[str, object]:
    """Edit the fields present in the body."""
    changes = payload.model_dump(exclude_unset=True, exclude=_CONTROL_FIELDS)
    session = _container(request).session_service.update_session(
        session_id,
        payload.to_actor(),
        expected_version=payload.expected_version,
        **changes,
    )
    return {"session": serialize_session(session)}


@router.post("/{session_id}/transition", dependencies=[Depends(require_api_token)])
async def transition_session(
    session_id: UUID,
    payload: TransitionRequest,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict[str, object]:
    """Attempt a status transition and queue its notifications."""
    container = _container(request)
    result = container.session_service.transition(
        session_id,
        payload.to_status,
        payload.to_actor(),
        reason=payload.reason,
        notes=payload.notes,
        initiated_by=payload.initiated_by,
        expected_version=payload.expected_version,
    )
    background_tasks.add_task(
        dispatch_all, container.notification_dispatcher, result.notifications
    )
    return {
        "session": serialize_session(result.session),
        "emitted_notifications": [
            intent.to_dict() for intent in result.notifications
        ],
    }


@router.post(
    "/{session_id}/payments",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
)
async def record_payment(
    session_id: UUID, payload: PaymentRequest, request: Request
) -> dict[str, object]:
    """Record a payment or refund."""
    session = _container(request).session_service.record_payment(
        session_id,
        payload.to_actor(),
        payment_type=payload.payment_type,
        amount=payload.amount,
        method=payload.method,
        payment_date=payload.payment_date,
        reference=payload.reference,
        notes=payload.notes,
        expected_version=payload.expected_version,
    )
    return {"session": serialize_session(session)}


@router.get("/{session_id}/payments", dependencies=[Depends(require_api_token)])
async def list_payments(session_id: UUID, request: Request) -> dict[str, object]:
    """Return the payment list and its projection."""
    payments, projection = _container(request).session_service.payments(session_id)
    return {
        "payments": [_serialize_payment(payment) for payment in payments],
        "received_amount": str(projection.received_amount),
        "refunded_amount": str(projection.refunded_amount),
        "paid_amount": str(projection.paid_amount),
    }


@router.get("/{session_id}/history", dependencies=[Depends(require_api_token)])
async def list_history(session_id: UUID, request: Request) -> dict[str, object]:
    """Return the status history timeline."""
    history = _container(request).session_service.history(session_id)
    return {"history": [_serialize_history(entry) for entry in history]}


@router.post(
    "/{session_id}/line-items",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
)
async def add_line_item(
    session_id: UUID, payload: LineItemRequest, request: Request
) -> dict[str, object]:
    """Add a line item to the quote."""
    session = _container(request).session_service.add_line_item(
        session_id,
        payload.to_actor(),
        line_type=payload.line_type,
        item_code=payload.item_code,
        item_name=payload.item_name,
        quantity=payload.quantity,
        unit_price=payload.unit_price,
        reference_id=payload.reference_id,
        estimated_editing_days=payload.estimated_editing_days,
    )
    return {"session": serialize_session(session)}


@router.delete(
    "/{session_id}/line-items/{line_item_id}",
    dependencies=[Depends(require_api_token)],
)
async def remove_line_item(
    session_id: UUID, line_item_id: UUID, payload: ActorPayload, request: Request
) -> dict[str, object]:
    """Remove a line item from the quote."""
    session = _container(request).session_service.remove_line_item(
        session_id, payload.to_actor(), line_item_id
    )
    return {"session": serialize_session(session)}


@router.post(
    "/{session_id}/photographers",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_api_token)],
)
async def assign_photographer(
    session_id: UUID, payload: PhotographerRequest, request: Request
) -> dict[str, object]:
    """Assign a photographer to the session."""
    session = _container(request).session_service.assign_photographer(
        session_id, payload.to_actor(), payload.photographer_id, payload.role
    )
    return {"session": serialize_session(session)}


@router.delete(
    "/{session_id}/photographers/{photographer_id}",
    dependencies=[Depends(require_api_token)],
)
async def release_photographer(
    session_id: UUID, photographer_id: UUID, payload: ActorPayload, request: Request
) -> dict[str, object]:
    """Release a photographer from the session."""
    session = _container(request).session_service.release_photographer(
        session_id, payload.to_actor(), photographer_id
    )
    return {"session": serialize_session(session)}


@router.put("/{session_id}/room", dependencies=[Depends(require_api_token)])
async def assign_room(
    session_id: UUID, payload: RoomRequest, request: Request
) -> dict[str, object]:
    """Assign or clear the studio room."""
    session = _container(request).session_service.assign_room(
        session_id, payload.to_actor(), payload.room_id
    )
    return {"session": serialize_session(session)}


def _text(value: object | None) -> str | None:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def serialize_session(session: Session) -> dict[str, object]:
    """Render a session aggregate, derived amounts included."""
    return {
        "id": str(session.id),
        "client_id": _text(session.client_id),
        "session_type": session.session_type.value if session.session_type else None,
        "session_date": session.session_date.isoformat(),
        "session_time": _text(session.session_time),
        "location": session.location,
        "client_requirements": session.client_requirements,
        "internal_notes": session.internal_notes,
        "status": session.status.value,
        "total": str(session.total),
        "deposit_percentage": str(session.deposit_percentage),
        "deposit_amount": _text(session.deposit_amount),
        "paid_amount": str(session.paid_amount),
        "balance_amount": str(session.balance_amount),
        "payment_deadline": _text(session.payment_deadline),
        "changes_deadline": _text(session.changes_deadline),
        "estimated_delivery_date": _text(session.estimated_delivery_date),
        "room_id": _text(session.room_id),
        "assigned_editor_id": _text(session.assigned_editor_id),
        "editing_started_at": _text(session.editing_started_at),
        "editing_completed_at": _text(session.editing_completed_at),
        "delivered_at": _text(session.delivered_at),
        "cancellation_reason": session.cancellation_reason,
        "cancellation_initiated_by": (
            session.cancellation_initiated_by.value
            if session.cancellation_initiated_by
            else None
        ),
        "canceled_at": _text(session.canceled_at),
        "canceled_by": _text(session.canceled_by),
        "refund_amount": _text(session.refund_amount),
        "line_items": [
            {
                "id": str(item.id),
                "line_type": item.line_type.value,
                "item_code": item.item_code,
                "item_name": item.item_name,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
                "subtotal": str(item.subtotal),
            }
            for item in session.line_items
        ],
        "photographers": [
            {
                "photographer_id": str(assignment.photographer_id),
                "role": assignment.role.value if assignment.role else None,
                "attended": assignment.attended,
                "attended_at": _text(assignment.attended_at),
            }
            for assignment in session.photographers
        ],
        "version": session.version,
    }


def _serialize_page(page: SessionPage) -> dict[str, object]:
    return {
        "items": [serialize_session(session) for session in page.items],
        "total": page.total,
        "limit": page.limit,
        "offset": page.offset,
        "has_more": page.has_more,
    }


def _serialize_payment(payment: SessionPayment) -> dict[str, object]:
    return {
        "id": str(payment.id),
        "payment_type": payment.payment_type.value,
        "amount": str(payment.amount),
        "method": payment.method,
        "payment_date": payment.payment_date.isoformat(),
        "reference": payment.reference,
        "notes": payment.notes,
        "recorded_at": payment.recorded_at.isoformat(),
        "recorded_by": str(payment.recorded_by),
    }


def _serialize_history(entry: SessionStatusHistoryEntry) -> dict[str, object]:
    return {
        "from_status": entry.from_status.value if entry.from_status else None,
        "to_status": entry.to_status.value,
        "reason": entry.reason,
        "notes": entry.notes,
        "actor_id": str(entry.actor_id),
        "changed_at": entry.changed_at.isoformat(),
    }

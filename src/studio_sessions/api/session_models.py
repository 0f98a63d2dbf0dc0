"""Pydantic models for session API payloads."""

from datetime import date, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from studio_sessions.domain.actors import Actor
from studio_sessions.domain.sessions import (
    CancellationInitiator,
    LineType,
    PaymentType,
    PhotographerRole,
    SessionStatus,
    SessionType,
)


class ActorPayload(BaseModel):
    """Actor identity and the permissions resolved for it upstream."""

    actor_id: UUID
    actor_permissions: list[str] = Field(default_factory=list)
    actor_roles: list[str] = Field(default_factory=list)

    def to_actor(self) -> Actor:
        return Actor(
            id=self.actor_id,
            permissions=frozenset(self.actor_permissions),
            roles=frozenset(self.actor_roles),
        )


class SessionCreateRequest(ActorPayload):
    """Create a session in Request."""

    client_id: UUID
    session_type: SessionType
    session_date: date
    session_time: time | None = None
    deposit_percentage: Decimal | None = None
    room_id: UUID | None = None


class TransitionRequest(ActorPayload):
    """Move a session to another status."""

    to_status: SessionStatus
    reason: str | None = None
    notes: str | None = None
    initiated_by: CancellationInitiator | None = None
    expected_version: int | None = None


class PaymentRequest(ActorPayload):
    """Record a payment or refund."""

    payment_type: PaymentType
    amount: Decimal
    method: str
    payment_date: date
    reference: str | None = None
    notes: str | None = None
    expected_version: int | None = None


class LineItemRequest(ActorPayload):
    """Add a line item to a session."""

    line_type: LineType
    item_code: str
    item_name: str
    quantity: int
    unit_price: Decimal
    reference_id: UUID | None = None
    estimated_editing_days: int | None = None


class PhotographerRequest(ActorPayload):
    """Assign a photographer."""

    photographer_id: UUID
    role: PhotographerRole | None = None


class RoomRequest(ActorPayload):
    """Assign or clear the session room."""

    room_id: UUID | None = None


class SessionUpdateRequest(ActorPayload):
    """Edit session details; only fields present in the body change."""

    session_date: date | None = None
    session_time: time | None = None
    session_type: SessionType | None = None
    location: str | None = None
    client_requirements: str | None = None
    internal_notes: str | None = None
    expected_version: int | None = None

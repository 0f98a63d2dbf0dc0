"""Permission codes and the authorization collaborator."""

from dataclasses import dataclass
from typing import Protocol

from studio_sessions.domain.actors import Actor

EDIT_PRE_ASSIGNED = "session.edit.pre-assigned"
EDIT_ALL = "session.edit.all"
ASSIGN_RESOURCES = "session.assign-resources"
MARK_ATTENDED = "session.mark-attended"
VIEW_OWN = "session.view.own"
MARK_READY = "session.mark-ready"
CANCEL = "session.cancel"
RECORD_PAYMENT = "session.record-payment"


class PermissionChecker(Protocol):
    """Authorization lookups for an actor."""

    def has(self, actor: Actor, permission_code: str) -> bool:
        """Return whether the actor holds the permission."""


@dataclass(frozen=True)
class ActorPermissionChecker(PermissionChecker):
    """Checks the permissions resolved onto the actor by the caller."""

    def has(self, actor: Actor, permission_code: str) -> bool:
        return permission_code in actor.permissions

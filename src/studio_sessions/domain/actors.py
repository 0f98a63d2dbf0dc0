"""Domain models for request actors."""

from dataclasses import dataclass, field
from uuid import UUID

EDITOR_ROLE = "Editor"


@dataclass(frozen=True)
class Actor:
    """The user performing an operation, as resolved by the caller."""

    id: UUID
    permissions: frozenset[str] = field(default_factory=frozenset)
    roles: frozenset[str] = field(default_factory=frozenset)

    def has_role(self, role: str) -> bool:
        return role in self.roles

"""Error taxonomy for session lifecycle operations."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Violation:
    """A named guard failure."""

    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class SessionError(Exception):
    """Base class for lifecycle errors reported to callers."""

    error_kind = "Session"


class TerminalStateError(SessionError):
    """The session is Completed or Canceled."""

    error_kind = "TerminalState"


class InvalidTransitionError(SessionError):
    """The requested edge is not in the transition table."""

    error_kind = "InvalidTransition"


class GuardViolationError(SessionError):
    """One or more guards rejected the transition."""

    error_kind = "GuardViolation"

    def __init__(self, violations: list[Violation]) -> None:
        codes = ", ".join(violation.code for violation in violations)
        super().__init__(f"Transition rejected: {codes}")
        self.violations = violations


class ConflictError(SessionError):
    """The session was modified concurrently."""

    error_kind = "Conflict"


class ValidationError(SessionError):
    """Malformed input."""

    error_kind = "Validation"


class SessionNotFoundError(SessionError):
    """No session exists with the given id."""

    error_kind = "NotFound"


class InfrastructureError(SessionError):
    """A repository or dependency failed."""

    error_kind = "Infrastructure"

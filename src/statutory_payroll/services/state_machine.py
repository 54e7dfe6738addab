"""Payroll run state machine with transition validation."""

from __future__ import annotations

from statutory_payroll.calculators.types import PayrollRunStatus
from statutory_payroll.errors import PayrollError


def status_value(status: str) -> str:
    return status.value if isinstance(status, PayrollRunStatus) else status


class InvalidTransitionError(PayrollError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → processing
    - processing → completed
    - draft → cancelled
    - processing → cancelled

    The engine only ever creates runs in ``draft``; every other transition
    is requested by the calling layer.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT.value: [
            PayrollRunStatus.PROCESSING.value,
            PayrollRunStatus.CANCELLED.value,
        ],
        PayrollRunStatus.PROCESSING.value: [
            PayrollRunStatus.COMPLETED.value,
            PayrollRunStatus.CANCELLED.value,
        ],
        PayrollRunStatus.COMPLETED.value: [],  # Terminal state
        PayrollRunStatus.CANCELLED.value: [],  # Terminal state
    }

    # Statuses in which a run may be deleted outright
    DELETABLE = {
        PayrollRunStatus.DRAFT.value,
        PayrollRunStatus.CANCELLED.value,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(status_value(from_status), [])
        return status_value(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(status_value(from_status), status_value(to_status))

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return list(cls.VALID_TRANSITIONS.get(status_value(current_status), []))

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        status = status_value(status)
        return status in cls.VALID_TRANSITIONS and not cls.VALID_TRANSITIONS[status]

    @classmethod
    def can_delete(cls, status: str) -> bool:
        return status_value(status) in cls.DELETABLE

"""Tests for payroll run state machine."""

import pytest

from statutory_payroll.calculators.types import PayrollRunStatus
from statutory_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
)


class TestPayrollRunStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → processing
        assert PayrollRunStateMachine.can_transition("draft", "processing") is True

        # processing → completed
        assert PayrollRunStateMachine.can_transition("processing", "completed") is True

        # draft → cancelled
        assert PayrollRunStateMachine.can_transition("draft", "cancelled") is True

        # processing → cancelled
        assert PayrollRunStateMachine.can_transition("processing", "cancelled") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip processing
        assert PayrollRunStateMachine.can_transition("draft", "completed") is False

        # Can't go backwards
        assert PayrollRunStateMachine.can_transition("processing", "draft") is False

        # Completed and cancelled are terminal
        assert PayrollRunStateMachine.can_transition("completed", "cancelled") is False
        assert PayrollRunStateMachine.can_transition("cancelled", "draft") is False

        # Unknown statuses
        assert PayrollRunStateMachine.can_transition("paid", "draft") is False

    def test_accepts_enum_members(self):
        assert PayrollRunStateMachine.can_transition(
            PayrollRunStatus.DRAFT, PayrollRunStatus.PROCESSING
        ) is True

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            PayrollRunStateMachine.validate_transition("draft", PayrollRunStatus.COMPLETED)

        assert exc_info.value.from_status == "draft"
        assert exc_info.value.to_status == "completed"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_get_next_statuses(self):
        assert PayrollRunStateMachine.get_next_statuses("draft") == ["processing", "cancelled"]
        assert PayrollRunStateMachine.get_next_statuses("completed") == []

    def test_is_terminal(self):
        assert PayrollRunStateMachine.is_terminal("completed") is True
        assert PayrollRunStateMachine.is_terminal("cancelled") is True
        assert PayrollRunStateMachine.is_terminal("draft") is False
        assert PayrollRunStateMachine.is_terminal("processing") is False

    def test_can_delete(self):
        """Only draft and cancelled runs may be deleted."""
        assert PayrollRunStateMachine.can_delete("draft") is True
        assert PayrollRunStateMachine.can_delete("cancelled") is True
        assert PayrollRunStateMachine.can_delete("processing") is False
        assert PayrollRunStateMachine.can_delete("completed") is False

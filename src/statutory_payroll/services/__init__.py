"""Payroll run services."""

from statutory_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
)
from statutory_payroll.services.payroll_run_service import PayrollRunService

__all__ = [
    "InvalidTransitionError",
    "PayrollRunStateMachine",
    "PayrollRunService",
]

"""Base error type shared by the calculation engine and its boundaries."""

from __future__ import annotations


class PayrollError(Exception):
    """Base class for all payroll engine errors.

    Every subclass carries a stable ``code`` so the calling layer can tell
    failures apart without parsing messages.
    """

    code = "PAYROLL_ERROR"
    retryable = False


class InvalidPayrollInputError(PayrollError, ValueError):
    """Raised when caller-supplied input is rejected before computation."""

    code = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")

"""Type definitions for the calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from statutory_payroll.errors import InvalidPayrollInputError

ZERO = Decimal("0")

# Money columns are Numeric(14, 2)
MAX_AMOUNT = Decimal("1000000000000")


def as_money(value: Any, field: str) -> Decimal:
    """Coerce a currency amount to Decimal, rejecting non-finite and negative values."""
    if isinstance(value, bool) or value is None:
        raise InvalidPayrollInputError(field, f"expected a number, got {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidPayrollInputError(field, f"expected a number, got {value!r}")
    if not amount.is_finite():
        raise InvalidPayrollInputError(field, "must be a finite amount")
    if amount < 0:
        raise InvalidPayrollInputError(field, f"must be non-negative, got {amount}")
    if amount >= MAX_AMOUNT:
        raise InvalidPayrollInputError(field, f"must be below {MAX_AMOUNT:,}, got {amount}")
    return amount


class EmploymentStatus(str, Enum):
    """Employment status as held by the employee directory."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class EmployeeRecord:
    """Read-only view of an employee supplied by the external directory."""

    employee_id: UUID
    base_salary: Decimal
    status: EmploymentStatus = EmploymentStatus.ACTIVE
    housing_allowance: Decimal = ZERO
    transport_allowance: Decimal = ZERO
    other_allowances: Decimal = ZERO

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "status", EmploymentStatus(self.status))
        except ValueError:
            raise InvalidPayrollInputError("status", f"unknown employment status {self.status!r}")
        for name in ("base_salary", "housing_allowance", "transport_allowance", "other_allowances"):
            object.__setattr__(self, name, as_money(getattr(self, name), name))

    @property
    def total_allowances(self) -> Decimal:
        return self.housing_allowance + self.transport_allowance + self.other_allowances

    @property
    def is_payroll_eligible(self) -> bool:
        return self.status == EmploymentStatus.ACTIVE and self.base_salary > 0


@dataclass(frozen=True)
class PayPeriod:
    """Pay period descriptor for one payroll run."""

    name: str
    period_start: date
    period_end: date
    payment_date: date

    def validate(self) -> None:
        """Raise InvalidPayrollInputError if the period is malformed."""
        if not self.name or not self.name.strip():
            raise InvalidPayrollInputError("period.name", "must not be empty")
        for attr in ("period_start", "period_end", "payment_date"):
            if not isinstance(getattr(self, attr), date):
                raise InvalidPayrollInputError(f"period.{attr}", "must be a date")
        if self.period_end < self.period_start:
            raise InvalidPayrollInputError(
                "period.period_end",
                f"{self.period_end} is before period start {self.period_start}",
            )


@dataclass(frozen=True)
class DeductionBreakdown:
    """Statutory deductions computed from one gross pay figure.

    total_deductions = income_tax + health_contribution
                       + pension_contribution + other_deductions
    net_pay = gross_pay - total_deductions
    """

    gross_pay: Decimal
    income_tax: Decimal
    health_contribution: Decimal
    pension_contribution: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    def to_canonical_dict(self) -> dict[str, str]:
        """Return canonical dict with string amounts (deterministic ordering)."""
        return {
            "gross_pay": str(self.gross_pay),
            "income_tax": str(self.income_tax),
            "health_contribution": str(self.health_contribution),
            "pension_contribution": str(self.pension_contribution),
            "other_deductions": str(self.other_deductions),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
        }


@dataclass(frozen=True)
class PayrollItemRecord:
    """Per-employee line of a payroll run, before persistence."""

    employee_id: UUID
    basic_salary: Decimal
    housing_allowance: Decimal
    transport_allowance: Decimal
    other_allowances: Decimal
    gross_pay: Decimal
    statutory_gross: Decimal  # Figure the statutory deductions were computed from
    income_tax: Decimal
    health_contribution: Decimal
    pension_contribution: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    def to_canonical_dict(self) -> dict[str, str]:
        return {
            "employee_id": str(self.employee_id),
            "basic_salary": str(self.basic_salary),
            "housing_allowance": str(self.housing_allowance),
            "transport_allowance": str(self.transport_allowance),
            "other_allowances": str(self.other_allowances),
            "gross_pay": str(self.gross_pay),
            "statutory_gross": str(self.statutory_gross),
            "income_tax": str(self.income_tax),
            "health_contribution": str(self.health_contribution),
            "pension_contribution": str(self.pension_contribution),
            "other_deductions": str(self.other_deductions),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
        }


@dataclass(frozen=True)
class PayrollRunRecord:
    """Payroll run header with aggregate totals, before persistence."""

    organization_id: UUID
    name: str
    period_start: date
    period_end: date
    payment_date: date
    employee_count: int
    total_gross: Decimal
    total_income_tax: Decimal
    total_health: Decimal
    total_pension: Decimal
    total_deductions: Decimal
    total_net: Decimal
    tables_version: str
    calculation_fingerprint: str
    status: PayrollRunStatus = PayrollRunStatus.DRAFT
    run_number: str | None = None


@dataclass(frozen=True)
class BuiltPayrollRun:
    """A run and its items, produced together as one unit."""

    run: PayrollRunRecord
    items: tuple[PayrollItemRecord, ...]

    def with_run_number(self, run_number: str) -> BuiltPayrollRun:
        """Return a copy with the allocated run number stamped on the header."""
        return BuiltPayrollRun(run=replace(self.run, run_number=run_number), items=self.items)

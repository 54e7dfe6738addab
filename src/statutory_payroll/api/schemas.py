"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from statutory_payroll.calculators.types import (
    EmployeeRecord,
    EmploymentStatus,
    PayPeriod,
    PayrollRunStatus,
)


# ============================================================================
# Tax calculation schemas
# ============================================================================


class TaxCalculationRequest(BaseModel):
    """Schema for previewing one employee's statutory deductions."""

    gross_pay: Decimal = Field(ge=0)
    other_deductions: Decimal = Field(default=Decimal("0"), ge=0)
    jurisdiction: str = "KE"


class TaxCalculationResponse(BaseModel):
    """Schema for a deduction breakdown."""

    model_config = ConfigDict(from_attributes=True)

    gross_pay: Decimal
    income_tax: Decimal
    health_contribution: Decimal
    pension_contribution: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    tables_version: str


# ============================================================================
# Payroll run schemas
# ============================================================================


class EmployeeInput(BaseModel):
    """One roster entry submitted with a payroll run."""

    employee_id: UUID
    base_salary: Decimal = Field(ge=0)
    status: EmploymentStatus = EmploymentStatus.ACTIVE
    housing_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    transport_allowance: Decimal = Field(default=Decimal("0"), ge=0)
    other_allowances: Decimal = Field(default=Decimal("0"), ge=0)

    def to_record(self) -> EmployeeRecord:
        return EmployeeRecord(
            employee_id=self.employee_id,
            base_salary=self.base_salary,
            status=self.status,
            housing_allowance=self.housing_allowance,
            transport_allowance=self.transport_allowance,
            other_allowances=self.other_allowances,
        )


class PayrollRunCreate(BaseModel):
    """Schema for creating a payroll run from a roster."""

    name: str = Field(min_length=1)
    period_start: date
    period_end: date
    payment_date: date
    employees: list[EmployeeInput]

    def to_period(self) -> PayPeriod:
        return PayPeriod(
            name=self.name,
            period_start=self.period_start,
            period_end=self.period_end,
            payment_date=self.payment_date,
        )


class PayrollItemResponse(BaseModel):
    """Schema for a payroll item response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_item_id: UUID
    employee_id: UUID
    basic_salary: Decimal
    housing_allowance: Decimal
    transport_allowance: Decimal
    other_allowances: Decimal
    gross_pay: Decimal
    statutory_gross: Decimal
    income_tax: Decimal
    health_contribution: Decimal
    pension_contribution: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    organization_id: UUID
    run_number: str
    name: str
    period_start: date
    period_end: date
    payment_date: date
    status: PayrollRunStatus
    employee_count: int
    total_gross: Decimal
    total_income_tax: Decimal
    total_health: Decimal
    total_pension: Decimal
    total_deductions: Decimal
    total_net: Decimal
    tables_version: str
    calculation_fingerprint: str
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None


class PayrollRunDetailResponse(PayrollRunResponse):
    """Payroll run together with its items."""

    items: list[PayrollItemResponse]


class PayrollRunListResponse(BaseModel):
    """Schema for listing payroll runs."""

    items: list[PayrollRunResponse]
    total: int


class StatusTransitionRequest(BaseModel):
    """Schema for a status transition request."""

    to_status: PayrollRunStatus


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error responses."""

    detail: str
    code: str

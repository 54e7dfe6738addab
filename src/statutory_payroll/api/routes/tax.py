"""Tax calculation preview endpoint."""

from fastapi import APIRouter, status

from statutory_payroll.api.dependencies import AppSettings
from statutory_payroll.api.schemas import (
    ErrorResponse,
    TaxCalculationRequest,
    TaxCalculationResponse,
)
from statutory_payroll.calculators.brackets import resolve_tables
from statutory_payroll.calculators.tax_calculator import compute

router = APIRouter(prefix="/tax", tags=["tax"])


@router.post(
    "/calculate",
    response_model=TaxCalculationResponse,
    status_code=status.HTTP_200_OK,
    responses={422: {"model": ErrorResponse}},
)
async def calculate_tax(
    settings: AppSettings,
    payload: TaxCalculationRequest,
) -> TaxCalculationResponse:
    """Preview the statutory deductions for one gross pay figure."""
    jurisdiction = payload.jurisdiction.upper()
    # The override file only applies to the configured jurisdiction
    tables_path = settings.tax_tables_path if jurisdiction == settings.jurisdiction else None
    tables = resolve_tables(jurisdiction, tables_path)

    breakdown = compute(payload.gross_pay, tables, payload.other_deductions)
    return TaxCalculationResponse(
        gross_pay=breakdown.gross_pay,
        income_tax=breakdown.income_tax,
        health_contribution=breakdown.health_contribution,
        pension_contribution=breakdown.pension_contribution,
        other_deductions=breakdown.other_deductions,
        total_deductions=breakdown.total_deductions,
        net_pay=breakdown.net_pay,
        tables_version=tables.version,
    )

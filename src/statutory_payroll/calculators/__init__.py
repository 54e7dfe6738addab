"""Statutory deduction calculators and payroll run building."""

from statutory_payroll.calculators.brackets import (
    KENYA_2024,
    StatutoryTables,
    get_tables,
    resolve_tables,
)
from statutory_payroll.calculators.run_builder import PayrollRunBuilder
from statutory_payroll.calculators.tax_calculator import NegativeNetPayError, compute
from statutory_payroll.calculators.types import (
    BuiltPayrollRun,
    DeductionBreakdown,
    EmployeeRecord,
    PayPeriod,
)

__all__ = [
    "KENYA_2024",
    "StatutoryTables",
    "get_tables",
    "resolve_tables",
    "PayrollRunBuilder",
    "NegativeNetPayError",
    "compute",
    "BuiltPayrollRun",
    "DeductionBreakdown",
    "EmployeeRecord",
    "PayPeriod",
]

"""Payroll run builder - turns a roster into a run header and its items."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

from statutory_payroll.calculators.brackets import KENYA_2024, StatutoryTables
from statutory_payroll.calculators.tax_calculator import NegativeNetPayError, compute
from statutory_payroll.calculators.types import (
    ZERO,
    BuiltPayrollRun,
    EmployeeRecord,
    PayPeriod,
    PayrollItemRecord,
    PayrollRunRecord,
    PayrollRunStatus,
)
from statutory_payroll.errors import InvalidPayrollInputError, PayrollError

logger = logging.getLogger(__name__)


class NoEligibleEmployeesError(PayrollError):
    """Raised when a roster has no active employee with a positive base salary."""

    code = "NO_ELIGIBLE_EMPLOYEES"

    def __init__(self, organization_id: UUID, roster_size: int):
        self.organization_id = organization_id
        self.roster_size = roster_size
        super().__init__(
            f"No eligible employees for organization {organization_id} "
            f"({roster_size} on roster); nothing to process"
        )


class FlaggedEmployeesError(PayrollError):
    """Raised when one or more employees would receive negative net pay."""

    code = "EMPLOYEES_FLAGGED"

    def __init__(self, flagged: dict[UUID, NegativeNetPayError]):
        self.flagged = flagged
        ids = ", ".join(str(employee_id) for employee_id in flagged)
        super().__init__(
            f"{len(flagged)} employee(s) flagged for manual review (negative net pay): {ids}"
        )


class PayrollRunBuilder:
    """Builds a draft payroll run from an employee roster.

    Pipeline (stable order):
    1) Validate organization and period
    2) Keep employees that are active with base salary > 0
    3) Compute statutory deductions per employee
    4) Aggregate the six run totals from the items
    5) Fingerprint inputs for reproducibility

    Allowance treatment is explicit: with ``allowances_taxable=False`` the
    allowances are shown in gross pay but the deductions are computed from
    base salary alone; with ``True`` they are computed from base salary plus
    allowances.
    """

    def __init__(
        self,
        tables: StatutoryTables = KENYA_2024,
        allowances_taxable: bool = False,
    ):
        self.tables = tables
        self.allowances_taxable = allowances_taxable

    def build(
        self,
        organization_id: UUID | None,
        period: PayPeriod,
        roster: Iterable[EmployeeRecord],
    ) -> BuiltPayrollRun:
        """Build the run and its items.

        The run is in ``draft`` status with no run number; the number is
        allocated when the run is persisted.

        Raises:
            InvalidPayrollInputError: Missing organization, malformed period
                or an employee listed twice
            NoEligibleEmployeesError: No employee passed the eligibility filter
            FlaggedEmployeesError: Some employee would get negative net pay
        """
        if organization_id is None:
            raise InvalidPayrollInputError("organization_id", "is required")
        if not isinstance(period, PayPeriod):
            raise InvalidPayrollInputError("period", "expected a PayPeriod")
        period.validate()

        roster = list(roster)
        seen: set[UUID] = set()
        for emp in roster:
            if emp.employee_id in seen:
                raise InvalidPayrollInputError("roster", f"employee {emp.employee_id} appears more than once")
            seen.add(emp.employee_id)

        eligible = [emp for emp in roster if emp.is_payroll_eligible]
        for emp in roster:
            if not emp.is_payroll_eligible:
                logger.debug(
                    "Excluding employee %s from run (status=%s, base_salary=%s)",
                    emp.employee_id,
                    emp.status.value,
                    emp.base_salary,
                )

        if not eligible:
            raise NoEligibleEmployeesError(organization_id, len(roster))

        items: list[PayrollItemRecord] = []
        flagged: dict[UUID, NegativeNetPayError] = {}

        for emp in eligible:
            try:
                items.append(self.build_item(emp))
            except NegativeNetPayError as e:
                flagged[emp.employee_id] = e

        if flagged:
            raise FlaggedEmployeesError(flagged)

        run = PayrollRunRecord(
            organization_id=organization_id,
            name=period.name.strip(),
            period_start=period.period_start,
            period_end=period.period_end,
            payment_date=period.payment_date,
            employee_count=len(items),
            total_gross=sum((i.gross_pay for i in items), ZERO),
            total_income_tax=sum((i.income_tax for i in items), ZERO),
            total_health=sum((i.health_contribution for i in items), ZERO),
            total_pension=sum((i.pension_contribution for i in items), ZERO),
            total_deductions=sum((i.total_deductions for i in items), ZERO),
            total_net=sum((i.net_pay for i in items), ZERO),
            tables_version=self.tables.version,
            calculation_fingerprint=self.compute_fingerprint(items),
            status=PayrollRunStatus.DRAFT,
        )

        logger.info(
            "Built payroll run for organization %s: %d of %d employees, net %s",
            organization_id,
            run.employee_count,
            len(roster),
            run.total_net,
        )
        return BuiltPayrollRun(run=run, items=tuple(items))

    def build_item(self, employee: EmployeeRecord) -> PayrollItemRecord:
        """Compute one employee's payroll item."""
        allowances = employee.total_allowances
        gross_pay = employee.base_salary + allowances
        statutory_gross = gross_pay if self.allowances_taxable else employee.base_salary

        breakdown = compute(statutory_gross, self.tables, check_net_pay=False)
        net_pay = gross_pay - breakdown.total_deductions
        if net_pay < 0:
            raise NegativeNetPayError(
                gross_pay=gross_pay,
                total_deductions=breakdown.total_deductions,
                income_tax=breakdown.income_tax,
                health_contribution=breakdown.health_contribution,
                pension_contribution=breakdown.pension_contribution,
                other_deductions=breakdown.other_deductions,
            )

        return PayrollItemRecord(
            employee_id=employee.employee_id,
            basic_salary=employee.base_salary,
            housing_allowance=employee.housing_allowance,
            transport_allowance=employee.transport_allowance,
            other_allowances=employee.other_allowances,
            gross_pay=gross_pay,
            statutory_gross=statutory_gross,
            income_tax=breakdown.income_tax,
            health_contribution=breakdown.health_contribution,
            pension_contribution=breakdown.pension_contribution,
            other_deductions=breakdown.other_deductions,
            total_deductions=breakdown.total_deductions,
            net_pay=net_pay,
        )

    def compute_fingerprint(self, items: Iterable[PayrollItemRecord]) -> str:
        """Deterministic fingerprint of the calculation inputs and results."""
        data = {
            "tables_version": self.tables.version,
            "allowances_taxable": self.allowances_taxable,
            "items": sorted(
                (i.to_canonical_dict() for i in items),
                key=lambda d: d["employee_id"],
            ),
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()[:32]


def totals_match_items(run: PayrollRunRecord, items: Iterable[PayrollItemRecord]) -> bool:
    """Check the aggregation identity between a run header and its items."""
    items = list(items)
    sums: dict[str, Decimal] = {
        "total_gross": sum((i.gross_pay for i in items), ZERO),
        "total_income_tax": sum((i.income_tax for i in items), ZERO),
        "total_health": sum((i.health_contribution for i in items), ZERO),
        "total_pension": sum((i.pension_contribution for i in items), ZERO),
        "total_deductions": sum((i.total_deductions for i in items), ZERO),
        "total_net": sum((i.net_pay for i in items), ZERO),
    }
    return run.employee_count == len(items) and all(
        getattr(run, name) == value for name, value in sums.items()
    )

"""Tests for building payroll runs from a roster."""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from statutory_payroll.calculators.run_builder import (
    FlaggedEmployeesError,
    NoEligibleEmployeesError,
    PayrollRunBuilder,
    totals_match_items,
)
from statutory_payroll.calculators.tax_calculator import compute
from statutory_payroll.calculators.types import EmployeeRecord, EmploymentStatus, PayrollRunStatus
from statutory_payroll.errors import InvalidPayrollInputError


class TestBuild:
    """Roster to run header and items."""

    def test_two_eligible_one_inactive(self, organization_id, period, roster):
        """Inactive employees are left out; totals sum the two items."""
        built = PayrollRunBuilder().build(organization_id, period, roster)
        run = built.run

        assert run.employee_count == 2
        assert len(built.items) == 2
        assert run.total_gross == Decimal("70000")
        assert run.total_income_tax == Decimal("7383")
        assert run.total_health == Decimal("1950")
        assert run.total_pension == Decimal("3360")
        assert run.total_deductions == Decimal("12693")
        assert run.total_net == Decimal("57307")
        assert {i.employee_id for i in built.items} == {e.employee_id for e in roster[:2]}

    def test_totals_are_sums_of_separate_computations(self, organization_id, period, make_employee):
        """20k, 50k and 100k active plus an inactive 30k."""
        roster = [
            make_employee("20000"),
            make_employee("50000"),
            make_employee("100000"),
            make_employee("30000", status=EmploymentStatus.INACTIVE),
        ]
        expected = [compute(Decimal(salary)) for salary in ("20000", "50000", "100000")]

        run = PayrollRunBuilder().build(organization_id, period, roster).run

        assert run.employee_count == 3
        assert run.total_gross == sum(b.gross_pay for b in expected)
        assert run.total_income_tax == sum(b.income_tax for b in expected)
        assert run.total_health == sum(b.health_contribution for b in expected)
        assert run.total_pension == sum(b.pension_contribution for b in expected)
        assert run.total_deductions == sum(b.total_deductions for b in expected)
        assert run.total_net == sum(b.net_pay for b in expected)
        assert run.total_net == Decimal("131064")

    def test_run_is_unnumbered_draft(self, organization_id, period, roster):
        built = PayrollRunBuilder().build(organization_id, period, roster)

        assert built.run.status == PayrollRunStatus.DRAFT
        assert built.run.run_number is None
        assert built.run.tables_version == "KE-2024-01"
        assert built.run.organization_id == organization_id
        assert built.run.period_start == period.period_start

    def test_with_run_number(self, organization_id, period, roster):
        built = PayrollRunBuilder().build(organization_id, period, roster)
        numbered = built.with_run_number("PR-0007")

        assert numbered.run.run_number == "PR-0007"
        assert numbered.items == built.items
        assert built.run.run_number is None

    def test_aggregation_identity(self, organization_id, period, make_employee):
        roster = [make_employee(str(salary)) for salary in (12000, 33333, 64000, 150000, 910000)]
        built = PayrollRunBuilder().build(organization_id, period, roster)

        assert totals_match_items(built.run, built.items)

    def test_tampered_totals_detected(self, organization_id, period, roster):
        built = PayrollRunBuilder().build(organization_id, period, roster)
        tampered = replace(built.run, total_net=built.run.total_net + 1)

        assert not totals_match_items(tampered, built.items)


class TestEligibility:
    """Only active employees with positive base salary are paid."""

    def test_zero_salary_excluded(self, organization_id, period, make_employee):
        roster = [make_employee("0"), make_employee("30000")]
        built = PayrollRunBuilder().build(organization_id, period, roster)

        assert built.run.employee_count == 1

    def test_terminated_excluded(self, organization_id, period, make_employee):
        roster = [
            make_employee("30000", status=EmploymentStatus.TERMINATED),
            make_employee("30000"),
        ]
        built = PayrollRunBuilder().build(organization_id, period, roster)

        assert built.run.employee_count == 1

    def test_no_eligible_employees(self, organization_id, period, make_employee):
        roster = [make_employee("50000", status=EmploymentStatus.INACTIVE), make_employee("0")]

        with pytest.raises(NoEligibleEmployeesError) as exc_info:
            PayrollRunBuilder().build(organization_id, period, roster)

        assert exc_info.value.code == "NO_ELIGIBLE_EMPLOYEES"
        assert exc_info.value.roster_size == 2

    def test_empty_roster(self, organization_id, period):
        with pytest.raises(NoEligibleEmployeesError):
            PayrollRunBuilder().build(organization_id, period, [])


class TestFlaggedEmployees:
    """Negative net pay flags the employee for review."""

    def test_all_flagged_employees_reported(self, organization_id, period, make_employee):
        low_a = make_employee("100")
        low_b = make_employee("120")
        roster = [low_a, make_employee("50000"), low_b]

        with pytest.raises(FlaggedEmployeesError) as exc_info:
            PayrollRunBuilder().build(organization_id, period, roster)

        error = exc_info.value
        assert error.code == "EMPLOYEES_FLAGGED"
        assert set(error.flagged) == {low_a.employee_id, low_b.employee_id}
        assert error.flagged[low_a.employee_id].net_pay == Decimal("-56")


class TestAllowances:
    """Allowance treatment is explicit."""

    def test_allowances_not_taxable_by_default(self, organization_id, period, make_employee):
        employee = make_employee("50000", housing_allowance="10000", transport_allowance="5000")
        item = PayrollRunBuilder().build(organization_id, period, [employee]).items[0]

        assert item.gross_pay == Decimal("65000")
        assert item.statutory_gross == Decimal("50000")
        assert item.income_tax == Decimal("7383")
        assert item.total_deductions == Decimal("10743")
        assert item.net_pay == Decimal("54257")

    def test_allowances_taxable(self, organization_id, period, make_employee):
        employee = make_employee("50000", housing_allowance="10000", transport_allowance="5000")
        builder = PayrollRunBuilder(allowances_taxable=True)
        item = builder.build(organization_id, period, [employee]).items[0]

        assert item.gross_pay == Decimal("65000")
        assert item.statutory_gross == Decimal("65000")
        # 2,400 + 2,083.25 + 32,667 * 30% - 2,400
        assert item.income_tax == Decimal("11883")
        assert item.health_contribution == Decimal("1300")
        assert item.pension_contribution == Decimal("2160")
        assert item.net_pay == item.gross_pay - item.total_deductions

    def test_untaxed_allowances_count_towards_net_pay(self, organization_id, period, make_employee):
        """A low base salary is not flagged when allowances cover the deductions."""
        employee = make_employee("100", housing_allowance="10000")
        item = PayrollRunBuilder().build(organization_id, period, [employee]).items[0]

        assert item.statutory_gross == Decimal("100")
        assert item.total_deductions == Decimal("156")
        assert item.net_pay == Decimal("9944")

    def test_allowances_too_small_still_flagged(self, organization_id, period, make_employee):
        employee = make_employee("100", transport_allowance="50")

        with pytest.raises(FlaggedEmployeesError) as exc_info:
            PayrollRunBuilder().build(organization_id, period, [employee])

        flagged = exc_info.value.flagged[employee.employee_id]
        assert flagged.gross_pay == Decimal("150")
        assert flagged.net_pay == Decimal("-6")

    def test_policy_changes_fingerprint(self, organization_id, period, make_employee):
        roster = [make_employee("50000", other_allowances="2000")]
        exempt = PayrollRunBuilder().build(organization_id, period, roster)
        taxable = PayrollRunBuilder(allowances_taxable=True).build(organization_id, period, roster)

        assert exempt.run.calculation_fingerprint != taxable.run.calculation_fingerprint


class TestFingerprint:
    """Re-running the same roster is byte-identical."""

    def test_deterministic(self, organization_id, period, roster):
        builder = PayrollRunBuilder()
        first = builder.build(organization_id, period, roster)
        second = builder.build(organization_id, period, list(reversed(roster)))

        assert first.run.calculation_fingerprint == second.run.calculation_fingerprint
        assert len(first.run.calculation_fingerprint) == 32

    def test_changes_with_salary(self, organization_id, period, make_employee):
        employee = make_employee("50000")
        raised = replace(employee, base_salary=Decimal("50001"))
        builder = PayrollRunBuilder()

        a = builder.build(organization_id, period, [employee])
        b = builder.build(organization_id, period, [raised])

        assert a.run.calculation_fingerprint != b.run.calculation_fingerprint


class TestValidation:
    """Input checks before any computation."""

    def test_missing_organization(self, period, roster):
        with pytest.raises(InvalidPayrollInputError):
            PayrollRunBuilder().build(None, period, roster)

    def test_period_end_before_start(self, organization_id, period, roster):
        bad = replace(period, period_end=date(2023, 12, 31))
        with pytest.raises(InvalidPayrollInputError):
            PayrollRunBuilder().build(organization_id, bad, roster)

    def test_blank_period_name(self, organization_id, period, roster):
        with pytest.raises(InvalidPayrollInputError):
            PayrollRunBuilder().build(organization_id, replace(period, name="  "), roster)

    def test_duplicate_employee(self, organization_id, period, make_employee):
        employee = make_employee("50000")
        with pytest.raises(InvalidPayrollInputError):
            PayrollRunBuilder().build(organization_id, period, [employee, employee])

    def test_negative_salary_rejected(self, make_employee):
        with pytest.raises(InvalidPayrollInputError):
            make_employee("-10")

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidPayrollInputError):
            EmployeeRecord(employee_id=uuid4(), base_salary=Decimal("100"), status="retired")

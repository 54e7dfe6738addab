"""Statutory deduction calculation (PAYE, health contribution, pension).

Every function here is pure: the result depends only on the gross pay and
the ``StatutoryTables`` argument. Swapping jurisdictions means passing a
different tables object.
"""

from __future__ import annotations

from bisect import bisect_right
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from statutory_payroll.calculators.brackets import KENYA_2024, StatutoryTables
from statutory_payroll.calculators.types import ZERO, DeductionBreakdown, as_money
from statutory_payroll.errors import PayrollError


class NegativeNetPayError(PayrollError):
    """Raised when deductions exceed gross pay.

    Carries the computed figures so the caller can flag the employee for
    manual review instead of receiving a misleading clamped value.
    """

    code = "NEGATIVE_NET_PAY"

    def __init__(
        self,
        gross_pay: Decimal,
        total_deductions: Decimal,
        income_tax: Decimal,
        health_contribution: Decimal,
        pension_contribution: Decimal,
        other_deductions: Decimal,
    ):
        self.gross_pay = gross_pay
        self.total_deductions = total_deductions
        self.income_tax = income_tax
        self.health_contribution = health_contribution
        self.pension_contribution = pension_contribution
        self.other_deductions = other_deductions
        self.net_pay = gross_pay - total_deductions
        super().__init__(
            f"Deductions {total_deductions} exceed gross pay {gross_pay} "
            f"(net pay would be {self.net_pay})"
        )


def round_currency(amount: Decimal, tables: StatutoryTables = KENYA_2024) -> Decimal:
    """Round half-up to the jurisdiction's currency unit."""
    return amount.quantize(tables.rounding_unit, rounding=ROUND_HALF_UP)


def calculate_income_tax(gross_pay: Decimal, tables: StatutoryTables = KENYA_2024) -> Decimal:
    """Progressive marginal tax less personal relief, floored at zero.

    Bands are not rounded individually; the total is rounded once.
    """
    if gross_pay <= 0:
        return ZERO

    tax = ZERO
    for band in tables.income_tax_bands:
        if gross_pay <= band.lower:
            break
        upper = gross_pay if band.upper is None else min(gross_pay, band.upper)
        tax += band.rate * (upper - band.lower)

    after_relief = max(ZERO, tax - tables.personal_relief)
    return round_currency(after_relief, tables)


def find_health_band_index(gross_pay: Decimal, tables: StatutoryTables = KENYA_2024) -> int:
    """Index of the ``[lower, upper)`` band containing gross pay."""
    lowers = [band.lower for band in tables.health_bands]
    return bisect_right(lowers, gross_pay) - 1


def calculate_health_contribution(
    gross_pay: Decimal, tables: StatutoryTables = KENYA_2024
) -> Decimal:
    """Flat contribution of the band containing gross pay.

    Zero gross pay means nothing was earned, so nothing is withheld.
    """
    if gross_pay <= 0:
        return ZERO
    band = tables.health_bands[find_health_band_index(gross_pay, tables)]
    return round_currency(band.amount, tables)


def calculate_pension_contribution(
    gross_pay: Decimal, tables: StatutoryTables = KENYA_2024
) -> Decimal:
    """Two-tier contribution on pensionable pay, capped at both tier maxima."""
    if gross_pay <= 0:
        return ZERO

    pensionable = gross_pay
    if tables.pensionable_pay_cap is not None:
        pensionable = min(pensionable, tables.pensionable_pay_cap)

    tier1, tier2 = tables.pension_tiers
    tier1_contribution = tier1.rate * min(pensionable, tier1.limit)
    tier2_pensionable = min(max(pensionable - tier1.limit, ZERO), tier2.limit - tier1.limit)
    tier2_contribution = tier2.rate * tier2_pensionable

    total = min(tier1_contribution + tier2_contribution, tables.pension_cap)
    return round_currency(total, tables)


def compute(
    gross_pay: Any,
    tables: StatutoryTables = KENYA_2024,
    other_deductions: Any = ZERO,
    check_net_pay: bool = True,
) -> DeductionBreakdown:
    """Compute the full deduction breakdown for one gross pay figure.

    Args:
        gross_pay: Non-negative gross pay for the period
        tables: Rate tables of the jurisdiction
        other_deductions: Non-negative non-statutory deductions
        check_net_pay: Raise when deductions exceed gross pay. Callers that
            pay more than the statutory gross (untaxed allowances) turn
            this off and check their own net figure.

    Returns:
        DeductionBreakdown with every deduction non-negative; net_pay is
        non-negative unless check_net_pay is off

    Raises:
        InvalidPayrollInputError: If an amount is negative or not a number
        NegativeNetPayError: If check_net_pay is set and deductions would
            exceed gross pay
    """
    gross = as_money(gross_pay, "gross_pay")
    other = as_money(other_deductions, "other_deductions")

    income_tax = calculate_income_tax(gross, tables)
    health = calculate_health_contribution(gross, tables)
    pension = calculate_pension_contribution(gross, tables)

    total_deductions = income_tax + health + pension + other
    net_pay = gross - total_deductions

    if check_net_pay and net_pay < 0:
        raise NegativeNetPayError(
            gross_pay=gross,
            total_deductions=total_deductions,
            income_tax=income_tax,
            health_contribution=health,
            pension_contribution=pension,
            other_deductions=other,
        )

    return DeductionBreakdown(
        gross_pay=gross,
        income_tax=income_tax,
        health_contribution=health,
        pension_contribution=pension,
        other_deductions=other,
        total_deductions=total_deductions,
        net_pay=net_pay,
    )

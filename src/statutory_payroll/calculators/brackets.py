"""Statutory rate tables (income tax bands, health bands, pension tiers).

Tables are data: they are built from JSON-compatible payloads and validated
on construction, so a change in statutory rates is a new payload rather than
a code change. Payload structure:

{
    "jurisdiction": "KE",
    "version": "KE-2024-01",
    "effective_from": "2024-01-01",
    "currency": "KES",
    "income_tax": {
        "personal_relief": 2400,
        "bands": [{"min": 0, "max": 24000, "rate": 0.10}, ...]   // last max null
    },
    "health": {"bands": [{"min": 0, "max": 6000, "amount": 150}, ...]},
    "pension": {
        "tiers": [{"limit": 7000, "rate": 0.06}, {"limit": 36000, "rate": 0.06}],
        "pensionable_pay_cap": null
    },
    "rounding_unit": 1
}

Band bounds follow the ``[min, max)`` convention; a null ``max`` means the
band is unbounded.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Sequence

from statutory_payroll.errors import PayrollError


class InvalidBracketTableError(PayrollError):
    """Raised when a rate table violates ordering or bound constraints."""

    code = "INVALID_BRACKET_TABLE"

    def __init__(self, table: str, reason: str):
        self.table = table
        self.reason = reason
        super().__init__(f"Invalid {table} table: {reason}")


class UnsupportedJurisdictionError(PayrollError):
    """Raised when no enabled rate tables exist for a jurisdiction."""

    code = "UNSUPPORTED_JURISDICTION"

    def __init__(self, jurisdiction: str, reason: str = "not supported"):
        self.jurisdiction = jurisdiction
        super().__init__(f"Jurisdiction '{jurisdiction}' is {reason}")


@dataclass(frozen=True)
class IncomeTaxBand:
    """Marginal income tax band."""

    lower: Decimal
    upper: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g. 0.25 for 25%


@dataclass(frozen=True)
class HealthBand:
    """Health contribution band mapping gross pay to a flat amount."""

    lower: Decimal
    upper: Decimal | None
    amount: Decimal

    def contains(self, value: Decimal) -> bool:
        return value >= self.lower and (self.upper is None or value < self.upper)


@dataclass(frozen=True)
class PensionTier:
    """Pension tier: rate applied to pensionable pay up to ``limit``."""

    limit: Decimal
    rate: Decimal


def _validate_bands(table: str, bands: Sequence[IncomeTaxBand | HealthBand]) -> None:
    if not bands:
        raise InvalidBracketTableError(table, "at least one band is required")
    if bands[0].lower != 0:
        raise InvalidBracketTableError(table, f"first band must start at 0, got {bands[0].lower}")
    for i, band in enumerate(bands):
        is_last = i == len(bands) - 1
        if band.upper is None:
            if not is_last:
                raise InvalidBracketTableError(table, f"only the last band may be unbounded (band {i})")
            continue
        if band.upper <= band.lower:
            raise InvalidBracketTableError(
                table, f"band {i} upper bound {band.upper} must exceed lower bound {band.lower}"
            )
        if not is_last and bands[i + 1].lower != band.upper:
            raise InvalidBracketTableError(
                table,
                f"band {i + 1} starts at {bands[i + 1].lower}, expected {band.upper} "
                "(bands must be sorted, contiguous and non-overlapping)",
            )


def _decimal(raw: Any) -> Decimal:
    return Decimal(str(raw))


def _optional_decimal(raw: Any) -> Decimal | None:
    return None if raw is None else Decimal(str(raw))


@dataclass(frozen=True)
class StatutoryTables:
    """Versioned set of rate tables for one jurisdiction."""

    jurisdiction: str
    version: str
    effective_from: date
    currency: str
    income_tax_bands: tuple[IncomeTaxBand, ...]
    personal_relief: Decimal
    health_bands: tuple[HealthBand, ...]
    pension_tiers: tuple[PensionTier, ...]
    pensionable_pay_cap: Decimal | None = None
    rounding_unit: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        _validate_bands("income tax", self.income_tax_bands)
        for band in self.income_tax_bands:
            if not 0 <= band.rate <= 1:
                raise InvalidBracketTableError("income tax", f"rate {band.rate} outside [0, 1]")
        if self.personal_relief < 0:
            raise InvalidBracketTableError("income tax", "personal relief must be non-negative")

        _validate_bands("health", self.health_bands)
        previous = Decimal("0")
        for band in self.health_bands:
            if band.amount < previous:
                raise InvalidBracketTableError("health", "amounts must be non-decreasing")
            previous = band.amount

        if len(self.pension_tiers) != 2:
            raise InvalidBracketTableError("pension", "exactly two tiers are required")
        tier1, tier2 = self.pension_tiers
        if not 0 < tier1.limit < tier2.limit:
            raise InvalidBracketTableError("pension", "tier limits must be positive and increasing")
        for tier in self.pension_tiers:
            if not 0 <= tier.rate <= 1:
                raise InvalidBracketTableError("pension", f"rate {tier.rate} outside [0, 1]")
        if self.pensionable_pay_cap is not None and self.pensionable_pay_cap <= 0:
            raise InvalidBracketTableError("pension", "pensionable pay cap must be positive")
        if self.rounding_unit <= 0:
            raise InvalidBracketTableError("rounding", "rounding unit must be positive")

    @property
    def pension_cap(self) -> Decimal:
        """Largest possible pension contribution (sum of both tier maxima)."""
        tier1, tier2 = self.pension_tiers
        return tier1.rate * tier1.limit + tier2.rate * (tier2.limit - tier1.limit)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> StatutoryTables:
        """Build tables from a JSON-compatible payload."""
        try:
            income_tax = payload["income_tax"]
            return cls(
                jurisdiction=payload["jurisdiction"],
                version=payload["version"],
                effective_from=date.fromisoformat(payload["effective_from"]),
                currency=payload.get("currency", "KES"),
                income_tax_bands=tuple(
                    IncomeTaxBand(
                        lower=_decimal(b["min"]),
                        upper=_optional_decimal(b.get("max")),
                        rate=_decimal(b["rate"]),
                    )
                    for b in income_tax["bands"]
                ),
                personal_relief=_decimal(income_tax.get("personal_relief", 0)),
                health_bands=tuple(
                    HealthBand(
                        lower=_decimal(b["min"]),
                        upper=_optional_decimal(b.get("max")),
                        amount=_decimal(b["amount"]),
                    )
                    for b in payload["health"]["bands"]
                ),
                pension_tiers=tuple(
                    PensionTier(limit=_decimal(t["limit"]), rate=_decimal(t["rate"]))
                    for t in payload["pension"]["tiers"]
                ),
                pensionable_pay_cap=_optional_decimal(
                    payload["pension"].get("pensionable_pay_cap")
                ),
                rounding_unit=_decimal(payload.get("rounding_unit", 1)),
            )
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise InvalidBracketTableError("payload", f"malformed payload ({e!r})")

    def to_payload(self) -> dict[str, Any]:
        """Serialize back to the payload structure (amounts as strings)."""

        def bound(value: Decimal | None) -> str | None:
            return None if value is None else str(value)

        return {
            "jurisdiction": self.jurisdiction,
            "version": self.version,
            "effective_from": self.effective_from.isoformat(),
            "currency": self.currency,
            "income_tax": {
                "personal_relief": str(self.personal_relief),
                "bands": [
                    {"min": str(b.lower), "max": bound(b.upper), "rate": str(b.rate)}
                    for b in self.income_tax_bands
                ],
            },
            "health": {
                "bands": [
                    {"min": str(b.lower), "max": bound(b.upper), "amount": str(b.amount)}
                    for b in self.health_bands
                ],
            },
            "pension": {
                "tiers": [{"limit": str(t.limit), "rate": str(t.rate)} for t in self.pension_tiers],
                "pensionable_pay_cap": bound(self.pensionable_pay_cap),
            },
            "rounding_unit": str(self.rounding_unit),
        }


# Kenya monthly rates, 2024 (KRA PAYE bands, NHIF schedule, NSSF Act 2013 tiers)
KENYA_2024_PAYLOAD: dict[str, Any] = {
    "jurisdiction": "KE",
    "version": "KE-2024-01",
    "effective_from": "2024-01-01",
    "currency": "KES",
    "income_tax": {
        "personal_relief": "2400",
        "bands": [
            {"min": "0", "max": "24000", "rate": "0.10"},
            {"min": "24000", "max": "32333", "rate": "0.25"},
            {"min": "32333", "max": "500000", "rate": "0.30"},
            {"min": "500000", "max": "800000", "rate": "0.325"},
            {"min": "800000", "max": None, "rate": "0.35"},
        ],
    },
    "health": {
        "bands": [
            {"min": "0", "max": "6000", "amount": "150"},
            {"min": "6000", "max": "8000", "amount": "300"},
            {"min": "8000", "max": "12000", "amount": "400"},
            {"min": "12000", "max": "15000", "amount": "500"},
            {"min": "15000", "max": "20000", "amount": "600"},
            {"min": "20000", "max": "25000", "amount": "750"},
            {"min": "25000", "max": "30000", "amount": "850"},
            {"min": "30000", "max": "35000", "amount": "900"},
            {"min": "35000", "max": "40000", "amount": "950"},
            {"min": "40000", "max": "45000", "amount": "1000"},
            {"min": "45000", "max": "50000", "amount": "1100"},
            {"min": "50000", "max": "60000", "amount": "1200"},
            {"min": "60000", "max": "70000", "amount": "1300"},
            {"min": "70000", "max": "80000", "amount": "1400"},
            {"min": "80000", "max": "90000", "amount": "1500"},
            {"min": "90000", "max": "100000", "amount": "1600"},
            {"min": "100000", "max": None, "amount": "1700"},
        ],
    },
    "pension": {
        "tiers": [
            {"limit": "7000", "rate": "0.06"},
            {"limit": "36000", "rate": "0.06"},
        ],
        "pensionable_pay_cap": None,
    },
    "rounding_unit": "1",
}

KENYA_2024 = StatutoryTables.from_payload(KENYA_2024_PAYLOAD)


@dataclass(frozen=True)
class Jurisdiction:
    """Registry entry for a payroll jurisdiction."""

    code: str
    name: str
    currency: str
    enabled: bool
    tables: StatutoryTables | None = None


JURISDICTIONS: dict[str, Jurisdiction] = {
    "KE": Jurisdiction("KE", "Kenya", "KES", enabled=True, tables=KENYA_2024),
    "UG": Jurisdiction("UG", "Uganda", "UGX", enabled=False),
    "TZ": Jurisdiction("TZ", "Tanzania", "TZS", enabled=False),
    "RW": Jurisdiction("RW", "Rwanda", "RWF", enabled=False),
}


def get_tables(jurisdiction: str) -> StatutoryTables:
    """Get the current tables for an enabled jurisdiction."""
    entry = JURISDICTIONS.get(jurisdiction.upper())
    if entry is None:
        raise UnsupportedJurisdictionError(jurisdiction)
    if not entry.enabled or entry.tables is None:
        raise UnsupportedJurisdictionError(jurisdiction, "not yet available")
    return entry.tables


def load_tables_file(path: str | Path) -> StatutoryTables:
    """Load tables from a JSON file with the payload structure."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)
    return StatutoryTables.from_payload(payload)


def resolve_tables(jurisdiction: str, tables_path: str | Path | None = None) -> StatutoryTables:
    """Tables from an override file when one is configured, else the registry."""
    if tables_path is None:
        return get_tables(jurisdiction)
    tables = load_tables_file(tables_path)
    if tables.jurisdiction.upper() != jurisdiction.upper():
        raise InvalidBracketTableError(
            "payload",
            f"file {tables_path} holds {tables.jurisdiction} tables, expected {jurisdiction}",
        )
    return tables

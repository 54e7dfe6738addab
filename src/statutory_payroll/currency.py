"""Display formatting for money amounts (never used in arithmetic)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal


def format_currency(amount: Decimal | int | str, currency: str = "KES", places: int = 0) -> str:
    """Format an amount with thousands separators and a currency code.

    >>> format_currency(Decimal("39257"))
    'KES 39,257'
    >>> format_currency(Decimal("-1200.5"), places=2)
    '-KES 1,200.50'
    """
    value = Decimal(str(amount)).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency} {abs(value):,.{places}f}"

"""Command line entry point.

Usage:
    python -m statutory_payroll serve [--host H] [--port P]
    python -m statutory_payroll calculate 50000 --other-deductions 500
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Callable

from statutory_payroll.calculators.brackets import resolve_tables
from statutory_payroll.calculators.tax_calculator import compute
from statutory_payroll.config import Settings, configure_logging, get_settings
from statutory_payroll.currency import format_currency
from statutory_payroll.errors import PayrollError

logger = logging.getLogger(__name__)


def parse_amount(s: str) -> Decimal:
    """Parse a money amount argument."""
    try:
        return Decimal(s)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"not a number: {s!r}")


class PayrollCli:
    """Statutory payroll command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="python -m statutory_payroll",
            description="Statutory payroll engine",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        serve = subparsers.add_parser("serve", help="Run the HTTP API with uvicorn")
        serve.add_argument("--host", default=self.settings.host, help="Bind address")
        serve.add_argument("--port", type=int, default=self.settings.port, help="Bind port")

        calculate = subparsers.add_parser(
            "calculate",
            help="Print the deduction breakdown for one gross pay figure",
        )
        calculate.add_argument("gross_pay", type=parse_amount, help="Gross pay for the period")
        calculate.add_argument(
            "--other-deductions",
            type=parse_amount,
            default=Decimal("0"),
            help="Non-statutory deductions",
        )
        calculate.add_argument(
            "--jurisdiction",
            default=self.settings.jurisdiction,
            help="Jurisdiction code (default: %(default)s)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[..., int]] = {
            "serve": self._cmd_serve,
            "calculate": self._cmd_calculate,
        }

        try:
            return handlers[parsed.command](parsed)
        except PayrollError as e:
            print(json.dumps({"error": str(e), "code": e.code}), file=sys.stderr)
            return 2

    def _cmd_serve(self, args: argparse.Namespace) -> int:
        import uvicorn

        uvicorn.run(
            "statutory_payroll.api.app:app",
            host=args.host,
            port=args.port,
            reload=self.settings.debug,
            log_level=self.settings.log_level.lower(),
        )
        return 0

    def _cmd_calculate(self, args: argparse.Namespace) -> int:
        jurisdiction = args.jurisdiction.upper()
        tables_path = self.settings.tax_tables_path if jurisdiction == self.settings.jurisdiction else None
        tables = resolve_tables(jurisdiction, tables_path)

        breakdown = compute(args.gross_pay, tables, args.other_deductions)
        logger.debug("Calculated breakdown with tables %s", tables.version)

        output = {
            "tables_version": tables.version,
            "breakdown": breakdown.to_canonical_dict(),
            "display": {
                name: format_currency(value, tables.currency)
                for name, value in vars(breakdown).items()
            },
        }
        print(json.dumps(output, indent=2))
        return 0


def main() -> int:
    """CLI entry point."""
    configure_logging()
    return PayrollCli().run()


if __name__ == "__main__":
    sys.exit(main())

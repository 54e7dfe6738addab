#!/usr/bin/env python
"""Create the payroll tables in the configured database.

Usage:
    python scripts/migrate.py
    python scripts/migrate.py --database-url postgresql+asyncpg://...
    python scripts/migrate.py --dry-run
"""

import argparse
import asyncio
import sys

from sqlalchemy.exc import SQLAlchemyError

from statutory_payroll.config import get_settings
from statutory_payroll.database import create_tables, get_engine
from statutory_payroll.models import Base


def redact(database_url: str) -> str:
    """Drop credentials from a database URL for display."""
    return database_url.split("@")[-1] if "@" in database_url else database_url


async def migrate(database_url: str) -> None:
    engine = get_engine(database_url)
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Create payroll tables")
    parser.add_argument(
        "--database-url",
        default=get_settings().database_url,
        help="Database URL",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the tables without creating them",
    )

    args = parser.parse_args()

    print("Payroll Migration Runner")
    print("=" * 50)
    print(f"Database: {redact(args.database_url)}")
    print()

    for table in Base.metadata.sorted_tables:
        print(f"  {table.name}")
    print()

    if args.dry_run:
        print("[DRY RUN] Nothing created.")
        return 0

    try:
        asyncio.run(migrate(args.database_url))
    except (SQLAlchemyError, OSError) as e:
        print(f"FAILED: {e}")
        return 1

    print("Tables created (existing tables left unchanged).")
    return 0


if __name__ == "__main__":
    sys.exit(main())

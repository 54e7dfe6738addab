"""Per-organization payroll run numbering.

Run numbers are a fixed prefix plus a zero-padded counter (``PR-0001``).
The counter widens instead of truncating once it passes the pad width
(``PR-9999`` is followed by ``PR-10000``). Sequences are strictly increasing
per organization and may have gaps; they must never collide.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from statutory_payroll.errors import PayrollError
from statutory_payroll.models import PayrollRun, PayrollRunCounter

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "PR-"
DEFAULT_WIDTH = 4


class RunNumberConflictError(PayrollError):
    """Raised when a run number is already taken for the organization.

    Retryable: the caller allocates a fresh number and tries again.
    """

    code = "RUN_NUMBER_CONFLICT"
    retryable = True

    def __init__(self, organization_id: UUID, run_number: str):
        self.organization_id = organization_id
        self.run_number = run_number
        super().__init__(
            f"Run number {run_number} already exists for organization {organization_id}"
        )


class RunNumberExhaustedError(PayrollError):
    """Raised when allocation keeps colliding after the retry budget."""

    code = "RUN_NUMBER_EXHAUSTED"

    def __init__(self, organization_id: UUID, attempts: int):
        self.organization_id = organization_id
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique run number for organization {organization_id} "
            f"after {attempts} attempt(s)"
        )


def format_run_number(sequence: int, prefix: str = DEFAULT_PREFIX, width: int = DEFAULT_WIDTH) -> str:
    """Format a sequence value as a run number."""
    if sequence < 1:
        raise ValueError(f"Run sequence must be positive, got {sequence}")
    return f"{prefix}{sequence:0{width}d}"


def parse_run_number(run_number: str, prefix: str = DEFAULT_PREFIX) -> int | None:
    """Extract the sequence value, or None if the number has another shape."""
    if not run_number.startswith(prefix):
        return None
    digits = run_number[len(prefix):]
    return int(digits) if digits.isdigit() else None


class RunNumberAllocator(Protocol):
    """Allocates the next run number for an organization."""

    async def next_run_number(self, organization_id: UUID) -> str:
        ...


class SqlRunNumberAllocator:
    """Atomic per-organization counter stored in ``payroll_run_counter``.

    The increment is a single ``UPDATE ... RETURNING``, so concurrent
    allocators for one organization serialize on the counter row. On first
    use the counter is seeded from the highest run number already stored
    for the organization.
    """

    def __init__(
        self,
        session: AsyncSession,
        prefix: str = DEFAULT_PREFIX,
        width: int = DEFAULT_WIDTH,
    ):
        self.session = session
        self.prefix = prefix
        self.width = width

    async def next_run_number(self, organization_id: UUID) -> str:
        sequence = await self._increment(organization_id)
        if sequence is None:
            await self._seed_counter(organization_id)
            sequence = await self._increment(organization_id)
        if sequence is None:
            raise RuntimeError(f"Run number counter missing for organization {organization_id}")
        return format_run_number(sequence, self.prefix, self.width)

    async def _increment(self, organization_id: UUID) -> int | None:
        result = await self.session.execute(
            update(PayrollRunCounter)
            .where(PayrollRunCounter.organization_id == organization_id)
            .values(last_value=PayrollRunCounter.last_value + 1)
            .returning(PayrollRunCounter.last_value)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()

    async def _seed_counter(self, organization_id: UUID) -> None:
        """Create the counter row, starting after the highest stored number."""
        result = await self.session.execute(
            select(PayrollRun.run_number).where(PayrollRun.organization_id == organization_id)
        )
        existing = [parse_run_number(n, self.prefix) for n in result.scalars().all()]
        seed = max((n for n in existing if n is not None), default=0)

        try:
            async with self.session.begin_nested():
                self.session.add(PayrollRunCounter(organization_id=organization_id, last_value=seed))
        except IntegrityError:
            # Another allocator seeded the row first; its value is authoritative
            logger.debug("Run counter for organization %s seeded concurrently", organization_id)


class InMemoryRunNumberAllocator:
    """Process-local allocator guarded by one asyncio lock per organization."""

    def __init__(
        self,
        prefix: str = DEFAULT_PREFIX,
        width: int = DEFAULT_WIDTH,
        start: dict[UUID, int] | None = None,
    ):
        self.prefix = prefix
        self.width = width
        self._counters: dict[UUID, int] = dict(start or {})
        self._locks: dict[UUID, asyncio.Lock] = {}

    async def next_run_number(self, organization_id: UUID) -> str:
        lock = self._locks.setdefault(organization_id, asyncio.Lock())
        async with lock:
            sequence = self._counters.get(organization_id, 0) + 1
            self._counters[organization_id] = sequence
        return format_run_number(sequence, self.prefix, self.width)


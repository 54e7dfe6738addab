"""Persistence boundary for payroll runs and their items.

A run and its items are one unit: both are stored or neither is.

- SqlPayrollRunGateway writes both inside one savepoint.
- CompensatingPayrollRunGateway targets stores that insert runs and items
  as two separate writes; it deletes the orphaned run when the item insert
  fails.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from statutory_payroll.calculators.run_builder import totals_match_items
from statutory_payroll.calculators.types import BuiltPayrollRun, PayrollRunStatus
from statutory_payroll.errors import InvalidPayrollInputError, PayrollError
from statutory_payroll.models import PayrollItem, PayrollRun
from statutory_payroll.services.run_numbers import RunNumberConflictError

logger = logging.getLogger(__name__)


class PersistenceError(PayrollError):
    """Raised when a run could not be stored; nothing was written."""

    code = "PERSISTENCE_FAILED"

    def __init__(self, message: str):
        super().__init__(message)


class PartialPersistenceError(PersistenceError):
    """Raised when a run was written without its items.

    ``compensated`` tells whether the orphaned run was removed again. When
    it is False, ``orphaned_run_id`` names the run that needs cleanup.
    """

    code = "PARTIAL_PERSISTENCE"

    def __init__(self, payroll_run_id: UUID, compensated: bool, reason: str):
        self.payroll_run_id = payroll_run_id
        self.compensated = compensated
        self.orphaned_run_id = None if compensated else payroll_run_id
        state = "rolled back" if compensated else "left orphaned, needs cleanup"
        super().__init__(f"Items for payroll run {payroll_run_id} failed to persist ({state}): {reason}")


class PayrollRunNotFoundError(PayrollError):
    """Raised when a payroll run does not exist for the organization."""

    code = "RUN_NOT_FOUND"

    def __init__(self, payroll_run_id: UUID):
        self.payroll_run_id = payroll_run_id
        super().__init__(f"Payroll run {payroll_run_id} not found")


def to_models(built: BuiltPayrollRun) -> tuple[PayrollRun, list[PayrollItem]]:
    """Map a built run onto ORM instances (not attached to any session)."""
    header = built.run
    if header.run_number is None:
        raise InvalidPayrollInputError("run_number", "must be allocated before persisting")
    if not totals_match_items(header, built.items):
        raise InvalidPayrollInputError("run", "totals do not match the sum of its items")

    run = PayrollRun(
        payroll_run_id=uuid4(),
        organization_id=header.organization_id,
        run_number=header.run_number,
        name=header.name,
        period_start=header.period_start,
        period_end=header.period_end,
        payment_date=header.payment_date,
        status=PayrollRunStatus(header.status).value,
        employee_count=header.employee_count,
        total_gross=header.total_gross,
        total_income_tax=header.total_income_tax,
        total_health=header.total_health,
        total_pension=header.total_pension,
        total_deductions=header.total_deductions,
        total_net=header.total_net,
        tables_version=header.tables_version,
        calculation_fingerprint=header.calculation_fingerprint,
        items=[],  # loaded empty so items can be attached after the header flush
    )
    items = [
        PayrollItem(
            payroll_item_id=uuid4(),
            payroll_run_id=run.payroll_run_id,
            employee_id=item.employee_id,
            basic_salary=item.basic_salary,
            housing_allowance=item.housing_allowance,
            transport_allowance=item.transport_allowance,
            other_allowances=item.other_allowances,
            gross_pay=item.gross_pay,
            statutory_gross=item.statutory_gross,
            income_tax=item.income_tax,
            health_contribution=item.health_contribution,
            pension_contribution=item.pension_contribution,
            other_deductions=item.other_deductions,
            total_deductions=item.total_deductions,
            net_pay=item.net_pay,
        )
        for item in built.items
    ]
    return run, items


def status_stamps(to_status: str) -> dict[str, datetime]:
    """Timestamp columns set alongside a status change."""
    now = datetime.now(timezone.utc)
    if to_status == PayrollRunStatus.PROCESSING.value:
        return {"processed_at": now}
    if to_status == PayrollRunStatus.COMPLETED.value:
        return {"completed_at": now}
    return {}


class PayrollRunGateway(Protocol):
    """Storage operations the payroll run service depends on."""

    async def save(self, built: BuiltPayrollRun) -> PayrollRun:
        ...

    async def get_run(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun | None:
        ...

    async def list_runs(self, organization_id: UUID) -> list[PayrollRun]:
        ...

    async def update_status(self, payroll_run_id: UUID, from_status: str, to_status: str) -> bool:
        ...

    async def delete_run(self, payroll_run_id: UUID) -> None:
        ...


class SqlPayrollRunGateway:
    """SQLAlchemy gateway writing run and items inside one savepoint.

    Key invariants:
    1. One run per (organization_id, run_number) (unique constraint)
    2. The run header and all items are flushed in the same savepoint
    3. A duplicate run number surfaces as RunNumberConflictError (retryable)
    4. Any failure after the header is written rolls the header back too
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, built: BuiltPayrollRun) -> PayrollRun:
        run, items = to_models(built)

        header_written = False
        try:
            async with self.session.begin_nested():
                self.session.add(run)
                await self.session.flush()
                header_written = True
                run.items.extend(items)
                await self.session.flush()
        except SQLAlchemyError as e:
            if header_written:
                logger.error(
                    "Item insert failed for payroll run %s; header rolled back",
                    run.payroll_run_id,
                )
                raise PartialPersistenceError(run.payroll_run_id, compensated=True, reason=str(e)) from e
            if isinstance(e, IntegrityError) and await self._run_number_taken(
                run.organization_id, run.run_number
            ):
                raise RunNumberConflictError(run.organization_id, run.run_number) from e
            raise PersistenceError(f"Could not store payroll run {run.run_number}: {e}") from e

        return run

    async def get_run(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun | None:
        result = await self.session.execute(
            select(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.organization_id == organization_id,
            )
            .options(selectinload(PayrollRun.items))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_runs(self, organization_id: UUID) -> list[PayrollRun]:
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.organization_id == organization_id)
            .order_by(PayrollRun.created_at.desc(), PayrollRun.run_number.desc())
        )
        return list(result.scalars().all())

    async def update_status(self, payroll_run_id: UUID, from_status: str, to_status: str) -> bool:
        """Conditional update; False if the run was no longer in ``from_status``."""
        result = await self.session.execute(
            update(PayrollRun)
            .where(
                PayrollRun.payroll_run_id == payroll_run_id,
                PayrollRun.status == from_status,
            )
            .values(status=to_status, **status_stamps(to_status))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def delete_run(self, payroll_run_id: UUID) -> None:
        result = await self.session.execute(
            select(PayrollRun)
            .where(PayrollRun.payroll_run_id == payroll_run_id)
            .options(selectinload(PayrollRun.items))
        )
        run = result.scalar_one_or_none()
        if run is None:
            raise PayrollRunNotFoundError(payroll_run_id)
        await self.session.delete(run)
        await self.session.flush()

    async def _run_number_taken(self, organization_id: UUID, run_number: str) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(PayrollRun)
            .where(
                PayrollRun.organization_id == organization_id,
                PayrollRun.run_number == run_number,
            )
        )
        return int(result.scalar_one()) > 0


class PayrollRunStore(Protocol):
    """Backend that stores runs and items with separate, non-transactional writes."""

    async def insert_run(self, run: PayrollRun) -> None:
        ...

    async def insert_items(self, items: list[PayrollItem]) -> None:
        ...

    async def delete_run(self, payroll_run_id: UUID) -> None:
        ...

    async def get_run(self, payroll_run_id: UUID) -> PayrollRun | None:
        ...

    async def get_items(self, payroll_run_id: UUID) -> list[PayrollItem]:
        ...

    async def list_runs(self, organization_id: UUID) -> list[PayrollRun]:
        ...

    async def set_status(self, payroll_run_id: UUID, from_status: str, to_status: str) -> bool:
        ...


class CompensatingPayrollRunGateway:
    """Gateway for stores that cannot transact across the two writes.

    Inserts the header, then the items. When the item insert fails, the
    header is deleted again before the error is raised.
    """

    def __init__(self, store: PayrollRunStore):
        self.store = store

    async def save(self, built: BuiltPayrollRun) -> PayrollRun:
        run, items = to_models(built)

        # Raises RunNumberConflictError when the number is taken
        await self.store.insert_run(run)

        try:
            await self.store.insert_items(items)
        except Exception as e:
            logger.exception(
                "Item insert failed for payroll run %s; deleting header",
                run.payroll_run_id,
            )
            try:
                await self.store.delete_run(run.payroll_run_id)
            except Exception:
                logger.exception(
                    "Compensation failed; payroll run %s is orphaned",
                    run.payroll_run_id,
                )
                raise PartialPersistenceError(run.payroll_run_id, compensated=False, reason=str(e)) from e
            raise PartialPersistenceError(run.payroll_run_id, compensated=True, reason=str(e)) from e

        set_committed_value(run, "items", items)
        return run

    async def get_run(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun | None:
        run = await self.store.get_run(payroll_run_id)
        if run is None or run.organization_id != organization_id:
            return None
        set_committed_value(run, "items", await self.store.get_items(payroll_run_id))
        return run

    async def list_runs(self, organization_id: UUID) -> list[PayrollRun]:
        return await self.store.list_runs(organization_id)

    async def update_status(self, payroll_run_id: UUID, from_status: str, to_status: str) -> bool:
        return await self.store.set_status(payroll_run_id, from_status, to_status)

    async def delete_run(self, payroll_run_id: UUID) -> None:
        if await self.store.get_run(payroll_run_id) is None:
            raise PayrollRunNotFoundError(payroll_run_id)
        await self.store.delete_run(payroll_run_id)


class InMemoryPayrollRunStore:
    """Dict-backed store with the same uniqueness rule as the database."""

    def __init__(self) -> None:
        self.runs: dict[UUID, PayrollRun] = {}
        self.items: dict[UUID, list[PayrollItem]] = {}

    async def insert_run(self, run: PayrollRun) -> None:
        for existing in self.runs.values():
            if (
                existing.organization_id == run.organization_id
                and existing.run_number == run.run_number
            ):
                raise RunNumberConflictError(run.organization_id, run.run_number)
        run.created_at = datetime.now(timezone.utc)
        self.runs[run.payroll_run_id] = run
        self.items[run.payroll_run_id] = []

    async def insert_items(self, items: list[PayrollItem]) -> None:
        for item in items:
            if item.payroll_run_id not in self.runs:
                raise LookupError(f"Payroll run {item.payroll_run_id} does not exist")
        for item in items:
            self.items[item.payroll_run_id].append(item)

    async def delete_run(self, payroll_run_id: UUID) -> None:
        self.runs.pop(payroll_run_id, None)
        self.items.pop(payroll_run_id, None)

    async def get_run(self, payroll_run_id: UUID) -> PayrollRun | None:
        return self.runs.get(payroll_run_id)

    async def get_items(self, payroll_run_id: UUID) -> list[PayrollItem]:
        return list(self.items.get(payroll_run_id, []))

    async def list_runs(self, organization_id: UUID) -> list[PayrollRun]:
        runs = [r for r in self.runs.values() if r.organization_id == organization_id]
        return list(reversed(runs))

    async def set_status(self, payroll_run_id: UUID, from_status: str, to_status: str) -> bool:
        run = self.runs.get(payroll_run_id)
        if run is None or run.status != from_status:
            return False
        run.status = to_status
        for column, value in status_stamps(to_status).items():
            setattr(run, column, value)
        return True

"""Payroll run service - main orchestrator for payroll run operations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING
from uuid import UUID

from statutory_payroll.calculators.brackets import resolve_tables
from statutory_payroll.calculators.run_builder import PayrollRunBuilder
from statutory_payroll.calculators.types import EmployeeRecord, PayPeriod
from statutory_payroll.config import Settings, get_settings
from statutory_payroll.services.gateway import (
    PayrollRunGateway,
    PayrollRunNotFoundError,
    SqlPayrollRunGateway,
)
from statutory_payroll.services.run_numbers import (
    RunNumberAllocator,
    RunNumberConflictError,
    RunNumberExhaustedError,
    SqlRunNumberAllocator,
)
from statutory_payroll.services.state_machine import (
    InvalidTransitionError,
    PayrollRunStateMachine,
    status_value,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from statutory_payroll.models import PayrollRun

logger = logging.getLogger(__name__)


class PayrollRunService:
    """Service for managing the payroll run lifecycle.

    Operations:
    - create_payroll_run: Build, number and persist a draft run
    - transition_status: Move a run through draft/processing/completed/cancelled
    - get_run_with_items / list_runs: Read runs back
    - delete_run: Remove a draft or cancelled run and its items
    """

    def __init__(
        self,
        gateway: PayrollRunGateway,
        allocator: RunNumberAllocator,
        builder: PayrollRunBuilder | None = None,
        max_retries: int = 5,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        self.gateway = gateway
        self.allocator = allocator
        self.builder = builder or PayrollRunBuilder()
        self.max_retries = max_retries

    @classmethod
    def from_session(
        cls,
        session: AsyncSession,
        settings: Settings | None = None,
    ) -> PayrollRunService:
        """Wire the SQL gateway and allocator from settings."""
        settings = settings or get_settings()
        tables = resolve_tables(settings.jurisdiction, settings.tax_tables_path)
        return cls(
            gateway=SqlPayrollRunGateway(session),
            allocator=SqlRunNumberAllocator(
                session,
                prefix=settings.run_number_prefix,
                width=settings.run_number_width,
            ),
            builder=PayrollRunBuilder(tables, allowances_taxable=settings.allowances_taxable),
            max_retries=settings.run_number_max_retries,
        )

    async def create_payroll_run(
        self,
        organization_id: UUID,
        period: PayPeriod,
        roster: Iterable[EmployeeRecord],
    ) -> PayrollRun:
        """Build a draft run, allocate its number and persist it.

        Nothing is stored when the build fails (no eligible employees,
        flagged employees, invalid input). A run number collision is retried
        with a freshly allocated number up to ``max_retries`` times.

        Raises:
            RunNumberExhaustedError: Every attempt collided
            PersistenceError: The run could not be stored
        """
        built = self.builder.build(organization_id, period, roster)

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            run_number = await self.allocator.next_run_number(organization_id)
            try:
                run = await self.gateway.save(built.with_run_number(run_number))
            except RunNumberConflictError:
                logger.warning(
                    "Run number %s taken for organization %s (attempt %d of %d)",
                    run_number,
                    organization_id,
                    attempt,
                    attempts,
                )
                continue

            logger.info(
                "Created payroll run %s (%s) for organization %s with %d employees",
                run.run_number,
                run.payroll_run_id,
                organization_id,
                run.employee_count,
            )
            return run

        raise RunNumberExhaustedError(organization_id, attempts)

    async def get_run_with_items(self, organization_id: UUID, payroll_run_id: UUID) -> PayrollRun:
        run = await self.gateway.get_run(organization_id, payroll_run_id)
        if run is None:
            raise PayrollRunNotFoundError(payroll_run_id)
        return run

    async def list_runs(self, organization_id: UUID) -> list[PayrollRun]:
        """All runs of an organization, newest first."""
        return await self.gateway.list_runs(organization_id)

    async def transition_status(
        self,
        organization_id: UUID,
        payroll_run_id: UUID,
        to_status: str,
    ) -> PayrollRun:
        """Transition a run to a new status.

        The update is conditional on the status read here, so of two
        concurrent transitions from the same status only one succeeds.
        Totals are never recomputed.

        Raises InvalidTransitionError if the transition is not allowed.
        """
        run = await self.get_run_with_items(organization_id, payroll_run_id)
        from_status = run.status
        to_status = status_value(to_status)

        PayrollRunStateMachine.validate_transition(from_status, to_status)

        updated = await self.gateway.update_status(payroll_run_id, from_status, to_status)
        if not updated:
            raise InvalidTransitionError(
                from_status,
                to_status,
                "Run status changed concurrently",
            )

        logger.info("Payroll run %s: %s -> %s", payroll_run_id, from_status, to_status)
        return await self.get_run_with_items(organization_id, payroll_run_id)

    async def delete_run(self, organization_id: UUID, payroll_run_id: UUID) -> None:
        """Delete a draft or cancelled run together with its items."""
        run = await self.get_run_with_items(organization_id, payroll_run_id)
        if not PayrollRunStateMachine.can_delete(run.status):
            raise InvalidTransitionError(
                run.status,
                "deleted",
                "Only draft or cancelled runs can be deleted",
            )
        await self.gateway.delete_run(payroll_run_id)
        logger.info("Deleted payroll run %s (%s)", run.run_number, payroll_run_id)

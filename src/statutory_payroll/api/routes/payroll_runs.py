"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Response, status

from statutory_payroll.api.dependencies import DbSession, RunService
from statutory_payroll.api.schemas import (
    ErrorResponse,
    PayrollRunCreate,
    PayrollRunDetailResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    StatusTransitionRequest,
)

router = APIRouter(
    prefix="/organizations/{organization_id}/payroll-runs",
    tags=["payroll-runs"],
)

OrganizationId = Annotated[UUID, Path()]
RunId = Annotated[UUID, Path()]


@router.post(
    "",
    response_model=PayrollRunDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_payroll_run(
    db: DbSession,
    service: RunService,
    organization_id: OrganizationId,
    payload: PayrollRunCreate,
) -> PayrollRunDetailResponse:
    """Calculate and store a draft payroll run for the submitted roster."""
    run = await service.create_payroll_run(
        organization_id,
        payload.to_period(),
        [employee.to_record() for employee in payload.employees],
    )
    await db.commit()
    return PayrollRunDetailResponse.model_validate(run)


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: RunService,
    organization_id: OrganizationId,
) -> PayrollRunListResponse:
    """List an organization's payroll runs, newest first."""
    runs = await service.list_runs(organization_id)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(run) for run in runs],
        total=len(runs),
    )


@router.get(
    "/{payroll_run_id}",
    response_model=PayrollRunDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    service: RunService,
    organization_id: OrganizationId,
    payroll_run_id: RunId,
) -> PayrollRunDetailResponse:
    """Get a payroll run with its items."""
    run = await service.get_run_with_items(organization_id, payroll_run_id)
    return PayrollRunDetailResponse.model_validate(run)


@router.post(
    "/{payroll_run_id}/transition",
    response_model=PayrollRunDetailResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_payroll_run(
    db: DbSession,
    service: RunService,
    organization_id: OrganizationId,
    payroll_run_id: RunId,
    payload: StatusTransitionRequest,
) -> PayrollRunDetailResponse:
    """Move a payroll run to another status."""
    run = await service.transition_status(organization_id, payroll_run_id, payload.to_status)
    await db.commit()
    return PayrollRunDetailResponse.model_validate(run)


@router.delete(
    "/{payroll_run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_payroll_run(
    db: DbSession,
    service: RunService,
    organization_id: OrganizationId,
    payroll_run_id: RunId,
) -> Response:
    """Delete a draft or cancelled payroll run and its items."""
    await service.delete_run(organization_id, payroll_run_id)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

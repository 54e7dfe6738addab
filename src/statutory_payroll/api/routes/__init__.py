"""API routes."""

from statutory_payroll.api.routes.health import router as health_router
from statutory_payroll.api.routes.payroll_runs import router as payroll_runs_router
from statutory_payroll.api.routes.tax import router as tax_router

__all__ = ["health_router", "payroll_runs_router", "tax_router"]

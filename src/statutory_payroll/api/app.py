"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from statutory_payroll.api.routes import health_router, payroll_runs_router, tax_router
from statutory_payroll.config import configure_logging, get_settings
from statutory_payroll.database import create_tables, dispose_db
from statutory_payroll.errors import PayrollError

logger = logging.getLogger(__name__)

# HTTP status per error code; anything unlisted is a server error
ERROR_STATUS: dict[str, int] = {
    "INVALID_INPUT": 422,
    "UNSUPPORTED_JURISDICTION": 422,
    "NEGATIVE_NET_PAY": 422,
    "EMPLOYEES_FLAGGED": 422,
    "NO_ELIGIBLE_EMPLOYEES": 422,
    "RUN_NUMBER_CONFLICT": status.HTTP_409_CONFLICT,
    "RUN_NUMBER_EXHAUSTED": status.HTTP_409_CONFLICT,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "RUN_NOT_FOUND": status.HTTP_404_NOT_FOUND,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    await create_tables()
    yield
    # Shutdown
    await dispose_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    app = FastAPI(
        title="Statutory Payroll API",
        description="Kenyan statutory deductions and payroll runs",
        version=settings.engine_version,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Map engine errors to their HTTP status."""
        status_code = ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(tax_router, prefix="/api/v1")
    app.include_router(payroll_runs_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()

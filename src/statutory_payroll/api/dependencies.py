"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from statutory_payroll.config import Settings, get_settings
from statutory_payroll.database import init_db
from statutory_payroll.services.payroll_run_service import PayrollRunService


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    _, session_factory = init_db()
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_settings)]


def get_payroll_run_service(db: DbSession, settings: AppSettings) -> PayrollRunService:
    return PayrollRunService.from_session(db, settings)


RunService = Annotated[PayrollRunService, Depends(get_payroll_run_service)]

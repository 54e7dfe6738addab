"""Pytest fixtures for statutory payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from statutory_payroll.api.app import create_app
from statutory_payroll.api.dependencies import get_db_session
from statutory_payroll.calculators.types import EmployeeRecord, EmploymentStatus, PayPeriod
from statutory_payroll.config import Settings, get_settings
from statutory_payroll.database import create_tables, get_engine

# In-memory SQLite shared through a single connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        engine_version="test",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="DEBUG",
        jurisdiction="KE",
        tax_tables_path=None,
        allowances_taxable=False,
        run_number_prefix="PR-",
        run_number_width=4,
        run_number_max_retries=5,
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh test database per test."""
    engine = get_engine(TEST_DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(session_factory, test_settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test database."""
    app = create_app()

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def organization_id() -> UUID:
    return uuid4()


@pytest.fixture
def period() -> PayPeriod:
    return PayPeriod(
        name="January 2024",
        period_start=date(2024, 1, 1),
        period_end=date(2024, 1, 31),
        payment_date=date(2024, 1, 31),
    )


@pytest.fixture
def make_employee() -> Callable[..., EmployeeRecord]:
    """Factory for roster entries."""

    def _make(
        base_salary: str | int = "50000",
        status: EmploymentStatus = EmploymentStatus.ACTIVE,
        **allowances: str | int,
    ) -> EmployeeRecord:
        return EmployeeRecord(
            employee_id=uuid4(),
            base_salary=Decimal(str(base_salary)),
            status=status,
            **{name: Decimal(str(value)) for name, value in allowances.items()},
        )

    return _make


@pytest.fixture
def roster(make_employee) -> list[EmployeeRecord]:
    """Two active employees and one inactive."""
    return [
        make_employee("50000"),
        make_employee("20000"),
        make_employee("80000", status=EmploymentStatus.INACTIVE),
    ]

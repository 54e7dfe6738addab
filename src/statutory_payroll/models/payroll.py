"""Payroll run, payroll item and run number counter models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from statutory_payroll.models.base import Base, TimestampMixin

MONEY = Numeric(14, 2)


class PayrollRun(Base, TimestampMixin):
    """One batch execution of payroll for an organization and pay period."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    organization_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    run_number: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")

    employee_count: Mapped[int] = mapped_column(Integer, nullable=False)
    total_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_health: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_pension: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_net: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Traceability
    tables_version: Mapped[str] = mapped_column(String, nullable=False)
    calculation_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)

    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("organization_id", "run_number", name="payroll_run_org_number_unique"),
        CheckConstraint(
            "status IN ('draft', 'processing', 'completed', 'cancelled')",
            name="payroll_run_status_check",
        ),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
        CheckConstraint("employee_count > 0", name="payroll_run_employee_count_check"),
    )

    # Relationships
    items: Mapped[list[PayrollItem]] = relationship(
        back_populates="payroll_run",
        cascade="all, delete-orphan",
        order_by="PayrollItem.employee_id",
    )


class PayrollItem(Base, TimestampMixin):
    """Per-employee line of a payroll run."""

    __tablename__ = "payroll_item"

    payroll_item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    payroll_run_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    housing_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    transport_allowance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    other_allowances: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    gross_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    statutory_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    health_contribution: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    pension_contribution: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    total_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_item_run_employee_unique"),
        CheckConstraint("net_pay >= 0", name="payroll_item_net_nonnegative"),
    )

    # Relationships
    payroll_run: Mapped[PayrollRun] = relationship(back_populates="items")


class PayrollRunCounter(Base):
    """Last allocated run sequence per organization."""

    __tablename__ = "payroll_run_counter"

    organization_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

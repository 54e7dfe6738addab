"""SQLAlchemy ORM models."""

from statutory_payroll.models.base import Base, TimestampMixin
from statutory_payroll.models.payroll import PayrollItem, PayrollRun, PayrollRunCounter

__all__ = [
    "Base",
    "TimestampMixin",
    "PayrollItem",
    "PayrollRun",
    "PayrollRunCounter",
]

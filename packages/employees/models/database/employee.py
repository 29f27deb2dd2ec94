from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class EmployeeEntity(Base):
    """
    Minimal view of the employee table.

    The employee domain owns this table; billing only counts active rows
    to enforce seat caps.
    """

    __tablename__ = "employees"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    company_id = Column(
        BigIntegerType,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    full_name = Column(String(255), nullable=False)
    # active, inactive, resigned, terminated
    employment_status = Column(String(50), nullable=False, default="active")

    created_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_employees_company_status", "company_id", "employment_status"),
    )

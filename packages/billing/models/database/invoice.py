"""
Database entity for invoices.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class InvoiceEntity(Base):
    """
    One invoice per billing action.

    Carries a snapshot of what is being bought so the webhook can apply it
    without re-reading the catalog.
    """

    __tablename__ = "invoices"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    company_id = Column(
        BigIntegerType,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL for a company's first checkout, linked once it is paid
    subscription_id = Column(
        BigIntegerType, ForeignKey("subscriptions.id"), nullable=True, index=True
    )

    provider_invoice_id = Column(String(255), nullable=True, unique=True)
    provider_invoice_url = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    status = Column(String(20), nullable=False, default="pending")
    purpose = Column(String(20), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(Text, nullable=True)

    # Snapshot
    plan_id = Column(String(50), ForeignKey("plans.id"), nullable=False)
    plan_name = Column(String(100), nullable=False)
    price_per_seat = Column(Numeric(15, 2), nullable=False)
    seat_count = Column(Integer, nullable=False)
    billing_cycle = Column(String(20), nullable=False)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)

    paid_at = Column(DateTime, nullable=True)
    payment_method = Column(String(100), nullable=True)
    payment_channel = Column(String(100), nullable=True)

    created_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, server_default=func.now()
    )
    updated_at = Column(
        DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'paid', 'expired', 'cancelled')",
            name="status_valid",
        ),
        CheckConstraint("amount > 0", name="amount_positive"),
        # At most one pending invoice per company (and so per subscription)
        Index(
            "uq_invoices_one_pending_per_company",
            "company_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_invoices_status_created_at", "status", "created_at"),
    )

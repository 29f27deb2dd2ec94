"""
Database entity for subscriptions.
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    Company subscription database entity.

    One row per company, never deleted. Timestamps are naive UTC.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    company_id = Column(
        BigIntegerType,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    plan_id = Column(String(50), ForeignKey("plans.id"), nullable=False)
    status = Column(String(50), nullable=False, index=True)
    billing_cycle = Column(String(20), nullable=False, default="monthly")
    max_seats = Column(Integer, nullable=False)

    # Deferred changes, committed by the sweep at period_end
    pending_plan_id = Column(String(50), ForeignKey("plans.id"), nullable=True)
    pending_max_seats = Column(Integer, nullable=True)

    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    trial_ends_at = Column(DateTime, nullable=True)

    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

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
            "status IN ('trial', 'active', 'past_due', 'cancelled', 'expired')",
            name="status_valid",
        ),
        CheckConstraint("max_seats > 0", name="max_seats_positive"),
        Index("idx_subscriptions_status_period_end", "status", "period_end"),
    )

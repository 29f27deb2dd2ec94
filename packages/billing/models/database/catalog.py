"""
Database entities for the plan catalog.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from common.db.base import Base

# Ordered many-to-many between plans and features
plan_features = Table(
    "plan_features",
    Base.metadata,
    Column(
        "plan_id",
        String(50),
        ForeignKey("plans.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "feature_code",
        String(100),
        ForeignKey("features.code", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("position", Integer, nullable=False, default=0),
)


class FeatureEntity(Base):
    """Feature reference data, keyed by its stable code."""

    __tablename__ = "features"

    code = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)


class PlanEntity(Base):
    """
    Subscription plan.

    Prices are per seat per month. ``tier_level`` gives the total order used
    to tell upgrades from downgrades.
    """

    __tablename__ = "plans"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    price = Column(Numeric(15, 2), nullable=False)
    tier_level = Column(Integer, nullable=False, index=True)
    max_seats_included = Column(Integer, nullable=True)  # NULL = unlimited
    active = Column(Boolean, nullable=False, default=True, server_default="true")

    created_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, server_default=func.now()
    )

    features = relationship(
        "FeatureEntity",
        secondary=plan_features,
        order_by=plan_features.c.position,
        lazy="selectin",
    )

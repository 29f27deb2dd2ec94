"""
Domain models for subscriptions.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import BillingCycle, SubscriptionStatus


class Subscription(BaseModel):
    """
    Company subscription domain model.

    The ledger's view of one tenant: current plan and seats, the paid
    period, and any change deferred to the period boundary.
    """

    id: int
    company_id: int
    plan_id: str
    status: SubscriptionStatus
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    max_seats: int

    pending_plan_id: Optional[str] = None
    pending_max_seats: Optional[int] = None

    period_start: datetime
    period_end: datetime
    trial_ends_at: Optional[datetime] = None

    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def has_access(self, now: Optional[datetime] = None) -> bool:
        """Check if subscription allows product access at ``now``.

        Cancelled subscriptions keep access until their paid period ends.
        """
        if not self.status.has_access():
            return False
        if self.status == SubscriptionStatus.CANCELLED:
            return (now or datetime.utcnow()) < self.period_end
        return True

    def has_pending_change(self) -> bool:
        return self.pending_plan_id is not None or self.pending_max_seats is not None

    def days_until_renewal(self, now: Optional[datetime] = None) -> int:
        """Get number of days until the current period ends."""
        delta = self.period_end - (now or datetime.utcnow())
        return max(0, delta.days)


class SubscriptionCreateModel(BaseModel):
    """Model for creating a new subscription."""

    company_id: int
    plan_id: str
    status: str
    billing_cycle: str = BillingCycle.MONTHLY.value
    max_seats: int
    period_start: datetime
    period_end: datetime
    trial_ends_at: Optional[datetime] = None

    @field_validator("status", "billing_cycle", mode="before")
    @classmethod
    def validate_enum(cls, v):
        if isinstance(v, (SubscriptionStatus, BillingCycle)):
            return v.value
        return v


class SubscriptionUpdateModel(BaseModel):
    """Model for updating a subscription. Unset fields are left alone."""

    plan_id: Optional[str] = None
    status: Optional[str] = None
    billing_cycle: Optional[str] = None
    max_seats: Optional[int] = None

    pending_plan_id: Optional[str] = None
    pending_max_seats: Optional[int] = None

    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    trial_ends_at: Optional[datetime] = None

    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def validate_status(cls, v):
        if isinstance(v, SubscriptionStatus):
            return v.value
        return v

    @field_validator("billing_cycle", mode="before")
    @classmethod
    def validate_billing_cycle(cls, v):
        if isinstance(v, BillingCycle):
            return v.value
        return v

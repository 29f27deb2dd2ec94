"""
API schemas for billing operations.

Request and response models for subscription endpoints.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from packages.billing.models.domain.catalog import Feature, Plan
from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoicePurpose,
    InvoiceStatus,
    SubscriptionStatus,
)
from packages.billing.models.domain.invoice import Invoice
from packages.billing.models.domain.subscription import Subscription


# ============================================================================
# Catalog Schemas
# ============================================================================


class FeatureResponse(BaseModel):
    code: str
    name: str
    description: Optional[str] = None

    @classmethod
    def from_domain(cls, feature: Feature) -> "FeatureResponse":
        return cls(code=feature.code, name=feature.name, description=feature.description)


class PlanResponse(BaseModel):
    id: str
    name: str
    price: Decimal = Field(..., description="Price per seat per month")
    tier_level: int
    max_seats_included: Optional[int] = None
    features: List[FeatureResponse] = []

    @classmethod
    def from_domain(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            tier_level=plan.tier_level,
            max_seats_included=plan.max_seats_included,
            features=[FeatureResponse.from_domain(f) for f in plan.features],
        )


# ============================================================================
# Action Schemas
# ============================================================================


class CheckoutRequest(BaseModel):
    """Buy (or renew) a plan for a full period."""

    plan_id: str
    seat_count: int = Field(..., ge=1)
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    payer_email: Optional[EmailStr] = None


class UpgradeRequest(BaseModel):
    """Move to a higher tier. seat_count defaults to the current seat count."""

    plan_id: str
    seat_count: Optional[int] = Field(default=None, ge=1)
    payer_email: Optional[EmailStr] = None


class DowngradeRequest(BaseModel):
    plan_id: str


class ChangeSeatsRequest(BaseModel):
    seat_count: int = Field(..., ge=1)
    payer_email: Optional[EmailStr] = None


class CancelSubscriptionRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


# ============================================================================
# Subscription Schemas
# ============================================================================


class InvoiceResponse(BaseModel):
    id: int
    status: InvoiceStatus
    purpose: InvoicePurpose
    amount: Decimal
    description: Optional[str] = None
    invoice_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    plan_id: str
    plan_name: str
    seat_count: int
    billing_cycle: BillingCycle
    period_start: datetime
    period_end: datetime
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_channel: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, invoice: Invoice) -> "InvoiceResponse":
        return cls(
            id=invoice.id,
            status=invoice.status,
            purpose=invoice.purpose,
            amount=invoice.amount,
            description=invoice.description,
            invoice_url=invoice.provider_invoice_url,
            expires_at=invoice.expires_at,
            plan_id=invoice.plan_id,
            plan_name=invoice.plan_name,
            seat_count=invoice.seat_count,
            billing_cycle=invoice.billing_cycle,
            period_start=invoice.period_start,
            period_end=invoice.period_end,
            paid_at=invoice.paid_at,
            payment_method=invoice.payment_method,
            payment_channel=invoice.payment_channel,
            created_at=invoice.created_at,
        )


class SubscriptionResponse(BaseModel):
    """Current subscription as shown to the tenant owner."""

    id: int
    company_id: int
    status: SubscriptionStatus
    has_access: bool = Field(..., description="Whether company has product access")
    plan: PlanResponse
    billing_cycle: BillingCycle
    max_seats: int
    used_seats: int
    available_seats: int
    pending_plan_id: Optional[str] = None
    pending_max_seats: Optional[int] = None
    period_start: datetime
    period_end: datetime
    days_remaining: int
    trial_ends_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @classmethod
    def build(
        cls,
        subscription: Subscription,
        plan: Plan,
        used_seats: int,
        now: Optional[datetime] = None,
    ) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            company_id=subscription.company_id,
            status=subscription.status,
            has_access=subscription.has_access(now),
            plan=PlanResponse.from_domain(plan),
            billing_cycle=subscription.billing_cycle,
            max_seats=subscription.max_seats,
            used_seats=used_seats,
            available_seats=max(0, subscription.max_seats - used_seats),
            pending_plan_id=subscription.pending_plan_id,
            pending_max_seats=subscription.pending_max_seats,
            period_start=subscription.period_start,
            period_end=subscription.period_end,
            days_remaining=subscription.days_until_renewal(now),
            trial_ends_at=subscription.trial_ends_at,
            cancelled_at=subscription.cancelled_at,
        )


class ChangeSeatsResponse(BaseModel):
    """Seat increase returns an invoice to pay; a decrease is scheduled."""

    is_pending: bool
    message: str
    invoice: Optional[InvoiceResponse] = None
    pending_max_seats: Optional[int] = None


class ActionResponse(BaseModel):
    status: str = "ok"
    message: str

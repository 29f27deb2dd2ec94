"""
Domain models for invoices.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, field_validator

from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoicePurpose,
    InvoiceStatus,
)


class Invoice(BaseModel):
    id: int
    company_id: int
    subscription_id: Optional[int] = None

    provider_invoice_id: Optional[str] = None
    provider_invoice_url: Optional[str] = None
    expires_at: Optional[datetime] = None

    status: InvoiceStatus
    purpose: InvoicePurpose
    amount: Decimal
    description: Optional[str] = None

    plan_id: str
    plan_name: str
    price_per_seat: Decimal
    seat_count: int
    billing_cycle: BillingCycle
    period_start: datetime
    period_end: datetime

    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_channel: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    def is_terminal(self) -> bool:
        return self.status.is_terminal()


class InvoiceCreateModel(BaseModel):
    """Everything needed to bill one action; snapshot fields freeze the purchase."""

    company_id: int
    subscription_id: Optional[int] = None
    purpose: str
    amount: Decimal
    description: Optional[str] = None

    plan_id: str
    plan_name: str
    price_per_seat: Decimal
    seat_count: int
    billing_cycle: str
    period_start: datetime
    period_end: datetime

    @field_validator("purpose", "billing_cycle", mode="before")
    @classmethod
    def validate_enum(cls, v):
        if isinstance(v, (InvoicePurpose, BillingCycle)):
            return v.value
        return v


class InvoiceUpdateModel(BaseModel):
    """Provider details attached after the provider responds."""

    provider_invoice_id: Optional[str] = None
    provider_invoice_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    subscription_id: Optional[int] = None

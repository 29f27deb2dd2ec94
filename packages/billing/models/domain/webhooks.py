"""
Typed payload for payment provider invoice callbacks.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.billing.models.domain.enums import WebhookEventType


class InvoiceCallbackPayload(BaseModel):
    """
    Invoice callback body.

    Accepts the provider's own field names (``id``, ``status``) as well as
    ``provider_invoice_id`` and ``event_type``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    provider_invoice_id: str = Field(alias="id")
    event_type: str = Field(alias="status")
    paid_at: Optional[datetime] = None
    payment_method: Optional[str] = None
    payment_channel: Optional[str] = None

    @field_validator("event_type", mode="before")
    @classmethod
    def normalize_event_type(cls, v):
        return str(v).upper() if v is not None else v

    @field_validator("paid_at", mode="after")
    @classmethod
    def to_naive_utc(cls, v):
        if v is not None and v.tzinfo is not None:
            return (v - v.utcoffset()).replace(tzinfo=None)
        return v

    def known_event(self) -> Optional[WebhookEventType]:
        try:
            return WebhookEventType(self.event_type)
        except ValueError:
            return None


class WebhookResult(BaseModel):
    """What the reconciler did with one callback."""

    status: str = "ok"
    action: str
    invoice_id: Optional[int] = None

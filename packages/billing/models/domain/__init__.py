"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoicePurpose,
    InvoiceStatus,
    PendingChangeOutcome,
    SubscriptionStatus,
    WebhookEventType,
)
from packages.billing.models.domain.catalog import Feature, Plan
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionUpdateModel,
)
from packages.billing.models.domain.invoice import (
    Invoice,
    InvoiceCreateModel,
    InvoiceUpdateModel,
)
from packages.billing.models.domain.claims import SubscriptionClaims

__all__ = [
    # Enums
    "BillingCycle",
    "InvoicePurpose",
    "InvoiceStatus",
    "PendingChangeOutcome",
    "SubscriptionStatus",
    "WebhookEventType",
    # Catalog
    "Feature",
    "Plan",
    # Subscription
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionUpdateModel",
    # Invoice
    "Invoice",
    "InvoiceCreateModel",
    "InvoiceUpdateModel",
    # Access
    "SubscriptionClaims",
]

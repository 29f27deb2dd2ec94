"""Billing repositories."""

from packages.billing.repositories.plan_repository import (
    FeatureRepository,
    PlanRepository,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.invoice_repository import InvoiceRepository

__all__ = [
    "FeatureRepository",
    "PlanRepository",
    "SubscriptionRepository",
    "InvoiceRepository",
]

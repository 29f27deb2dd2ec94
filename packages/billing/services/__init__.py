"""Billing services."""

from packages.billing.services.catalog_service import CatalogService
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.services.sweep_service import BillingSweepService

__all__ = [
    "CatalogService",
    "InvoiceService",
    "SubscriptionService",
    "BillingSweepService",
]

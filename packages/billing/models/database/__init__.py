"""Database models for billing."""

# Tables referenced by billing foreign keys
from packages.companies.models.database.company import CompanyEntity  # noqa: F401
from packages.billing.models.database.catalog import (
    FeatureEntity,
    PlanEntity,
    plan_features,
)
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.database.invoice import InvoiceEntity

__all__ = [
    "FeatureEntity",
    "PlanEntity",
    "plan_features",
    "SubscriptionEntity",
    "InvoiceEntity",
]

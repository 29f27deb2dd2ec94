"""
Billing enums - strongly typed enumerations for subscription and billing states.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Subscription status lifecycle.

    Flow: trial/active -> past_due -> expired, or any paying state -> cancelled -> expired
    """

    TRIAL = "trial"  # Free trial, time-boxed
    ACTIVE = "active"  # Paid for the current period
    PAST_DUE = "past_due"  # Period ended without renewal, in grace window
    CANCELLED = "cancelled"  # Owner cancelled, access until period_end
    EXPIRED = "expired"  # Access revoked

    def has_access(self) -> bool:
        """Statuses that may still use the product (cancelled is time-bounded)."""
        return self in (
            SubscriptionStatus.TRIAL,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
            SubscriptionStatus.CANCELLED,
        )

    def can_cancel(self) -> bool:
        return self in (
            SubscriptionStatus.TRIAL,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.PAST_DUE,
        )

    def can_upgrade(self) -> bool:
        return self in (SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE)


class BillingCycle(str, Enum):
    """How long one paid period lasts."""

    MONTHLY = "monthly"
    YEARLY = "yearly"


class InvoiceStatus(str, Enum):
    """Invoice payment status. Everything but PENDING is terminal."""

    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    def is_terminal(self) -> bool:
        return self != InvoiceStatus.PENDING


class InvoicePurpose(str, Enum):
    """The billing action an invoice pays for."""

    CHECKOUT = "checkout"
    UPGRADE = "upgrade"
    SEAT_CHANGE = "seat_change"


class WebhookEventType(str, Enum):
    """Invoice callback statuses sent by the payment provider."""

    PAID = "PAID"
    SETTLED = "SETTLED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"

    def is_paid(self) -> bool:
        return self in (WebhookEventType.PAID, WebhookEventType.SETTLED)


class PendingChangeOutcome(str, Enum):
    """Result of trying to commit a deferred plan or seat change."""

    COMMITTED = "committed"
    REFUSED = "refused"  # Would leave active employees without a seat
    SKIPPED = "skipped"  # Nothing due, or status no longer eligible

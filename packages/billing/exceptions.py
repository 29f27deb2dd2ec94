"""
Billing error taxonomy.

Each error subclasses one of the common application errors, which decides
the HTTP status it surfaces as.
"""

from common.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UnauthorizedError,
)


class PlanNotFoundError(NotFoundError):
    """Plan not found."""


class FeatureNotFoundError(NotFoundError):
    """Feature not found."""


class SubscriptionNotFoundError(NotFoundError):
    """No subscription for this company."""


class InvoiceNotFoundError(NotFoundError):
    """Invoice not found."""


class DuplicatePendingInvoiceError(ConflictError):
    """A pending invoice already exists; pay or cancel it first."""


class SubscriptionAlreadyExistsError(ConflictError):
    """Company already has a subscription."""


class InvalidSubscriptionStateError(ConflictError):
    """Action not allowed in the subscription's current status."""


class InvoiceNotPendingError(ConflictError):
    """Invoice is no longer pending."""


class PlanNotAvailableError(InvalidRequestError):
    """Plan is not offered for new purchases."""


class NotAnUpgradeError(InvalidRequestError):
    """Target plan is not above the current plan."""


class NotADowngradeError(InvalidRequestError):
    """Target plan is not below the current plan."""


class NoPendingDowngradeError(InvalidRequestError):
    """No downgrade is scheduled."""


class SameSeatCountError(InvalidRequestError):
    """Requested seat count equals the current seat count."""


class SeatLimitExceededError(ForbiddenError):
    """Seat count is outside what the plan allows."""


class SeatsBelowActiveEmployeesError(ForbiddenError):
    """Seat count is lower than the number of active employees."""


class FeatureNotIncludedError(ForbiddenError):
    """Feature not included in the current plan."""


class SubscriptionInactiveError(ForbiddenError):
    """Subscription does not grant access."""


class InvalidCallbackTokenError(UnauthorizedError):
    """Invalid webhook callback token."""


class PaymentProviderRejectedError(InvalidRequestError):
    """The payment provider refused the request (4xx)."""

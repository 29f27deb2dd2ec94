"""Payment providers - hosted invoices."""

from packages.billing.providers.payment.interface import (
    PaymentProviderInterface,
    ProviderInvoice,
)
from packages.billing.providers.payment.factory import get_payment_provider

__all__ = [
    "PaymentProviderInterface",
    "ProviderInvoice",
    "get_payment_provider",
]

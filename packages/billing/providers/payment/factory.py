"""
Factory for getting payment provider instance.
"""

from typing import Optional

from packages.billing.providers.payment.interface import PaymentProviderInterface
from packages.billing.providers.payment.xendit_payment import XenditPaymentProvider

_payment_provider: Optional[PaymentProviderInterface] = None


def get_payment_provider() -> PaymentProviderInterface:
    """
    Get the configured payment provider.

    Only Xendit is wired today; callers depend on the interface.
    """
    global _payment_provider

    if _payment_provider is None:
        _payment_provider = XenditPaymentProvider()
    return _payment_provider

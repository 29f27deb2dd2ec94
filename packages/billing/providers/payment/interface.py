"""
Interface for payment providers.

The billing core only asks a provider to open and expire hosted invoices;
payment itself happens on the provider's side and comes back by webhook.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class ProviderInvoice(BaseModel):
    """Provider-side handle for a hosted invoice."""

    id: str
    invoice_url: str
    expires_at: Optional[datetime] = None


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_invoice(
        self,
        external_id: str,
        amount: Decimal,
        description: str,
        invoice_duration_seconds: int,
        payer_email: Optional[str] = None,
    ) -> ProviderInvoice:
        """
        Create a hosted invoice the payer can settle.

        Args:
            external_id: Our reference, echoed back in callbacks
            amount: Amount in the configured billing currency
            description: Line shown to the payer
            invoice_duration_seconds: How long the invoice stays payable
            payer_email: Where the provider sends the invoice

        Raises:
            TransientError: provider unreachable or returned a server error
        """
        pass

    @abstractmethod
    async def expire_invoice(self, provider_invoice_id: str) -> None:
        """
        Make a pending provider invoice unpayable.

        Raises:
            TransientError: provider unreachable or returned a server error
        """
        pass

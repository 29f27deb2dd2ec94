"""
Xendit invoice API client.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import httpx

from common.core.config import settings
from common.core.exceptions import TransientError
from common.core.otel_axiom_exporter import get_logger, trace_span
from packages.billing.exceptions import PaymentProviderRejectedError
from packages.billing.providers.payment.interface import (
    PaymentProviderInterface,
    ProviderInvoice,
)

logger = get_logger(__name__)


def _parse_expiry(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


class XenditPaymentProvider(PaymentProviderInterface):
    """Creates and expires hosted invoices through the Xendit REST API."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        if not settings.xendit_api_key:
            logger.warning("Xendit API key is not configured")
        self.base_url = settings.xendit_base_url.rstrip("/")
        self._client = client

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(settings.xendit_api_key, ""),
            timeout=settings.xendit_request_timeout_seconds,
        )

    async def _post(self, path: str, json: Optional[dict] = None) -> dict:
        try:
            if self._client is not None:
                response = await self._client.post(path, json=json)
            else:
                async with self._new_client() as client:
                    response = await client.post(path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Xendit request to {path} failed: {e}")
            raise TransientError(f"Payment provider unreachable: {e}") from e

        if response.status_code >= 500:
            logger.error(
                f"Xendit returned {response.status_code} for {path}",
                extra={"body": response.text[:500]},
            )
            raise TransientError(f"Payment provider error {response.status_code}")

        if response.is_error:
            logger.error(
                f"Xendit rejected {path} with {response.status_code}",
                extra={"body": response.text[:500]},
            )
            raise PaymentProviderRejectedError(
                f"Payment provider rejected the request ({response.status_code})"
            )
        return response.json()

    @trace_span
    async def create_invoice(
        self,
        external_id: str,
        amount: Decimal,
        description: str,
        invoice_duration_seconds: int,
        payer_email: Optional[str] = None,
    ) -> ProviderInvoice:
        payload = {
            "external_id": external_id,
            "amount": float(amount),
            "description": description,
            "currency": settings.billing_currency,
            "invoice_duration": invoice_duration_seconds,
            "success_redirect_url": settings.xendit_success_redirect_url,
            "failure_redirect_url": settings.xendit_failure_redirect_url,
        }
        if payer_email:
            payload["payer_email"] = payer_email

        data = await self._post("/v2/invoices", json=payload)
        logger.info(
            f"Created Xendit invoice {data.get('id')} for {external_id}",
            extra={"external_id": external_id, "amount": str(amount)},
        )
        return ProviderInvoice(
            id=data["id"],
            invoice_url=data["invoice_url"],
            expires_at=_parse_expiry(data.get("expiry_date")),
        )

    @trace_span
    async def expire_invoice(self, provider_invoice_id: str) -> None:
        await self._post(f"/invoices/{provider_invoice_id}/expire!")
        logger.info(f"Expired Xendit invoice {provider_invoice_id}")

"""
Payment provider invoice callbacks.

The callback token is checked before anything else is looked at. After that,
only a broken request body gets a non-200 answer: unknown invoices, replays
and unknown event types are acknowledged so the provider stops retrying.
"""

import hmac
from datetime import datetime
from typing import Optional

from fastapi import HTTPException, Request, status
from pydantic import ValidationError

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.scoped import transaction
from packages.billing.exceptions import InvalidCallbackTokenError
from packages.billing.locking import tenant_lock
from packages.billing.models.domain.enums import InvoiceStatus, WebhookEventType
from packages.billing.models.domain.webhooks import (
    InvoiceCallbackPayload,
    WebhookResult,
)
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.subscription_service import SubscriptionService

logger = get_logger(__name__)

CALLBACK_TOKEN_HEADER = "X-Callback-Token"


def verify_callback_token(token: Optional[str]) -> None:
    """
    Constant-time comparison against the shared secret.

    An unset secret rejects every callback.
    """
    expected = settings.xendit_callback_token
    if not expected or not token or not hmac.compare_digest(
        token.encode("utf-8"), expected.encode("utf-8")
    ):
        raise InvalidCallbackTokenError()


class PaymentWebhookReconciler:
    """Applies a verified invoice callback to the invoice and the ledger."""

    def __init__(
        self,
        invoice_service: Optional[InvoiceService] = None,
        subscription_service: Optional[SubscriptionService] = None,
    ):
        self.invoice_service = invoice_service or InvoiceService()
        self.subscription_service = subscription_service or SubscriptionService(
            invoice_service=self.invoice_service
        )

    @trace_span
    async def reconcile(
        self, payload: InvoiceCallbackPayload, now: Optional[datetime] = None
    ) -> WebhookResult:
        now = now or datetime.utcnow()
        invoice = await self.invoice_service.find_by_provider_invoice_id(
            payload.provider_invoice_id
        )
        if not invoice:
            logger.info(
                f"Callback for unknown provider invoice {payload.provider_invoice_id}",
                extra={"provider_invoice_id": payload.provider_invoice_id},
            )
            return WebhookResult(action="ignored_unknown_invoice")

        event = payload.known_event()
        if event is None:
            logger.info(
                f"Unhandled invoice callback status {payload.event_type}",
                extra={"invoice_id": invoice.id, "event_type": payload.event_type},
            )
            return WebhookResult(action="ignored_unknown_event", invoice_id=invoice.id)

        if invoice.is_terminal():
            return self._already_processed(invoice.id, invoice.status, event)

        async with tenant_lock(invoice.company_id):
            async with transaction():
                # Re-read under the lock; another delivery may have won
                invoice = await self.invoice_service.find_by_provider_invoice_id(
                    payload.provider_invoice_id, for_update=True
                )
                if invoice.is_terminal():
                    return self._already_processed(invoice.id, invoice.status, event)

                if event.is_paid():
                    if not await self.invoice_service.mark_paid(
                        invoice.id,
                        payment_method=payload.payment_method,
                        payment_channel=payload.payment_channel,
                        paid_at=payload.paid_at or now,
                    ):
                        return self._already_processed(invoice.id, None, event)
                    await self.subscription_service.apply_paid_invoice(invoice, now)
                    action = "applied_payment"
                else:
                    if not await self.invoice_service.mark_expired(invoice.id):
                        return self._already_processed(invoice.id, None, event)
                    action = "marked_expired"

        logger.info(
            f"Invoice {invoice.id} callback {event.value}: {action}",
            extra={
                "company_id": invoice.company_id,
                "invoice_id": invoice.id,
                "purpose": invoice.purpose.value,
                "event_type": event.value,
            },
        )
        return WebhookResult(action=action, invoice_id=invoice.id)

    @staticmethod
    def _already_processed(
        invoice_id: int, current: Optional[InvoiceStatus], event: WebhookEventType
    ) -> WebhookResult:
        # current is None when a concurrent transition won and the status is unknown
        state = current.value if current else "processed"
        logger.info(
            f"Invoice {invoice_id} already {state}, ignoring {event.value} callback",
            extra={"invoice_id": invoice_id, "event_type": event.value},
        )
        return WebhookResult(action="already_processed", invoice_id=invoice_id)


async def handle_payment_webhook(
    request: Request, reconciler: Optional[PaymentWebhookReconciler] = None
) -> WebhookResult:
    """
    Handle an invoice callback from the payment provider.

    Raises:
        InvalidCallbackTokenError: missing or wrong callback token (401)
        HTTPException: body is not a valid callback payload (400)
    """
    try:
        verify_callback_token(request.headers.get(CALLBACK_TOKEN_HEADER))
    except InvalidCallbackTokenError:
        logger.warning(
            "Rejected payment callback with invalid token",
            extra={
                "event": "webhook_invalid_token",
                "client_host": request.client.host if request.client else None,
            },
        )
        raise

    try:
        payload = InvoiceCallbackPayload.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.error(f"Invalid payment callback payload: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        )

    return await (reconciler or PaymentWebhookReconciler()).reconcile(payload)

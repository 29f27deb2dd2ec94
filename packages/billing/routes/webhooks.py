"""
Webhook endpoints for billing events.

Public endpoint (no user auth) for payment provider callbacks; the callback
token is validated by the handler.
"""

from fastapi import APIRouter, Request

from packages.billing.models.domain.webhooks import WebhookResult
from packages.billing.webhooks.xendit_webhook import handle_payment_webhook

router = APIRouter()


@router.post("/webhooks/payment", response_model=WebhookResult)
async def payment_webhook(request: Request):
    """Receive invoice status callbacks from the payment provider."""
    return await handle_payment_webhook(request)

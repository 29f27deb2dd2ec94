"""
Unit tests for the payment webhook endpoint.
"""

import pytest

from common.core.config import settings

WEBHOOK_URL = "/api/v1/webhooks/payment"


@pytest.mark.asyncio
class TestPaymentWebhookRoute:
    async def test_paid_callback_applied(
        self, anonymous_client, callback_token, subscription_service, trial_subscription
    ):
        invoice = await subscription_service.checkout(
            trial_subscription.company_id, "standard", 5
        )

        response = await anonymous_client.post(
            WEBHOOK_URL,
            json={
                "id": invoice.provider_invoice_id,
                "external_id": f"checkout-{invoice.company_id}-{invoice.id}",
                "status": "PAID",
                "paid_at": "2024-05-01T10:00:00.000Z",
                "payment_method": "EWALLET",
                "payment_channel": "OVO",
            },
            headers={"X-Callback-Token": callback_token},
        )

        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "action": "applied_payment",
            "invoice_id": invoice.id,
        }
        subscription = await subscription_service.get_subscription(
            trial_subscription.company_id
        )
        assert subscription.status.value == "active"

    async def test_missing_token_rejected(self, anonymous_client, callback_token, catalog):
        response = await anonymous_client.post(
            WEBHOOK_URL, json={"id": "xnd_1", "status": "PAID"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "InvalidCallbackTokenError"

    async def test_wrong_token_rejected(self, anonymous_client, callback_token, catalog):
        response = await anonymous_client.post(
            WEBHOOK_URL,
            json={"id": "xnd_1", "status": "PAID"},
            headers={"X-Callback-Token": "guess"},
        )

        assert response.status_code == 401

    async def test_unconfigured_token_rejects_everything(
        self, anonymous_client, monkeypatch, catalog
    ):
        monkeypatch.setattr(settings, "xendit_callback_token", "")

        response = await anonymous_client.post(
            WEBHOOK_URL,
            json={"id": "xnd_1", "status": "PAID"},
            headers={"X-Callback-Token": ""},
        )

        assert response.status_code == 401

    async def test_malformed_json(self, anonymous_client, callback_token, catalog):
        response = await anonymous_client.post(
            WEBHOOK_URL,
            content=b"{not json",
            headers={"X-Callback-Token": callback_token, "Content-Type": "application/json"},
        )

        assert response.status_code == 400

    async def test_missing_fields(self, anonymous_client, callback_token, catalog):
        response = await anonymous_client.post(
            WEBHOOK_URL,
            json={"status": "PAID"},
            headers={"X-Callback-Token": callback_token},
        )

        assert response.status_code == 400

    async def test_unknown_invoice_acknowledged(
        self, anonymous_client, callback_token, catalog
    ):
        response = await anonymous_client.post(
            WEBHOOK_URL,
            json={"id": "xnd_nope", "status": "PAID"},
            headers={"X-Callback-Token": callback_token},
        )

        assert response.status_code == 200
        assert response.json()["action"] == "ignored_unknown_invoice"

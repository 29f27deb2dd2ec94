import itertools
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from common.core.config import settings
from common.providers.locking.interface import DistributedLockInterface
from packages.billing.providers.payment.interface import ProviderInvoice
from packages.billing.services.catalog_service import CatalogService
from packages.billing.services.invoice_service import InvoiceService
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.services.sweep_service import BillingSweepService
from packages.billing.webhooks.xendit_webhook import PaymentWebhookReconciler

TEST_CALLBACK_TOKEN = "test-callback-token"


class InMemoryLock(DistributedLockInterface):
    """Process-local lock with the same acquire/release contract as RedisLock."""

    def __init__(self):
        self.held: Dict[str, str] = {}
        self.acquired: List[str] = []

    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        if resource_key in self.held:
            return None
        token = str(uuid.uuid4())
        self.held[resource_key] = token
        self.acquired.append(resource_key)
        return token

    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        if self.held.get(resource_key) != lock_token:
            return False
        del self.held[resource_key]
        return True


@pytest.fixture
def lock_provider():
    """Create an in-memory lock provider instance for testing."""
    return InMemoryLock()


@pytest.fixture(autouse=True)
def mock_get_lock_provider(lock_provider, monkeypatch):
    """Automatically replace the Redis lock provider for all unit tests."""
    for target in (
        "packages.billing.locking.get_lock_provider",
        "common.workers.periodic_worker.get_lock_provider",
        "internal.routes.health_checks.get_lock_provider",
    ):
        monkeypatch.setattr(target, lambda: lock_provider)


@pytest.fixture
def mock_payment_provider():
    """Create a mocked payment provider that hands out unique invoice ids."""
    counter = itertools.count(1)

    async def create_invoice(
        external_id, amount, description, invoice_duration_seconds, payer_email=None
    ):
        n = next(counter)
        return ProviderInvoice(
            id=f"xnd_inv_{n}",
            invoice_url=f"https://checkout.xendit.test/xnd_inv_{n}",
            expires_at=datetime.utcnow() + timedelta(seconds=invoice_duration_seconds),
        )

    provider = AsyncMock()
    provider.create_invoice = AsyncMock(side_effect=create_invoice)
    provider.expire_invoice = AsyncMock(return_value=None)
    return provider


@pytest.fixture(autouse=True)
def mock_get_payment_provider(mock_payment_provider, monkeypatch):
    """Automatically mock get_payment_provider for all unit tests."""
    monkeypatch.setattr(
        "packages.billing.services.invoice_service.get_payment_provider",
        lambda: mock_payment_provider,
    )


@pytest.fixture
def callback_token(monkeypatch):
    monkeypatch.setattr(settings, "xendit_callback_token", TEST_CALLBACK_TOKEN)
    return TEST_CALLBACK_TOKEN


@pytest.fixture
def catalog_service():
    return CatalogService()


@pytest.fixture
def invoice_service(mock_payment_provider):
    return InvoiceService(payment_provider=mock_payment_provider)


@pytest.fixture
def subscription_service(catalog_service, invoice_service):
    return SubscriptionService(catalog=catalog_service, invoice_service=invoice_service)


@pytest.fixture
def sweep_service(subscription_service, invoice_service):
    return BillingSweepService(
        subscription_service=subscription_service, invoice_service=invoice_service
    )


@pytest.fixture
def reconciler(invoice_service, subscription_service):
    return PaymentWebhookReconciler(
        invoice_service=invoice_service, subscription_service=subscription_service
    )

import logging
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from packages.billing.models.domain.sweep import StuckPendingChange, SweepReport
from packages.billing.workers.billing_sweep_worker import (
    SWEEP_LOCK_KEY,
    BillingSweepWorker,
)


@pytest.fixture
def sweep_report():
    return SweepReport(started_at=datetime.utcnow(), moved_to_past_due=2)


@pytest.fixture
def mock_sweep_service(sweep_report):
    service = AsyncMock()
    service.run_sweep = AsyncMock(return_value=sweep_report)
    return service


@pytest.fixture
def worker(mock_sweep_service, lock_provider):
    return BillingSweepWorker(
        interval_seconds=60,
        sweep_service=mock_sweep_service,
        lock_provider=lock_provider,
    )


class TestBillingSweepWorker:
    async def test_run_once_sweeps_under_lock(
        self, worker, mock_sweep_service, lock_provider, sweep_report
    ):
        report = await worker.run_once()

        assert report is sweep_report
        mock_sweep_service.run_sweep.assert_awaited_once()
        assert lock_provider.acquired == [SWEEP_LOCK_KEY]
        assert lock_provider.held == {}

    async def test_skips_when_another_replica_sweeps(
        self, worker, mock_sweep_service, lock_provider
    ):
        await lock_provider.acquire_lock(SWEEP_LOCK_KEY)

        assert await worker.run_once() is None
        mock_sweep_service.run_sweep.assert_not_called()

    async def test_releases_lock_when_sweep_raises(
        self, worker, mock_sweep_service, lock_provider
    ):
        mock_sweep_service.run_sweep.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            await worker.run_once()

        assert lock_provider.held == {}

    async def test_warns_about_stuck_changes(
        self, worker, sweep_report, caplog
    ):
        sweep_report.stuck_changes = [
            StuckPendingChange(subscription_id=3, company_id=9, reason="12 active > 10 seats")
        ]

        with caplog.at_level(logging.WARNING):
            await worker.run_once()

        assert any(
            getattr(record, "event", None) == "stuck_pending_changes"
            and record.subscription_ids == [3]
            for record in caplog.records
        )

    def test_interval_defaults_to_settings(self, mock_sweep_service, lock_provider):
        from common.core.config import settings

        worker = BillingSweepWorker(
            sweep_service=mock_sweep_service, lock_provider=lock_provider
        )

        assert worker.interval_seconds == settings.billing_sweep_interval_seconds
        assert worker.worker_id.startswith("billing_sweep_worker_")

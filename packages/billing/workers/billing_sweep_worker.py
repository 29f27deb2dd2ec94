from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger
from common.workers.periodic_worker import PeriodicWorker
from packages.billing.models.domain.sweep import SweepReport
from packages.billing.services.sweep_service import BillingSweepService

logger = get_logger(__name__)

SWEEP_LOCK_KEY = "billing:sweep"


class BillingSweepWorker(PeriodicWorker):
    """Runs the billing sweep on an interval; one replica sweeps at a time."""

    def __init__(
        self,
        interval_seconds: Optional[float] = None,
        sweep_service: Optional[BillingSweepService] = None,
        **kwargs,
    ):
        super().__init__(
            name="billing_sweep",
            interval_seconds=interval_seconds
            or settings.billing_sweep_interval_seconds,
            **kwargs,
        )
        self.sweep_service = sweep_service or BillingSweepService()

    async def run_once(self) -> Optional[SweepReport]:
        # The lock outlives a normal sweep so a second replica skips this round
        token = await self.lock_provider.acquire_lock(
            SWEEP_LOCK_KEY, timeout_seconds=max(1, int(self.interval_seconds))
        )
        if not token:
            logger.info(f"Worker {self.worker_id}: sweep already running elsewhere")
            return None

        try:
            report = await self.sweep_service.run_sweep()
        finally:
            await self.lock_provider.release_lock(SWEEP_LOCK_KEY, token)

        if report.stuck_changes:
            logger.warning(
                f"{len(report.stuck_changes)} pending changes could not be committed",
                extra={
                    "event": "stuck_pending_changes",
                    "subscription_ids": [s.subscription_id for s in report.stuck_changes],
                },
            )
        return report

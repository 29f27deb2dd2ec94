"""
Process entry point for periodic workers: logging, telemetry, signals.
"""

import asyncio
import logging
import signal
from typing import Callable, Optional

from common.core.otel_axiom_exporter import _initialize_telemetry, get_logger
from common.workers.periodic_worker import PeriodicWorker

logger = get_logger(__name__)


class WorkerLauncher:
    """Builds one PeriodicWorker and runs it until SIGINT/SIGTERM."""

    def __init__(self, worker_factory: Callable[..., PeriodicWorker], worker_name: str):
        self.worker_factory = worker_factory
        self.worker_name = worker_name
        self.worker: Optional[PeriodicWorker] = None

    def _request_stop(self, signum: int) -> None:
        logger.info(f"Received signal {signum}, stopping {self.worker_name}")
        if self.worker:
            asyncio.create_task(self.worker.stop())

    async def _serve(self) -> None:
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._request_stop, signum)

        try:
            await self.worker.start()
        except Exception as e:
            logger.error(f"{self.worker_name} failed: {e}", exc_info=True)
            raise
        finally:
            logger.info(f"{self.worker_name} shutdown complete")

    async def _run_single(self) -> None:
        """One run without the loop, for cron-style scheduling."""
        await self.worker.setup()
        try:
            result = await self.worker.run_once()
            logger.info(f"{self.worker_name} single run finished: {result}")
        finally:
            await self.worker.cleanup()

    def run(self, log_level: str = "INFO", once: bool = False, **worker_kwargs) -> None:
        _initialize_telemetry()
        logging.basicConfig(
            level=getattr(logging, log_level),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            force=True,
        )

        logger.info(f"Configuring {self.worker_name}...")
        self.worker = self.worker_factory(**worker_kwargs)

        asyncio.run(self._run_single() if once else self._serve())

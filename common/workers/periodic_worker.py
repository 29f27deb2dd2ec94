import asyncio
from abc import ABC, abstractmethod
from typing import Optional
from uuid import uuid4

from common.core.otel_axiom_exporter import get_logger
from common.providers.locking.factory import get_lock_provider
from common.providers.locking.interface import DistributedLockInterface

logger = get_logger(__name__)


class PeriodicWorker(ABC):
    """Base worker that runs one unit of work on a fixed interval."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        worker_id: Optional[str] = None,
        lock_provider: Optional[DistributedLockInterface] = None,
    ):
        self.name = name
        self.interval_seconds = interval_seconds
        self.worker_id = worker_id or f"{name}_worker_{uuid4()}"
        self.lock_provider = lock_provider or get_lock_provider()
        self.running = False
        self._stop_event = asyncio.Event()

    async def setup(self):
        """Initialize worker dependencies."""
        try:
            await self.lock_provider.connect()
            logger.info(f"Worker {self.worker_id} setup completed")
        except Exception as e:
            logger.error(f"Error setting up worker {self.worker_id}: {e}")
            raise

    async def cleanup(self):
        """Cleanup worker resources."""
        try:
            await self.lock_provider.disconnect()
            logger.info(f"Worker {self.worker_id} cleanup completed")
        except Exception as e:
            logger.error(f"Error cleaning up worker {self.worker_id}: {e}")

    async def start(self):
        """Run ``run_once`` every ``interval_seconds`` until stopped."""
        if self.running:
            logger.warning(f"Worker {self.worker_id} is already running")
            return

        self.running = True
        self._stop_event.clear()
        logger.info(
            f"Starting worker {self.worker_id} every {self.interval_seconds}s"
        )

        try:
            await self.setup()
            while self.running:
                await self._tick()
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.interval_seconds
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self.running = False
            await self.cleanup()

    async def stop(self):
        """Stop the worker after the current run."""
        self.running = False
        self._stop_event.set()
        logger.info(f"Stopping worker {self.worker_id}")

    async def _tick(self):
        """One run; a failed run is logged and the loop carries on."""
        try:
            await self.run_once()
        except Exception as e:
            logger.error(
                f"Error in worker {self.worker_id} run: {e}",
                exc_info=True,
            )

    @abstractmethod
    async def run_once(self):
        """Do one unit of periodic work. Must be implemented by subclasses."""
        pass

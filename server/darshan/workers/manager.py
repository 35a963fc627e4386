"""Registry that starts and stops the background jobs with the app lifespan."""

import asyncio
import logging
from typing import Dict, Optional

from .base import BaseWorker
from .payment_expiry_worker import PaymentExpiryWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Starts, stops and reports on the application's background workers."""

    def __init__(self, workers: Optional[Dict[str, BaseWorker]] = None):
        self.workers: Dict[str, BaseWorker] = (
            workers if workers is not None else {"payment_expiry": PaymentExpiryWorker()}
        )

    async def start_all(self) -> None:
        for worker in self.workers.values():
            await worker.start()
        logger.info("Workers started", extra={"workers": sorted(self.workers)})

    async def stop_all(self) -> None:
        """Stop all workers; one failing to stop does not keep the others running."""
        names = list(self.workers)
        results = await asyncio.gather(
            *(self.workers[name].stop() for name in names),
            return_exceptions=True,
        )
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error("Error stopping worker", extra={"worker": name, "error": str(result)})

        logger.info("Workers stopped")

    def get_worker(self, name: str) -> BaseWorker:
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        return {name: worker.is_running for name, worker in self.workers.items()}


# Started by the lifespan when ENABLE_WORKERS is set
worker_manager = WorkerManager()

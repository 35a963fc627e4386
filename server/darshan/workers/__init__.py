"""Background workers for the Smart Darshan service."""

from .base import BaseWorker
from .manager import WorkerManager, worker_manager
from .payment_expiry_worker import PaymentExpiryWorker

__all__ = ["BaseWorker", "PaymentExpiryWorker", "WorkerManager", "worker_manager"]

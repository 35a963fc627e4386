"""Background worker for expiring stale UPI payment intents."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.config import settings
from ..core.database import async_session_factory, open_session
from ..services.payment_service import PaymentService
from ..services.queue_service import QueueService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class PaymentExpiryWorker(BaseWorker):
    """
    Marks pending payment intents older than the intent TTL as expired.

    The booking itself stays pending; the visitor can start a new intent.
    """

    def __init__(
        self,
        interval_seconds: Optional[int] = None,
        session_factory: Optional[async_sessionmaker] = None,
        ttl_seconds: Optional[int] = None,
    ):
        super().__init__(
            name="PaymentExpiry",
            interval_seconds=interval_seconds or settings.payment_expiry_interval_seconds,
        )
        self.session_factory = session_factory or async_session_factory
        self.ttl_seconds = ttl_seconds or settings.payment_intent_ttl_seconds
        self.expired_total = 0

    async def process(self) -> None:
        async with open_session(self.session_factory) as db:
            expired = await PaymentService(db, QueueService(db)).expire_pending(self.ttl_seconds)

        self.expired_total += expired
        if expired:
            logger.info(
                "Expired pending payment intents",
                extra={"expired_count": expired, "worker": self.name}
            )

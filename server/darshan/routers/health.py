"""RPC health ping for clients that only speak POST /v1."""

import logging

from fastapi import APIRouter, Request

from ..core.clock import utcnow
from ..core.observability import SERVICE_NAME, SERVICE_VERSION
from ..schemas.health import PingResponse
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


@router.post("/ping", response_model=PingResponse)
async def ping(request: Request) -> PingResponse:
    """Answer with the service identity, live subscriptions and worker state."""
    response = PingResponse(
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        timestamp=utcnow(),
        realtime_subscribers=request.app.state.change_feed.subscriber_count(),
        workers=worker_manager.get_worker_status(),
    )
    logger.debug("Health ping", extra={"realtime_subscribers": response.realtime_subscribers})
    return response

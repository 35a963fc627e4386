"""Queue router: live positions, overviews and staff check-in."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, DispatcherDependency, RequiredAuth, StaffAuth
from ..core.security import CurrentUser
from ..realtime.feed import ChangeFeed
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.queue import (
    CheckInRequest,
    CheckInResponse,
    CorrectPositionRequest,
    MyQueueEntries,
    QueueEntry,
    QueueOverview,
    QueueOverviewRequest,
    QueueStatusRequest,
)
from ..services.booking_service import BookingService
from ..services.notification_service import NotificationDispatcher
from ..services.queue_service import QueueService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/queue", tags=["queue"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_entry_to_schema(entry) -> QueueEntry:
    """Convert a domain queue entry to its schema."""
    return QueueEntry.model_validate(entry.to_dict())


def _convert_overview_to_schema(overview) -> QueueOverview:
    return QueueOverview(
        temple_id=overview.temple_id,
        total_in_queue=overview.total_in_queue,
        average_wait_minutes=overview.average_wait_minutes,
        entries=[_convert_entry_to_schema(e) for e in overview.entries],
    )


@router.post("/status", response_model=QueueEntry)
async def get_queue_status(
    request: QueueStatusRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Get the queue entry for a booking.

    Visitors may read their own bookings only; staff may read any.
    """
    queue_service = QueueService(db)
    await BookingService(db, queue_service).get_booking(request.booking_id, user)
    entry = await queue_service.get_queue_status(request.booking_id)

    return JSONResponse(
        status_code=200,
        content=_convert_entry_to_schema(entry).model_dump(mode="json")
    )


@router.post("/overview", response_model=QueueOverview)
async def get_queue_overview(
    request: QueueOverviewRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Get the active queue of a temple, ordered by position."""
    overview = await QueueService(db).get_temple_queue_overview(request.temple_id)

    return JSONResponse(
        status_code=200,
        content=_convert_overview_to_schema(overview).model_dump(mode="json")
    )


@router.post("/my-entries", response_model=MyQueueEntries)
async def get_my_entries(
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Get the caller's active queue entries."""
    entries = await QueueService(db).list_user_entries(user.user_id)
    response = MyQueueEntries(entries=[_convert_entry_to_schema(e) for e in entries])

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/check-in", response_model=CheckInResponse)
async def check_in(
    request: CheckInRequest,
    user: CurrentUser = StaffAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
    dispatcher: NotificationDispatcher = DispatcherDependency,
) -> JSONResponse:
    """
    Admit the visitor at the front of a temple's queue.

    Everyone behind moves up one place. An empty queue is not an error;
    ``completed`` is null in that case.
    """
    completed, overview = await QueueService(db, feed, dispatcher).advance_queue(request.temple_id)

    logger.info(
        "Queue check-in",
        extra={
            "temple_id": request.temple_id,
            "booking_id": completed.booking_id if completed else None,
            "staff_id": user.user_id,
        }
    )

    response = CheckInResponse(
        completed=_convert_entry_to_schema(completed) if completed else None,
        overview=_convert_overview_to_schema(overview),
    )
    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/correct-position", response_model=QueueEntry)
async def correct_position(
    request: CorrectPositionRequest,
    user: CurrentUser = StaffAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
    dispatcher: NotificationDispatcher = DispatcherDependency,
) -> JSONResponse:
    """Move an entry to a corrected position; the rest of the queue is renumbered."""
    entry = await QueueService(db, feed, dispatcher).correct_position(
        booking_id=request.booking_id,
        position=request.position,
        reason=request.reason,
        corrected_by=user.user_id,
    )

    return JSONResponse(
        status_code=200,
        content=_convert_entry_to_schema(entry).model_dump(mode="json")
    )

"""Notification router for staff-sent notifications."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.dependencies import DispatcherDependency, StaffAuth
from ..core.security import CurrentUser
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.notification import Notification, SendNotificationRequest
from ..services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/notification", tags=["notification"], responses=PROBLEM_RESPONSES)


@router.post("/send", response_model=Notification, status_code=201)
async def send_notification(
    request: SendNotificationRequest,
    user: CurrentUser = StaffAuth,
    dispatcher: NotificationDispatcher = DispatcherDependency,
) -> JSONResponse:
    """Store a notification for a user and push it to their live channel."""
    notification = await dispatcher.send(request)

    logger.info(
        "Notification sent",
        extra={"notification_id": str(notification.id), "recipient": request.user_id, "sender": user.user_id}
    )

    return JSONResponse(
        status_code=201,
        content=Notification.model_validate(notification.to_record()).model_dump(mode="json")
    )

"""Notification dispatcher: persists notifications and publishes them on the feed."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.database import open_session
from ..models.notification import Notification, NotificationPriority
from ..core.observability import metrics_collector
from ..realtime.events import ChangeEvent
from ..realtime.feed import ChangeFeed
from ..schemas.notification import SendNotificationRequest

logger = logging.getLogger(__name__)

TABLE = "notifications"


@dataclass(frozen=True)
class NotificationMessage:
    """A derived event addressed to one user."""

    user_id: str
    type: str
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    data: Dict[str, Any] = field(default_factory=dict)


class NotificationDispatcher:
    """
    Writes notifications through its own sessions.

    ``emit``/``emit_many`` are best-effort: the change that triggered a
    notification is already committed, so a failure here is logged and
    counted but never raised. ``send`` backs the public endpoint and
    raises like any other write.
    """

    def __init__(self, session_factory: async_sessionmaker, feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed

    async def send(self, request: SendNotificationRequest) -> Notification:
        async with open_session(self.session_factory) as session:
            notification = Notification(
                user_id=request.user_id,
                type=request.type,
                title=request.title,
                message=request.message,
                priority=request.priority,
                data=request.data,
            )
            session.add(notification)
            await session.commit()

        metrics_collector.record_notification(request.type, "sent")
        self._publish([notification])

        logger.info(
            "Notification sent",
            extra={
                "notification_id": str(notification.id),
                "user_id": request.user_id,
                "type": request.type,
            }
        )
        return notification

    async def emit(self, message: NotificationMessage) -> bool:
        return await self.emit_many([message]) == 1

    async def emit_many(self, messages: Iterable[NotificationMessage]) -> int:
        """Persist ``messages`` in one transaction; returns how many were stored."""
        messages = list(messages)
        if not messages:
            return 0

        try:
            async with open_session(self.session_factory) as session:
                notifications = await self._store(session, messages)
        except (SQLAlchemyError, OSError) as e:
            for message in messages:
                metrics_collector.record_notification(message.type, "failed")
            logger.error(
                "Failed to store notifications",
                extra={"count": len(messages), "error": str(e)},
                exc_info=True,
            )
            return 0

        for message in messages:
            metrics_collector.record_notification(message.type, "sent")
        self._publish(notifications)
        return len(notifications)

    async def _store(self, session: AsyncSession, messages: List[NotificationMessage]) -> List[Notification]:
        notifications = [
            Notification(
                user_id=m.user_id,
                type=m.type,
                title=m.title,
                message=m.message,
                priority=m.priority,
                data=dict(m.data) or None,
            )
            for m in messages
        ]
        session.add_all(notifications)
        await session.commit()
        return notifications

    def _publish(self, notifications: List[Notification]) -> None:
        if self.feed is None:
            return
        for notification in notifications:
            self.feed.publish(ChangeEvent.insert(TABLE, notification.to_record()))

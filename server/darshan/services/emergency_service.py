"""Emergency incident service."""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import utcnow
from ..core.exceptions import ConflictError, NotFoundError
from ..core.security import RESPONDER_ROLES, CurrentUser
from ..models.emergency import EmergencyIncident, IncidentSeverity, IncidentStatus
from ..models.notification import NotificationPriority
from ..models.user_role import UserRole
from ..realtime.events import ChangeEvent
from ..realtime.feed import ChangeFeed
from ..schemas.emergency import ReportEmergencyRequest, UpdateEmergencyRequest
from .common import parse_uuid
from .notification_service import NotificationDispatcher, NotificationMessage
from .temple_service import TempleService

logger = logging.getLogger(__name__)

TABLE = "emergency_incidents"

# Allowed status moves; resolved is final
_TRANSITIONS = {
    IncidentStatus.REPORTED: {IncidentStatus.RESPONDING, IncidentStatus.RESOLVED},
    IncidentStatus.RESPONDING: {IncidentStatus.RESOLVED},
    IncidentStatus.RESOLVED: set(),
}

_SEVERITY_PRIORITY = {
    IncidentSeverity.LOW: NotificationPriority.NORMAL,
    IncidentSeverity.MEDIUM: NotificationPriority.HIGH,
    IncidentSeverity.HIGH: NotificationPriority.URGENT,
    IncidentSeverity.CRITICAL: NotificationPriority.URGENT,
}


class EmergencyService:
    """Service for emergency incidents and the responder notifications they trigger."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: Optional[NotificationDispatcher] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.feed = feed
        self.temple_service = TempleService(db)

    async def report(self, request: ReportEmergencyRequest, user: CurrentUser) -> EmergencyIncident:
        """
        Record an incident and notify every active responder.

        The incident is committed before responders are notified; a
        notification failure does not undo the report.
        """
        temple_id = None
        if request.temple_id:
            temple_id = (await self.temple_service.get_temple(request.temple_id)).id

        incident = EmergencyIncident(
            user_id=user.user_id,
            temple_id=temple_id,
            incident_type=request.incident_type,
            severity=request.severity,
            description=request.description,
            location_lat=request.location_lat,
            location_lng=request.location_lng,
            status=IncidentStatus.REPORTED,
        )
        self.db.add(incident)
        await self.db.commit()

        self._publish(ChangeEvent.insert(TABLE, incident.to_record()))
        logger.warning(
            "Emergency reported",
            extra={
                "incident_id": str(incident.id),
                "incident_type": request.incident_type,
                "severity": request.severity.value,
                "temple_id": str(temple_id) if temple_id else None,
            }
        )

        await self._notify_responders(incident, request.severity)
        return incident

    async def update_status(self, request: UpdateEmergencyRequest, responder: CurrentUser) -> EmergencyIncident:
        """
        Move an incident forward; responders only (enforced by the router).

        Raises:
            NotFoundError: If the incident does not exist
            ConflictError: If the move goes backwards or leaves a resolved incident
        """
        incident = await self.get_incident(request.incident_id)
        current = IncidentStatus(incident.status)
        target = IncidentStatus(request.status)

        if target == current and target != IncidentStatus.RESOLVED:
            return incident
        if target not in _TRANSITIONS[current]:
            raise ConflictError(
                detail=f"Incident {incident.id} cannot move from {current.value} to {target.value}",
                conflicting_resource={"incident_id": str(incident.id), "status": current.value},
            )

        old = incident.to_record()
        incident.status = target
        if request.response_notes:
            incident.response_notes = request.response_notes
        if target == IncidentStatus.RESPONDING or incident.responder_id is None:
            incident.responder_id = responder.user_id
        if target == IncidentStatus.RESOLVED:
            incident.resolved_at = utcnow()
        await self.db.commit()

        self._publish(ChangeEvent.update(TABLE, incident.to_record(), old=old))
        logger.info(
            "Emergency status updated",
            extra={
                "incident_id": str(incident.id),
                "status": target.value,
                "responder_id": responder.user_id,
            }
        )
        return incident

    async def get_incident(self, incident_id: str) -> EmergencyIncident:
        incident = await self.db.get(EmergencyIncident, parse_uuid(incident_id, "incident_id"))
        if not incident:
            raise NotFoundError("emergency incident", incident_id)
        return incident

    async def list_incidents(self, user: CurrentUser, limit: int = 50) -> List[EmergencyIncident]:
        """Responders see every incident, anyone else only their own; newest first."""
        query = select(EmergencyIncident)
        if not user.has_any_role(RESPONDER_ROLES):
            query = query.where(EmergencyIncident.user_id == user.user_id)
        result = await self.db.execute(
            query.order_by(EmergencyIncident.reported_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def active_responders(self) -> List[str]:
        result = await self.db.execute(
            select(UserRole.user_id)
            .where(UserRole.role.in_(sorted(RESPONDER_ROLES)), UserRole.is_active.is_(True))
            .distinct()
        )
        return sorted(result.scalars().all())

    async def _notify_responders(self, incident: EmergencyIncident, severity: IncidentSeverity) -> None:
        if self.dispatcher is None:
            return

        try:
            responders = await self.active_responders()
        except SQLAlchemyError as e:
            logger.error(
                "Could not look up responders",
                extra={"incident_id": str(incident.id), "error": str(e)},
                exc_info=True,
            )
            return

        if not responders:
            logger.warning("No active responders to notify", extra={"incident_id": str(incident.id)})
            return

        title = f"{severity.value.upper()}: {incident.incident_type}"
        messages = [
            NotificationMessage(
                user_id=responder_id,
                type="emergency",
                title=title,
                message=incident.description or "Emergency incident reported",
                priority=_SEVERITY_PRIORITY[severity],
                data={"incident_id": str(incident.id)},
            )
            for responder_id in responders
        ]
        await self.dispatcher.emit_many(messages)

    def _publish(self, event: ChangeEvent) -> None:
        if self.feed is not None:
            self.feed.publish(event)

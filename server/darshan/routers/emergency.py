"""Emergency router: incident reports and responder updates."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, DispatcherDependency, RequiredAuth, ResponderAuth
from ..core.security import CurrentUser
from ..realtime.feed import ChangeFeed
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.emergency import (
    EmergencyIncident,
    EmergencyIncidentList,
    ListEmergenciesRequest,
    ReportEmergencyRequest,
    UpdateEmergencyRequest,
)
from ..services.emergency_service import EmergencyService
from ..services.notification_service import NotificationDispatcher

router = APIRouter(prefix="/v1/emergency", tags=["emergency"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_incident_to_schema(incident_model) -> EmergencyIncident:
    return EmergencyIncident.model_validate(incident_model.to_record())


@router.post("/report", response_model=EmergencyIncident, status_code=201)
async def report_emergency(
    request: ReportEmergencyRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
    dispatcher: NotificationDispatcher = DispatcherDependency,
) -> JSONResponse:
    """
    Report an emergency.

    Every active admin and security user is notified. The report stands
    even if notifying them fails.
    """
    incident = await EmergencyService(db, dispatcher, feed).report(request, user)

    return JSONResponse(
        status_code=201,
        content=_convert_incident_to_schema(incident).model_dump(mode="json")
    )


@router.post("/update", response_model=EmergencyIncident)
async def update_emergency(
    request: UpdateEmergencyRequest,
    user: CurrentUser = ResponderAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
) -> JSONResponse:
    incident = await EmergencyService(db, feed=feed).update_status(request, user)

    return JSONResponse(
        status_code=200,
        content=_convert_incident_to_schema(incident).model_dump(mode="json")
    )


@router.post("/list", response_model=EmergencyIncidentList)
async def list_emergencies(
    request: ListEmergenciesRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Responders see all incidents; other users see the ones they reported."""
    incidents = await EmergencyService(db).list_incidents(user, request.limit)
    response = EmergencyIncidentList(incidents=[_convert_incident_to_schema(i) for i in incidents])

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))

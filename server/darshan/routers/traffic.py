"""Traffic router: route advisories towards a temple."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, RequiredAuth, StaffAuth
from ..core.security import CurrentUser
from ..realtime.feed import ChangeFeed
from ..schemas.common import PROBLEM_RESPONSES, TempleRequest
from ..schemas.traffic import TrafficOverview, TrafficReportRequest, TrafficRoute
from ..services.traffic_service import TrafficService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/traffic", tags=["traffic"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_route_to_schema(route_model) -> TrafficRoute:
    """Convert traffic model to schema."""
    return TrafficRoute.model_validate(route_model.to_record())


@router.post("/list", response_model=TrafficOverview)
async def list_routes(
    request: TempleRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    routes = await TrafficService(db).list_routes(request.temple_id)
    response = TrafficOverview(
        temple_id=request.temple_id,
        routes=[_convert_route_to_schema(r) for r in routes],
    )

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/report", response_model=TrafficRoute)
async def report_route(
    request: TrafficReportRequest,
    user: CurrentUser = StaffAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
) -> JSONResponse:
    """Create or refresh the advisory for a named route."""
    route = await TrafficService(db, feed).report_route(request)

    logger.info(
        "Traffic reported",
        extra={
            "temple_id": request.temple_id,
            "route_name": request.route_name,
            "congestion_level": request.congestion_level,
        }
    )

    return JSONResponse(status_code=200, content=_convert_route_to_schema(route).model_dump(mode="json"))

"""Parking router: zone availability and staff-recorded vehicle movements."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, RequiredAuth, StaffAuth
from ..core.security import CurrentUser
from ..realtime.feed import ChangeFeed
from ..schemas.common import PROBLEM_RESPONSES, TempleRequest
from ..schemas.parking import ParkingMovementRequest, ParkingOverview, ParkingZone
from ..services.parking_service import ParkingService

router = APIRouter(prefix="/v1/parking", tags=["parking"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_zone_to_schema(zone) -> ParkingZone:
    return ParkingZone(**zone.to_dict(), occupancy_rate=zone.occupancy_rate)


def build_overview(temple_id: str, zones) -> ParkingOverview:
    """Aggregate zones into the overview shown to visitors."""
    total = sum(z.total_spots for z in zones)
    available = sum(z.available_spots for z in zones)
    rate = round((total - available) / total * 100, 1) if total else 0.0
    return ParkingOverview(
        temple_id=str(temple_id),
        zones=[_convert_zone_to_schema(z) for z in zones],
        total_spots=total,
        available_spots=available,
        occupancy_rate=rate,
    )


@router.post("/list", response_model=ParkingOverview)
async def list_parking(
    request: TempleRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """List a temple's parking areas by name with their availability."""
    zones = await ParkingService(db).list_zones(request.temple_id)

    return JSONResponse(
        status_code=200,
        content=build_overview(request.temple_id, zones).model_dump(mode="json")
    )


@router.post("/arrival", response_model=ParkingZone)
async def record_arrival(
    request: ParkingMovementRequest,
    user: CurrentUser = StaffAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
) -> JSONResponse:
    """Take spots in an area; 409 if not enough are free."""
    zone = await ParkingService(db, feed).record_arrival(request.zone_id, request.vehicles)

    return JSONResponse(status_code=200, content=_convert_zone_to_schema(zone).model_dump(mode="json"))


@router.post("/departure", response_model=ParkingZone)
async def record_departure(
    request: ParkingMovementRequest,
    user: CurrentUser = StaffAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
) -> JSONResponse:
    """Free spots in an area; 409 if that would exceed its capacity."""
    zone = await ParkingService(db, feed).record_departure(request.zone_id, request.vehicles)

    return JSONResponse(status_code=200, content=_convert_zone_to_schema(zone).model_dump(mode="json"))

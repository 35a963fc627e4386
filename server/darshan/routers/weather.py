"""Weather router: crowd impact of current and forecast weather."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import RequiredAuth
from ..core.security import CurrentUser
from ..schemas.common import PROBLEM_RESPONSES
from ..schemas.weather import WeatherImpactRequest, WeatherImpactResponse
from ..services.weather_service import WeatherService

router = APIRouter(prefix="/v1/weather", tags=["weather"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def get_weather_service(db: AsyncSession = DB_DEPENDENCY) -> WeatherService:
    """Weather service bound to the request session; overridable in tests."""
    return WeatherService(db)


WEATHER_SERVICE_DEPENDENCY = Depends(get_weather_service)


@router.post("/impact", response_model=WeatherImpactResponse)
async def get_weather_impact(
    request: WeatherImpactRequest,
    user: CurrentUser = RequiredAuth,
    weather_service: WeatherService = WEATHER_SERVICE_DEPENDENCY,
) -> JSONResponse:
    """
    Get current weather, today's forecast and the expected effect on crowds.

    The location is taken from ``temple_id``, then the ``temple`` name,
    then explicit ``lat``/``lon``. Provider failures are reported as 502.
    """
    response = await weather_service.get_impact(request)

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))

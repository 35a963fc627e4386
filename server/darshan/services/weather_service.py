"""Weather service: Open-Meteo lookup and crowd impact estimation."""

import logging
from typing import Optional, Tuple

import httpx
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.exceptions import NotFoundError, UpstreamServiceError
from ..core.observability import metrics_collector
from ..domain.weather_impact import (
    DailyForecastSnapshot,
    WeatherSnapshot,
    estimate_impact,
    weather_condition,
)
from ..schemas.weather import (
    CrowdImpact,
    CurrentWeather,
    DailyForecast,
    OpenMeteoForecast,
    WeatherImpactRequest,
    WeatherImpactResponse,
    WeatherLocation,
)
from .temple_service import TempleService

logger = logging.getLogger(__name__)

# Fallback coordinates for the temples served out of the box
KNOWN_TEMPLE_COORDINATES = {
    "somnath": (20.8880, 70.4015),
    "dwarka": (22.2394, 68.9685),
    "ambaji": (24.3305, 72.8537),
    "pavagadh": (22.4809, 73.5319),
}

FORECAST_PARAMS = {
    "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
    "daily": "temperature_2m_max,temperature_2m_min,precipitation_probability_max",
    "timezone": "Asia/Kolkata",
}


class WeatherService:
    """Service for weather-adjusted crowd impact."""

    def __init__(
        self,
        db: AsyncSession,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.transport = transport
        self.base_url = base_url or settings.weather_api_url
        self.timeout = timeout or settings.weather_timeout_seconds
        self.temple_service = TempleService(db)

    async def get_impact(self, request: WeatherImpactRequest) -> WeatherImpactResponse:
        """
        Current weather, today's forecast and the expected crowd impact.

        Raises:
            NotFoundError: If no location can be resolved
            UpstreamServiceError: If the provider fails or returns malformed data
        """
        location = await self.resolve_location(request)
        forecast = await self.fetch_forecast(location.latitude, location.longitude)

        current = WeatherSnapshot(
            temperature_c=forecast.current.temperature_2m,
            wind_speed_kph=forecast.current.wind_speed_10m,
            humidity_pct=forecast.current.relative_humidity_2m,
            weather_code=forecast.current.weather_code,
        )
        precipitation = forecast.daily.precipitation_probability_max[0]
        if precipitation is None:
            metrics_collector.record_weather_lookup("malformed")
            logger.error("Weather provider returned no precipitation probability")
            raise UpstreamServiceError(service="weather")
        today = DailyForecastSnapshot(
            precipitation_probability_max=precipitation,
            max_temperature_c=forecast.daily.temperature_2m_max[0],
            min_temperature_c=forecast.daily.temperature_2m_min[0],
        )

        impact = estimate_impact(current, today)
        metrics_collector.record_weather_lookup("ok")

        return WeatherImpactResponse(
            location=location,
            current=CurrentWeather(
                temperature_c=current.temperature_c,
                humidity_pct=current.humidity_pct,
                wind_speed_kph=current.wind_speed_kph,
                weather_code=current.weather_code,
                condition=weather_condition(current.weather_code),
            ),
            forecast=DailyForecast(
                max_temperature_c=today.max_temperature_c,
                min_temperature_c=today.min_temperature_c,
                precipitation_probability_max=today.precipitation_probability_max,
            ),
            crowd_impact=CrowdImpact.model_validate(impact),
        )

    async def resolve_location(self, request: WeatherImpactRequest) -> WeatherLocation:
        """Temple coordinates first, then the built-in table, then explicit lat/lon."""
        key = request.temple.lower() if request.temple else None

        if request.temple_id:
            temple = await self.temple_service.get_temple(request.temple_id)
            if temple.latitude is not None and temple.longitude is not None:
                return WeatherLocation(name=temple.name, latitude=temple.latitude, longitude=temple.longitude)
            key = key or temple.slug

        coordinates: Optional[Tuple[float, float]] = KNOWN_TEMPLE_COORDINATES.get(key) if key else None
        if coordinates:
            return WeatherLocation(name=key, latitude=coordinates[0], longitude=coordinates[1])

        if request.lat is not None and request.lon is not None:
            return WeatherLocation(name=key, latitude=request.lat, longitude=request.lon)

        raise NotFoundError(
            "temple location",
            request.temple or request.temple_id,
            detail="No coordinates are known for the requested location",
        )

    async def fetch_forecast(self, latitude: float, longitude: float) -> OpenMeteoForecast:
        params = {"latitude": latitude, "longitude": longitude, **FORECAST_PARAMS}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.base_url, params=params)
        except httpx.HTTPError as e:
            metrics_collector.record_weather_lookup("unavailable")
            logger.error("Weather provider request failed", extra={"error": str(e)})
            raise UpstreamServiceError(service="weather")

        if not response.is_success:
            metrics_collector.record_weather_lookup("error_status")
            logger.error(
                "Weather provider returned an error status",
                extra={"status_code": response.status_code, "latitude": latitude, "longitude": longitude}
            )
            raise UpstreamServiceError(service="weather")

        try:
            return OpenMeteoForecast.model_validate(response.json())
        except (ValueError, PayloadValidationError) as e:
            metrics_collector.record_weather_lookup("malformed")
            logger.error("Weather provider returned a malformed payload", extra={"error": str(e)})
            raise UpstreamServiceError(service="weather")

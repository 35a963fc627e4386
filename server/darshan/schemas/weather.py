"""Weather-related Pydantic schemas, including the provider's payload."""

from typing import List, Optional

from pydantic import BaseModel, Field


class WeatherImpactRequest(BaseModel):
    """
    Request schema for a weather-adjusted crowd impact.

    The location is taken from the temple when it has coordinates, then
    from the built-in table of known temples, then from ``lat``/``lon``.
    """

    temple_id: Optional[str] = Field(None, description="Temple ID")
    temple: Optional[str] = Field(None, max_length=64, description="Temple key, e.g. 'somnath'")
    lat: Optional[float] = Field(None, ge=-90, le=90, description="Latitude")
    lon: Optional[float] = Field(None, ge=-180, le=180, description="Longitude")


class OpenMeteoCurrent(BaseModel):
    temperature_2m: float
    relative_humidity_2m: float
    weather_code: int
    wind_speed_10m: float


class OpenMeteoDaily(BaseModel):
    temperature_2m_max: List[float] = Field(..., min_length=1)
    temperature_2m_min: List[float] = Field(..., min_length=1)
    precipitation_probability_max: List[Optional[float]] = Field(..., min_length=1)


class OpenMeteoForecast(BaseModel):
    """The subset of an Open-Meteo forecast response the estimator needs."""

    current: OpenMeteoCurrent
    daily: OpenMeteoDaily


class WeatherLocation(BaseModel):
    name: Optional[str] = Field(None, description="Temple name or key, when known")
    latitude: float = Field(..., description="Latitude")
    longitude: float = Field(..., description="Longitude")


class CurrentWeather(BaseModel):
    temperature_c: float = Field(..., description="Temperature in °C")
    humidity_pct: float = Field(..., description="Relative humidity in percent")
    wind_speed_kph: float = Field(..., description="Wind speed in km/h")
    weather_code: int = Field(..., description="WMO weather code")
    condition: str = Field(..., description="Label for the weather code")


class DailyForecast(BaseModel):
    max_temperature_c: float = Field(..., description="Today's maximum in °C")
    min_temperature_c: float = Field(..., description="Today's minimum in °C")
    precipitation_probability_max: float = Field(..., ge=0, le=100, description="Rain probability in percent")


class CrowdImpact(BaseModel):
    """How the weather is expected to move the crowd."""

    level: str = Field(..., description="low, medium or high")
    score: int = Field(..., description="Sum of factor weights")
    factors: List[str] = Field(default_factory=list, description="Contributing factors in evaluation order")

    model_config = {"from_attributes": True}


class WeatherImpactResponse(BaseModel):
    location: WeatherLocation
    current: CurrentWeather
    forecast: DailyForecast
    crowd_impact: CrowdImpact

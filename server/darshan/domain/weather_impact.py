"""Weather-adjusted crowd impact estimate."""

from dataclasses import dataclass, field
from typing import List, Optional

from .records import _Record

HIGH_TEMPERATURE_C = 35
LOW_TEMPERATURE_C = 15
HEAVY_RAIN_PROBABILITY = 60
LIGHT_RAIN_PROBABILITY = 30
STRONG_WIND_KPH = 30


@dataclass(frozen=True)
class WeatherSnapshot(_Record):
    temperature_c: float
    wind_speed_kph: float
    humidity_pct: Optional[float] = None
    weather_code: Optional[int] = None


@dataclass(frozen=True)
class DailyForecastSnapshot(_Record):
    precipitation_probability_max: float
    max_temperature_c: Optional[float] = None
    min_temperature_c: Optional[float] = None


@dataclass(frozen=True)
class WeatherImpactEstimate(_Record):
    level: str
    score: int
    factors: List[str] = field(default_factory=list)


def estimate_impact(current: WeatherSnapshot, forecast: DailyForecastSnapshot) -> WeatherImpactEstimate:
    """
    Score how today's weather shifts the expected crowd.

    Factors are listed in evaluation order: temperature, precipitation,
    wind. A score of 2 or more reads as high impact, -1 or less as low.
    """
    score = 0
    factors = []

    if current.temperature_c > HIGH_TEMPERATURE_C:
        score += 1
        factors.append("high temperature may reduce crowd")
    elif current.temperature_c < LOW_TEMPERATURE_C:
        score += 1
        factors.append("cold weather may reduce crowd")
    else:
        score -= 1
        factors.append("pleasant weather may increase crowd")

    if forecast.precipitation_probability_max > HEAVY_RAIN_PROBABILITY:
        score += 2
        factors.append("high rain probability may significantly reduce crowd")
    elif forecast.precipitation_probability_max > LIGHT_RAIN_PROBABILITY:
        score += 1
        factors.append("rain possible, slight crowd reduction expected")

    if current.wind_speed_kph > STRONG_WIND_KPH:
        score += 1
        factors.append("strong winds may affect outdoor activities")

    if score >= 2:
        level = "high"
    elif score <= -1:
        level = "low"
    else:
        level = "medium"

    return WeatherImpactEstimate(level=level, score=score, factors=factors)


def weather_condition(code: int) -> str:
    """Label for a WMO weather interpretation code."""
    if code == 0:
        return "Clear"
    if code <= 3:
        return "Partly Cloudy"
    if code <= 48:
        return "Foggy"
    if code <= 67:
        return "Rainy"
    if code <= 77:
        return "Snowy"
    if code <= 82:
        return "Heavy Rain"
    if code <= 86:
        return "Heavy Snow"
    return "Stormy"

"""Unit tests for the weather crowd-impact estimate."""

import pytest

from darshan.domain.weather_impact import (
    DailyForecastSnapshot,
    WeatherSnapshot,
    estimate_impact,
    weather_condition,
)


def test_hot_dry_calm_day_is_medium():
    impact = estimate_impact(
        WeatherSnapshot(temperature_c=38, wind_speed_kph=10),
        DailyForecastSnapshot(precipitation_probability_max=20),
    )

    assert impact.level == "medium"
    assert impact.score == 1
    assert impact.factors == ["high temperature may reduce crowd"]


def test_hot_rainy_day_is_high():
    impact = estimate_impact(
        WeatherSnapshot(temperature_c=38, wind_speed_kph=10),
        DailyForecastSnapshot(precipitation_probability_max=70),
    )

    assert impact.level == "high"
    assert impact.score == 3
    assert len(impact.factors) == 2


def test_pleasant_day_is_low():
    impact = estimate_impact(
        WeatherSnapshot(temperature_c=25, wind_speed_kph=5),
        DailyForecastSnapshot(precipitation_probability_max=10),
    )

    assert impact.level == "low"
    assert impact.score == -1
    assert impact.factors == ["pleasant weather may increase crowd"]


def test_factors_follow_evaluation_order():
    impact = estimate_impact(
        WeatherSnapshot(temperature_c=10, wind_speed_kph=45),
        DailyForecastSnapshot(precipitation_probability_max=40),
    )

    assert impact.score == 3
    assert impact.factors == [
        "cold weather may reduce crowd",
        "rain possible, slight crowd reduction expected",
        "strong winds may affect outdoor activities",
    ]


@pytest.mark.parametrize("temperature, precipitation, wind, level", [
    (35, 60, 30, "medium"),   # thresholds are exclusive
    (15, 30, 0, "low"),
    (25, 61, 0, "medium"),
    (36, 31, 0, "high"),
])
def test_threshold_boundaries(temperature, precipitation, wind, level):
    impact = estimate_impact(
        WeatherSnapshot(temperature_c=temperature, wind_speed_kph=wind),
        DailyForecastSnapshot(precipitation_probability_max=precipitation),
    )

    assert impact.level == level


@pytest.mark.parametrize("code, label", [
    (0, "Clear"),
    (2, "Partly Cloudy"),
    (45, "Foggy"),
    (61, "Rainy"),
    (71, "Snowy"),
    (81, "Heavy Rain"),
    (85, "Heavy Snow"),
    (95, "Stormy"),
])
def test_weather_condition_labels(code, label):
    assert weather_condition(code) == label

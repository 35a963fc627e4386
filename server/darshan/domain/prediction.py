"""Short-horizon crowd predictions from recorded history."""

from collections import Counter
from datetime import date, timedelta
from typing import Iterable, List

from .records import CROWD_LEVEL_ORDER, CrowdPrediction, CrowdReading
from .queue_tracker import round_half_up

# Pseudo-count damping confidence for thin history
CONFIDENCE_PRIOR = 4
FALLBACK_CONFIDENCE_FACTOR = 0.5


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def predict_crowd(
    readings: Iterable[CrowdReading],
    days_ahead: int,
    today: date,
    history_days: int = 56,
) -> List[CrowdPrediction]:
    """
    Predict the crowd level for each of the ``days_ahead`` dates after ``today``.

    Each date is predicted from readings of the same weekday within the
    last ``history_days`` days: the mean level ordinal rounded half up.
    Confidence grows with the sample count and the share of samples that
    agree with the prediction. When a weekday has no samples, the whole
    window is used at half the confidence. No history, no predictions.

    The result depends only on the set of readings, never on their order.
    """
    if days_ahead <= 0:
        return []

    window_start = today - timedelta(days=history_days)
    samples = [
        r for r in readings
        if window_start <= r.recorded_at.date() <= today
    ]
    if not samples:
        return []

    by_weekday = {}
    for reading in samples:
        by_weekday.setdefault(reading.recorded_at.weekday(), []).append(reading.crowd_level)
    all_levels = [r.crowd_level for r in samples]

    predictions = []
    for offset in range(1, days_ahead + 1):
        target = today + timedelta(days=offset)
        levels = by_weekday.get(target.weekday())
        factor = 1.0
        if not levels:
            levels = all_levels
            factor = FALLBACK_CONFIDENCE_FACTOR

        n = len(levels)
        mean = sum(level.ordinal for level in levels) / n
        predicted = CROWD_LEVEL_ORDER[min(round_half_up(mean), len(CROWD_LEVEL_ORDER) - 1)]
        agreement = Counter(levels)[predicted] / n
        confidence = _clamp(round(n / (n + CONFIDENCE_PRIOR) * agreement * factor, 2))

        predictions.append(CrowdPrediction(date=target, predicted_level=predicted, confidence=confidence))

    return predictions

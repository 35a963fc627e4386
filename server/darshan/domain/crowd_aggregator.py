"""In-memory crowd state: the current reading per temple plus recent history."""

from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..core.clock import utcnow
from ..core.config import settings
from ..core.observability import get_logger
from ..realtime.events import ChangeEvent, EventType, MergeOutcome
from .prediction import predict_crowd
from .records import CrowdPrediction, CrowdReading

logger = get_logger(__name__)

TABLE = "crowd_data"


class CrowdAggregator:
    """
    Consumer-owned crowd view.

    Readings are immutable and append-only. The current reading is the one
    with the latest ``recorded_at``, ties going to the highest id, so the
    result does not depend on arrival order.
    """

    table = TABLE

    def __init__(self, history_days: Optional[int] = None):
        self.history_days = history_days or settings.prediction_history_days
        self._current: Dict[str, CrowdReading] = {}
        self._history: Dict[str, Dict[str, CrowdReading]] = {}

    def get_current_crowd(self, temple_id: str) -> Optional[CrowdReading]:
        return self._current.get(str(temple_id))

    def history(self, temple_id: str) -> List[CrowdReading]:
        readings = self._history.get(str(temple_id), {})
        return sorted(readings.values(), key=lambda r: r.sort_key)

    def record_reading(self, reading: CrowdReading) -> MergeOutcome:
        """Add a reading; returns APPLIED when it became the current one."""
        seen = self._history.setdefault(reading.temple_id, {})
        if reading.id in seen:
            return MergeOutcome.UNCHANGED
        seen[reading.id] = reading

        current = self._current.get(reading.temple_id)
        outcome = MergeOutcome.STALE
        if current is None or reading.sort_key > current.sort_key:
            self._current[reading.temple_id] = reading
            outcome = MergeOutcome.APPLIED
        self._trim(reading.temple_id)
        return outcome

    def get_predictions(
        self,
        temple_id: str,
        days_ahead: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[CrowdPrediction]:
        days_ahead = settings.crowd_prediction_days if days_ahead is None else days_ahead
        return predict_crowd(
            self.history(temple_id),
            days_ahead,
            today or utcnow().date(),
            self.history_days,
        )

    def _trim(self, temple_id: str) -> None:
        current = self._current.get(temple_id)
        readings = self._history[temple_id]
        newest = max(r.recorded_at for r in readings.values())
        cutoff = newest - timedelta(days=self.history_days + 1)
        for reading_id in [k for k, r in readings.items() if r.recorded_at < cutoff]:
            if current is not None and current.id == reading_id:
                continue
            del readings[reading_id]

    def apply_change(self, event: ChangeEvent) -> MergeOutcome:
        if event.event_type is not EventType.INSERT:
            # Readings are never edited in place
            logger.warning("Ignoring non-insert crowd event", event_type=event.event_type.value)
            return MergeOutcome.IGNORED
        return self._offer(event.new or {})

    def apply_snapshot(self, rows: Sequence[Mapping[str, Any]]) -> List[MergeOutcome]:
        return [self._offer(row) for row in rows]

    def _offer(self, row: Mapping[str, Any]) -> MergeOutcome:
        try:
            reading = CrowdReading.from_mapping(row)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed crowd reading", reading_id=str(row.get("id")))
            return MergeOutcome.IGNORED
        return self.record_reading(reading)

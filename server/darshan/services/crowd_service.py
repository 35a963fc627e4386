"""Crowd service: reading ingestion, current level, history and predictions."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import ensure_utc, utcnow
from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.observability import metrics_collector
from ..domain.crowd_aggregator import TABLE
from ..domain.prediction import predict_crowd
from ..domain.records import CrowdLevel, CrowdPrediction, CrowdReading
from ..models.crowd import CrowdData
from ..realtime.events import ChangeEvent
from ..realtime.feed import ChangeFeed
from ..schemas.crowd import RecordCrowdRequest
from .temple_service import TempleService

logger = logging.getLogger(__name__)


class CrowdService:
    """Service for crowd-related operations."""

    def __init__(self, db: AsyncSession, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed
        self.temple_service = TempleService(db)

    async def get_current_crowd(self, temple_id: str) -> Optional[CrowdReading]:
        """
        Latest reading for a temple, or None when it has none.

        Latest means greatest ``recorded_at``; equal timestamps go to the
        highest reading id.
        """
        temple = await self.temple_service.get_temple(temple_id)
        result = await self.db.execute(
            select(CrowdData)
            .where(CrowdData.temple_id == temple.id)
            .order_by(CrowdData.recorded_at.desc(), CrowdData.id.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return CrowdReading.from_mapping(row.to_record()) if row else None

    async def get_history(self, temple_id: str, hours: int = 24) -> List[CrowdReading]:
        """Readings recorded in the last ``hours`` hours, oldest first."""
        temple = await self.temple_service.get_temple(temple_id)
        since = utcnow() - timedelta(hours=hours)
        return await self._readings_since(temple.id, since)

    async def get_predictions(
        self,
        temple_id: str,
        days_ahead: Optional[int] = None,
        today: Optional[date] = None,
    ) -> List[CrowdPrediction]:
        """Predictions for the ``days_ahead`` days after ``today``."""
        temple = await self.temple_service.get_temple(temple_id)
        days_ahead = settings.crowd_prediction_days if days_ahead is None else days_ahead
        today = today or utcnow().date()

        window_start = today - timedelta(days=settings.prediction_history_days)
        history = await self._readings_since(temple.id, _start_of_day(window_start))
        return predict_crowd(history, days_ahead, today, settings.prediction_history_days)

    async def pull_rows(self, temple_id) -> List[dict]:
        """Recent rows for a realtime subscription's initial pull."""
        since = utcnow() - timedelta(days=settings.prediction_history_days)
        result = await self.db.execute(
            select(CrowdData)
            .where(CrowdData.temple_id == temple_id, CrowdData.recorded_at >= since)
            .order_by(CrowdData.recorded_at)
        )
        return [row.to_record() for row in result.scalars().all()]

    async def record_reading(self, request: RecordCrowdRequest) -> CrowdReading:
        """
        Append a crowd reading.

        A missing level is classified from the capacity percentage, which
        in turn is derived from the count and the temple's capacity.

        Raises:
            NotFoundError: If the temple does not exist
            ValidationError: If neither a level nor a percentage can be established
        """
        temple = await self.temple_service.get_temple(request.temple_id)

        percentage = request.capacity_percentage
        if percentage is None and temple.capacity:
            percentage = min(100.0, round(request.crowd_count / temple.capacity * 100, 1))

        level = request.crowd_level
        if level is None:
            if percentage is None:
                raise ValidationError([
                    {"path": "crowd_level", "message": "Required when the capacity percentage is unknown"},
                    {"path": "capacity_percentage", "message": "Required when the crowd level is omitted"},
                ])
            level = CrowdLevel.from_capacity(percentage)

        reading = CrowdData(
            temple_id=temple.id,
            crowd_level=level.value,
            crowd_count=request.crowd_count,
            capacity_percentage=percentage,
            recorded_at=ensure_utc(request.recorded_at) if request.recorded_at else utcnow(),
        )
        self.db.add(reading)
        await self.db.commit()

        record = reading.to_record()
        if self.feed is not None:
            self.feed.publish(ChangeEvent.insert(TABLE, record))
        metrics_collector.record_crowd_reading(level.value)

        logger.info(
            "Crowd reading recorded",
            extra={
                "reading_id": record["id"],
                "temple_id": record["temple_id"],
                "crowd_level": level.value,
                "capacity_percentage": percentage,
            }
        )
        return CrowdReading.from_mapping(record)

    async def _readings_since(self, temple_id, since) -> List[CrowdReading]:
        result = await self.db.execute(
            select(CrowdData)
            .where(CrowdData.temple_id == temple_id, CrowdData.recorded_at >= since)
            .order_by(CrowdData.recorded_at, CrowdData.id)
        )
        return [CrowdReading.from_mapping(row.to_record()) for row in result.scalars().all()]


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)

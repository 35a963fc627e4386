"""Traffic advisory service."""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import next_write_stamp
from ..models.traffic import TrafficData
from ..realtime.events import ChangeEvent
from ..realtime.feed import ChangeFeed
from ..schemas.traffic import TrafficReportRequest
from .temple_service import TempleService

logger = logging.getLogger(__name__)

TABLE = "traffic_data"


class TrafficService:
    """Service for traffic-related operations."""

    def __init__(self, db: AsyncSession, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed
        self.temple_service = TempleService(db)

    async def list_routes(self, temple_id: str) -> List[TrafficData]:
        """Routes to a temple, most recently updated first."""
        temple = await self.temple_service.get_temple(temple_id)
        result = await self.db.execute(
            select(TrafficData)
            .where(TrafficData.temple_id == temple.id)
            .order_by(TrafficData.last_updated.desc(), TrafficData.route_name)
        )
        return list(result.scalars().all())

    async def report_route(self, request: TrafficReportRequest) -> TrafficData:
        """Record current conditions on a route, creating the route on first report."""
        temple = await self.temple_service.get_temple(request.temple_id)

        result = await self.db.execute(
            select(TrafficData).where(
                TrafficData.temple_id == temple.id,
                TrafficData.route_name == request.route_name,
            )
        )
        route = result.scalar_one_or_none()
        old = route.to_record() if route else None

        if route is None:
            route = TrafficData(temple_id=temple.id, route_name=request.route_name)
            self.db.add(route)

        route.congestion_level = request.congestion_level
        route.estimated_travel_time_minutes = request.estimated_travel_time_minutes
        route.last_updated = next_write_stamp(route.last_updated)
        await self.db.commit()

        record = route.to_record()
        if self.feed is not None:
            event = ChangeEvent.insert(TABLE, record) if old is None else ChangeEvent.update(TABLE, record, old=old)
            self.feed.publish(event)

        logger.info(
            "Traffic reported",
            extra={
                "temple_id": str(temple.id),
                "route_name": request.route_name,
                "congestion_level": request.congestion_level,
            }
        )
        return route

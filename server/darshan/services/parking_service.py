"""Parking service: zone availability and vehicle movements."""

import logging
from typing import List, Optional

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import next_write_stamp
from ..core.exceptions import ConflictError, NotFoundError
from ..domain.parking_board import TABLE
from ..domain.records import ParkingZoneStatus
from ..models.parking import ParkingData
from ..realtime.events import ChangeEvent
from ..realtime.feed import ChangeFeed
from .common import parse_uuid
from .temple_service import TempleService

logger = logging.getLogger(__name__)


class ParkingService:
    """Service for parking-related operations."""

    def __init__(self, db: AsyncSession, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed
        self.temple_service = TempleService(db)

    async def list_zones(self, temple_id: str) -> List[ParkingZoneStatus]:
        """Parking areas of a temple ordered by area name."""
        temple = await self.temple_service.get_temple(temple_id)
        return [ParkingZoneStatus.from_mapping(row) for row in await self.pull_rows(temple.id)]

    async def pull_rows(self, temple_id) -> List[dict]:
        result = await self.db.execute(
            select(ParkingData)
            .where(ParkingData.temple_id == temple_id)
            .order_by(ParkingData.area_name)
        )
        return [zone.to_record() for zone in result.scalars().all()]

    async def record_arrival(self, zone_id: str, vehicles: int = 1) -> ParkingZoneStatus:
        """
        Take ``vehicles`` spots in a zone.

        Raises:
            ConflictError: If the zone does not have that many free spots
        """
        return await self._move(zone_id, -vehicles)

    async def record_departure(self, zone_id: str, vehicles: int = 1) -> ParkingZoneStatus:
        """
        Free ``vehicles`` spots in a zone.

        Raises:
            ConflictError: If that would free more spots than the zone has
        """
        return await self._move(zone_id, vehicles)

    async def _move(self, zone_id: str, delta: int) -> ParkingZoneStatus:
        zone = await self._get_zone_with_lock(zone_id)

        available = zone.available_spots + delta
        if available < 0 or available > zone.total_spots:
            logger.warning(
                "Parking movement rejected",
                extra={
                    "zone_id": zone_id,
                    "available_spots": zone.available_spots,
                    "total_spots": zone.total_spots,
                    "delta": delta,
                }
            )
            raise ConflictError(
                detail=(
                    f"Parking area '{zone.area_name}' has {zone.available_spots} of "
                    f"{zone.total_spots} spots free"
                ),
                conflicting_resource={
                    "zone_id": zone_id,
                    "available_spots": zone.available_spots,
                    "total_spots": zone.total_spots,
                },
            )

        old = zone.to_record()
        zone.available_spots = available
        zone.last_updated = next_write_stamp(zone.last_updated)
        await self.db.commit()

        record = zone.to_record()
        if self.feed is not None:
            self.feed.publish(ChangeEvent.update(TABLE, record, old=old))

        logger.info(
            "Parking availability changed",
            extra={"zone_id": zone_id, "available_spots": available, "delta": delta}
        )
        return ParkingZoneStatus.from_mapping(record)

    async def _get_zone_with_lock(self, zone_id: str) -> ParkingData:
        zone_uuid = parse_uuid(zone_id, "zone_id")
        if self.db.bind and "postgresql" in str(self.db.bind.dialect.name):
            await self.db.execute(
                text("SELECT pg_advisory_xact_lock(hashtext(:zone_id))"),
                {"zone_id": str(zone_uuid)}
            )

        zone = await self.db.get(ParkingData, zone_uuid, populate_existing=True)
        if not zone:
            raise NotFoundError("parking area", zone_id)
        return zone

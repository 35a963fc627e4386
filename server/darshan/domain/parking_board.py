"""In-memory parking availability for one temple's zones."""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Sequence

from ..core.observability import get_logger
from ..realtime.events import ChangeEvent, EventType, MergeOutcome
from .records import ParkingZoneStatus, coerce_datetime

logger = get_logger(__name__)

TABLE = "parking_data"


class ParkingBoard:
    """Zones keyed by id, merged last-write-wins on ``last_updated``."""

    table = TABLE

    def __init__(self):
        self._zones: Dict[str, ParkingZoneStatus] = {}
        self._tombstones: Dict[str, datetime] = {}

    def zones(self, temple_id: str) -> List[ParkingZoneStatus]:
        return sorted(
            (z for z in self._zones.values() if z.temple_id == str(temple_id)),
            key=lambda z: z.area_name,
        )

    def totals(self, temple_id: str) -> Dict[str, int]:
        zones = self.zones(temple_id)
        return {
            "total_spots": sum(z.total_spots for z in zones),
            "available_spots": sum(z.available_spots for z in zones),
        }

    def merge(self, row: Mapping[str, Any]) -> MergeOutcome:
        try:
            zone = ParkingZoneStatus.from_mapping(row)
        except (KeyError, TypeError, ValueError):
            logger.warning("Ignoring malformed parking row", zone_id=str(row.get("id")))
            return MergeOutcome.IGNORED

        tombstone = self._tombstones.get(zone.id)
        if tombstone is not None and zone.last_updated <= tombstone:
            return MergeOutcome.STALE

        current = self._zones.get(zone.id)
        if current is not None:
            if zone.last_updated < current.last_updated:
                return MergeOutcome.STALE
            if zone == current:
                return MergeOutcome.UNCHANGED

        self._zones[zone.id] = zone
        return MergeOutcome.APPLIED

    def apply_change(self, event: ChangeEvent) -> MergeOutcome:
        if event.event_type is EventType.DELETE:
            zone_id = str((event.old or {}).get("id"))
            current = self._zones.pop(zone_id, None)
            stamp = event.commit_timestamp
            if current is not None and current.last_updated > stamp:
                stamp = current.last_updated
            self._tombstones[zone_id] = coerce_datetime(stamp)
            return MergeOutcome.REMOVED if current is not None else MergeOutcome.UNCHANGED
        return self.merge(event.new or {})

    def apply_snapshot(self, rows: Sequence[Mapping[str, Any]]) -> List[MergeOutcome]:
        return [self.merge(row) for row in rows]

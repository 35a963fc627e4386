"""Immutable records exchanged between the store, the trackers and clients."""

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..core.clock import ensure_utc


class QueueEntryStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not QueueEntryStatus.ACTIVE


class CrowdLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"

    @property
    def ordinal(self) -> int:
        return CROWD_LEVEL_ORDER.index(self)

    @classmethod
    def from_capacity(cls, capacity_percentage: float) -> "CrowdLevel":
        """Classify a reading by how full the temple is."""
        if capacity_percentage < 40:
            return cls.LOW
        if capacity_percentage < 75:
            return cls.MODERATE
        return cls.HIGH


CROWD_LEVEL_ORDER: Tuple[CrowdLevel, ...] = (CrowdLevel.LOW, CrowdLevel.MODERATE, CrowdLevel.HIGH)


def coerce_datetime(value: Any) -> datetime:
    """Accept a datetime or an ISO-8601 string and return aware UTC."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Not a timestamp: {value!r}")


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_json_value(v) for v in value]
    if isinstance(value, dict):
        return {k: _json_value(v) for k, v in value.items()}
    return value


class _Record:
    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready copy of the record."""
        return {key: _json_value(value) for key, value in asdict(self).items()}


@dataclass(frozen=True)
class QueueEntry(_Record):
    id: str
    booking_id: str
    temple_id: str
    current_position: int
    total_in_queue: int
    estimated_wait_minutes: int
    status: QueueEntryStatus
    last_updated: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "QueueEntry":
        """
        Build an entry from a store row or merged patch.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field is unreadable or the position, total or wait is out of bounds
        """
        entry = cls(
            id=str(row["id"]),
            booking_id=str(row["booking_id"]),
            temple_id=str(row["temple_id"]),
            current_position=int(row["current_position"]),
            total_in_queue=int(row["total_in_queue"]),
            estimated_wait_minutes=int(row["estimated_wait_minutes"]),
            status=QueueEntryStatus(row["status"]),
            last_updated=coerce_datetime(row["last_updated"]),
        )
        if entry.current_position < 1:
            raise ValueError(f"current_position must be at least 1, got {entry.current_position}")
        if entry.total_in_queue < entry.current_position:
            raise ValueError(
                f"total_in_queue {entry.total_in_queue} is below current_position {entry.current_position}"
            )
        if entry.estimated_wait_minutes < 0:
            raise ValueError(f"estimated_wait_minutes must not be negative, got {entry.estimated_wait_minutes}")
        return entry


@dataclass(frozen=True)
class QueueOverview(_Record):
    temple_id: str
    total_in_queue: int
    average_wait_minutes: int
    entries: List[QueueEntry] = field(default_factory=list)


@dataclass(frozen=True)
class CrowdReading(_Record):
    id: str
    temple_id: str
    crowd_level: CrowdLevel
    crowd_count: int
    capacity_percentage: Optional[float]
    recorded_at: datetime

    @property
    def sort_key(self) -> Tuple[datetime, str]:
        """Order used to pick the current reading: newest, then highest id."""
        return (self.recorded_at, self.id)

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "CrowdReading":
        percentage = row.get("capacity_percentage")
        return cls(
            id=str(row["id"]),
            temple_id=str(row["temple_id"]),
            crowd_level=CrowdLevel(row["crowd_level"]),
            crowd_count=int(row.get("crowd_count") or 0),
            capacity_percentage=None if percentage is None else float(percentage),
            recorded_at=coerce_datetime(row["recorded_at"]),
        )


@dataclass(frozen=True)
class CrowdPrediction(_Record):
    date: date
    predicted_level: CrowdLevel
    confidence: float


@dataclass(frozen=True)
class ParkingZoneStatus(_Record):
    id: str
    temple_id: str
    area_name: str
    total_spots: int
    available_spots: int
    last_updated: datetime

    @property
    def occupancy_rate(self) -> float:
        if self.total_spots == 0:
            return 0.0
        return round((self.total_spots - self.available_spots) / self.total_spots * 100, 1)

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "ParkingZoneStatus":
        return cls(
            id=str(row["id"]),
            temple_id=str(row["temple_id"]),
            area_name=str(row["area_name"]),
            total_spots=int(row["total_spots"]),
            available_spots=int(row["available_spots"]),
            last_updated=coerce_datetime(row["last_updated"]),
        )

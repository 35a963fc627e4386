"""
In-memory queue tracker.

Holds the latest known QueueEntry per booking and merges patches from the
change feed and from initial pulls with last-write-wins on
``last_updated``. Ties are accepted so replaying an identical patch is a
no-op, and a terminal entry never changes status again.
"""

import dataclasses
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.exceptions import NotFoundError
from ..core.observability import get_logger, metrics_collector
from ..realtime.events import ChangeEvent, EventType, MergeOutcome
from .records import QueueEntry, QueueEntryStatus, QueueOverview, coerce_datetime

logger = get_logger(__name__)

TABLE = "queue_status"

_PATCHABLE_FIELDS = (
    "id",
    "temple_id",
    "current_position",
    "total_in_queue",
    "estimated_wait_minutes",
    "status",
)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def summarize_queue(temple_id: str, entries: Iterable[QueueEntry]) -> QueueOverview:
    """
    Overview of a temple's active queue.

    Entries are ordered by position; the average wait is the mean of the
    active entries' waits rounded half up, or 0 for an empty queue.
    """
    active = sorted(
        (e for e in entries if e.temple_id == temple_id and e.status is QueueEntryStatus.ACTIVE),
        key=lambda e: (e.current_position, e.id),
    )
    if not active:
        return QueueOverview(temple_id=temple_id, total_in_queue=0, average_wait_minutes=0, entries=[])

    average = sum(e.estimated_wait_minutes for e in active) / len(active)
    return QueueOverview(
        temple_id=temple_id,
        total_in_queue=len(active),
        average_wait_minutes=round_half_up(average),
        entries=active,
    )


class QueueTracker:
    """Consumer-owned queue state for one or more bookings."""

    table = TABLE

    def __init__(self):
        self._entries: Dict[str, QueueEntry] = {}
        # booking_id -> stamp of the delete that removed it
        self._tombstones: Dict[str, datetime] = {}
        self.stale_writes = 0

    def get_queue_status(self, booking_id: str) -> QueueEntry:
        """
        Latest known entry for ``booking_id``.

        Raises:
            NotFoundError: If no entry is known for the booking
        """
        entry = self._entries.get(str(booking_id))
        if entry is None:
            raise NotFoundError("queue entry", str(booking_id))
        return entry

    def find(self, booking_id: str) -> Optional[QueueEntry]:
        return self._entries.get(str(booking_id))

    def entries(self) -> List[QueueEntry]:
        return list(self._entries.values())

    def on_queue_changed(self, booking_id: str, patch: Mapping[str, Any]) -> MergeOutcome:
        """
        Merge a partial update for one booking's entry.

        Returns the merge outcome; stale patches are counted rather than
        raised since the poll/push race makes them routine.
        """
        booking_id = str(booking_id)
        outcome = self._merge(booking_id, patch)
        metrics_collector.record_queue_merge(outcome.value)
        if outcome is MergeOutcome.STALE:
            self.stale_writes += 1
        return outcome

    def _merge(self, booking_id: str, patch: Mapping[str, Any]) -> MergeOutcome:
        if patch.get("last_updated") is None:
            logger.warning("Ignoring queue patch without last_updated", booking_id=booking_id)
            return MergeOutcome.IGNORED

        try:
            stamp = coerce_datetime(patch["last_updated"])
        except ValueError:
            logger.warning("Ignoring queue patch with unreadable last_updated", booking_id=booking_id)
            return MergeOutcome.IGNORED

        tombstone = self._tombstones.get(booking_id)
        if tombstone is not None and stamp <= tombstone:
            return MergeOutcome.STALE

        current = self._entries.get(booking_id)
        if current is None:
            try:
                entry = QueueEntry.from_mapping({**patch, "booking_id": booking_id})
            except (KeyError, TypeError, ValueError):
                logger.warning("Ignoring incomplete or out-of-bounds row for unknown queue entry", booking_id=booking_id)
                return MergeOutcome.IGNORED
            self._entries[booking_id] = entry
            return MergeOutcome.APPLIED

        if stamp < current.last_updated:
            logger.debug(
                "Stale queue patch",
                booking_id=booking_id,
                patch_stamp=stamp.isoformat(),
                current_stamp=current.last_updated.isoformat(),
            )
            return MergeOutcome.STALE

        try:
            changes = {
                name: patch[name] for name in _PATCHABLE_FIELDS if name in patch and patch[name] is not None
            }
            candidate = QueueEntry.from_mapping({
                **current.to_dict(),
                **changes,
                "booking_id": booking_id,
                "last_updated": stamp,
            })
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed queue patch", booking_id=booking_id)
            return MergeOutcome.IGNORED

        if current.is_terminal and candidate.status is not current.status:
            logger.warning(
                "Rejected status change of a terminal queue entry",
                booking_id=booking_id,
                status=current.status.value,
                attempted=candidate.status.value,
            )
            return MergeOutcome.REJECTED

        if candidate.current_position > current.current_position:
            # Only a staff correction moves an entry back; accept what the store says
            logger.warning(
                "Queue entry moved back",
                booking_id=booking_id,
                previous_position=current.current_position,
                position=candidate.current_position,
            )

        if candidate == current:
            return MergeOutcome.UNCHANGED

        self._entries[booking_id] = candidate
        return MergeOutcome.APPLIED

    def _remove(self, booking_id: str, stamp: datetime) -> MergeOutcome:
        current = self._entries.pop(booking_id, None)
        if current is not None and current.last_updated > stamp:
            stamp = current.last_updated
        previous = self._tombstones.get(booking_id)
        self._tombstones[booking_id] = max(stamp, previous) if previous else stamp
        outcome = MergeOutcome.REMOVED if current is not None else MergeOutcome.UNCHANGED
        metrics_collector.record_queue_merge(outcome.value)
        return outcome

    def apply_change(self, event: ChangeEvent) -> MergeOutcome:
        """Merge one change-feed event."""
        if event.event_type is EventType.DELETE:
            old = event.old or {}
            booking_id = old.get("booking_id")
            if booking_id is None:
                booking_id = next(
                    (e.booking_id for e in self._entries.values() if e.id == str(old.get("id"))),
                    None,
                )
            if booking_id is None:
                return MergeOutcome.IGNORED
            return self._remove(str(booking_id), event.commit_timestamp)

        row = event.new or {}
        if row.get("booking_id") is None:
            logger.warning("Ignoring queue event without booking_id", event_type=event.event_type.value)
            return MergeOutcome.IGNORED
        return self.on_queue_changed(str(row["booking_id"]), row)

    def apply_snapshot(self, rows: Sequence[Mapping[str, Any]]) -> List[MergeOutcome]:
        """Merge the rows of an initial pull."""
        return [
            self.on_queue_changed(str(row["booking_id"]), row)
            for row in rows
            if row.get("booking_id") is not None
        ]

    def get_temple_queue_overview(self, temple_id: str) -> QueueOverview:
        return summarize_queue(str(temple_id), self._entries.values())

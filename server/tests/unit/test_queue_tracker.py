"""Unit tests for the in-memory queue tracker."""

from datetime import datetime, timedelta, timezone

import pytest

from darshan.core.exceptions import NotFoundError
from darshan.domain.queue_tracker import QueueTracker, round_half_up, summarize_queue
from darshan.domain.records import QueueEntry, QueueEntryStatus
from darshan.realtime.events import ChangeEvent, MergeOutcome

T0 = datetime(2026, 10, 18, 6, 0, tzinfo=timezone.utc)


def at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


def row(booking_id="b1", position=3, total=5, wait=6, status="active", seconds=10, temple_id="t1", entry_id=None):
    return {
        "id": entry_id or f"q-{booking_id}",
        "booking_id": booking_id,
        "temple_id": temple_id,
        "current_position": position,
        "total_in_queue": total,
        "estimated_wait_minutes": wait,
        "status": status,
        "last_updated": at(seconds),
    }


def test_unknown_booking_raises_not_found():
    tracker = QueueTracker()

    with pytest.raises(NotFoundError):
        tracker.get_queue_status("missing")


def test_first_full_row_creates_entry():
    tracker = QueueTracker()

    assert tracker.on_queue_changed("b1", row()) is MergeOutcome.APPLIED
    entry = tracker.get_queue_status("b1")
    assert entry.current_position == 3
    assert entry.status is QueueEntryStatus.ACTIVE


def test_partial_patch_for_unknown_entry_is_ignored():
    tracker = QueueTracker()

    outcome = tracker.on_queue_changed("b1", {"current_position": 2, "last_updated": at(1)})

    assert outcome is MergeOutcome.IGNORED
    assert tracker.find("b1") is None


@pytest.mark.parametrize(
    "position, total, wait",
    [
        (0, -3, -5),
        (0, 5, 0),
        (4, 3, 9),
        (2, 5, -1),
    ],
)
def test_out_of_bounds_row_is_ignored(position, total, wait):
    tracker = QueueTracker()

    outcome = tracker.on_queue_changed("b1", row(position=position, total=total, wait=wait))

    assert outcome is MergeOutcome.IGNORED
    assert tracker.find("b1") is None


def test_out_of_bounds_patch_keeps_current_entry():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(position=3, total=5, seconds=10))

    outcome = tracker.on_queue_changed("b1", {"current_position": 0, "last_updated": at(20)})

    assert outcome is MergeOutcome.IGNORED
    assert tracker.get_queue_status("b1").current_position == 3


def test_from_mapping_rejects_total_below_position():
    with pytest.raises(ValueError):
        QueueEntry.from_mapping(row(position=6, total=5))


def test_patch_without_timestamp_is_ignored():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row())

    assert tracker.on_queue_changed("b1", {"current_position": 1}) is MergeOutcome.IGNORED
    assert tracker.get_queue_status("b1").current_position == 3


def test_applying_same_patch_twice_is_idempotent():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row())
    patch = {"current_position": 2, "estimated_wait_minutes": 3, "last_updated": at(20)}

    assert tracker.on_queue_changed("b1", patch) is MergeOutcome.APPLIED
    first = tracker.get_queue_status("b1")
    assert tracker.on_queue_changed("b1", patch) is MergeOutcome.UNCHANGED
    assert tracker.get_queue_status("b1") == first


def test_older_patch_is_discarded_and_tie_is_accepted():
    """P1 at t=10, P2 at t=5, P3 at t=10 with P1's payload: P1 wins."""
    tracker = QueueTracker()
    p1 = row(position=2, wait=3, seconds=10)
    p2 = row(position=4, wait=9, seconds=5)
    p3 = dict(p1)

    assert tracker.on_queue_changed("b1", p1) is MergeOutcome.APPLIED
    assert tracker.on_queue_changed("b1", p2) is MergeOutcome.STALE
    assert tracker.on_queue_changed("b1", p3) is not MergeOutcome.STALE

    entry = tracker.get_queue_status("b1")
    assert entry == QueueEntry.from_mapping(p1)
    assert tracker.stale_writes == 1


def test_tie_with_different_payload_is_accepted():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(position=3, seconds=10))

    outcome = tracker.on_queue_changed("b1", {"current_position": 2, "last_updated": at(10)})

    assert outcome is MergeOutcome.APPLIED
    assert tracker.get_queue_status("b1").current_position == 2


def test_terminal_entry_never_returns_to_active():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(status="completed", seconds=10))

    outcome = tracker.on_queue_changed("b1", row(status="active", seconds=20))

    assert outcome is MergeOutcome.REJECTED
    assert tracker.get_queue_status("b1").status is QueueEntryStatus.COMPLETED


def test_terminal_entry_accepts_non_status_fields_with_same_status():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(status="cancelled", seconds=10))

    outcome = tracker.on_queue_changed("b1", {"estimated_wait_minutes": 0, "last_updated": at(11)})

    assert outcome is MergeOutcome.APPLIED
    assert tracker.get_queue_status("b1").status is QueueEntryStatus.CANCELLED


def test_position_moving_back_is_accepted():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(position=2, seconds=10))

    assert tracker.on_queue_changed("b1", {"current_position": 4, "last_updated": at(11)}) is MergeOutcome.APPLIED
    assert tracker.get_queue_status("b1").current_position == 4


def test_delete_leaves_tombstone_against_older_rows():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(seconds=10))

    removed = tracker.apply_change(ChangeEvent.delete("queue_status", row(seconds=10)))
    late_pull = tracker.apply_snapshot([row(seconds=10)])

    assert removed is MergeOutcome.REMOVED
    assert late_pull == [MergeOutcome.STALE]
    assert tracker.find("b1") is None


def test_delete_resolves_booking_from_entry_id():
    tracker = QueueTracker()
    tracker.on_queue_changed("b1", row(entry_id="q-77", seconds=10))

    outcome = tracker.apply_change(ChangeEvent.delete("queue_status", {"id": "q-77"}))

    assert outcome is MergeOutcome.REMOVED


def test_event_without_booking_id_is_ignored():
    tracker = QueueTracker()
    event = ChangeEvent.update("queue_status", {"id": "q-1", "last_updated": at(1)})

    assert tracker.apply_change(event) is MergeOutcome.IGNORED


def test_overview_averages_active_waits():
    tracker = QueueTracker()
    tracker.apply_snapshot([
        row("b1", position=1, total=3, wait=10),
        row("b2", position=2, total=3, wait=20),
        row("b3", position=3, total=3, wait=15),
        row("b4", position=1, total=1, wait=99, status="completed"),
    ])

    overview = tracker.get_temple_queue_overview("t1")

    assert overview.average_wait_minutes == 15
    assert overview.total_in_queue == 3
    assert [e.booking_id for e in overview.entries] == ["b1", "b2", "b3"]


def test_overview_of_empty_queue_is_zero():
    overview = QueueTracker().get_temple_queue_overview("t1")

    assert overview.average_wait_minutes == 0
    assert overview.total_in_queue == 0
    assert overview.entries == []


def test_overview_rounds_half_up():
    entries = [
        QueueEntry.from_mapping(row("b1", position=1, total=2, wait=0)),
        QueueEntry.from_mapping(row("b2", position=2, total=2, wait=3)),
    ]

    assert summarize_queue("t1", entries).average_wait_minutes == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2

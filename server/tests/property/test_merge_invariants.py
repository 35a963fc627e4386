"""Property-based tests for last-write-wins merging."""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from darshan.domain.crowd_aggregator import CrowdAggregator
from darshan.domain.prediction import predict_crowd
from darshan.domain.queue_tracker import QueueTracker
from darshan.domain.records import CrowdLevel, CrowdReading, QueueEntry
from darshan.realtime.events import MergeOutcome

T0 = datetime(2026, 10, 1, tzinfo=timezone.utc)


@st.composite
def queue_histories(draw):
    """
    Rows the store could write for one booking, in commit order.

    Stamps strictly increase, positions never exceed the total, and once
    the entry is terminal every later row keeps that status.
    """
    length = draw(st.integers(min_value=1, max_value=12))
    gaps = draw(st.lists(st.integers(min_value=1, max_value=600), min_size=length, max_size=length))
    terminal_at = draw(st.one_of(st.none(), st.integers(min_value=0, max_value=length - 1)))
    terminal_status = draw(st.sampled_from(["completed", "cancelled"]))

    rows = []
    stamp = T0
    for index, gap in enumerate(gaps):
        stamp += timedelta(seconds=gap)
        total = draw(st.integers(min_value=1, max_value=50))
        position = draw(st.integers(min_value=1, max_value=total))
        status = terminal_status if terminal_at is not None and index >= terminal_at else "active"
        rows.append({
            "id": "q-1",
            "booking_id": "b-1",
            "temple_id": "t-1",
            "current_position": position,
            "total_in_queue": total,
            "estimated_wait_minutes": (position - 1) * 3,
            "status": status,
            "last_updated": stamp,
        })
    return rows


@st.composite
def history_and_order(draw):
    rows = draw(queue_histories())
    return rows, draw(st.permutations(rows))


@given(history_and_order())
@settings(max_examples=200)
def test_any_delivery_order_ends_at_latest_row(case):
    rows, delivered = case
    tracker = QueueTracker()

    for row in delivered:
        tracker.on_queue_changed("b-1", row)

    assert tracker.get_queue_status("b-1") == QueueEntry.from_mapping(rows[-1])


@given(history_and_order())
def test_stored_stamp_never_moves_backwards(case):
    _, delivered = case
    tracker = QueueTracker()
    previous = None

    for row in delivered:
        tracker.on_queue_changed("b-1", row)
        current = tracker.get_queue_status("b-1").last_updated
        if previous is not None:
            assert current >= previous
        previous = current


@given(history_and_order())
def test_redelivery_changes_nothing(case):
    _, delivered = case
    tracker = QueueTracker()
    for row in delivered:
        tracker.on_queue_changed("b-1", row)
    settled = tracker.get_queue_status("b-1")

    outcomes = [tracker.on_queue_changed("b-1", row) for row in delivered]

    assert tracker.get_queue_status("b-1") == settled
    assert MergeOutcome.APPLIED not in outcomes


@given(queue_histories())
def test_terminal_entry_stays_terminal(rows):
    tracker = QueueTracker()
    for row in rows:
        tracker.on_queue_changed("b-1", row)
    entry = tracker.get_queue_status("b-1")
    if not entry.is_terminal:
        return

    reopened = dict(rows[-1], status="active", last_updated=rows[-1]["last_updated"] + timedelta(seconds=1))

    assert tracker.on_queue_changed("b-1", reopened) is MergeOutcome.REJECTED
    assert tracker.get_queue_status("b-1").is_terminal


readings = st.lists(
    st.builds(
        CrowdReading,
        id=st.uuids().map(str),
        temple_id=st.just("t-1"),
        crowd_level=st.sampled_from(list(CrowdLevel)),
        crowd_count=st.integers(min_value=0, max_value=5000),
        capacity_percentage=st.none(),
        # Coarse stamps so equal timestamps are common
        recorded_at=st.integers(min_value=0, max_value=20).map(lambda h: T0 + timedelta(hours=h)),
    ),
    min_size=1,
    max_size=20,
    unique_by=lambda r: r.id,
)


@given(st.data(), readings)
def test_current_crowd_ignores_arrival_order(data, batch):
    shuffled = data.draw(st.permutations(batch))
    aggregator = CrowdAggregator(history_days=56)

    for reading in shuffled:
        aggregator.record_reading(reading)

    expected = max(batch, key=lambda r: (r.recorded_at, r.id))
    assert aggregator.get_current_crowd("t-1") == expected


@given(st.data(), readings, st.integers(min_value=1, max_value=14))
def test_predictions_ignore_reading_order(data, batch, days_ahead):
    shuffled = data.draw(st.permutations(batch))
    today = (T0 + timedelta(days=1)).date()

    predictions = predict_crowd(shuffled, days_ahead, today)

    assert predictions == predict_crowd(batch, days_ahead, today)
    assert len(predictions) == days_ahead
    assert all(0.0 <= p.confidence <= 1.0 for p in predictions)

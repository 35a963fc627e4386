"""Unit tests for crowd reading ingestion and queries."""

from datetime import timedelta

import pytest

from darshan.core.clock import utcnow
from darshan.core.exceptions import NotFoundError
from darshan.domain.records import CrowdLevel
from darshan.models import CrowdData
from darshan.schemas.crowd import RecordCrowdRequest
from darshan.services.crowd_service import CrowdService


@pytest.mark.asyncio
async def test_level_is_derived_from_temple_capacity(test_session, temple):
    reading = await CrowdService(test_session).record_reading(
        RecordCrowdRequest(temple_id=str(temple.id), crowd_count=800)
    )

    assert reading.capacity_percentage == 80.0
    assert reading.crowd_level is CrowdLevel.HIGH


@pytest.mark.asyncio
async def test_explicit_level_is_kept(test_session, temple):
    reading = await CrowdService(test_session).record_reading(
        RecordCrowdRequest(temple_id=str(temple.id), crowd_count=100, crowd_level="high")
    )

    assert reading.crowd_level is CrowdLevel.HIGH
    assert reading.capacity_percentage == 10.0


@pytest.mark.asyncio
async def test_percentage_is_capped_at_full(test_session, temple):
    reading = await CrowdService(test_session).record_reading(
        RecordCrowdRequest(temple_id=str(temple.id), crowd_count=2500)
    )

    assert reading.capacity_percentage == 100.0


@pytest.mark.asyncio
async def test_unknown_temple(test_session):
    with pytest.raises(NotFoundError):
        await CrowdService(test_session).record_reading(
            RecordCrowdRequest(temple_id="00000000-0000-0000-0000-000000000000", crowd_count=1)
        )


@pytest.mark.asyncio
async def test_recording_publishes_insert(test_session, temple, change_feed):
    channel = await change_feed.subscribe("crowd_data")

    reading = await CrowdService(test_session, change_feed).record_reading(
        RecordCrowdRequest(temple_id=str(temple.id), crowd_count=10)
    )

    event = await channel.get()
    assert event.event_type.value == "INSERT"
    assert event.new["id"] == reading.id


@pytest.mark.asyncio
async def test_current_crowd(test_session, temple):
    service = CrowdService(test_session)
    assert await service.get_current_crowd(str(temple.id)) is None

    now = utcnow()
    await service.record_reading(
        RecordCrowdRequest(temple_id=str(temple.id), crowd_count=900, recorded_at=now)
    )
    await service.record_reading(
        RecordCrowdRequest(temple_id=str(temple.id), crowd_count=100, recorded_at=now - timedelta(hours=1))
    )

    current = await service.get_current_crowd(str(temple.id))
    assert current.crowd_level is CrowdLevel.HIGH


@pytest.mark.asyncio
async def test_equal_timestamps_pick_highest_id(test_session, temple):
    service = CrowdService(test_session)
    now = utcnow()
    readings = [
        await service.record_reading(
            RecordCrowdRequest(temple_id=str(temple.id), crowd_count=count, recorded_at=now)
        )
        for count in (100, 500, 900)
    ]

    current = await service.get_current_crowd(str(temple.id))

    assert current.id == max(r.id for r in readings)


@pytest.mark.asyncio
async def test_history_window(test_session, temple):
    service = CrowdService(test_session)
    now = utcnow()
    test_session.add_all([
        CrowdData(temple_id=temple.id, crowd_level="low", crowd_count=10, recorded_at=now - timedelta(hours=30)),
        CrowdData(temple_id=temple.id, crowd_level="moderate", crowd_count=500, recorded_at=now - timedelta(hours=2)),
        CrowdData(temple_id=temple.id, crowd_level="high", crowd_count=900, recorded_at=now - timedelta(hours=1)),
    ])
    await test_session.commit()

    history = await service.get_history(str(temple.id), hours=24)

    assert [r.crowd_level for r in history] == [CrowdLevel.MODERATE, CrowdLevel.HIGH]


@pytest.mark.asyncio
async def test_predictions_from_stored_history(test_session, temple):
    service = CrowdService(test_session)
    today = utcnow().date()
    assert await service.get_predictions(str(temple.id), 3, today=today) == []

    for weeks in (1, 2):
        test_session.add(CrowdData(
            temple_id=temple.id,
            crowd_level="high",
            crowd_count=900,
            recorded_at=utcnow() - timedelta(weeks=weeks) + timedelta(days=1) - timedelta(hours=1),
        ))
    await test_session.commit()

    predictions = await service.get_predictions(str(temple.id), 3, today=today)

    assert len(predictions) == 3
    assert [p.date for p in predictions] == [today + timedelta(days=i) for i in (1, 2, 3)]
    assert all(p.predicted_level is CrowdLevel.HIGH for p in predictions)

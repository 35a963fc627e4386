"""API tests through the full application stack."""

from datetime import date, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from conftest import create_booking
from darshan.main import create_app
from darshan.routers.weather import get_weather_service
from darshan.services.weather_service import WeatherService


def booking_payload(temple, **overrides):
    payload = {
        "temple_id": str(temple.id),
        "booking_date": (date.today() + timedelta(days=2)).isoformat(),
        "time_slot": "06:00-08:00",
        "visitor_count": 2,
        "payment_amount": "100.00",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(test_client, temple):
    response = await test_client.post("/v1/queue/overview", json={"temple_id": str(temple.id)})

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.headers["www-authenticate"] == "Bearer"
    assert response.json()["title"] == "Authorization Required"


@pytest.mark.asyncio
async def test_forged_token_is_unauthorized(test_client, temple):
    response = await test_client.post(
        "/v1/queue/overview",
        json={"temple_id": str(temple.id)},
        headers={"Authorization": "Bearer not.a.token"},
    )

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_visitor_cannot_check_in(test_client, temple, visitor_headers):
    response = await test_client.post(
        "/v1/queue/check-in", json={"temple_id": str(temple.id)}, headers=visitor_headers
    )

    assert response.status_code == 403
    assert response.json()["required_roles"] == ["admin", "temple_staff"]


@pytest.mark.asyncio
async def test_validation_lists_every_violation(test_client, temple, visitor_headers):
    response = await test_client.post(
        "/v1/booking/create",
        json=booking_payload(temple, time_slot="morning", visitor_count=0),
        headers=visitor_headers,
    )

    assert response.status_code == 422
    paths = {v["path"] for v in response.json()["violations"]}
    assert paths == {"body.time_slot", "body.visitor_count"}


@pytest.mark.asyncio
async def test_malformed_id_is_a_validation_error(test_client, visitor_headers):
    response = await test_client.post(
        "/v1/booking/get", json={"booking_id": "nope"}, headers=visitor_headers
    )

    assert response.status_code == 422
    assert response.json()["violations"] == [{"path": "booking_id", "message": "Must be a valid UUID"}]


@pytest.mark.asyncio
async def test_unknown_temple_is_not_found(test_client, visitor_headers):
    response = await test_client.post(
        "/v1/crowd/current",
        json={"temple_id": "00000000-0000-0000-0000-000000000000"},
        headers=visitor_headers,
    )

    assert response.status_code == 404
    assert response.json()["resource_type"] == "temple"
    assert response.json()["instance"] == "/v1/crowd/current"


@pytest.mark.asyncio
async def test_book_pay_queue_and_check_in(test_client, temple, visitor_headers, staff_headers, change_feed):
    channel = await change_feed.subscribe("queue_status")

    response = await test_client.post("/v1/booking/create", json=booking_payload(temple), headers=visitor_headers)
    assert response.status_code == 201
    booking = response.json()
    assert booking["status"] == "pending"

    response = await test_client.post(
        "/v1/payment/upi/create",
        json={"booking_id": booking["id"], "amount": "100.00"},
        headers=visitor_headers,
    )
    assert response.status_code == 201
    intent = response.json()
    assert intent["upi_string"].startswith("upi://pay?")
    assert intent["status"] == "pending"

    response = await test_client.post(
        "/v1/payment/upi/update",
        json={
            "booking_id": booking["id"],
            "transaction_reference": intent["transaction_reference"],
            "status": "success",
            "utr_number": "UTR42",
        },
        headers=visitor_headers,
    )
    assert response.status_code == 200
    update = response.json()
    assert update["payment"]["status"] == "success"
    assert update["booking"]["status"] == "confirmed"
    assert update["queue_entry"]["current_position"] == 1

    event = await channel.get()
    assert event.new["booking_id"] == booking["id"]

    response = await test_client.post(
        "/v1/queue/status", json={"booking_id": booking["id"]}, headers=visitor_headers
    )
    assert response.status_code == 200
    assert response.json()["estimated_wait_minutes"] == 0

    response = await test_client.post(
        "/v1/queue/check-in", json={"temple_id": str(temple.id)}, headers=staff_headers
    )
    assert response.status_code == 200
    check_in = response.json()
    assert check_in["completed"]["booking_id"] == booking["id"]
    assert check_in["completed"]["status"] == "completed"
    assert check_in["overview"]["total_in_queue"] == 0

    response = await test_client.post(
        "/v1/booking/cancel", json={"booking_id": booking["id"]}, headers=visitor_headers
    )
    assert response.status_code == 409
    assert response.json()["conflicting_resource"]["status"] == "completed"


@pytest.mark.asyncio
async def test_queue_status_of_someone_elses_booking(test_client, test_session, temple, other_visitor_headers):
    booking = await create_booking(test_session, temple, user_id="visitor-1")

    response = await test_client.post(
        "/v1/queue/status", json={"booking_id": str(booking.id)}, headers=other_visitor_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cancel_booking_twice_is_idempotent(test_client, test_session, temple, visitor_headers):
    booking = await create_booking(test_session, temple)

    first = await test_client.post(
        "/v1/booking/cancel", json={"booking_id": str(booking.id)}, headers=visitor_headers
    )
    second = await test_client.post(
        "/v1/booking/cancel", json={"booking_id": str(booking.id)}, headers=visitor_headers
    )

    assert first.status_code == second.status_code == 200
    assert second.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_crowd_record_and_summary(test_client, temple, visitor_headers, staff_headers):
    response = await test_client.post(
        "/v1/crowd/record", json={"temple_id": str(temple.id), "crowd_count": 500}, headers=visitor_headers
    )
    assert response.status_code == 403

    response = await test_client.post(
        "/v1/crowd/record", json={"temple_id": str(temple.id), "crowd_count": 500}, headers=staff_headers
    )
    assert response.status_code == 201
    assert response.json()["crowd_level"] == "moderate"

    response = await test_client.post(
        "/v1/crowd/summary", json={"temple_id": str(temple.id)}, headers=visitor_headers
    )
    assert response.status_code == 200
    summary = response.json()
    assert summary["current"]["crowd_count"] == 500
    assert isinstance(summary["predictions"], list)


@pytest.mark.asyncio
async def test_weather_impact_endpoint(test_app, test_client, visitor_headers, session_factory):
    forecast = {
        "current": {"temperature_2m": 24, "relative_humidity_2m": 55, "weather_code": 0, "wind_speed_10m": 8},
        "daily": {
            "temperature_2m_max": [29],
            "temperature_2m_min": [21],
            "precipitation_probability_max": [5],
        },
    }
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=forecast))

    async def weather_service_override():
        async with session_factory() as db:
            yield WeatherService(db, transport=transport)

    test_app.dependency_overrides[get_weather_service] = weather_service_override

    response = await test_client.post("/v1/weather/impact", json={"temple": "ambaji"}, headers=visitor_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["current"]["condition"] == "Clear"
    assert body["crowd_impact"] == {
        "level": "low",
        "score": -1,
        "factors": ["pleasant weather may increase crowd"],
    }


@pytest.mark.asyncio
async def test_weather_provider_failure_is_bad_gateway(test_app, test_client, visitor_headers, session_factory):
    transport = httpx.MockTransport(lambda request: httpx.Response(503))

    async def weather_service_override():
        async with session_factory() as db:
            yield WeatherService(db, transport=transport)

    test_app.dependency_overrides[get_weather_service] = weather_service_override

    response = await test_client.post("/v1/weather/impact", json={"temple": "somnath"}, headers=visitor_headers)

    assert response.status_code == 502
    assert response.json()["service"] == "weather"


@pytest.mark.asyncio
async def test_emergency_report_and_response(
    test_client, temple, responders, visitor_headers, responder_headers
):
    response = await test_client.post(
        "/v1/emergency/report",
        json={"temple_id": str(temple.id), "incident_type": "medical", "severity": "critical"},
        headers=visitor_headers,
    )
    assert response.status_code == 201
    incident = response.json()

    response = await test_client.post(
        "/v1/emergency/update",
        json={"incident_id": incident["id"], "status": "responding"},
        headers=visitor_headers,
    )
    assert response.status_code == 403

    response = await test_client.post(
        "/v1/emergency/update",
        json={"incident_id": incident["id"], "status": "responding"},
        headers=responder_headers,
    )
    assert response.status_code == 200
    assert response.json()["responder_id"] == "guard-1"

    response = await test_client.post("/v1/emergency/list", json={}, headers=responder_headers)
    assert [i["id"] for i in response.json()["incidents"]] == [incident["id"]]


@pytest.mark.asyncio
async def test_staff_can_send_notifications(test_client, staff_headers, visitor_headers):
    payload = {"user_id": "visitor-1", "type": "general", "title": "Hello", "message": "Gates open at 6"}

    denied = await test_client.post("/v1/notification/send", json=payload, headers=visitor_headers)
    sent = await test_client.post("/v1/notification/send", json=payload, headers=staff_headers)

    assert denied.status_code == 403
    assert sent.status_code == 201
    assert sent.json()["priority"] == "normal"
    assert sent.json()["read"] is False


@pytest.mark.asyncio
async def test_parking_overview(test_client, test_session, temple, visitor_headers):
    from darshan.models import ParkingData

    test_session.add(ParkingData(temple_id=temple.id, area_name="Main", total_spots=200, available_spots=50))
    await test_session.commit()

    response = await test_client.post("/v1/parking/list", json={"temple_id": str(temple.id)}, headers=visitor_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total_spots"] == 200
    assert body["available_spots"] == 50
    assert body["occupancy_rate"] == 75.0


def test_realtime_connection_without_token_is_rejected():
    client = TestClient(create_app())

    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/v1/realtime/queue/00000000-0000-0000-0000-000000000000") as ws:
            ws.receive_json()

    assert exc_info.value.code == 1008

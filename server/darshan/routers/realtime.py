"""
Realtime router: websocket views over the change feed.

Each connection owns one Subscription and its own tracker. The initial
pull and the live feed both merge into that tracker, and the merged
state is pushed to the client after every merge that changed it.
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..core.database import open_session
from ..core.exceptions import ProblemDetailsException
from ..core.observability import get_logger
from ..core.security import STAFF_ROLES, CurrentUser, decode_bearer_token
from ..domain.crowd_aggregator import CrowdAggregator
from ..domain.parking_board import ParkingBoard
from ..domain.queue_tracker import QueueTracker
from ..models.booking import Booking
from ..realtime.events import column_equals
from ..realtime.synchronizer import RealtimeSynchronizer, Subscription
from ..services.common import parse_uuid
from ..services.crowd_service import CrowdService
from ..services.parking_service import ParkingService
from ..services.queue_service import QueueService
from ..services.temple_service import TempleService

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/realtime", tags=["realtime"])

StatePayload = Callable[[], Dict[str, Any]]


def _authenticate(websocket: WebSocket, token: Optional[str]) -> CurrentUser:
    """Token from the ``token`` query parameter or the Authorization header."""
    authorization = f"Bearer {token}" if token else websocket.headers.get("authorization")
    return decode_bearer_token(authorization)


async def _serve(websocket: WebSocket, subscription: Subscription, payload: StatePayload) -> None:
    """Run ``subscription`` until the client disconnects, pushing ``payload()`` on change."""

    @subscription.on_event
    async def push(outcome, event) -> None:
        if outcome.changed_state:
            await websocket.send_json(payload())

    await subscription.start()
    receiver = asyncio.create_task(_drain(websocket))
    dropped = asyncio.create_task(subscription.wait_closed())
    try:
        done, _ = await asyncio.wait({receiver, dropped}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (receiver, dropped):
            task.cancel()
        await subscription.stop()

    if dropped in done and receiver not in done:
        # Fell behind the feed; the client reconnects for a fresh pull
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="Subscription dropped")


async def _drain(websocket: WebSocket) -> None:
    """Consume client messages until the client disconnects."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def _reject(websocket: WebSocket, reason: str) -> None:
    logger.info("Realtime connection rejected", path=websocket.url.path, reason=reason)
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)


def _synchronizer(websocket: WebSocket) -> RealtimeSynchronizer:
    return RealtimeSynchronizer(websocket.app.state.change_feed)


@router.websocket("/queue/{booking_id}")
async def queue_updates(websocket: WebSocket, booking_id: str, token: Optional[str] = None) -> None:
    """Live queue position of one booking; owner or staff only."""
    session_factory = websocket.app.state.session_factory
    try:
        user = _authenticate(websocket, token)
        booking_uuid = parse_uuid(booking_id, "booking_id")
        async with open_session(session_factory) as db:
            booking = await db.get(Booking, booking_uuid)
    except ProblemDetailsException as e:
        await _reject(websocket, e.title)
        return

    if booking is None:
        await _reject(websocket, "Booking not found")
        return
    if booking.user_id != user.user_id and not user.has_any_role(STAFF_ROLES):
        await _reject(websocket, "The booking belongs to another user")
        return

    await websocket.accept()
    tracker = QueueTracker()

    async def pull():
        async with open_session(session_factory) as db:
            return await QueueService(db).pull_rows(booking_id=booking_uuid)

    subscription = _synchronizer(websocket).subscription(
        tracker.table, tracker, pull, predicate=column_equals("booking_id", booking_uuid)
    )

    def payload() -> Dict[str, Any]:
        entry = tracker.find(str(booking_uuid))
        return {"type": "queue_status", "booking_id": str(booking_uuid), "entry": entry.to_dict() if entry else None}

    await _serve(websocket, subscription, payload)


async def _resolve_temple(websocket: WebSocket, temple_id: str, token: Optional[str]):
    try:
        _authenticate(websocket, token)
        async with open_session(websocket.app.state.session_factory) as db:
            return await TempleService(db).get_temple(temple_id, "temple_id")
    except ProblemDetailsException as e:
        await _reject(websocket, e.title)
        return None


@router.websocket("/crowd/{temple_id}")
async def crowd_updates(websocket: WebSocket, temple_id: str, token: Optional[str] = None) -> None:
    """Live current crowd reading of a temple."""
    temple = await _resolve_temple(websocket, temple_id, token)
    if temple is None:
        return

    await websocket.accept()
    session_factory = websocket.app.state.session_factory
    aggregator = CrowdAggregator()
    key = str(temple.id)

    async def pull():
        async with open_session(session_factory) as db:
            return await CrowdService(db).pull_rows(temple.id)

    subscription = _synchronizer(websocket).subscription(
        aggregator.table, aggregator, pull, predicate=column_equals("temple_id", temple.id)
    )

    def payload() -> Dict[str, Any]:
        reading = aggregator.get_current_crowd(key)
        return {"type": "crowd", "temple_id": key, "current": reading.to_dict() if reading else None}

    await _serve(websocket, subscription, payload)


@router.websocket("/parking/{temple_id}")
async def parking_updates(websocket: WebSocket, temple_id: str, token: Optional[str] = None) -> None:
    """Live parking availability of a temple's areas."""
    temple = await _resolve_temple(websocket, temple_id, token)
    if temple is None:
        return

    await websocket.accept()
    session_factory = websocket.app.state.session_factory
    board = ParkingBoard()
    key = str(temple.id)

    async def pull():
        async with open_session(session_factory) as db:
            return await ParkingService(db).pull_rows(temple.id)

    subscription = _synchronizer(websocket).subscription(
        board.table, board, pull, predicate=column_equals("temple_id", temple.id)
    )

    def payload() -> Dict[str, Any]:
        return {
            "type": "parking",
            "temple_id": key,
            "zones": [dict(z.to_dict(), occupancy_rate=z.occupancy_rate) for z in board.zones(key)],
            **board.totals(key),
        }

    await _serve(websocket, subscription, payload)

"""Crowd router: current level, history, predictions and staff readings."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.dependencies import ChangeFeedDependency, RequiredAuth, StaffAuth
from ..core.security import CurrentUser
from ..realtime.feed import ChangeFeed
from ..schemas.common import PROBLEM_RESPONSES, TempleRequest
from ..schemas.crowd import (
    CrowdHistory,
    CrowdHistoryRequest,
    CrowdPrediction,
    CrowdPredictions,
    CrowdPredictionsRequest,
    CrowdReading,
    CrowdSummary,
    CurrentCrowd,
    RecordCrowdRequest,
)
from ..services.crowd_service import CrowdService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/crowd", tags=["crowd"], responses=PROBLEM_RESPONSES)

# Define dependencies to avoid B008 linting errors
DB_DEPENDENCY = Depends(get_db)


def _convert_reading_to_schema(reading) -> CrowdReading:
    return CrowdReading.model_validate(reading.to_dict())


def _convert_prediction_to_schema(prediction) -> CrowdPrediction:
    return CrowdPrediction.model_validate(prediction.to_dict())


@router.post("/current", response_model=CurrentCrowd)
async def get_current_crowd(
    request: TempleRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Get the most recent crowd reading of a temple; ``reading`` is null if none exists."""
    reading = await CrowdService(db).get_current_crowd(request.temple_id)
    response = CurrentCrowd(
        temple_id=request.temple_id,
        reading=_convert_reading_to_schema(reading) if reading else None,
    )

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/history", response_model=CrowdHistory)
async def get_crowd_history(
    request: CrowdHistoryRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    readings = await CrowdService(db).get_history(request.temple_id, request.hours)
    response = CrowdHistory(
        temple_id=request.temple_id,
        hours=request.hours,
        readings=[_convert_reading_to_schema(r) for r in readings],
    )

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/predictions", response_model=CrowdPredictions)
async def get_crowd_predictions(
    request: CrowdPredictionsRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """
    Predict the crowd level for each of the next ``days_ahead`` days.

    A temple without recorded history gets an empty list.
    """
    predictions = await CrowdService(db).get_predictions(request.temple_id, request.days_ahead)
    response = CrowdPredictions(
        temple_id=request.temple_id,
        predictions=[_convert_prediction_to_schema(p) for p in predictions],
    )

    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/summary", response_model=CrowdSummary)
async def get_crowd_summary(
    request: TempleRequest,
    user: CurrentUser = RequiredAuth,
    db: AsyncSession = DB_DEPENDENCY,
) -> JSONResponse:
    """Current reading plus the default prediction window."""
    crowd_service = CrowdService(db)
    reading = await crowd_service.get_current_crowd(request.temple_id)
    predictions = await crowd_service.get_predictions(request.temple_id)

    response = CrowdSummary(
        temple_id=request.temple_id,
        current=_convert_reading_to_schema(reading) if reading else None,
        predictions=[_convert_prediction_to_schema(p) for p in predictions],
    )
    return JSONResponse(status_code=200, content=response.model_dump(mode="json"))


@router.post("/record", response_model=CrowdReading, status_code=201)
async def record_crowd_reading(
    request: RecordCrowdRequest,
    user: CurrentUser = StaffAuth,
    db: AsyncSession = DB_DEPENDENCY,
    feed: ChangeFeed = ChangeFeedDependency,
) -> JSONResponse:
    """Record a crowd observation; the level is derived from capacity when omitted."""
    reading = await CrowdService(db, feed).record_reading(request)

    logger.info(
        "Crowd reading recorded",
        extra={"temple_id": request.temple_id, "reading_id": reading.id, "staff_id": user.user_id}
    )

    return JSONResponse(
        status_code=201,
        content=_convert_reading_to_schema(reading).model_dump(mode="json")
    )

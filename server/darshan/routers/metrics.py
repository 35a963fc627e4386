"""Prometheus scrape endpoint for the darshan registry."""

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST

from ..core.observability import get_prometheus_metrics

router = APIRouter(tags=["Observability"])


@router.get("/metrics", response_class=Response, include_in_schema=False)
async def scrape() -> Response:
    """Queue merges, feed fan-out, crowd readings, payments and HTTP timings."""
    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)

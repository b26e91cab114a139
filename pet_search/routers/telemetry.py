"""
Search telemetry routes (reporting, not on the search critical path).
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from pet_search.dependencies import ServiceContainer, get_services
from pet_search.models import TelemetryCreate, TelemetryPage, TelemetrySummary
from .search import client_ip

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/search/telemetry", status_code=202)
async def record_telemetry(
    event: TelemetryCreate,
    request: Request,
    services: ServiceContainer = Depends(get_services)
):
    """
    Record telemetry for a search executed elsewhere.

    Best effort: a failed write is reported in the body, never as an error.
    """
    recorded = await services.telemetry.record(
        event.query,
        event.result_count,
        event.entity_types,
        event.filters,
        event.ip_address or client_ip(request),
        event.user_agent or request.headers.get("user-agent"),
    )
    return {"success": recorded}


@router.get("/search/telemetry", response_model=TelemetryPage)
async def list_telemetry(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    zero_results_only: bool = Query(False, alias="zeroResultsOnly"),
    services: ServiceContainer = Depends(get_services)
):
    return await services.telemetry.list_records(limit, offset, zero_results_only)


@router.get("/search/telemetry/summary", response_model=TelemetrySummary)
async def telemetry_summary(
    period: str = Query("week", description="day, week or month"),
    services: ServiceContainer = Depends(get_services)
):
    """Query volume, unique queries and zero-result analytics for a period."""
    return await services.telemetry.summarize(period)

"""
Saved search routes.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from pet_search.config import SearchSettings
from pet_search.dependencies import ServiceContainer, get_services
from pet_search.error_handling import NotFoundError, SearchValidationError
from pet_search.models import (
    GeoPoint,
    SavedSearch,
    SavedSearchCheckResult,
    SavedSearchCreate,
    SavedSearchUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_radius(settings: SearchSettings, geo: Optional[GeoPoint]):
    if geo is not None and geo.radius_km > settings.geo.max_radius_km:
        raise SearchValidationError.for_field(
            "geo.radiusKm", f"Must be at most {settings.geo.max_radius_km}"
        )


@router.post("/search/saved", response_model=SavedSearch, status_code=201)
async def create_saved_search(
    data: SavedSearchCreate,
    services: ServiceContainer = Depends(get_services)
):
    """Save a query, its entity types, filters and geo for later re-checks."""
    _check_radius(services.settings, data.geo)
    return await services.saved_searches.create(data)


@router.get("/search/saved", response_model=List[SavedSearch])
async def list_saved_searches(
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    services: ServiceContainer = Depends(get_services)
):
    """List saved searches, optionally for one owner."""
    return await services.saved_searches.list_searches(user_id, limit, offset)


@router.get("/search/saved/{saved_search_id}", response_model=SavedSearch)
async def get_saved_search(
    saved_search_id: int,
    services: ServiceContainer = Depends(get_services)
):
    saved = await services.saved_searches.get(saved_search_id)
    if saved is None:
        raise NotFoundError(f"Saved search {saved_search_id} not found")
    return saved


@router.put("/search/saved/{saved_search_id}", response_model=SavedSearch)
async def update_saved_search(
    saved_search_id: int,
    changes: SavedSearchUpdate,
    services: ServiceContainer = Depends(get_services)
):
    """Partially update a saved search; omitted fields are left unchanged."""
    _check_radius(services.settings, changes.geo)
    saved = await services.saved_searches.update(saved_search_id, changes)
    if saved is None:
        raise NotFoundError(f"Saved search {saved_search_id} not found")
    return saved


@router.delete("/search/saved/{saved_search_id}")
async def delete_saved_search(
    saved_search_id: int,
    services: ServiceContainer = Depends(get_services)
):
    if not await services.saved_searches.delete(saved_search_id):
        raise NotFoundError(f"Saved search {saved_search_id} not found")
    logger.info(f"Deleted saved search {saved_search_id}")
    return {"success": True}


@router.get("/search/saved/{saved_search_id}/check", response_model=SavedSearchCheckResult)
async def check_saved_search(
    saved_search_id: int,
    services: ServiceContainer = Depends(get_services)
):
    """
    Re-run a saved search and report matches not alerted before.

    A check with no new matches still succeeds.
    """
    return await services.alert_checker.check(saved_search_id)

"""
Search routes: cross-entity search, synonym administration and typeahead.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from pet_search.config import SearchSettings
from pet_search.dependencies import ServiceContainer, get_services
from pet_search.error_handling import SearchValidationError
from pet_search.models import (
    GeoPoint,
    SearchFilters,
    SearchRequest,
    SearchResponse,
    SuggestResponse,
    SynonymEntry,
    SynonymUpsert,
    parse_entity_types,
    parse_tags,
)

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_SUGGEST_LIMIT = 20
DEFAULT_SUGGEST_LIMIT = 10


def _parse_int(errors: List[Dict[str, str]], field: str, raw: Optional[str], default: int) -> Optional[int]:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        errors.append({"field": field, "message": "Must be an integer"})
        return None


def _parse_float(errors: List[Dict[str, str]], field: str, raw: Optional[str]) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        errors.append({"field": field, "message": "Must be a number"})
        return None


def validate_query_text(errors: List[Dict[str, str]], q: Optional[str], max_length: int) -> str:
    text = (q or "").strip()
    if not text:
        errors.append({"field": "q", "message": "Query is required"})
    elif len(text) > max_length:
        errors.append({"field": "q", "message": f"Query must be at most {max_length} characters"})
    return text


def build_search_request(
    settings: SearchSettings,
    q: Optional[str],
    types: Optional[str] = None,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    species: Optional[str] = None,
    tags: Optional[str] = None,
    post_type: Optional[str] = None,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius: Optional[str] = None
) -> SearchRequest:
    """
    Validate raw query parameters into a SearchRequest.

    Unknown entity types are dropped. Every other problem is collected and
    raised together.

    Raises:
        SearchValidationError: With one detail per invalid field
    """
    errors: List[Dict[str, str]] = []

    text = validate_query_text(errors, q, settings.max_query_length)

    limit_value = _parse_int(errors, "limit", limit, settings.default_limit)
    if limit_value is not None and not 1 <= limit_value <= settings.max_limit:
        errors.append({"field": "limit", "message": f"Must be between 1 and {settings.max_limit}"})

    offset_value = _parse_int(errors, "offset", offset, 0)
    if offset_value is not None and offset_value < 0:
        errors.append({"field": "offset", "message": "Must be zero or greater"})

    geo = None
    lat_value = _parse_float(errors, "lat", lat)
    lng_value = _parse_float(errors, "lng", lng)
    radius_value = _parse_float(errors, "radius", radius)
    if (lat is None) != (lng is None):
        errors.append({"field": "lat" if lat is None else "lng", "message": "lat and lng must be given together"})
    elif lat_value is not None and lng_value is not None:
        if not -90 <= lat_value <= 90:
            errors.append({"field": "lat", "message": "Must be between -90 and 90"})
        if not -180 <= lng_value <= 180:
            errors.append({"field": "lng", "message": "Must be between -180 and 180"})
        if radius_value is None and radius is None:
            radius_value = settings.geo.default_radius_km
        if radius_value is not None and not 0 < radius_value <= settings.geo.max_radius_km:
            errors.append({
                "field": "radius",
                "message": f"Must be greater than 0 and at most {settings.geo.max_radius_km}"
            })
        if not errors:
            geo = GeoPoint(lat=lat_value, lng=lng_value, radius_km=radius_value)

    if errors:
        raise SearchValidationError(details=errors)

    return SearchRequest(
        query=text,
        entity_types=parse_entity_types(types),
        limit=limit_value,
        offset=offset_value,
        filters=SearchFilters(species=species, tags=parse_tags(tags), post_type=post_type),
        geo=geo,
    )


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def telemetry_filters(search: SearchRequest) -> Dict[str, Any]:
    filters = search.filters.model_dump(by_alias=True, exclude_none=True, exclude_defaults=True)
    if search.geo:
        filters["geo"] = search.geo.model_dump(by_alias=True)
    return filters


@router.get("/search", response_model=SearchResponse)
async def search(
    request: Request,
    background_tasks: BackgroundTasks,
    q: Optional[str] = Query(None, description="Search text"),
    types: Optional[str] = Query(None, description="Comma list: posts,wiki,places,pets,groups"),
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    species: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated tags"),
    type: Optional[str] = Query(None, description="Post type"),
    lat: Optional[str] = Query(None),
    lng: Optional[str] = Query(None),
    radius: Optional[str] = Query(None, description="Radius in kilometers"),
    services: ServiceContainer = Depends(get_services)
):
    """
    Search posts, wiki articles, places, pets and groups with one query.

    Telemetry is recorded after the response is sent.
    """
    search_request = build_search_request(
        services.settings, q, types, limit, offset, species, tags, type, lat, lng, radius
    )

    response = await services.orchestrator.search(search_request)

    background_tasks.add_task(
        services.telemetry.record,
        search_request.query,
        response.pagination.total,
        [t.value for t in search_request.requested_types],
        telemetry_filters(search_request),
        client_ip(request),
        request.headers.get("user-agent"),
    )

    return response


@router.post("/search", response_model=SynonymEntry)
async def upsert_synonym(
    entry: SynonymUpsert,
    services: ServiceContainer = Depends(get_services)
):
    """Create or replace the synonym entry for a term."""
    return await services.synonyms.upsert(entry.term, entry.synonyms)


@router.get("/search/synonyms", response_model=List[SynonymEntry])
async def list_synonyms(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    services: ServiceContainer = Depends(get_services)
):
    """List synonym entries ordered by term."""
    return await services.synonyms.list_entries(limit, offset)


@router.get("/search/suggest", response_model=SuggestResponse)
async def suggest(
    q: Optional[str] = Query(None),
    limit: int = Query(DEFAULT_SUGGEST_LIMIT, ge=1, le=MAX_SUGGEST_LIMIT),
    services: ServiceContainer = Depends(get_services)
):
    """Typeahead suggestions for a partially typed query."""
    errors: List[Dict[str, str]] = []
    text = validate_query_text(errors, q, services.settings.max_query_length)
    if errors:
        raise SearchValidationError(details=errors)

    query = await services.synonyms.expand(text)
    suggestions = await services.suggestions.suggest(query, limit)
    return SuggestResponse(query=text, suggestions=suggestions)

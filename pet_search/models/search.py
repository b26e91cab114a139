"""Search data models"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import Field, field_validator

from .base import ApiModel


class EntityType(str, Enum):
    """Searchable entity types"""
    POSTS = "posts"
    WIKI = "wiki"
    PLACES = "places"
    PETS = "pets"
    GROUPS = "groups"


ALL_ENTITY_TYPES: List[EntityType] = list(EntityType)


def parse_entity_types(raw: Union[str, Iterable[str], None]) -> List[EntityType]:
    """
    Parse a comma list (or iterable) of entity type tokens.

    Unknown tokens are dropped and duplicates collapsed in first-seen order.
    An empty result means "all types".
    """
    if raw is None:
        return []
    tokens = raw.split(",") if isinstance(raw, str) else raw

    known = {t.value for t in EntityType}
    parsed: List[EntityType] = []
    for token in tokens:
        value = str(token).strip().lower()
        if value in known and EntityType(value) not in parsed:
            parsed.append(EntityType(value))
    return parsed


def parse_tags(raw: Optional[str]) -> List[str]:
    """Split a comma separated tag list into clean, lowercased tags."""
    if not raw:
        return []
    tags: List[str] = []
    for tag in raw.split(","):
        tag = tag.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class SearchFilters(ApiModel):
    """Optional refinement filters"""
    species: Optional[str] = None
    tags: List[str] = []
    post_type: Optional[str] = None

    @field_validator("species", "post_type")
    @classmethod
    def _blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, value: List[str]) -> List[str]:
        return parse_tags(",".join(value))

    @property
    def is_empty(self) -> bool:
        return not (self.species or self.tags or self.post_type)


class GeoPoint(ApiModel):
    """Center point and radius for geo filtering"""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    radius_km: float = Field(..., gt=0)


class SearchRequest(ApiModel):
    """Validated search parameters"""
    query: str
    entity_types: List[EntityType] = []
    limit: int = 20
    offset: int = 0
    filters: SearchFilters = SearchFilters()
    geo: Optional[GeoPoint] = None

    @property
    def requested_types(self) -> List[EntityType]:
        """Requested entity types, defaulting to all of them."""
        return list(self.entity_types) or list(ALL_ENTITY_TYPES)


class SearchHit(ApiModel):
    """Common result shape produced by every entity strategy"""
    entity_type: EntityType
    id: str
    title: str
    snippet: str = ""
    relevance: float
    type: Optional[str] = None
    created_at: Optional[datetime] = None
    extra: Dict[str, Any] = {}

    @property
    def key(self) -> str:
        """Stable identity across entity types."""
        return f"{self.entity_type.value}:{self.id}"


class Pagination(ApiModel):
    """Pagination window over the merged result set"""
    total: int
    limit: int
    offset: int


class FacetCounts(ApiModel):
    """Category breakdowns for search refinement"""
    species: Dict[str, int] = {}
    tags: Dict[str, int] = {}
    post_types: Dict[str, int] = {}


class ZeroResultSuggestions(ApiModel):
    """Refinement hints for a search that found nothing"""
    message: str
    tags: List[str] = []


class SearchResponse(ApiModel):
    """Search results with metadata"""
    query: str
    expanded_terms: List[str] = []
    hits: List[SearchHit]
    facets: FacetCounts
    pagination: Pagination
    search_time_ms: Optional[float] = None
    suggestions: Optional[ZeroResultSuggestions] = None


class Suggestion(ApiModel):
    """Typeahead suggestion"""
    entity_type: EntityType
    id: str
    title: str
    snippet: str = ""


class SuggestResponse(ApiModel):
    """Typeahead suggestions for a partial query"""
    query: str
    suggestions: List[Suggestion]

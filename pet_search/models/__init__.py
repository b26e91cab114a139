"""Data models for the pet search API"""

from .search import (
    EntityType,
    ALL_ENTITY_TYPES,
    parse_entity_types,
    parse_tags,
    SearchFilters,
    GeoPoint,
    SearchRequest,
    SearchHit,
    Pagination,
    FacetCounts,
    SearchResponse,
    ZeroResultSuggestions,
    Suggestion,
    SuggestResponse,
)
from .synonym import MAX_PHRASE_WORDS, SynonymEntry, SynonymUpsert
from .saved_search import (
    SavedSearch,
    SavedSearchCreate,
    SavedSearchUpdate,
    SearchAlert,
    SavedSearchCheckResult,
)
from .telemetry import (
    TelemetryCreate,
    TelemetryRecord,
    TelemetryPage,
    TelemetrySummary,
    ZeroResultQuery,
)
from .catalog import Pet, Group

__all__ = [
    "EntityType",
    "ALL_ENTITY_TYPES",
    "parse_entity_types",
    "parse_tags",
    "SearchFilters",
    "GeoPoint",
    "SearchRequest",
    "SearchHit",
    "Pagination",
    "FacetCounts",
    "SearchResponse",
    "ZeroResultSuggestions",
    "Suggestion",
    "SuggestResponse",
    "MAX_PHRASE_WORDS",
    "SynonymEntry",
    "SynonymUpsert",
    "SavedSearch",
    "SavedSearchCreate",
    "SavedSearchUpdate",
    "SearchAlert",
    "SavedSearchCheckResult",
    "TelemetryCreate",
    "TelemetryRecord",
    "TelemetryPage",
    "TelemetrySummary",
    "ZeroResultQuery",
    "Pet",
    "Group",
]

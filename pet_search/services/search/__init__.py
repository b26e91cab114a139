"""Cross-entity search services"""

from .synonyms import ExpandedQuery, SynonymGraph, SynonymStore, PgSynonymStore, ExpansionCache
from .strategies import StrategyRegistry, build_default_registry
from .ranker import ResultRanker, RankedResults
from .facets import FacetAggregator
from .telemetry import TelemetryLogger, normalize_query
from .saved_searches import AlertChecker, SavedSearchStore, PgSavedSearchStore
from .suggestions import SuggestionService
from .search_orchestrator import SearchOrchestrator

__all__ = [
    "ExpandedQuery",
    "SynonymGraph",
    "SynonymStore",
    "PgSynonymStore",
    "ExpansionCache",
    "StrategyRegistry",
    "build_default_registry",
    "ResultRanker",
    "RankedResults",
    "FacetAggregator",
    "TelemetryLogger",
    "normalize_query",
    "AlertChecker",
    "SavedSearchStore",
    "PgSavedSearchStore",
    "SuggestionService",
    "SearchOrchestrator",
]

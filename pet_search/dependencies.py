"""
Service wiring for the API.

Routes depend on get_services(); tests replace it through
app.dependency_overrides.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import asyncpg
import redis.asyncio as redis

from pet_search.catalog import CatalogReader, RedisCatalog
from pet_search.config import SearchSettings, get_search_settings
from pet_search.db import get_pg_pool, get_redis
from pet_search.services.search import (
    AlertChecker,
    ExpansionCache,
    FacetAggregator,
    PgSavedSearchStore,
    PgSynonymStore,
    ResultRanker,
    SavedSearchStore,
    SearchOrchestrator,
    SuggestionService,
    SynonymGraph,
    TelemetryLogger,
    build_default_registry,
)


@dataclass
class ServiceContainer:
    """Everything the routers need, built once per process"""
    settings: SearchSettings
    synonyms: SynonymGraph
    orchestrator: SearchOrchestrator
    suggestions: SuggestionService
    telemetry: TelemetryLogger
    saved_searches: SavedSearchStore
    alert_checker: AlertChecker


def build_services(
    pool: asyncpg.Pool,
    redis_client: Optional[redis.Redis],
    settings: SearchSettings,
    catalog: Optional[CatalogReader] = None
) -> ServiceContainer:
    """Wire the search services onto the given connections."""
    if catalog is None:
        catalog = RedisCatalog(redis_client, settings.catalog.pets_key, settings.catalog.groups_key)

    cache = ExpansionCache(redis_client, settings.synonym_cache_ttl_seconds) if redis_client else None
    synonyms = SynonymGraph(PgSynonymStore(pool), cache)

    registry = build_default_registry(pool, catalog, settings)
    ranker = ResultRanker(registry, per_type_budget=settings.strategies.per_type_budget)
    facets = FacetAggregator(pool, catalog, language=settings.strategies.fts_language)
    saved_searches = PgSavedSearchStore(pool)

    return ServiceContainer(
        settings=settings,
        synonyms=synonyms,
        orchestrator=SearchOrchestrator(synonyms, ranker, facets),
        suggestions=SuggestionService(pool, catalog),
        telemetry=TelemetryLogger(pool),
        saved_searches=saved_searches,
        alert_checker=AlertChecker(saved_searches, ranker, synonyms, settings.saved_searches),
    )


@lru_cache(maxsize=1)
def get_services() -> ServiceContainer:
    """FastAPI dependency returning the process-wide services"""
    return build_services(get_pg_pool(), get_redis(), get_search_settings())

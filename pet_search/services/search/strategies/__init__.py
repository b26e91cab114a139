"""
Entity search strategies and the registry that dispatches to them.

Adding an entity type means registering one more SearchStrategy.
"""

from typing import Dict, Iterator, List, Optional

import asyncpg

from pet_search.catalog import CatalogReader
from pet_search.config import SearchSettings
from pet_search.error_handling import RetryConfig, StrategyGuard
from pet_search.models import EntityType
from .base import SearchStrategy
from .catalog import GroupsStrategy, PetsStrategy
from .places import PlacesStrategy
from .posts import PostsStrategy
from .wiki import WikiStrategy


class StrategyRegistry:
    """Lookup table of strategies keyed by entity type."""

    def __init__(self, strategies: Optional[List[SearchStrategy]] = None):
        self._strategies: Dict[EntityType, SearchStrategy] = {}
        for strategy in strategies or []:
            self.register(strategy)

    def register(self, strategy: SearchStrategy) -> None:
        self._strategies[strategy.entity_type] = strategy

    def get(self, entity_type: EntityType) -> Optional[SearchStrategy]:
        return self._strategies.get(entity_type)

    def __contains__(self, entity_type: EntityType) -> bool:
        return entity_type in self._strategies

    def __iter__(self) -> Iterator[SearchStrategy]:
        return iter(self._strategies.values())

    @property
    def types(self) -> List[EntityType]:
        return list(self._strategies)


def build_default_registry(
    pool: asyncpg.Pool,
    catalog: CatalogReader,
    settings: SearchSettings
) -> StrategyRegistry:
    """Registry with one strategy per entity type sharing a single guard."""
    config = settings.strategies
    guard = StrategyGuard(RetryConfig(
        max_retries=config.max_retries,
        initial_timeout_seconds=config.timeout_seconds,
    ))

    return StrategyRegistry([
        PostsStrategy(pool, catalog, language=config.fts_language, guard=guard),
        WikiStrategy(pool, language=config.fts_language, guard=guard),
        PlacesStrategy(pool, overfetch_factor=config.places_overfetch_factor, guard=guard),
        PetsStrategy(catalog, guard=guard),
        GroupsStrategy(catalog, guard=guard),
    ])


__all__ = [
    "SearchStrategy",
    "StrategyRegistry",
    "build_default_registry",
    "PostsStrategy",
    "WikiStrategy",
    "PlacesStrategy",
    "PetsStrategy",
    "GroupsStrategy",
]

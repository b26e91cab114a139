"""Common contract for entity search strategies."""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from pet_search.error_handling import BackendUnavailable, StrategyGuard
from pet_search.models import EntityType, GeoPoint, SearchFilters, SearchHit
from ..relevance import RelevancePolicy
from ..synonyms import ExpandedQuery


logger = logging.getLogger(__name__)


class SearchStrategy(ABC):
    """
    Searches one entity type.

    Subclasses implement _search against their backend. search() wraps it in
    the strategy guard so a failing or slow backend contributes no results
    instead of failing the fan-out.
    """

    entity_type: EntityType

    def __init__(self, relevance: RelevancePolicy, guard: Optional[StrategyGuard] = None):
        self.relevance = relevance
        self.guard = guard or StrategyGuard()

    async def search(
        self,
        query: ExpandedQuery,
        limit: int,
        offset: int,
        filters: SearchFilters,
        geo: Optional[GeoPoint] = None
    ) -> List[SearchHit]:
        if query.is_empty or limit <= 0:
            return []

        try:
            return await self.guard.call(
                self.entity_type.value, self._search, query, limit, offset, filters, geo
            )
        except BackendUnavailable as e:
            logger.error(f"Search strategy '{self.entity_type.value}' returned no results: {e}")
            return []

    @abstractmethod
    async def _search(
        self,
        query: ExpandedQuery,
        limit: int,
        offset: int,
        filters: SearchFilters,
        geo: Optional[GeoPoint]
    ) -> List[SearchHit]:
        """Query the backend and build hits."""

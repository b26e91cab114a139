"""
Result merger/ranker.

Fans a query out to every requested strategy concurrently, merges the hits
onto one relevance axis and applies the global limit/offset window.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pet_search.models import ALL_ENTITY_TYPES, EntityType, GeoPoint, SearchFilters, SearchHit
from .strategies import StrategyRegistry
from .synonyms import ExpandedQuery


logger = logging.getLogger(__name__)


@dataclass
class RankedResults:
    """
    Attributes:
        hits: The requested page of the merged list
        total: Size of the merged, deduplicated list
        merged: Every merged hit in relevance order
    """
    hits: List[SearchHit] = field(default_factory=list)
    total: int = 0
    merged: List[SearchHit] = field(default_factory=list)


def rank_results(hits: Sequence[SearchHit]) -> List[SearchHit]:
    """
    Sort by relevance descending, dropping repeated entity keys.

    The sort is stable, so equal scores keep strategy order.
    """
    ordered = sorted(hits, key=lambda hit: hit.relevance, reverse=True)

    seen = set()
    unique: List[SearchHit] = []
    for hit in ordered:
        if hit.key not in seen:
            seen.add(hit.key)
            unique.append(hit)
    return unique


def paginate(hits: Sequence[SearchHit], limit: int, offset: int) -> List[SearchHit]:
    return list(hits[offset:offset + limit])


class ResultRanker:
    """Merges results from the registered entity strategies."""

    def __init__(self, registry: StrategyRegistry, per_type_budget: bool = True):
        self.registry = registry
        self.per_type_budget = per_type_budget

    def type_budget(self, limit: int, offset: int, type_count: int) -> int:
        """
        Number of hits each strategy is asked for.

        With per-type budgeting the window end (offset + limit) is split
        evenly across types; otherwise every type fetches the whole window.
        """
        window = offset + limit
        if type_count <= 0:
            return 0
        if not self.per_type_budget:
            return window
        return math.ceil(window / type_count)

    async def search(
        self,
        query: ExpandedQuery,
        entity_types: Sequence[EntityType],
        limit: int,
        offset: int = 0,
        filters: Optional[SearchFilters] = None,
        geo: Optional[GeoPoint] = None
    ) -> RankedResults:
        filters = filters or SearchFilters()
        requested = list(entity_types) or list(ALL_ENTITY_TYPES)
        strategies = [self.registry.get(t) for t in requested if t in self.registry]
        if not strategies or query.is_empty:
            return RankedResults()

        budget = self.type_budget(limit, offset, len(strategies))
        results = await asyncio.gather(
            *[s.search(query, budget, 0, filters, geo) for s in strategies],
            return_exceptions=True
        )

        collected: List[SearchHit] = []
        for strategy, result in zip(strategies, results):
            if isinstance(result, Exception):
                logger.error(f"Strategy '{strategy.entity_type.value}' raised during fan-out: {result}")
                continue
            collected.extend(result)

        merged = rank_results(collected)
        return RankedResults(
            hits=paginate(merged, limit, offset),
            total=len(merged),
            merged=merged,
        )

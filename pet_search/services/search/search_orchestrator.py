"""
Search orchestrator - coordinates synonym expansion, fan-out ranking and facets.
"""

import logging
import time

from pet_search.models import FacetCounts, Pagination, SearchRequest, SearchResponse, ZeroResultSuggestions
from .facets import FacetAggregator
from .ranker import ResultRanker
from .synonyms import ExpandedQuery, SynonymGraph


logger = logging.getLogger(__name__)


class SearchOrchestrator:
    """Orchestrate the complete search workflow"""

    def __init__(self, synonyms: SynonymGraph, ranker: ResultRanker, facets: FacetAggregator = None):
        self.synonyms = synonyms
        self.ranker = ranker
        self.facets = facets

    async def search(self, request: SearchRequest) -> SearchResponse:
        """
        Run a search across the requested entity types.

        Args:
            request: Validated search parameters

        Returns:
            SearchResponse with the requested page, facets and the merged total,
            plus tag suggestions when nothing matched
        """
        started = time.perf_counter()
        entity_types = request.requested_types

        query = await self.synonyms.expand(request.query)

        ranked = await self.ranker.search(
            query,
            entity_types,
            limit=request.limit,
            offset=request.offset,
            filters=request.filters,
            geo=request.geo,
        )

        facets = FacetCounts()
        if self.facets is not None:
            facets = await self.facets.aggregate(query, entity_types, request.filters)

        suggestions = None
        if ranked.total == 0:
            suggestions = await self._zero_result_suggestions(request.query, query)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            f"Search '{request.query}' over {[t.value for t in entity_types]} "
            f"returned {len(ranked.hits)}/{ranked.total} hits in {elapsed_ms}ms"
        )

        return SearchResponse(
            query=request.query,
            expanded_terms=list(query.terms),
            hits=ranked.hits,
            facets=facets,
            pagination=Pagination(total=ranked.total, limit=request.limit, offset=request.offset),
            search_time_ms=elapsed_ms,
            suggestions=suggestions,
        )

    async def _zero_result_suggestions(self, text: str, query: ExpandedQuery) -> ZeroResultSuggestions:
        tags = await self.facets.popular_tags(query) if self.facets is not None else []
        message = f"No results found for \"{text}\"."
        if tags:
            message += " Try one of these related tags."
        else:
            message += " Try a broader search term."
        return ZeroResultSuggestions(message=message, tags=tags)

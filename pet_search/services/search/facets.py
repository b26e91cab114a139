"""
Facet aggregation for search refinement.

Facets reuse the main search's expanded query and filters, except that a
facet never filters on its own dimension. Counts are never truncated, so a
visible hit always has its value counted. A failing facet, or a failing tag
source, is reported as empty without failing the response.
"""

import asyncio
import logging
from collections import Counter
from typing import Awaitable, Dict, List, Mapping, Optional, Sequence

import asyncpg

from pet_search.catalog import CatalogReader
from pet_search.models import EntityType, FacetCounts, SearchFilters
from .query_builder import FtsTerms, SqlParams, escape_like, tsquery_sql
from .strategies.catalog import pet_ids_for_species, pet_matches
from .strategies.posts import (
    DEFAULT_POST_TYPE,
    POST_VISIBILITY_SQL,
    post_document_sql,
    post_filter_sql,
)
from .strategies.wiki import ARTICLE_VISIBILITY_SQL, article_document_sql, article_filter_sql
from .synonyms import ExpandedQuery


logger = logging.getLogger(__name__)

MAX_SUGGESTED_TAGS = 5


def sort_counts(counts: Mapping[str, int]) -> Dict[str, int]:
    """Order by count descending, then key."""
    return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))


def merge_counts(*sources: Mapping[str, int]) -> Dict[str, int]:
    """Merge facet counts by key, summing values that appear in several sources."""
    merged: Counter = Counter()
    for source in sources:
        for key, count in source.items():
            merged[key] += count
    return sort_counts(merged)


async def _no_counts() -> Dict[str, int]:
    return {}


class FacetAggregator:
    """Computes species, tag and post-type breakdowns for a search."""

    def __init__(self, pool: asyncpg.Pool, catalog: CatalogReader, language: str = "english"):
        self.pool = pool
        self.catalog = catalog
        self.language = language

    async def aggregate(
        self,
        query: ExpandedQuery,
        entity_types: Sequence[EntityType],
        filters: Optional[SearchFilters] = None
    ) -> FacetCounts:
        filters = filters or SearchFilters()
        requested = set(entity_types)
        include_posts = EntityType.POSTS in requested
        include_wiki = EntityType.WIKI in requested
        include_pets = EntityType.PETS in requested

        species, tags, post_types = await asyncio.gather(
            self._safe("species", self.species_counts(query))
            if include_posts or include_pets else _no_counts(),
            self.tag_counts(query, filters, include_posts, include_wiki)
            if include_posts or include_wiki else _no_counts(),
            self._safe("post_types", self.post_type_counts(query, filters))
            if include_posts else _no_counts(),
        )
        return FacetCounts(species=species, tags=tags, post_types=post_types)

    async def _safe(self, name: str, computation: Awaitable[Dict[str, int]]) -> Dict[str, int]:
        try:
            return await computation
        except Exception as e:
            logger.warning(f"Facet '{name}' failed, returning no counts: {e}")
            return {}

    async def species_counts(self, query: ExpandedQuery) -> Dict[str, int]:
        """Species of the public catalog pets matching the query."""
        terms = list(query.terms)
        pets = await self.catalog.list_pets()
        counts = Counter(
            pet.species.lower()
            for pet in pets
            if pet.is_public and pet.species and pet_matches(pet, terms)
        )
        return sort_counts(counts)

    async def tag_counts(
        self,
        query: ExpandedQuery,
        filters: SearchFilters,
        include_posts: bool = True,
        include_wiki: bool = True
    ) -> Dict[str, int]:
        """Post and wiki tag counts summed by tag; each source fails on its own."""
        sources = await asyncio.gather(
            self._safe("post_tags", self.post_tag_counts(query, filters))
            if include_posts else _no_counts(),
            self._safe("wiki_tags", self.wiki_tag_counts(query, filters))
            if include_wiki else _no_counts(),
        )
        return merge_counts(*sources)

    async def post_tag_counts(self, query: ExpandedQuery, filters: SearchFilters) -> Dict[str, int]:
        return await self._post_counts(
            query, filters, "bt.tag",
            "JOIN blog_post_tags bt ON bt.post_id = p.id",
            include_tags=False, include_type=True,
        )

    async def post_type_counts(self, query: ExpandedQuery, filters: SearchFilters) -> Dict[str, int]:
        return await self._post_counts(
            query, filters, f"COALESCE(p.type, '{DEFAULT_POST_TYPE}')", "",
            include_tags=True, include_type=False,
        )

    async def wiki_tag_counts(self, query: ExpandedQuery, filters: SearchFilters) -> Dict[str, int]:
        fts = FtsTerms.from_expanded(query)
        if fts.is_empty:
            return {}

        params = SqlParams()
        tsquery = tsquery_sql(params, fts, self.language)
        document = article_document_sql(params, self.language)
        where = [ARTICLE_VISIBILITY_SQL, f"{document} @@ q.query"]
        where.extend(article_filter_sql(params, filters, include_tags=False))

        sql = f"""
            WITH q AS (SELECT {tsquery} AS query)
            SELECT at.tag AS key, COUNT(DISTINCT a.id) AS count
            FROM articles a
            JOIN article_tags at ON at.article_id = a.id
            CROSS JOIN q
            WHERE {' AND '.join(where)}
            GROUP BY at.tag
            ORDER BY count DESC, at.tag
        """
        return await self._fetch_counts(sql, params.values)

    async def popular_tags(self, query: ExpandedQuery, limit: int = MAX_SUGGESTED_TAGS) -> List[str]:
        """
        Most-used post tags containing any query unit, for zero-result refinement.

        Returns an empty list if the lookup fails.
        """
        if not query.tokens:
            return []
        patterns = [f"%{escape_like(token)}%" for token in query.tokens]
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch("""
                    SELECT bt.tag AS key, COUNT(*) AS count
                    FROM blog_post_tags bt
                    WHERE bt.tag ILIKE ANY($1::text[])
                    GROUP BY bt.tag
                    ORDER BY count DESC, bt.tag
                    LIMIT $2
                """, patterns, limit)
        except Exception as e:
            logger.warning(f"Popular tag lookup failed: {e}")
            return []
        return [row['key'] for row in rows if row['key']]

    async def _post_counts(
        self,
        query: ExpandedQuery,
        filters: SearchFilters,
        key_sql: str,
        join_sql: str,
        include_tags: bool,
        include_type: bool
    ) -> Dict[str, int]:
        fts = FtsTerms.from_expanded(query)
        if fts.is_empty:
            return {}

        pet_ids = None
        if filters.species:
            pet_ids = await pet_ids_for_species(self.catalog, filters.species)
            if not pet_ids:
                return {}

        params = SqlParams()
        tsquery = tsquery_sql(params, fts, self.language)
        document = post_document_sql(params, self.language)
        where = [POST_VISIBILITY_SQL, f"{document} @@ q.query"]
        where.extend(post_filter_sql(params, filters, pet_ids, include_tags, include_type))

        sql = f"""
            WITH q AS (SELECT {tsquery} AS query)
            SELECT {key_sql} AS key, COUNT(DISTINCT p.id) AS count
            FROM blog_posts p
            {join_sql}
            CROSS JOIN q
            WHERE {' AND '.join(where)}
            GROUP BY 1
            ORDER BY count DESC, 1
        """
        return await self._fetch_counts(sql, params.values)

    async def _fetch_counts(self, sql: str, values: Sequence) -> Dict[str, int]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql, *values)
        return sort_counts({row['key']: int(row['count']) for row in rows if row['key']})

"""Blog post full-text search."""

from typing import List, Optional

import asyncpg

from pet_search.catalog import CatalogReader
from pet_search.error_handling import StrategyGuard
from pet_search.models import EntityType, GeoPoint, SearchFilters, SearchHit
from ..query_builder import (
    FtsTerms,
    SqlParams,
    headline_sql,
    tsquery_sql,
    weighted_document_sql,
)
from ..relevance import RelevancePolicy
from ..synonyms import ExpandedQuery
from .catalog import pet_ids_for_species
from .fulltext import RANK_WEIGHTS, FullTextStrategy


DEFAULT_POST_TYPE = "blog_post"

POST_VISIBILITY_SQL = "p.deleted_at IS NULL AND p.is_draft = FALSE AND p.privacy = 'public'"


def post_document_sql(params: SqlParams, language: str) -> str:
    return weighted_document_sql(params, language, "p.title", "p.type", "p.content")


def post_filter_sql(
    params: SqlParams,
    filters: SearchFilters,
    pet_ids: Optional[List[str]] = None,
    include_tags: bool = True,
    include_type: bool = True
) -> List[str]:
    """
    Filter predicates for blog_posts aliased as p.

    Facets skip their own dimension through include_tags/include_type.
    """
    clauses = []
    if pet_ids is not None:
        clauses.append(f"p.pet_id = ANY({params.add(pet_ids)}::text[])")
    if include_tags and filters.tags:
        clauses.append(
            "EXISTS (SELECT 1 FROM blog_post_tags bt "
            f"WHERE bt.post_id = p.id AND bt.tag = ANY({params.add(filters.tags)}::text[]))"
        )
    if include_type and filters.post_type:
        clauses.append(f"p.type = {params.add(filters.post_type)}")
    return clauses


class PostsStrategy(FullTextStrategy):
    """Public, published, undeleted blog posts ranked by weighted FTS."""

    entity_type = EntityType.POSTS

    def __init__(
        self,
        pool: asyncpg.Pool,
        catalog: CatalogReader,
        language: str = "english",
        relevance: Optional[RelevancePolicy] = None,
        guard: Optional[StrategyGuard] = None
    ):
        super().__init__(pool, language, relevance, guard)
        self.catalog = catalog

    async def _search(
        self,
        query: ExpandedQuery,
        limit: int,
        offset: int,
        filters: SearchFilters,
        geo: Optional[GeoPoint]
    ) -> List[SearchHit]:
        fts = FtsTerms.from_expanded(query)
        if fts.is_empty:
            return []

        pet_ids = None
        if filters.species:
            pet_ids = await pet_ids_for_species(self.catalog, filters.species)
            if not pet_ids:
                return []

        params = SqlParams()
        tsquery = tsquery_sql(params, fts, self.language)
        document = post_document_sql(params, self.language)
        where = " AND ".join([POST_VISIBILITY_SQL] + post_filter_sql(params, filters, pet_ids))
        headline = headline_sql(params, self.language, "d.content", "q.query")
        limit_param = params.add(limit)
        offset_param = params.add(offset)

        sql = f"""
            WITH q AS (SELECT {tsquery} AS query),
            docs AS (
                SELECT p.id, p.pet_id, p.author_id, p.title, p.content, p.type,
                       p.hashtags, p.created_at,
                       {document} AS document
                FROM blog_posts p
                WHERE {where}
            )
            SELECT d.id, d.pet_id, d.author_id, d.title, d.type, d.hashtags, d.created_at,
                   ts_rank_cd({RANK_WEIGHTS}, d.document, q.query) AS rank,
                   {headline} AS snippet,
                   ARRAY(
                       SELECT bt.tag FROM blog_post_tags bt
                       WHERE bt.post_id = d.id ORDER BY bt.tag
                   ) AS tags
            FROM docs d CROSS JOIN q
            WHERE d.document @@ q.query
            ORDER BY rank DESC, d.created_at DESC
            LIMIT {limit_param} OFFSET {offset_param}
        """

        rows = await self._fetch(sql, params.values)
        return [self._to_hit(row) for row in rows]

    def _to_hit(self, row) -> SearchHit:
        return SearchHit(
            entity_type=self.entity_type,
            id=str(row['id']),
            title=row['title'],
            snippet=row['snippet'] or "",
            relevance=self.relevance.normalize(row['rank']),
            type=row['type'] or DEFAULT_POST_TYPE,
            created_at=row['created_at'],
            extra={
                "petId": row['pet_id'],
                "authorId": row['author_id'],
                "tags": list(row['tags'] or []),
                "hashtags": list(row['hashtags'] or []),
            },
        )

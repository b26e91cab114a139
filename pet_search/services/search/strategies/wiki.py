"""Wiki article full-text search."""

from typing import List, Optional

from pet_search.models import EntityType, GeoPoint, SearchFilters, SearchHit
from ..query_builder import (
    FtsTerms,
    SqlParams,
    headline_sql,
    tsquery_sql,
    weighted_document_sql,
)
from ..synonyms import ExpandedQuery
from .fulltext import RANK_WEIGHTS, FullTextStrategy


ARTICLE_VISIBILITY_SQL = "a.deleted_at IS NULL AND a.status = 'approved'"


def article_document_sql(params: SqlParams, language: str) -> str:
    return weighted_document_sql(params, language, "a.title", "a.type", "a.content")


def article_filter_sql(params: SqlParams, filters: SearchFilters, include_tags: bool = True) -> List[str]:
    """Filter predicates for articles aliased as a."""
    clauses = []
    if filters.species:
        clauses.append(f"{params.add(filters.species)} = ANY(a.species)")
    if include_tags and filters.tags:
        clauses.append(
            "EXISTS (SELECT 1 FROM article_tags at "
            f"WHERE at.article_id = a.id AND at.tag = ANY({params.add(filters.tags)}::text[]))"
        )
    return clauses


class WikiStrategy(FullTextStrategy):
    """Approved, undeleted wiki articles ranked by weighted FTS."""

    entity_type = EntityType.WIKI

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

        params = SqlParams()
        tsquery = tsquery_sql(params, fts, self.language)
        document = article_document_sql(params, self.language)
        where = " AND ".join([ARTICLE_VISIBILITY_SQL] + article_filter_sql(params, filters))
        headline = headline_sql(params, self.language, "d.content", "q.query")
        limit_param = params.add(limit)
        offset_param = params.add(offset)

        sql = f"""
            WITH q AS (SELECT {tsquery} AS query),
            docs AS (
                SELECT a.id, a.slug, a.title, a.type, a.content, a.species, a.created_at,
                       {document} AS document
                FROM articles a
                WHERE {where}
            )
            SELECT d.id, d.slug, d.title, d.type, d.species, d.created_at,
                   ts_rank_cd({RANK_WEIGHTS}, d.document, q.query) AS rank,
                   {headline} AS snippet,
                   ARRAY(
                       SELECT at.tag FROM article_tags at
                       WHERE at.article_id = d.id ORDER BY at.tag
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
            type=row['type'],
            created_at=row['created_at'],
            extra={
                "slug": row['slug'],
                "species": list(row['species'] or []),
                "tags": list(row['tags'] or []),
            },
        )

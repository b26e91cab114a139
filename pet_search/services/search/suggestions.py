"""
Typeahead suggestions.

Sources are consulted in a fixed order (posts, wiki, places, pets, groups),
each only while the limit is not yet filled. Posts and wiki each get half the
limit, capped by what is still open. The remaining sources share a third of
what is left. A failing source is skipped.
"""

import logging
import math
from typing import List

import asyncpg

from pet_search.catalog import CatalogReader
from pet_search.models import EntityType, Suggestion
from .query_builder import SqlParams, escape_like
from .strategies.catalog import contains_any
from .synonyms import ExpandedQuery


logger = logging.getLogger(__name__)

SNIPPET_CHARS = 100


def _title_order_sql(column: str, first_prefix: str, first_contains: str) -> str:
    return f"""CASE
                WHEN {column} ILIKE {first_prefix} THEN 1
                WHEN {column} ILIKE {first_contains} THEN 2
                ELSE 3
            END,
            LENGTH({column}) ASC,
            {column} ASC"""


def _half_share(limit: int, taken: int) -> int:
    return min(math.ceil(limit / 2), limit - taken)


def _remaining_share(limit: int, taken: int) -> int:
    return math.ceil((limit - taken) / 3)


class SuggestionService:
    """Builds typeahead suggestions for a partially typed query."""

    def __init__(self, pool: asyncpg.Pool, catalog: CatalogReader):
        self.pool = pool
        self.catalog = catalog

    async def suggest(self, query: ExpandedQuery, limit: int = 10) -> List[Suggestion]:
        terms = list(query.terms)
        if not terms or limit <= 0:
            return []

        suggestions: List[Suggestion] = []
        sources = [
            ("posts", self._posts),
            ("wiki", self._wiki),
            ("places", self._places),
            ("pets", self._pets),
            ("groups", self._groups),
        ]
        for name, source in sources:
            if len(suggestions) >= limit:
                break
            try:
                suggestions.extend(await source(terms, limit, len(suggestions)))
            except Exception as e:
                logger.error(f"Suggestion source '{name}' failed: {e}")

        return suggestions[:limit]

    async def _posts(self, terms: List[str], limit: int, taken: int) -> List[Suggestion]:
        params = SqlParams()
        prefixes = params.add([f"{escape_like(t)}%" for t in terms])
        first_prefix = params.add(f"{escape_like(terms[0])}%")
        first_contains = params.add(f"%{escape_like(terms[0])}%")
        limit_param = params.add(_half_share(limit, taken))

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT p.id, p.title, LEFT(p.content, {SNIPPET_CHARS}) AS snippet
                FROM blog_posts p
                WHERE p.is_draft = FALSE
                  AND p.privacy = 'public'
                  AND p.deleted_at IS NULL
                  AND p.title ILIKE ANY({prefixes}::text[])
                ORDER BY {_title_order_sql('p.title', first_prefix, first_contains)}
                LIMIT {limit_param}
            """, *params.values)

        return [
            Suggestion(entity_type=EntityType.POSTS, id=str(row['id']), title=row['title'],
                       snippet=row['snippet'] or row['title'])
            for row in rows
        ]

    async def _wiki(self, terms: List[str], limit: int, taken: int) -> List[Suggestion]:
        params = SqlParams()
        prefixes = params.add([f"{escape_like(t)}%" for t in terms])
        first_prefix = params.add(f"{escape_like(terms[0])}%")
        first_contains = params.add(f"%{escape_like(terms[0])}%")
        limit_param = params.add(_half_share(limit, taken))

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT a.id, a.title, a.slug
                FROM articles a
                WHERE a.status = 'approved'
                  AND a.deleted_at IS NULL
                  AND a.title ILIKE ANY({prefixes}::text[])
                ORDER BY {_title_order_sql('a.title', first_prefix, first_contains)}
                LIMIT {limit_param}
            """, *params.values)

        return [
            Suggestion(entity_type=EntityType.WIKI, id=str(row['id']), title=row['title'],
                       snippet=row['title'])
            for row in rows
        ]

    async def _places(self, terms: List[str], limit: int, taken: int) -> List[Suggestion]:
        pattern = f"%{escape_like(terms[0])}%"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT pl.id, pl.name, pl.address
                FROM places pl
                WHERE pl.moderation_status = 'approved'
                  AND pl.deleted_at IS NULL
                  AND (pl.name ILIKE $1 OR pl.address ILIKE $1)
                ORDER BY pl.name ASC
                LIMIT $2
            """, pattern, _remaining_share(limit, taken))

        return [
            Suggestion(entity_type=EntityType.PLACES, id=str(row['id']), title=row['name'],
                       snippet=row['address'] or "")
            for row in rows
        ]

    async def _pets(self, terms: List[str], limit: int, taken: int) -> List[Suggestion]:
        first = [terms[0]]
        pets = [
            pet for pet in await self.catalog.list_pets()
            if pet.is_public and contains_any(" ".join(filter(None, [pet.name, pet.breed, pet.species])), first)
        ]
        return [
            Suggestion(entity_type=EntityType.PETS, id=pet.id, title=pet.name,
                       snippet=f"{pet.species} - {pet.breed}" if pet.breed else pet.species)
            for pet in pets[:_remaining_share(limit, taken)]
        ]

    async def _groups(self, terms: List[str], limit: int, taken: int) -> List[Suggestion]:
        first = [terms[0]]
        groups = [
            group for group in await self.catalog.list_groups()
            if contains_any(" ".join(filter(None, [group.name, group.description])), first)
        ]
        return [
            Suggestion(entity_type=EntityType.GROUPS, id=group.id, title=group.name,
                       snippet=group.description or "")
            for group in groups[:_remaining_share(limit, taken)]
        ]

"""
Saved searches and the alert checker.

A check re-runs the saved query, drops every match that was already alerted
and records the rest as alerts. Alert rows are unique per
(saved search, entity type, entity id), so overlapping checks of the same
saved search can't double-alert a match.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import asyncpg

from pet_search.config import SavedSearchConfig
from pet_search.error_handling import NotFoundError
from pet_search.models import (
    SavedSearch,
    SavedSearchCheckResult,
    SavedSearchCreate,
    SavedSearchUpdate,
    SearchAlert,
    SearchHit,
)
from .ranker import ResultRanker
from .synonyms import SynonymGraph


logger = logging.getLogger(__name__)

_SAVED_SEARCH_COLUMNS = (
    "id, user_id, name, query, entity_types, filters, geo, alert_enabled, "
    "last_checked_at, created_at, updated_at"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SavedSearchStore(ABC):
    """Persistence port for saved searches and their alerts."""

    @abstractmethod
    async def create(self, data: SavedSearchCreate) -> SavedSearch:
        """Persist a new saved search."""

    @abstractmethod
    async def get(self, saved_search_id: int) -> Optional[SavedSearch]:
        """Load one saved search, or None if absent."""

    @abstractmethod
    async def list_searches(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[SavedSearch]:
        """List saved searches, optionally for one owner."""

    @abstractmethod
    async def update(self, saved_search_id: int, changes: SavedSearchUpdate) -> Optional[SavedSearch]:
        """Apply a partial update, returning None if absent."""

    @abstractmethod
    async def delete(self, saved_search_id: int) -> bool:
        """Delete a saved search and its alerts."""

    @abstractmethod
    async def list_alerts(self, saved_search_id: int) -> List[SearchAlert]:
        """Every alert recorded for a saved search."""

    @abstractmethod
    async def add_alerts(self, saved_search_id: int, hits: Sequence[SearchHit]) -> List[SearchAlert]:
        """Record alerts for hits, returning only the newly inserted ones."""

    @abstractmethod
    async def mark_checked(self, saved_search_id: int, checked_at: datetime) -> None:
        """Set last_checked_at."""

    @abstractmethod
    async def list_due(self, min_age: Optional[timedelta] = None, limit: int = 100) -> List[SavedSearch]:
        """Alert-enabled saved searches not checked within min_age."""


class PgSavedSearchStore(SavedSearchStore):
    """Saved searches in PostgreSQL."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def create(self, data: SavedSearchCreate) -> SavedSearch:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                INSERT INTO saved_searches (
                    user_id, name, query, entity_types, filters, geo, alert_enabled
                )
                VALUES ($1, $2, $3, $4::text[], $5::jsonb, $6::jsonb, $7)
                RETURNING {_SAVED_SEARCH_COLUMNS}
            """,
                data.user_id,
                data.name,
                data.query,
                [t.value for t in data.entity_types],
                data.filters.model_dump(by_alias=True),
                data.geo.model_dump(by_alias=True) if data.geo else None,
                data.alert_enabled
            )
        logger.info(f"Created saved search {row['id']} for query '{data.query}'")
        return self._to_saved_search(row)

    async def get(self, saved_search_id: int) -> Optional[SavedSearch]:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_SAVED_SEARCH_COLUMNS} FROM saved_searches WHERE id = $1",
                saved_search_id
            )
        return self._to_saved_search(row) if row else None

    async def list_searches(self, user_id: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[SavedSearch]:
        async with self.pool.acquire() as conn:
            if user_id is None:
                rows = await conn.fetch(f"""
                    SELECT {_SAVED_SEARCH_COLUMNS} FROM saved_searches
                    ORDER BY created_at DESC, id DESC
                    LIMIT $1 OFFSET $2
                """, limit, offset)
            else:
                rows = await conn.fetch(f"""
                    SELECT {_SAVED_SEARCH_COLUMNS} FROM saved_searches
                    WHERE user_id = $1
                    ORDER BY created_at DESC, id DESC
                    LIMIT $2 OFFSET $3
                """, user_id, limit, offset)
        return [self._to_saved_search(row) for row in rows]

    async def update(self, saved_search_id: int, changes: SavedSearchUpdate) -> Optional[SavedSearch]:
        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            return await self.get(saved_search_id)

        assignments = []
        values: List[Any] = []
        for column, value in self._update_columns(changes, fields).items():
            values.append(value)
            assignments.append(f"{column} = ${len(values)}")
        values.append(saved_search_id)

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(f"""
                UPDATE saved_searches
                SET {', '.join(assignments)}, updated_at = NOW()
                WHERE id = ${len(values)}
                RETURNING {_SAVED_SEARCH_COLUMNS}
            """, *values)
        return self._to_saved_search(row) if row else None

    async def delete(self, saved_search_id: int) -> bool:
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM saved_searches WHERE id = $1", saved_search_id)
        return result.endswith(" 1")

    async def list_alerts(self, saved_search_id: int) -> List[SearchAlert]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                SELECT id, saved_search_id, entity_type, entity_id, created_at
                FROM search_alerts
                WHERE saved_search_id = $1
                ORDER BY created_at, id
            """, saved_search_id)
        return [SearchAlert.model_validate(dict(row)) for row in rows]

    async def add_alerts(self, saved_search_id: int, hits: Sequence[SearchHit]) -> List[SearchAlert]:
        if not hits:
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("""
                INSERT INTO search_alerts (saved_search_id, entity_type, entity_id)
                SELECT $1, t.entity_type, t.entity_id
                FROM unnest($2::text[], $3::text[]) AS t(entity_type, entity_id)
                ON CONFLICT (saved_search_id, entity_type, entity_id) DO NOTHING
                RETURNING id, saved_search_id, entity_type, entity_id, created_at
            """,
                saved_search_id,
                [hit.entity_type.value for hit in hits],
                [hit.id for hit in hits]
            )
        return [SearchAlert.model_validate(dict(row)) for row in rows]

    async def mark_checked(self, saved_search_id: int, checked_at: datetime) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                "UPDATE saved_searches SET last_checked_at = $1 WHERE id = $2",
                checked_at, saved_search_id
            )

    async def list_due(self, min_age: Optional[timedelta] = None, limit: int = 100) -> List[SavedSearch]:
        cutoff = _utcnow() - min_age if min_age else None
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT {_SAVED_SEARCH_COLUMNS} FROM saved_searches
                WHERE alert_enabled
                  AND ($1::timestamptz IS NULL OR last_checked_at IS NULL OR last_checked_at < $1)
                ORDER BY last_checked_at NULLS FIRST, id
                LIMIT $2
            """, cutoff, limit)
        return [self._to_saved_search(row) for row in rows]

    @staticmethod
    def _update_columns(changes: SavedSearchUpdate, fields: Dict[str, Any]) -> Dict[str, Any]:
        columns: Dict[str, Any] = {}
        for name in ("name", "query", "alert_enabled"):
            if name in fields:
                columns[name] = fields[name]
        if "entity_types" in fields:
            columns["entity_types"] = [t.value for t in changes.entity_types or []]
        if "filters" in fields:
            columns["filters"] = changes.filters.model_dump(by_alias=True) if changes.filters else {}
        if "geo" in fields:
            columns["geo"] = changes.geo.model_dump(by_alias=True) if changes.geo else None
        return columns

    @staticmethod
    def _to_saved_search(row) -> SavedSearch:
        data = dict(row)
        data["entity_types"] = list(data.get("entity_types") or [])
        data["filters"] = data.get("filters") or {}
        return SavedSearch.model_validate(data)


class AlertChecker:
    """Re-runs saved searches and records matches not alerted before."""

    def __init__(
        self,
        store: SavedSearchStore,
        ranker: ResultRanker,
        synonyms: SynonymGraph,
        config: Optional[SavedSearchConfig] = None
    ):
        self.store = store
        self.ranker = ranker
        self.synonyms = synonyms
        self.config = config or SavedSearchConfig()

    async def check(self, saved_search_id: int, now: Optional[datetime] = None) -> SavedSearchCheckResult:
        """
        Check one saved search for new matches.

        "No new matches" is a successful check. last_checked_at is updated on
        every check; alerts are only recorded when alerting is enabled.

        Raises:
            NotFoundError: If the saved search does not exist
        """
        saved = await self.store.get(saved_search_id)
        if saved is None:
            raise NotFoundError(f"Saved search {saved_search_id} not found")

        alerted = {alert.key for alert in await self.store.list_alerts(saved_search_id)}

        query = await self.synonyms.expand(saved.query)
        ranked = await self.ranker.search(
            query,
            saved.entity_types,
            limit=self.config.check_limit,
            offset=0,
            filters=saved.filters,
            geo=saved.geo,
        )
        new_results = [hit for hit in ranked.hits if hit.key not in alerted]

        alerts = None
        if saved.alert_enabled:
            alerts = await self.store.add_alerts(saved_search_id, new_results)

        checked_at = now or _utcnow()
        await self.store.mark_checked(saved_search_id, checked_at)

        if new_results:
            logger.info(f"Saved search {saved_search_id} has {len(new_results)} new results")

        cap = self.config.alert_payload_cap
        return SavedSearchCheckResult(
            success=True,
            new_results_count=len(new_results),
            new_results=new_results[:cap],
            alerts=alerts[:cap] if alerts is not None else None,
            checked_at=checked_at,
        )

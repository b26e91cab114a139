"""Place search with optional geo radius filtering."""

from typing import Any, Dict, List, Mapping, Optional

import asyncpg

from pet_search.error_handling import StrategyGuard
from pet_search.models import EntityType, GeoPoint, SearchFilters, SearchHit
from ..geo import filter_within_radius
from ..query_builder import SqlParams, like_patterns
from ..relevance import DistanceDecayRelevance, FixedRelevance, RelevancePolicy
from ..synonyms import ExpandedQuery
from .base import SearchStrategy


PLACE_VISIBILITY_SQL = "pl.deleted_at IS NULL AND pl.moderation_status = 'approved'"


def _as_float(value: Any) -> Optional[float]:
    return float(value) if value is not None else None


class PlacesStrategy(SearchStrategy):
    """
    Approved places matching by name/address substring or amenity.

    Rows are over-fetched by overfetch_factor so geo filtering has room to
    discard candidates; the result is cut to limit only after filtering.
    """

    entity_type = EntityType.PLACES

    def __init__(
        self,
        pool: asyncpg.Pool,
        overfetch_factor: int = 2,
        relevance: Optional[RelevancePolicy] = None,
        geo_relevance: Optional[DistanceDecayRelevance] = None,
        guard: Optional[StrategyGuard] = None
    ):
        super().__init__(relevance or FixedRelevance(1.0), guard)
        self.pool = pool
        self.overfetch_factor = max(1, overfetch_factor)
        self.geo_relevance = geo_relevance or DistanceDecayRelevance()

    async def _search(
        self,
        query: ExpandedQuery,
        limit: int,
        offset: int,
        filters: SearchFilters,
        geo: Optional[GeoPoint]
    ) -> List[SearchHit]:
        terms = list(query.terms)
        patterns = like_patterns(terms)
        if not patterns:
            return []

        params = SqlParams()
        patterns_param = params.add(patterns)
        terms_param = params.add(terms)
        where = [
            PLACE_VISIBILITY_SQL,
            f"""(pl.name ILIKE ANY({patterns_param}::text[])
                 OR pl.address ILIKE ANY({patterns_param}::text[])
                 OR EXISTS (
                     SELECT 1 FROM unnest(pl.amenities) AS am(name)
                     WHERE lower(am.name) = ANY({terms_param}::text[])
                 ))""",
        ]
        if geo is not None:
            where.append("pl.latitude IS NOT NULL AND pl.longitude IS NOT NULL")

        limit_param = params.add(limit * self.overfetch_factor)
        offset_param = params.add(offset)

        sql = f"""
            SELECT pl.id, pl.name, pl.address, pl.latitude, pl.longitude,
                   pl.amenities, pl.type, pl.created_at,
                   CASE
                       WHEN pl.name ILIKE ANY({patterns_param}::text[]) THEN 1
                       WHEN pl.address ILIKE ANY({patterns_param}::text[]) THEN 2
                       ELSE 3
                   END AS match_rank
            FROM places pl
            WHERE {' AND '.join(where)}
            ORDER BY match_rank, pl.name
            LIMIT {limit_param} OFFSET {offset_param}
        """

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(sql, *params.values)
        candidates = [dict(row) for row in rows]

        if geo is None:
            return [self._to_hit(c, self.relevance.normalize(1.0)) for c in candidates[:limit]]

        nearby = filter_within_radius(candidates, geo.lat, geo.lng, geo.radius_km)
        nearby.sort(key=lambda c: c["distance_km"])
        return [
            self._to_hit(c, self.geo_relevance.score(c["distance_km"], geo.radius_km))
            for c in nearby[:limit]
        ]

    def _to_hit(self, candidate: Mapping[str, Any], relevance: float) -> SearchHit:
        extra: Dict[str, Any] = {
            "address": candidate.get("address"),
            "latitude": _as_float(candidate.get("latitude")),
            "longitude": _as_float(candidate.get("longitude")),
            "amenities": list(candidate.get("amenities") or []),
        }
        if "distance_km" in candidate:
            extra["distanceKm"] = round(candidate["distance_km"], 3)

        return SearchHit(
            entity_type=self.entity_type,
            id=str(candidate["id"]),
            title=candidate["name"],
            snippet=candidate.get("address") or "",
            relevance=relevance,
            type=candidate.get("type"),
            created_at=candidate.get("created_at"),
            extra=extra,
        )

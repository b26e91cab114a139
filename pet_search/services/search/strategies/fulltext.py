"""Shared plumbing for strategies backed by PostgreSQL full-text search."""

from typing import List, Optional, Sequence

import asyncpg

from pet_search.error_handling import StrategyGuard
from ..relevance import RelevancePolicy, SaturatingRelevance
from .base import SearchStrategy


# ts_rank_cd weights in {D, C, B, A} order: body (C) 0.25, type (B) 0.5, title (A) 1.0
RANK_WEIGHTS = "'{0.1, 0.25, 0.5, 1.0}'"


class FullTextStrategy(SearchStrategy):
    """Strategy ranking rows with ts_rank_cd over a weighted document."""

    def __init__(
        self,
        pool: asyncpg.Pool,
        language: str = "english",
        relevance: Optional[RelevancePolicy] = None,
        guard: Optional[StrategyGuard] = None
    ):
        super().__init__(relevance or SaturatingRelevance(), guard)
        self.pool = pool
        self.language = language

    async def _fetch(self, sql: str, values: Sequence) -> List[asyncpg.Record]:
        async with self.pool.acquire() as conn:
            return await conn.fetch(sql, *values)

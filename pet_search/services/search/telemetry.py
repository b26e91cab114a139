"""
Search telemetry.

Recording is fire-and-forget: record() never raises, so a failed write can't
change a search response. Reads are for reporting only.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence, Tuple

import asyncpg

from pet_search.error_handling import SearchValidationError, TelemetryWriteFailure
from pet_search.models import (
    TelemetryPage,
    TelemetryRecord,
    TelemetrySummary,
    ZeroResultQuery,
)


logger = logging.getLogger(__name__)

PERIOD_DAYS = {"day": 1, "week": 7, "month": 30}
TOP_ZERO_RESULT_QUERIES = 10

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace for aggregation."""
    normalized = _PUNCTUATION.sub("", query.strip().lower())
    return _WHITESPACE.sub(" ", normalized).strip()


def zero_result_rate(zero_results: int, total: int) -> float:
    """Percentage of zero-result queries, rounded to two decimals."""
    if total <= 0:
        return 0.0
    return round(zero_results / total * 100, 2)


def build_record_values(
    query: str,
    result_count: int,
    entity_types: Sequence[str],
    filters: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None
) -> Tuple:
    """Column values for one search_telemetry row, in insert order."""
    return (
        query,
        normalize_query(query),
        result_count,
        result_count > 0,
        result_count == 0,
        list(entity_types),
        filters or {},
        ip_address,
        user_agent,
    )


class TelemetryLogger:
    """Writes and reads search telemetry records."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def record(
        self,
        query: str,
        result_count: int,
        entity_types: Sequence[str],
        filters: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> bool:
        """
        Best-effort write used on the search path.

        Returns:
            True if the record was stored, False if the write failed
        """
        try:
            await self.write(query, result_count, entity_types, filters, ip_address, user_agent)
            return True
        except TelemetryWriteFailure as e:
            logger.warning(f"Dropping telemetry for query '{query}': {e}")
            return False

    async def write(
        self,
        query: str,
        result_count: int,
        entity_types: Sequence[str],
        filters: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> TelemetryRecord:
        try:
            values = build_record_values(query, result_count, entity_types, filters, ip_address, user_agent)
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow("""
                    INSERT INTO search_telemetry (
                        query, normalized_query, result_count, has_results,
                        zero_result_query, entity_types, filters, ip_address, user_agent
                    )
                    VALUES ($1, $2, $3, $4, $5, $6::text[], $7::jsonb, $8, $9)
                    RETURNING *
                """, *values)
            return TelemetryRecord.model_validate(dict(row))
        except Exception as e:
            raise TelemetryWriteFailure(str(e)) from e

    async def list_records(self, limit: int = 50, offset: int = 0, zero_results_only: bool = False) -> TelemetryPage:
        where = "WHERE zero_result_query" if zero_results_only else ""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"""
                SELECT * FROM search_telemetry
                {where}
                ORDER BY created_at DESC, id DESC
                LIMIT $1 OFFSET $2
            """, limit, offset)
            total = await conn.fetchval(f"SELECT COUNT(*) FROM search_telemetry {where}")

        return TelemetryPage(
            records=[TelemetryRecord.model_validate(dict(row)) for row in rows],
            total=total or 0,
            limit=limit,
            offset=offset,
        )

    async def summarize(self, period: str = "week", now: Optional[datetime] = None) -> TelemetrySummary:
        """
        Aggregate telemetry for the last day, week or month.

        Raises:
            SearchValidationError: If period is not day, week or month
        """
        if period not in PERIOD_DAYS:
            raise SearchValidationError.for_field("period", "Must be one of: day, week, month")

        end_date = now or datetime.now(timezone.utc)
        start_date = end_date - timedelta(days=PERIOD_DAYS[period])

        async with self.pool.acquire() as conn:
            totals = await conn.fetchrow("""
                SELECT COUNT(*) AS total_queries,
                       COUNT(DISTINCT normalized_query) AS unique_queries,
                       COUNT(*) FILTER (WHERE zero_result_query) AS zero_result_queries,
                       COALESCE(AVG(result_count), 0) AS average_result_count
                FROM search_telemetry
                WHERE created_at >= $1 AND created_at <= $2
            """, start_date, end_date)
            top_rows = await conn.fetch("""
                SELECT normalized_query AS query, COUNT(*) AS count
                FROM search_telemetry
                WHERE zero_result_query AND created_at >= $1 AND created_at <= $2
                GROUP BY normalized_query
                ORDER BY count DESC, normalized_query
                LIMIT $3
            """, start_date, end_date, TOP_ZERO_RESULT_QUERIES)

        total = totals['total_queries'] or 0
        zero_results = totals['zero_result_queries'] or 0
        return TelemetrySummary(
            period=period,
            start_date=start_date,
            end_date=end_date,
            total_queries=total,
            unique_queries=totals['unique_queries'] or 0,
            zero_result_queries=zero_results,
            zero_result_rate=zero_result_rate(zero_results, total),
            average_result_count=round(float(totals['average_result_count'] or 0), 2),
            top_zero_result_queries=[
                ZeroResultQuery(query=row['query'], count=row['count']) for row in top_rows
            ],
        )

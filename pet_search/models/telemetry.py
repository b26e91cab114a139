"""Search telemetry data models"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import ApiModel


class TelemetryCreate(ApiModel):
    """Telemetry reported for one executed search"""
    query: str = Field(..., min_length=1, max_length=200)
    result_count: int = Field(..., ge=0)
    entity_types: List[str] = []
    filters: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class TelemetryRecord(ApiModel):
    """Stored telemetry record"""
    id: int
    query: str
    normalized_query: str
    result_count: int
    has_results: bool
    zero_result_query: bool
    entity_types: List[str] = []
    filters: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class TelemetryPage(ApiModel):
    """Paged telemetry listing"""
    records: List[TelemetryRecord]
    total: int
    limit: int
    offset: int


class ZeroResultQuery(ApiModel):
    query: str
    count: int


class TelemetrySummary(ApiModel):
    """Aggregated search analytics for a period"""
    period: str
    start_date: datetime
    end_date: datetime
    total_queries: int
    unique_queries: int
    zero_result_queries: int
    zero_result_rate: float
    average_result_count: float
    top_zero_result_queries: List[ZeroResultQuery] = []

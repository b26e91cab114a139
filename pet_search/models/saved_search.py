"""Saved search data models"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, ValidationInfo, field_validator

from .base import ApiModel
from .search import EntityType, GeoPoint, SearchFilters, SearchHit


class SavedSearchBase(ApiModel):
    """Fields shared by saved search payloads"""
    name: Optional[str] = Field(None, max_length=100)
    query: str = Field(..., min_length=1, max_length=200)
    entity_types: List[EntityType] = []
    filters: SearchFilters = SearchFilters()
    geo: Optional[GeoPoint] = None
    alert_enabled: bool = True


class SavedSearchCreate(SavedSearchBase):
    """Model for creating a saved search"""
    user_id: Optional[str] = None


class SavedSearchUpdate(ApiModel):
    """Partial update; only provided fields change"""
    name: Optional[str] = Field(None, max_length=100)
    query: Optional[str] = Field(None, min_length=1, max_length=200)
    entity_types: Optional[List[EntityType]] = None
    filters: Optional[SearchFilters] = None
    geo: Optional[GeoPoint] = None
    alert_enabled: Optional[bool] = None

    @field_validator("query", "alert_enabled")
    @classmethod
    def _reject_null(cls, value, info: ValidationInfo):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class SavedSearch(SavedSearchBase):
    """Complete saved search record"""
    id: int
    user_id: Optional[str] = None
    last_checked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class SearchAlert(ApiModel):
    """One previously-unseen match surfaced by a saved search check"""
    id: Optional[int] = None
    saved_search_id: int
    entity_type: EntityType
    entity_id: str
    created_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return f"{self.entity_type.value}:{self.entity_id}"


class SavedSearchCheckResult(ApiModel):
    """Outcome of re-running a saved search"""
    success: bool = True
    new_results_count: int
    new_results: List[SearchHit]
    alerts: Optional[List[SearchAlert]] = None
    checked_at: datetime

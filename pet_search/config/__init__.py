"""Configuration module for the pet search service."""

from .search_config import (
    SearchSettings,
    DatabaseConfig,
    StrategyConfig,
    GeoConfig,
    SavedSearchConfig,
    CatalogConfig,
    load_search_config,
    get_search_settings,
)

__all__ = [
    'SearchSettings',
    'DatabaseConfig',
    'StrategyConfig',
    'GeoConfig',
    'SavedSearchConfig',
    'CatalogConfig',
    'load_search_config',
    'get_search_settings',
]

"""Configuration module for marketplace search."""

from .search_config import (
    SEARCH_CONFIG,
    SearchSettings,
    PaginationConfig,
    FacetConfig,
    AutocompleteConfig,
    GeoConfig,
    get_search_settings,
)

__all__ = [
    'SEARCH_CONFIG',
    'SearchSettings',
    'PaginationConfig',
    'FacetConfig',
    'AutocompleteConfig',
    'GeoConfig',
    'get_search_settings',
]

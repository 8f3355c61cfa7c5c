"""Search configuration settings for marketplace search."""

from dataclasses import dataclass
from typing import Optional, Tuple
import os

from marketsearch.error_handling.error_handler import RetryConfig


DEFAULT_POPULAR_TERMS = (
    "charging case",
    "left earbud",
    "right earbud",
    "replacement",
    "new",
    "sealed",
    "like new",
    "wireless",
    "bluetooth",
)


@dataclass
class PaginationConfig:
    """Page size configuration."""
    default_limit: int = 20
    max_limit: int = 100


@dataclass
class FacetConfig:
    """Top-N truncation for facet lists."""
    brand_limit: int = 20
    model_limit: int = 20
    city_limit: int = 20
    aggregation_brand_limit: int = 50
    aggregation_model_limit: int = 50
    aggregation_location_limit: int = 30


@dataclass
class AutocompleteConfig:
    """Autocomplete candidate and merge limits."""
    min_query_length: int = 2
    per_source_limit: int = 5
    max_suggestions: int = 10
    keyword_suggestion_limit: int = 8
    popular_terms: Tuple[str, ...] = DEFAULT_POPULAR_TERMS


@dataclass
class GeoConfig:
    """External geocoding source and city cache configuration."""
    geodb_base_url: str = "https://wft-geo-db.p.rapidapi.com"
    geodb_api_key: Optional[str] = None
    geodb_timeout_seconds: float = 10.0
    geodb_min_population: int = 10000
    city_autocomplete_limit: int = 10
    cache_ttl_seconds: int = 3600
    min_request_interval_seconds: float = 0.1
    max_requests_per_hour: int = 1000


@dataclass
class SearchSettings:
    """Main search configuration settings."""
    request_timeout_seconds: float = 10.0
    pagination: PaginationConfig = None
    facets: FacetConfig = None
    autocomplete: AutocompleteConfig = None
    geo: GeoConfig = None
    retry: RetryConfig = None

    def __post_init__(self):
        """Initialize nested configs if not provided."""
        if self.pagination is None:
            self.pagination = PaginationConfig()
        if self.facets is None:
            self.facets = FacetConfig()
        if self.autocomplete is None:
            self.autocomplete = AutocompleteConfig()
        if self.geo is None:
            self.geo = GeoConfig()
        if self.retry is None:
            self.retry = RetryConfig()


# Default search configuration
SEARCH_CONFIG = {
    "request_timeout_seconds": float(os.getenv("SEARCH_REQUEST_TIMEOUT_SECONDS", "10")),
    "pagination": {
        "default_limit": int(os.getenv("SEARCH_DEFAULT_LIMIT", "20")),
        "max_limit": int(os.getenv("SEARCH_MAX_LIMIT", "100")),
    },
    "facets": {
        "brand_limit": int(os.getenv("FACET_BRAND_LIMIT", "20")),
        "model_limit": int(os.getenv("FACET_MODEL_LIMIT", "20")),
        "city_limit": int(os.getenv("FACET_CITY_LIMIT", "20")),
        "aggregation_brand_limit": int(os.getenv("AGGREGATION_BRAND_LIMIT", "50")),
        "aggregation_model_limit": int(os.getenv("AGGREGATION_MODEL_LIMIT", "50")),
        "aggregation_location_limit": int(os.getenv("AGGREGATION_LOCATION_LIMIT", "30")),
    },
    "autocomplete": {
        "min_query_length": int(os.getenv("AUTOCOMPLETE_MIN_QUERY_LENGTH", "2")),
        "per_source_limit": int(os.getenv("AUTOCOMPLETE_PER_SOURCE_LIMIT", "5")),
        "max_suggestions": int(os.getenv("AUTOCOMPLETE_MAX_SUGGESTIONS", "10")),
        "keyword_suggestion_limit": int(os.getenv("KEYWORD_SUGGESTION_LIMIT", "8")),
    },
    "geo": {
        "geodb_base_url": os.getenv("GEODB_BASE_URL", "https://wft-geo-db.p.rapidapi.com"),
        "geodb_api_key": os.getenv("GEODB_API_KEY"),
        "geodb_timeout_seconds": float(os.getenv("GEODB_TIMEOUT_SECONDS", "10")),
        "geodb_min_population": int(os.getenv("GEODB_MIN_POPULATION", "10000")),
        "city_autocomplete_limit": int(os.getenv("CITY_AUTOCOMPLETE_LIMIT", "10")),
        "cache_ttl_seconds": int(os.getenv("GEODB_CACHE_TTL_SECONDS", "3600")),
        "min_request_interval_seconds": float(os.getenv("GEODB_MIN_REQUEST_INTERVAL", "0.1")),
        "max_requests_per_hour": int(os.getenv("GEODB_MAX_REQUESTS_PER_HOUR", "1000")),
    },
    "retry": {
        "max_retries": int(os.getenv("GEODB_MAX_RETRIES", "3")),
        "initial_timeout_ms": int(os.getenv("GEODB_INITIAL_TIMEOUT_MS", "5000")),
        "timeout_multiplier": float(os.getenv("GEODB_TIMEOUT_MULTIPLIER", "1.5")),
        "backoff_base_seconds": float(os.getenv("GEODB_BACKOFF_BASE_SECONDS", "0.2")),
    },
}


def get_search_settings() -> SearchSettings:
    """Get search settings from configuration."""
    return SearchSettings(
        request_timeout_seconds=SEARCH_CONFIG["request_timeout_seconds"],
        pagination=PaginationConfig(**SEARCH_CONFIG["pagination"]),
        facets=FacetConfig(**SEARCH_CONFIG["facets"]),
        autocomplete=AutocompleteConfig(**SEARCH_CONFIG["autocomplete"]),
        geo=GeoConfig(**SEARCH_CONFIG["geo"]),
        retry=RetryConfig(**SEARCH_CONFIG["retry"]),
    )

"""Request and response models for the search API"""

from .listing import BrandSummary, CitySummary, ListingResponse, ModelSummary
from .search import (
    AdvancedSearchBody,
    AdvancedSearchResponse,
    AutocompleteResponse,
    CityAutocompleteResponse,
    FacetsResponse,
    FilterOptionsResponse,
    GeoSearchBody,
    ListingSearchResponse,
    SuggestionsResponse,
)

__all__ = [
    "BrandSummary",
    "CitySummary",
    "ListingResponse",
    "ModelSummary",
    "AdvancedSearchBody",
    "AdvancedSearchResponse",
    "AutocompleteResponse",
    "CityAutocompleteResponse",
    "FacetsResponse",
    "FilterOptionsResponse",
    "GeoSearchBody",
    "ListingSearchResponse",
    "SuggestionsResponse",
]

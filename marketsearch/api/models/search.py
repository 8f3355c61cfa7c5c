"""Search request and response models"""

from typing import Dict, List, Optional

from pydantic import Field

from marketsearch.models import (
    AdvancedSearchResult,
    AutocompleteResult,
    AutocompleteSuggestion,
    BasicSearchResult,
    FacetCounts,
    FacetValue,
    FilterOptions,
    Pagination,
    PriceBucketCount,
    PriceStatistics,
    SearchAggregations,
)
from .listing import BrandSummary, CamelModel, CitySummary, ListingResponse


class AdvancedSearchBody(CamelModel):
    """Body of POST /search/advanced"""
    query: Optional[str] = None
    exact_match: bool = False
    search_fields: List[str] = Field(default_factory=list)
    brand_ids: List[str] = Field(default_factory=list)
    model_ids: List[str] = Field(default_factory=list)
    conditions: List[str] = Field(default_factory=list)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    currencies: List[str] = Field(default_factory=list)
    city_ids: List[str] = Field(default_factory=list)
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: Optional[float] = None
    type: Optional[str] = None
    verified_only: bool = False
    has_images: bool = False
    published_after: Optional[str] = None
    published_before: Optional[str] = None
    sort_by: Optional[str] = None
    page: int = 1
    limit: int = 20


class GeoSearchBody(CamelModel):
    """Body of POST /search/advanced/geo"""
    lat: float
    lng: float
    radius_km: float
    query: Optional[str] = None
    brand_ids: List[str] = Field(default_factory=list)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    verified_only: bool = False
    sort_by: Optional[str] = None
    page: int = 1
    limit: int = 20


class NamedFacet(CamelModel):
    """Facet entry for an id-valued dimension (brand, model, city)"""
    id: str
    name: str
    count: int
    logo: Optional[str] = None
    brand_id: Optional[str] = None
    country_code: Optional[str] = None
    display_name: Optional[str] = None

    @classmethod
    def from_domain(cls, value: FacetValue) -> 'NamedFacet':
        return cls(id=value.value, name=value.label, count=value.count, **dict(value.extra))


class ValueFacet(CamelModel):
    """Facet entry for an enum-valued dimension (condition, currency)"""
    value: str
    label: str
    count: int

    @classmethod
    def from_domain(cls, value: FacetValue) -> 'ValueFacet':
        return cls(value=value.value, label=value.label, count=value.count)


class PriceRangeFacet(CamelModel):
    label: str
    min: float
    max: Optional[float] = None
    count: int

    @classmethod
    def from_domain(cls, bucket: PriceBucketCount) -> 'PriceRangeFacet':
        return cls(
            label=bucket.label,
            min=float(bucket.minimum),
            max=float(bucket.maximum) if bucket.maximum is not None else None,
            count=bucket.count,
        )


class FacetsResponse(CamelModel):
    brands: List[NamedFacet]
    models: List[NamedFacet]
    conditions: List[ValueFacet]
    cities: List[NamedFacet]
    currencies: List[ValueFacet]
    price_ranges: List[PriceRangeFacet]

    @classmethod
    def from_domain(cls, facets: FacetCounts) -> 'FacetsResponse':
        return cls(
            brands=[NamedFacet.from_domain(v) for v in facets.brands],
            models=[NamedFacet.from_domain(v) for v in facets.models],
            conditions=[ValueFacet.from_domain(v) for v in facets.conditions],
            cities=[NamedFacet.from_domain(v) for v in facets.cities],
            currencies=[ValueFacet.from_domain(v) for v in facets.currencies],
            price_ranges=[PriceRangeFacet.from_domain(b) for b in facets.price_ranges],
        )


class PaginationResponse(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
    has_more: bool
    has_previous: bool

    @classmethod
    def from_domain(cls, pagination: Pagination) -> 'PaginationResponse':
        return cls(
            page=pagination.page,
            limit=pagination.limit,
            total=pagination.total,
            pages=pagination.total_pages,
            has_more=pagination.has_more,
            has_previous=pagination.has_previous,
        )


class ListingSearchResponse(CamelModel):
    """Response of GET /search/listings"""
    listings: List[ListingResponse]
    facets: FacetsResponse
    pagination: PaginationResponse
    suggestions: Optional[List[str]] = None

    @classmethod
    def from_domain(cls, result: BasicSearchResult) -> 'ListingSearchResponse':
        return cls(
            listings=[ListingResponse.from_hit(hit) for hit in result.page.hits],
            facets=FacetsResponse.from_domain(result.facets),
            pagination=PaginationResponse.from_domain(result.page.pagination),
            suggestions=result.suggestions,
        )


class PriceStatisticsResponse(CamelModel):
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    count: int = 0

    @classmethod
    def from_domain(cls, stats: PriceStatistics) -> 'PriceStatisticsResponse':
        def as_float(value):
            return float(value) if value is not None else None
        return cls(
            min=as_float(stats.minimum),
            max=as_float(stats.maximum),
            avg=as_float(stats.average),
            count=stats.count,
        )


class AggregationsResponse(CamelModel):
    brands: List[NamedFacet]
    models: List[NamedFacet]
    conditions: List[ValueFacet]
    locations: List[NamedFacet]
    price_range: PriceStatisticsResponse
    total_listings: int

    @classmethod
    def from_domain(cls, aggregations: SearchAggregations) -> 'AggregationsResponse':
        return cls(
            brands=[NamedFacet.from_domain(v) for v in aggregations.brands],
            models=[NamedFacet.from_domain(v) for v in aggregations.models],
            conditions=[ValueFacet.from_domain(v) for v in aggregations.conditions],
            locations=[NamedFacet.from_domain(v) for v in aggregations.locations],
            price_range=PriceStatisticsResponse.from_domain(aggregations.price_range),
            total_listings=aggregations.total_listings,
        )


class AdvancedSearchResponse(CamelModel):
    """Response of the advanced and geo search endpoints"""
    search_id: str
    listings: List[ListingResponse]
    total: int
    page: int
    total_pages: int
    has_more: bool
    pagination: PaginationResponse
    aggregations: AggregationsResponse
    search_duration: int
    applied_filters: int

    @classmethod
    def from_domain(cls, result: AdvancedSearchResult) -> 'AdvancedSearchResponse':
        pagination = result.page.pagination
        return cls(
            search_id=result.search_id,
            listings=[ListingResponse.from_hit(hit) for hit in result.page.hits],
            total=pagination.total,
            page=pagination.page,
            total_pages=pagination.total_pages,
            has_more=pagination.has_more,
            pagination=PaginationResponse.from_domain(pagination),
            aggregations=AggregationsResponse.from_domain(result.aggregations),
            search_duration=result.search_duration_ms,
            applied_filters=result.applied_filters,
        )


class SuggestionResponse(CamelModel):
    text: str
    type: str
    score: float
    id: Optional[str] = None
    icon: Optional[str] = None

    @classmethod
    def from_domain(cls, suggestion: AutocompleteSuggestion) -> 'SuggestionResponse':
        return cls(
            text=suggestion.text,
            type=suggestion.type.value,
            score=suggestion.score,
            id=suggestion.id,
            icon=suggestion.icon,
        )


class AutocompleteResponse(CamelModel):
    suggestions: List[SuggestionResponse]
    categories: Dict[str, List[SuggestionResponse]]

    @classmethod
    def from_domain(cls, result: AutocompleteResult) -> 'AutocompleteResponse':
        return cls(
            suggestions=[SuggestionResponse.from_domain(s) for s in result.suggestions],
            categories={
                kind: [SuggestionResponse.from_domain(s) for s in items]
                for kind, items in result.categories.items()
            },
        )


class CityAutocompleteResponse(CamelModel):
    cities: List[CitySummary]


class SuggestionsResponse(CamelModel):
    suggestions: Optional[List[str]] = None
    popular: Optional[List[str]] = None
    trending: Optional[List[str]] = None


class OptionResponse(CamelModel):
    value: str
    label: str


class FilterOptionsResponse(CamelModel):
    brands: List[BrandSummary]
    conditions: List[OptionResponse]
    types: List[OptionResponse]
    currencies: List[OptionResponse]
    popular_cities: List[CitySummary]

    @classmethod
    def from_domain(cls, options: FilterOptions) -> 'FilterOptionsResponse':
        def as_options(pairs):
            return [OptionResponse(value=value, label=label) for value, label in pairs]
        return cls(
            brands=[BrandSummary.from_domain(b) for b in options.brands],
            conditions=as_options(options.conditions),
            types=as_options(options.types),
            currencies=as_options(options.currencies),
            popular_cities=[CitySummary.from_domain(c) for c in options.popular_cities],
        )

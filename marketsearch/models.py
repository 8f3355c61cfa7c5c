"""
Data models for marketplace search.

This module defines the core data structures the search core reasons about.
Catalogue entities (listings, brands, models, cities) are read-only projections
of rows owned by the storage layer; request and result types are built fresh
for every search.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


UNKNOWN_LABEL = "Unknown"


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp. Values without an offset are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Condition(str, Enum):
    """Physical condition of a listed item"""
    NEW = "NEW"
    LIKE_NEW = "LIKE_NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class ListingType(str, Enum):
    """Whether a listing offers an item or asks for one"""
    LISTING = "LISTING"
    WANTED = "WANTED"


class ListingStatus(str, Enum):
    """Moderation status of a listing"""
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"
    DELETED = "DELETED"


class SortKey(str, Enum):
    """Result orderings accepted by the search endpoints"""
    RELEVANCE = "relevance"
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    DATE_ASC = "date_asc"
    DATE_DESC = "date_desc"
    POPULARITY = "popularity"
    DISTANCE = "distance"


class TextField(str, Enum):
    """Fields a text query can be matched against"""
    TITLE = "title"
    DESCRIPTION = "description"
    BRAND = "brand"
    MODEL = "model"


class SuggestionType(str, Enum):
    """Candidate source an autocomplete suggestion came from"""
    BRAND = "brand"
    MODEL = "model"
    PRODUCT = "product"
    LOCATION = "location"
    TERM = "term"


@dataclass
class Brand:
    """A product brand (e.g. Apple, Samsung)."""
    id: str
    name: str
    slug: Optional[str] = None
    logo: Optional[str] = None


@dataclass
class ProductModel:
    """A product model belonging to a brand (e.g. AirPods Pro)."""
    id: str
    name: str
    brand_id: str
    slug: Optional[str] = None
    image: Optional[str] = None


@dataclass
class City:
    """A city used as the unit of geographic filtering.

    Attributes:
        id: Local identifier
        name: City name
        country_code: ISO 3166 alpha-2 country code
        latitude: Latitude in degrees
        longitude: Longitude in degrees
        population: Population, used to rank autocomplete results
        country: Country name
        region: Region / state name
        region_code: Region / state code
        geodb_id: Identifier in the external geocoding source, if cached from it
        display_name: Human readable name ("Austin, TX, USA")
        search_text: Lower-cased text matched by city autocomplete
    """
    id: str
    name: str
    country_code: str
    latitude: float
    longitude: float
    population: int = 0
    country: str = ""
    region: str = ""
    region_code: str = ""
    geodb_id: Optional[int] = None
    display_name: Optional[str] = None
    search_text: Optional[str] = None

    def __post_init__(self):
        if self.search_text is None:
            parts = [self.name, self.region, self.country, self.country_code]
            self.search_text = " ".join(p for p in parts if p).lower()


@dataclass
class Listing:
    """Represents a marketplace listing.

    Only listings with status ACTIVE and a publication time in the past are
    visible to search.
    """
    id: str
    title: str
    price: Decimal
    currency: str
    condition: Condition
    brand_id: Optional[str]
    model_id: Optional[str]
    city_id: Optional[str]
    seller_id: str
    published_at: Optional[datetime]
    description: str = ""
    listing_type: ListingType = ListingType.LISTING
    images: List[str] = field(default_factory=list)
    is_verified: bool = False
    views: int = 0
    status: ListingStatus = ListingStatus.ACTIVE
    created_at: Optional[datetime] = None

    def is_search_visible(self, now: datetime) -> bool:
        return (
            self.status == ListingStatus.ACTIVE
            and self.published_at is not None
            and self.published_at <= now
        )

    def to_dict(self) -> dict:
        """Convert listing to a JSON-friendly dictionary.

        Returns:
            Dictionary with enums as values, datetimes in ISO format and the
            price as a string
        """
        data = asdict(self)
        data['price'] = str(self.price)
        data['condition'] = self.condition.value
        data['listing_type'] = self.listing_type.value
        data['status'] = self.status.value
        for key in ('published_at', 'created_at'):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Listing':
        """Create a Listing from a dictionary produced by ``to_dict``.

        Args:
            data: Dictionary containing listing data

        Returns:
            Listing instance
        """
        data = dict(data)
        data['price'] = Decimal(str(data['price']))
        data['condition'] = Condition(data['condition'])
        data['listing_type'] = ListingType(data.get('listing_type', ListingType.LISTING.value))
        data['status'] = ListingStatus(data.get('status', ListingStatus.ACTIVE.value))
        for key in ('published_at', 'created_at'):
            if isinstance(data.get(key), str):
                data[key] = parse_timestamp(data[key])
        return cls(**data)


@dataclass
class ListingHit:
    """A listing together with its joined catalogue rows."""
    listing: Listing
    brand: Optional[Brand] = None
    model: Optional[ProductModel] = None
    city: Optional[City] = None
    distance_km: Optional[float] = None


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class GeoCircle:
    """A search area: center coordinates plus a radius in kilometres."""
    latitude: float
    longitude: float
    radius_km: float

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


@dataclass(frozen=True)
class FilterRequest:
    """Structured filter request shared by every search entry point.

    Empty collections and ``None`` mean "no constraint" for that dimension.

    Attributes:
        query: Free-text query
        exact_match: Match the query with equality instead of containment
        search_fields: Fields the query is matched against
        brand_ids: Brand inclusion set
        model_ids: Model inclusion set
        conditions: Condition inclusion set
        currencies: Currency inclusion set
        city_ids: City inclusion set
        near_city_id: Center city for a city + radius search
        radius_km: Radius used with ``near_city_id``
        coordinates: Raw coordinates + radius search area
        min_price: Inclusive lower price bound
        max_price: Inclusive upper price bound
        listing_type: LISTING or WANTED
        verified_only: Only verified listings
        has_images: Only listings with at least one image
        published_after: Inclusive lower bound on publication time
        published_before: Inclusive upper bound on publication time
        exclude_seller_id: Viewer whose own listings are excluded
        sort: Requested ordering (``None`` picks the default)
        page: 1-based page number
        limit: Page size
    """
    query: Optional[str] = None
    exact_match: bool = False
    search_fields: Tuple[TextField, ...] = (
        TextField.TITLE, TextField.DESCRIPTION, TextField.BRAND, TextField.MODEL,
    )
    brand_ids: Tuple[str, ...] = ()
    model_ids: Tuple[str, ...] = ()
    conditions: Tuple[Condition, ...] = ()
    currencies: Tuple[str, ...] = ()
    city_ids: Tuple[str, ...] = ()
    near_city_id: Optional[str] = None
    radius_km: Optional[float] = None
    coordinates: Optional[GeoCircle] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    listing_type: Optional[ListingType] = None
    verified_only: bool = False
    has_images: bool = False
    published_after: Optional[datetime] = None
    published_before: Optional[datetime] = None
    exclude_seller_id: Optional[str] = None
    sort: Optional[SortKey] = None
    page: int = 1
    limit: int = 20

    @property
    def has_price_range(self) -> bool:
        return self.min_price is not None or self.max_price is not None

    def applied_filter_count(self) -> int:
        """Count how many filter fields are present on this request."""
        present = [
            bool(self.query),
            bool(self.brand_ids),
            bool(self.model_ids),
            bool(self.conditions),
            bool(self.currencies),
            bool(self.city_ids) or self.near_city_id is not None,
            self.coordinates is not None,
            self.has_price_range,
            self.listing_type is not None,
            self.verified_only,
            self.has_images,
            self.published_after is not None or self.published_before is not None,
        ]
        return sum(1 for p in present if p)


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit)

    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total

    @property
    def has_previous(self) -> bool:
        return self.page > 1


@dataclass
class SearchResultPage:
    """One page of ranked results plus its pagination metadata."""
    hits: List[ListingHit]
    pagination: Pagination


@dataclass
class FacetValue:
    """One (value, display name, count) entry of a facet list.

    ``extra`` carries dimension-specific display data such as a brand logo,
    the owning brand of a model or a city's country code.
    """
    value: str
    label: str
    count: int
    extra: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class PriceBucketCount:
    label: str
    minimum: Decimal
    maximum: Optional[Decimal]
    count: int


@dataclass
class PriceStatistics:
    minimum: Optional[Decimal] = None
    maximum: Optional[Decimal] = None
    average: Optional[Decimal] = None
    count: int = 0


@dataclass
class FacetCounts:
    """Per-dimension value counts, each computed with its own filter removed."""
    brands: List[FacetValue] = field(default_factory=list)
    models: List[FacetValue] = field(default_factory=list)
    conditions: List[FacetValue] = field(default_factory=list)
    cities: List[FacetValue] = field(default_factory=list)
    currencies: List[FacetValue] = field(default_factory=list)
    price_ranges: List[PriceBucketCount] = field(default_factory=list)


@dataclass
class SearchAggregations:
    """Aggregations returned by advanced search."""
    brands: List[FacetValue] = field(default_factory=list)
    models: List[FacetValue] = field(default_factory=list)
    conditions: List[FacetValue] = field(default_factory=list)
    locations: List[FacetValue] = field(default_factory=list)
    price_range: PriceStatistics = field(default_factory=PriceStatistics)
    total_listings: int = 0


@dataclass
class AutocompleteSuggestion:
    text: str
    type: SuggestionType
    score: float
    id: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class AutocompleteResult:
    suggestions: List[AutocompleteSuggestion] = field(default_factory=list)
    categories: Dict[str, List[AutocompleteSuggestion]] = field(default_factory=dict)


@dataclass
class BasicSearchResult:
    page: SearchResultPage
    facets: FacetCounts
    suggestions: Optional[List[str]] = None


@dataclass
class AdvancedSearchResult:
    search_id: str
    page: SearchResultPage
    aggregations: SearchAggregations
    search_duration_ms: int
    applied_filters: int


@dataclass(frozen=True)
class AutocompleteContext:
    """Filters already selected in the search UI, used to narrow suggestions."""
    brand_ids: Tuple[str, ...] = ()


@dataclass
class SearchSuggestions:
    """Query suggestions, or popular and trending searches when there is no query."""
    suggestions: Optional[List[str]] = None
    popular: Optional[List[str]] = None
    trending: Optional[List[str]] = None


@dataclass
class FilterOptions:
    """Static and catalogue-derived options for the filter panel.

    Option lists hold (value, label) pairs.
    """
    brands: List[Brand] = field(default_factory=list)
    conditions: List[Tuple[str, str]] = field(default_factory=list)
    types: List[Tuple[str, str]] = field(default_factory=list)
    currencies: List[Tuple[str, str]] = field(default_factory=list)
    popular_cities: List[City] = field(default_factory=list)

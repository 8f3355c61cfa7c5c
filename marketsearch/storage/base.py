"""
Storage port for the search core.

The search services only talk to listings, brands, models and cities through
this interface. ``InMemoryListingStore`` backs tests and the CLI;
``PostgresListingStore`` backs the API.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from marketsearch.filtering.predicates import Dimension, ListingPredicate, TextClause
from marketsearch.geo.distance import BoundingBox
from marketsearch.models import (
    Brand,
    City,
    GeoPoint,
    Listing,
    ListingHit,
    PriceStatistics,
    ProductModel,
    TextField,
)


GROUPABLE_FIELDS = ("brand_id", "model_id", "condition", "city_id", "currency")


class OrderField(str, Enum):
    """Listing attributes results can be ordered by"""
    PRICE = "price"
    PUBLISHED_AT = "published_at"
    VIEWS = "views"
    IS_VERIFIED = "is_verified"
    DISTANCE = "distance"
    ID = "id"


@dataclass(frozen=True)
class SortTerm:
    field: OrderField
    descending: bool = False


@dataclass(frozen=True)
class Ordering:
    """Lexicographic ordering over sort terms.

    ``distance_from`` is required when a DISTANCE term is present; listings
    without a located city sort after all located ones.
    """
    terms: Tuple[SortTerm, ...]
    distance_from: Optional[GeoPoint] = None


class ListingStore(ABC):
    """Read access to the catalogue plus the city cache write path."""

    @abstractmethod
    async def count_listings(self, predicate: ListingPredicate) -> int:
        """Number of listings matching ``predicate``."""

    @abstractmethod
    async def find_listings(
        self,
        predicate: ListingPredicate,
        ordering: Ordering,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[ListingHit]:
        """Matching listings joined with their brand, model and city rows.

        Hits carry ``distance_km`` when the ordering has ``distance_from``.
        """

    @abstractmethod
    async def group_listings(
        self,
        predicate: ListingPredicate,
        field: str,
        limit: Optional[int] = None
    ) -> List[Tuple[Optional[str], int]]:
        """Count matching listings per value of ``field``.

        Args:
            predicate: Listings to group
            field: One of GROUPABLE_FIELDS
            limit: Keep only the top ``limit`` groups

        Returns:
            (value, count) pairs by count descending, then value ascending
        """

    @abstractmethod
    async def aggregate_prices(self, predicate: ListingPredicate) -> PriceStatistics:
        """Min, max, average and count of matching listing prices."""

    @abstractmethod
    async def get_brands(self, ids: Iterable[str]) -> Dict[str, Brand]:
        """Batched lookup; unknown ids are absent from the result."""

    @abstractmethod
    async def get_models(self, ids: Iterable[str]) -> Dict[str, ProductModel]:
        """Batched lookup; unknown ids are absent from the result."""

    @abstractmethod
    async def get_cities(self, ids: Iterable[str]) -> Dict[str, City]:
        """Batched lookup; unknown ids are absent from the result."""

    async def get_city(self, city_id: str) -> Optional[City]:
        cities = await self.get_cities([city_id])
        return cities.get(city_id)

    @abstractmethod
    async def search_brands(self, query: Optional[str] = None, limit: Optional[int] = None) -> List[Brand]:
        """Brands whose name contains ``query`` (case-insensitive), by name."""

    @abstractmethod
    async def search_models(
        self,
        query: Optional[str] = None,
        brand_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None
    ) -> List[ProductModel]:
        """Models whose name contains ``query``, optionally within ``brand_ids``, by name."""

    @abstractmethod
    async def find_cities_in_box(self, box: BoundingBox) -> List[City]:
        """Cities whose coordinates fall inside ``box``."""

    @abstractmethod
    async def search_cities(self, query: str, limit: int) -> List[City]:
        """Cities whose search text contains ``query``, most populous first, then by name."""

    @abstractmethod
    async def popular_cities(self, limit: int, country_code: Optional[str] = None) -> List[City]:
        """Most populous cities, optionally within one country."""

    @abstractmethod
    async def upsert_city(self, city: City) -> City:
        """Insert or update a city keyed by ``geodb_id``; returns the stored row."""

    async def search_listing_titles(self, query: str, now: datetime, limit: int) -> List[Listing]:
        """Search-visible listings whose title contains ``query``, most viewed first."""
        predicate = ListingPredicate(
            now=now,
            clauses=((Dimension.TEXT, TextClause(query=query, fields=(TextField.TITLE,))),),
        )
        ordering = Ordering(terms=(SortTerm(OrderField.VIEWS, descending=True), SortTerm(OrderField.ID)))
        hits = await self.find_listings(predicate, ordering, 0, limit)
        return [hit.listing for hit in hits]

    async def top_brands(self, now: datetime, limit: int) -> List[Tuple[Brand, int]]:
        """Brands with the most search-visible listings."""
        groups = await self.group_listings(ListingPredicate(now=now), "brand_id", limit + 1)
        groups = [(value, count) for value, count in groups if value is not None][:limit]
        brands = await self.get_brands([value for value, _ in groups])
        return [(brands[value], count) for value, count in groups if value in brands]

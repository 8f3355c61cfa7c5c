"""
In-memory ListingStore.

Evaluates predicates with ListingFilter over plain dictionaries. Used by the
test suite and by the CLI when searching a JSON fixture.
"""

import functools
import json
import logging
from collections import Counter
from dataclasses import replace
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from marketsearch.filtering.listing_filter import ListingFilter
from marketsearch.filtering.predicates import ListingPredicate
from marketsearch.geo.distance import BoundingBox, haversine_km
from marketsearch.models import (
    Brand,
    City,
    Listing,
    ListingHit,
    PriceStatistics,
    ProductModel,
)
from .base import GROUPABLE_FIELDS, ListingStore, OrderField, Ordering


logger = logging.getLogger(__name__)


class InMemoryListingStore(ListingStore):
    """ListingStore over in-process collections."""

    def __init__(
        self,
        listings: Iterable[Listing] = (),
        brands: Iterable[Brand] = (),
        models: Iterable[ProductModel] = (),
        cities: Iterable[City] = ()
    ):
        self.listings: Dict[str, Listing] = {l.id: l for l in listings}
        self.brands: Dict[str, Brand] = {b.id: b for b in brands}
        self.models: Dict[str, ProductModel] = {m.id: m for m in models}
        self.cities: Dict[str, City] = {c.id: c for c in cities}
        self._filter = ListingFilter(self.brands, self.models, self.cities)

    @classmethod
    def from_json_file(cls, path) -> 'InMemoryListingStore':
        """
        Load a catalogue fixture.

        The file holds a JSON object with ``brands``, ``models``, ``cities``
        and ``listings`` arrays; listings use the ``Listing.to_dict`` layout.
        """
        with open(Path(path), 'r') as f:
            data = json.load(f)

        store = cls(
            listings=[Listing.from_dict(item) for item in data.get('listings', [])],
            brands=[Brand(**item) for item in data.get('brands', [])],
            models=[ProductModel(**item) for item in data.get('models', [])],
            cities=[City(**item) for item in data.get('cities', [])],
        )
        logger.info(
            f"Loaded {len(store.listings)} listings, {len(store.brands)} brands, "
            f"{len(store.models)} models and {len(store.cities)} cities from {path}"
        )
        return store

    def _matching(self, predicate: ListingPredicate) -> List[Listing]:
        return self._filter.filter(self.listings.values(), predicate)

    async def count_listings(self, predicate: ListingPredicate) -> int:
        return len(self._matching(predicate))

    async def find_listings(
        self,
        predicate: ListingPredicate,
        ordering: Ordering,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[ListingHit]:
        hits = [self._hit(listing, ordering) for listing in self._matching(predicate)]
        hits.sort(key=functools.cmp_to_key(lambda a, b: _compare_hits(a, b, ordering)))
        end = None if limit is None else skip + limit
        return hits[skip:end]

    def _hit(self, listing: Listing, ordering: Ordering) -> ListingHit:
        city = self.cities.get(listing.city_id) if listing.city_id else None
        distance = None
        if ordering.distance_from is not None and city is not None:
            center = ordering.distance_from
            distance = haversine_km(center.latitude, center.longitude, city.latitude, city.longitude)
        return ListingHit(
            listing=listing,
            brand=self.brands.get(listing.brand_id) if listing.brand_id else None,
            model=self.models.get(listing.model_id) if listing.model_id else None,
            city=city,
            distance_km=distance,
        )

    async def group_listings(
        self,
        predicate: ListingPredicate,
        field: str,
        limit: Optional[int] = None
    ) -> List[Tuple[Optional[str], int]]:
        if field not in GROUPABLE_FIELDS:
            raise ValueError(f"Cannot group listings by {field}")

        counts = Counter(_plain(getattr(listing, field)) for listing in self._matching(predicate))
        groups = sorted(counts.items(), key=lambda item: (-item[1], item[0] is None, item[0] or ""))
        return groups if limit is None else groups[:limit]

    async def aggregate_prices(self, predicate: ListingPredicate) -> PriceStatistics:
        prices = [listing.price for listing in self._matching(predicate)]
        if not prices:
            return PriceStatistics()
        average = (sum(prices, Decimal(0)) / len(prices)).quantize(Decimal("0.01"))
        return PriceStatistics(minimum=min(prices), maximum=max(prices), average=average, count=len(prices))

    async def get_brands(self, ids: Iterable[str]) -> Dict[str, Brand]:
        return {i: self.brands[i] for i in ids if i in self.brands}

    async def get_models(self, ids: Iterable[str]) -> Dict[str, ProductModel]:
        return {i: self.models[i] for i in ids if i in self.models}

    async def get_cities(self, ids: Iterable[str]) -> Dict[str, City]:
        return {i: self.cities[i] for i in ids if i in self.cities}

    async def search_brands(self, query: Optional[str] = None, limit: Optional[int] = None) -> List[Brand]:
        brands = [b for b in self.brands.values() if _contains(b.name, query)]
        brands.sort(key=lambda b: (b.name, b.id))
        return brands if limit is None else brands[:limit]

    async def search_models(
        self,
        query: Optional[str] = None,
        brand_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None
    ) -> List[ProductModel]:
        allowed = set(brand_ids) if brand_ids else None
        models = [
            m for m in self.models.values()
            if _contains(m.name, query) and (allowed is None or m.brand_id in allowed)
        ]
        models.sort(key=lambda m: (m.name, m.id))
        return models if limit is None else models[:limit]

    async def find_cities_in_box(self, box: BoundingBox) -> List[City]:
        return [c for c in self.cities.values() if box.contains(c.latitude, c.longitude)]

    async def search_cities(self, query: str, limit: int) -> List[City]:
        needle = query.lower()
        cities = [c for c in self.cities.values() if needle in (c.search_text or "")]
        cities.sort(key=lambda c: (-c.population, c.name))
        return cities[:limit]

    async def popular_cities(self, limit: int, country_code: Optional[str] = None) -> List[City]:
        cities = [
            c for c in self.cities.values()
            if country_code is None or c.country_code == country_code
        ]
        cities.sort(key=lambda c: (-c.population, c.name))
        return cities[:limit]

    async def upsert_city(self, city: City) -> City:
        existing = next(
            (c for c in self.cities.values() if city.geodb_id is not None and c.geodb_id == city.geodb_id),
            None,
        )
        if existing is not None:
            city = replace(city, id=existing.id)
        self.cities[city.id] = city
        return city


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _contains(text: str, query: Optional[str]) -> bool:
    return not query or query.lower() in text.lower()


def _sort_value(hit: ListingHit, field: OrderField) -> Any:
    if field == OrderField.DISTANCE:
        return hit.distance_km
    if field == OrderField.IS_VERIFIED:
        return bool(hit.listing.is_verified)
    return getattr(hit.listing, field.value)


def _compare_hits(a: ListingHit, b: ListingHit, ordering: Ordering) -> int:
    for term in ordering.terms:
        va, vb = _sort_value(a, term.field), _sort_value(b, term.field)
        if va == vb:
            continue
        # missing values sort last in either direction
        if va is None:
            return 1
        if vb is None:
            return -1
        result = -1 if va < vb else 1
        return -result if term.descending else result
    return 0

"""
In-process listing filter.

This module evaluates ListingPredicates against listing objects held in memory.
It backs the in-memory store and is the reference semantics the SQL compiler
in ``marketsearch.storage.sql`` has to agree with.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Mapping, Optional

from marketsearch.geo.distance import haversine_km
from marketsearch.models import Brand, City, Listing, ProductModel, TextField
from .predicates import (
    Clause,
    ExclusionClause,
    FlagClause,
    GeoRadiusClause,
    ListingPredicate,
    MembershipClause,
    NonEmptyClause,
    RangeClause,
    TextClause,
)


class ListingFilter:
    """Filters marketplace listings with a ListingPredicate.

    Brand, model and city rows are looked up by id, so text clauses can match
    brand and model names and radius clauses can use the city's coordinates.
    Listings that reference a missing row simply fail those clauses.
    """

    def __init__(
        self,
        brands: Optional[Mapping[str, Brand]] = None,
        models: Optional[Mapping[str, ProductModel]] = None,
        cities: Optional[Mapping[str, City]] = None
    ):
        self.brands = brands if brands is not None else {}
        self.models = models if models is not None else {}
        self.cities = cities if cities is not None else {}

    def filter(self, listings: Iterable[Listing], predicate: ListingPredicate) -> List[Listing]:
        """Filter listings by every clause of the predicate.

        Args:
            listings: Listings to filter
            predicate: Predicate to apply

        Returns:
            Listings that are search-visible and satisfy all clauses, in input order
        """
        return [listing for listing in listings if self.matches(listing, predicate)]

    def matches(self, listing: Listing, predicate: ListingPredicate) -> bool:
        if not listing.is_search_visible(predicate.now):
            return False
        return all(self._matches_clause(listing, clause) for _, clause in predicate)

    def _matches_clause(self, listing: Listing, clause: Clause) -> bool:
        if isinstance(clause, TextClause):
            return self._matches_text(listing, clause)
        if isinstance(clause, MembershipClause):
            return _plain(getattr(listing, clause.field)) in clause.values
        if isinstance(clause, RangeClause):
            return self._matches_range(getattr(listing, clause.field), clause)
        if isinstance(clause, FlagClause):
            return bool(getattr(listing, clause.field)) == clause.value
        if isinstance(clause, NonEmptyClause):
            return bool(getattr(listing, clause.field))
        if isinstance(clause, ExclusionClause):
            return getattr(listing, clause.field) != clause.value
        if isinstance(clause, GeoRadiusClause):
            return self._matches_radius(listing, clause)
        raise TypeError(f"Unsupported clause type: {type(clause).__name__}")

    def _matches_text(self, listing: Listing, clause: TextClause) -> bool:
        needle = clause.query.lower()
        for text_field in clause.fields:
            haystack = self._field_text(listing, text_field)
            if haystack is None:
                continue
            haystack = haystack.lower()
            if clause.exact:
                if haystack == needle:
                    return True
            elif needle in haystack:
                return True

        title = listing.title.lower()
        description = (listing.description or "").lower()
        for token in clause.tokens:
            token = token.lower()
            if token in title or token in description:
                return True
        return False

    def _field_text(self, listing: Listing, text_field: TextField) -> Optional[str]:
        if text_field == TextField.TITLE:
            return listing.title
        if text_field == TextField.DESCRIPTION:
            return listing.description
        if text_field == TextField.BRAND:
            brand = self.brands.get(listing.brand_id) if listing.brand_id else None
            return brand.name if brand else None
        model = self.models.get(listing.model_id) if listing.model_id else None
        return model.name if model else None

    @staticmethod
    def _matches_range(value: Any, clause: RangeClause) -> bool:
        if value is None:
            return False
        if isinstance(value, Decimal):
            minimum = None if clause.minimum is None else Decimal(str(clause.minimum))
            maximum = None if clause.maximum is None else Decimal(str(clause.maximum))
        else:
            minimum, maximum = clause.minimum, clause.maximum

        if minimum is not None and value < minimum:
            return False
        if maximum is not None:
            if clause.include_maximum and value > maximum:
                return False
            if not clause.include_maximum and value >= maximum:
                return False
        return True

    def _matches_radius(self, listing: Listing, clause: GeoRadiusClause) -> bool:
        city = self.cities.get(listing.city_id) if listing.city_id else None
        if city is None:
            return False
        circle = clause.circle
        distance = haversine_km(circle.latitude, circle.longitude, city.latitude, city.longitude)
        return distance <= circle.radius_km


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value

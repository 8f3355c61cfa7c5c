"""
Facet aggregation.

Each facet dimension is counted against the request's predicate with that
dimension's own clause removed, so the counts describe what the user would get
by changing only that filter. All dimensions are computed concurrently.
"""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, List, Optional

from marketsearch.config.search_config import FacetConfig
from marketsearch.filtering.predicate_builder import FilterPredicateBuilder
from marketsearch.filtering.predicates import Dimension, ListingPredicate, RangeClause
from marketsearch.models import (
    Condition,
    FacetCounts,
    FacetValue,
    FilterRequest,
    PriceBucketCount,
    SearchAggregations,
    UNKNOWN_LABEL,
)


logger = logging.getLogger(__name__)


# (label, inclusive minimum, exclusive maximum)
PRICE_BUCKETS = (
    ("$0-$50", Decimal("0"), Decimal("50")),
    ("$50-$100", Decimal("50"), Decimal("100")),
    ("$100-$200", Decimal("100"), Decimal("200")),
    ("$200-$500", Decimal("200"), Decimal("500")),
    ("$500+", Decimal("500"), None),
)


def condition_label(value: str) -> str:
    try:
        return Condition(value).label
    except ValueError:
        return UNKNOWN_LABEL


class FacetAggregator:
    """
    Computes facet counts and search aggregations.

    Args:
        store: ListingStore to count against
        builder: Predicate builder, shared with the orchestrator
        config: Top-N limits per dimension
    """

    def __init__(self, store, builder: Optional[FilterPredicateBuilder] = None, config: Optional[FacetConfig] = None):
        self.store = store
        self.builder = builder or FilterPredicateBuilder()
        self.config = config or FacetConfig()

    async def compute_facets(self, request: FilterRequest, now: Optional[datetime] = None) -> FacetCounts:
        """
        Facet counts for the filter panel.

        Args:
            request: Current filter request
            now: Visibility cutoff

        Returns:
            FacetCounts; dimensions without eligible values are empty lists
        """
        base = self.builder.build(request, now)

        brands, models, conditions, cities, currencies, price_ranges = await asyncio.gather(
            self.brand_facet(base.without(Dimension.BRAND), self.config.brand_limit),
            self.model_facet(base.without(Dimension.MODEL), self.config.model_limit),
            self.condition_facet(base.without(Dimension.CONDITION)),
            self.city_facet(base.without(Dimension.CITY), self.config.city_limit),
            self.currency_facet(base.without(Dimension.CURRENCY)),
            self.price_bucket_facet(base.without(Dimension.PRICE)),
        )

        logger.debug(
            f"Facets: {len(brands)} brands, {len(models)} models, {len(conditions)} conditions, "
            f"{len(cities)} cities, {len(currencies)} currencies, {len(price_ranges)} price ranges"
        )
        return FacetCounts(
            brands=brands,
            models=models,
            conditions=conditions,
            cities=cities,
            currencies=currencies,
            price_ranges=price_ranges,
        )

    async def compute_aggregations(self, request: FilterRequest, now: Optional[datetime] = None) -> SearchAggregations:
        """
        Aggregations for advanced search.

        Brand, model, condition and price clauses are all removed from the
        shared base; models stay narrowed to the selected brands and
        locations drop only the city clause.
        """
        full = self.builder.build(request, now)
        base = full.without(Dimension.BRAND, Dimension.MODEL, Dimension.CONDITION, Dimension.PRICE)

        models_predicate = base
        brand_clause = full.clause(Dimension.BRAND)
        if brand_clause is not None:
            models_predicate = base.with_clause(Dimension.BRAND, brand_clause)

        brands, models, conditions, price_range, locations, total = await asyncio.gather(
            self.brand_facet(base, self.config.aggregation_brand_limit),
            self.model_facet(models_predicate, self.config.aggregation_model_limit),
            self.condition_facet(base),
            self.store.aggregate_prices(base),
            self.city_facet(full.without(Dimension.CITY), self.config.aggregation_location_limit),
            self.store.count_listings(base),
        )

        return SearchAggregations(
            brands=brands,
            models=models,
            conditions=conditions,
            locations=locations,
            price_range=price_range,
            total_listings=total,
        )

    async def brand_facet(self, predicate: ListingPredicate, limit: int) -> List[FacetValue]:
        async def lookup(ids):
            brands = await self.store.get_brands(ids)
            return {
                i: (b.name, {"logo": b.logo} if b.logo else {})
                for i, b in brands.items()
            }
        return await self._id_facet(predicate, "brand_id", limit, lookup)

    async def model_facet(self, predicate: ListingPredicate, limit: int) -> List[FacetValue]:
        async def lookup(ids):
            models = await self.store.get_models(ids)
            return {i: (m.name, {"brandId": m.brand_id}) for i, m in models.items()}
        return await self._id_facet(predicate, "model_id", limit, lookup)

    async def city_facet(self, predicate: ListingPredicate, limit: int) -> List[FacetValue]:
        async def lookup(ids):
            cities = await self.store.get_cities(ids)
            return {
                i: (c.name, {"countryCode": c.country_code, "displayName": c.display_name})
                for i, c in cities.items()
            }
        return await self._id_facet(predicate, "city_id", limit, lookup)

    async def condition_facet(self, predicate: ListingPredicate) -> List[FacetValue]:
        groups = await self.store.group_listings(predicate, "condition")
        return [
            FacetValue(value=value, label=condition_label(value), count=count)
            for value, count in groups
            if value is not None
        ]

    async def currency_facet(self, predicate: ListingPredicate) -> List[FacetValue]:
        groups = await self.store.group_listings(predicate, "currency")
        return [
            FacetValue(value=value, label=value, count=count)
            for value, count in groups
            if value is not None
        ]

    async def price_bucket_facet(self, predicate: ListingPredicate) -> List[PriceBucketCount]:
        counts = await asyncio.gather(*(
            self.store.count_listings(
                predicate.with_clause(
                    Dimension.PRICE,
                    RangeClause("price", minimum, maximum, include_maximum=False),
                )
            )
            for _, minimum, maximum in PRICE_BUCKETS
        ))
        return [
            PriceBucketCount(label=label, minimum=minimum, maximum=maximum, count=count)
            for (label, minimum, maximum), count in zip(PRICE_BUCKETS, counts)
            if count > 0
        ]

    async def _id_facet(
        self,
        predicate: ListingPredicate,
        field: str,
        limit: int,
        lookup: Callable[[List[str]], Awaitable[Dict[str, tuple]]]
    ) -> List[FacetValue]:
        # one spare group in case the null group takes a top-N slot
        groups = await self.store.group_listings(predicate, field, limit + 1)
        groups = [(value, count) for value, count in groups if value is not None][:limit]
        if not groups:
            return []

        names = await lookup([value for value, _ in groups])
        facet = []
        for value, count in groups:
            label, extra = names.get(value, (UNKNOWN_LABEL, {}))
            facet.append(FacetValue(value=value, label=label, count=count, extra=extra))
        return facet

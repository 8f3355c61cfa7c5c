"""
Property-based tests for facet aggregation.

The defining rule: a dimension's facet counts are computed with every filter
applied except that dimension's own.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from conftest import BRANDS, CITIES, MODELS, NOW, make_listing
from marketsearch.filtering import FilterPredicateBuilder, ListingFilter
from marketsearch.filtering.predicates import Dimension
from marketsearch.models import Condition, FilterRequest, UNKNOWN_LABEL
from marketsearch.services.search import FacetAggregator, PRICE_BUCKETS
from marketsearch.storage.memory import InMemoryListingStore


brand_ids = st.sampled_from(["apple", "samsung", "ghost", None])
model_ids = st.sampled_from(["airpods-pro", "galaxy-buds", None])
city_ids = st.sampled_from(["austin", "round-rock", "dallas", None])

catalogue_listings = st.lists(
    st.builds(
        lambda i, brand, model, city, condition, price, verified, currency: make_listing(
            f"l{i}",
            brand_id=brand,
            model_id=model,
            city_id=city,
            condition=condition,
            price=price,
            is_verified=verified,
            currency=currency,
            published_at=NOW - timedelta(hours=i + 1),
        ),
        st.integers(min_value=0, max_value=10_000),
        brand_ids,
        model_ids,
        city_ids,
        st.sampled_from(list(Condition)),
        st.decimals(min_value=0, max_value=1000, places=0),
        st.booleans(),
        st.sampled_from(["USD", "EUR"]),
    ),
    max_size=30,
    unique_by=lambda l: l.id,
)

requests = st.builds(
    FilterRequest,
    brand_ids=st.lists(st.sampled_from(["apple", "samsung"]), max_size=2, unique=True).map(tuple),
    model_ids=st.lists(st.sampled_from(["airpods-pro", "galaxy-buds"]), max_size=1).map(tuple),
    conditions=st.lists(st.sampled_from(list(Condition)), max_size=2, unique=True).map(tuple),
    city_ids=st.lists(st.sampled_from(["austin", "dallas"]), max_size=1).map(tuple),
    currencies=st.lists(st.sampled_from(["USD", "EUR"]), max_size=1).map(tuple),
    min_price=st.one_of(st.none(), st.just(Decimal("50"))),
    max_price=st.one_of(st.none(), st.just(Decimal("500"))),
    verified_only=st.booleans(),
)

FACET_FIELDS = {
    "brands": (Dimension.BRAND, lambda l: l.brand_id),
    "models": (Dimension.MODEL, lambda l: l.model_id),
    "conditions": (Dimension.CONDITION, lambda l: l.condition.value),
    "cities": (Dimension.CITY, lambda l: l.city_id),
    "currencies": (Dimension.CURRENCY, lambda l: l.currency),
}


def build_store(listings):
    return InMemoryListingStore(listings=listings, brands=BRANDS, models=MODELS, cities=CITIES)


@given(listings=catalogue_listings, request=requests)
@settings(max_examples=100, deadline=None)
def test_facet_exclusion_invariant(listings, request):
    """
    For any dimension D and value V, V's count equals the number of listings
    matching every filter except D's own, restricted to D = V.
    """
    store = build_store(listings)
    facets = asyncio.run(FacetAggregator(store).compute_facets(request, NOW))

    builder = FilterPredicateBuilder()
    listing_filter = ListingFilter(store.brands, store.models, store.cities)

    for name, (dimension, value_of) in FACET_FIELDS.items():
        eligible = listing_filter.filter(listings, builder.build_without(request, dimension, NOW))
        for entry in getattr(facets, name):
            assert entry.count == sum(1 for l in eligible if value_of(l) == entry.value)
            assert entry.count > 0


@given(listings=catalogue_listings, request=requests)
@settings(max_examples=100, deadline=None)
def test_facet_ordering_and_price_buckets(listings, request):
    store = build_store(listings)
    facets = asyncio.run(FacetAggregator(store).compute_facets(request, NOW))

    for entries in (facets.brands, facets.models, facets.conditions, facets.cities, facets.currencies):
        keys = [(-e.count, e.value) for e in entries]
        assert keys == sorted(keys)

    eligible = ListingFilter(store.brands, store.models, store.cities).filter(
        listings, FilterPredicateBuilder().build_without(request, Dimension.PRICE, NOW)
    )
    total = sum(bucket.count for bucket in facets.price_ranges)
    assert total == len(eligible)


@pytest.mark.asyncio
async def test_example_brand_facet(store, now):
    """Query, price and verified filters apply to the brand facet; the brand filter does not."""
    request = FilterRequest(
        query="airpods",
        brand_ids=("apple",),
        min_price=Decimal("50"),
        max_price=Decimal("300"),
        verified_only=True,
    )
    facets = await FacetAggregator(store).compute_facets(request, now)

    brand_counts = {entry.value: entry.count for entry in facets.brands}
    assert brand_counts == {"apple": 3, "samsung": 1}
    assert facets.brands[0].label == "Apple"
    assert facets.brands[0].extra == {"logo": "https://img.example.com/apple.png"}


@pytest.mark.asyncio
async def test_price_buckets_are_half_open(now):
    store = build_store([
        make_listing("a", price=Decimal("49.99")),
        make_listing("b", price=Decimal("50")),
        make_listing("c", price=Decimal("500")),
        make_listing("d", price=Decimal("12000")),
    ])
    facets = await FacetAggregator(store).compute_facets(FilterRequest(), now)

    buckets = {bucket.label: bucket.count for bucket in facets.price_ranges}
    assert buckets == {"$0-$50": 1, "$50-$100": 1, "$500+": 2}
    assert [label for label, _, _ in PRICE_BUCKETS][-1] == "$500+"


@pytest.mark.asyncio
async def test_unknown_brand_gets_sentinel_label(now):
    store = build_store([make_listing("a", brand_id="deleted-brand")])
    facets = await FacetAggregator(store).compute_facets(FilterRequest(), now)

    assert [(e.value, e.label, e.count) for e in facets.brands] == [("deleted-brand", UNKNOWN_LABEL, 1)]


@pytest.mark.asyncio
async def test_empty_catalogue_gives_empty_facets(now):
    facets = await FacetAggregator(build_store([])).compute_facets(FilterRequest(brand_ids=("apple",)), now)

    assert facets.brands == []
    assert facets.price_ranges == []


@pytest.mark.asyncio
async def test_aggregations(store, now):
    request = FilterRequest(
        query="airpods",
        brand_ids=("apple",),
        conditions=(Condition.NEW,),
        city_ids=("austin",),
    )
    aggregations = await FacetAggregator(store).compute_aggregations(request, now)

    # brand, model, condition and price are dropped from the shared base; query and city stay
    assert {e.value: e.count for e in aggregations.brands} == {"apple": 2, "samsung": 1}
    assert aggregations.total_listings == 3
    # models stay narrowed to the selected brands
    assert {e.value for e in aggregations.models} == {"airpods-pro"}
    assert aggregations.models[0].extra == {"brandId": "apple"}
    # locations keep every filter except the city
    assert {e.value: e.count for e in aggregations.locations} == {"round-rock": 1}
    assert aggregations.price_range.count == 3
    assert aggregations.price_range.minimum == Decimal("80")
    assert aggregations.price_range.maximum == Decimal("150")
    assert aggregations.price_range.average == Decimal("116.67")

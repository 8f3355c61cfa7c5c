"""
Property-based tests for the filter predicate builder.
"""

from datetime import datetime, timezone
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from marketsearch.filtering.predicate_builder import FilterPredicateBuilder, query_tokens
from marketsearch.filtering.predicates import (
    Dimension,
    ExclusionClause,
    GeoRadiusClause,
    MembershipClause,
    RangeClause,
    TextClause,
)
from marketsearch.models import Condition, FilterRequest, GeoCircle, TextField


NOW = datetime(2026, 1, 15, tzinfo=timezone.utc)

ids = st.lists(st.sampled_from(["apple", "samsung", "sony", "bose"]), max_size=3, unique=True).map(tuple)
prices = st.one_of(st.none(), st.decimals(min_value=0, max_value=5000, places=2))

requests = st.builds(
    FilterRequest,
    query=st.one_of(st.none(), st.text(max_size=30)),
    brand_ids=ids,
    model_ids=ids,
    conditions=st.lists(st.sampled_from(list(Condition)), max_size=3, unique=True).map(tuple),
    currencies=st.lists(st.sampled_from(["USD", "EUR", "GBP"]), max_size=2, unique=True).map(tuple),
    city_ids=ids,
    min_price=prices,
    max_price=prices,
    verified_only=st.booleans(),
    has_images=st.booleans(),
    exclude_seller_id=st.one_of(st.none(), st.just("viewer-1")),
)


@given(request=requests, dimension=st.sampled_from(list(Dimension)))
@settings(max_examples=200)
def test_removing_a_dimension_keeps_every_other_clause(request, dimension):
    """build_without(D) equals build() minus exactly D's clause."""
    builder = FilterPredicateBuilder()
    full = builder.build(request, NOW)
    reduced = builder.build_without(request, dimension, NOW)

    assert dimension not in reduced.dimensions
    assert [(d, c) for d, c in full if d != dimension] == list(reduced)
    assert reduced.now == full.now


@given(request=requests)
@settings(max_examples=100)
def test_build_is_pure(request):
    builder = FilterPredicateBuilder()
    assert builder.build(request, NOW) == builder.build(request, NOW)


@given(request=requests)
@settings(max_examples=100)
def test_at_most_one_clause_per_dimension(request):
    predicate = FilterPredicateBuilder().build(request, NOW)
    assert len(predicate.dimensions) == len(set(predicate.dimensions))


def test_empty_request_has_only_the_visibility_constraint():
    predicate = FilterPredicateBuilder().build(FilterRequest(query="   "), NOW)

    assert len(predicate) == 0
    assert predicate.now == NOW


def test_membership_and_range_clauses():
    request = FilterRequest(
        brand_ids=("apple",),
        conditions=(Condition.NEW, Condition.LIKE_NEW),
        min_price=Decimal("50"),
        max_price=Decimal("300"),
        exclude_seller_id="viewer-1",
    )
    predicate = FilterPredicateBuilder().build(request, NOW)

    assert predicate.clause(Dimension.BRAND) == MembershipClause("brand_id", frozenset({"apple"}))
    assert predicate.clause(Dimension.CONDITION) == MembershipClause("condition", frozenset({"NEW", "LIKE_NEW"}))
    assert predicate.clause(Dimension.PRICE) == RangeClause("price", Decimal("50"), Decimal("300"))
    assert predicate.clause(Dimension.SELLER) == ExclusionClause("seller_id", "viewer-1")


def test_text_clause_tokens_for_multi_word_queries():
    predicate = FilterPredicateBuilder().build(FilterRequest(query=" airpods pro case "), NOW)
    clause = predicate.clause(Dimension.TEXT)

    assert isinstance(clause, TextClause)
    assert clause.query == "airpods pro case"
    assert clause.tokens == ("airpods", "pro", "case")
    assert set(clause.fields) == set(TextField)


def test_exact_match_has_no_tokens():
    request = FilterRequest(query="AirPods Pro", exact_match=True, search_fields=(TextField.MODEL,))
    clause = FilterPredicateBuilder().build(request, NOW).clause(Dimension.TEXT)

    assert clause.exact is True
    assert clause.tokens == ()
    assert clause.fields == (TextField.MODEL,)


def test_query_tokens_drop_short_words():
    assert query_tokens("an ipad or a tv stand") == ["ipad", "stand"]


def test_coordinates_take_precedence_over_city_ids():
    circle = GeoCircle(30.27, -97.74, 25)
    request = FilterRequest(city_ids=("dallas",), coordinates=circle)

    assert FilterPredicateBuilder().build(request, NOW).clause(Dimension.CITY) == GeoRadiusClause(circle)


def test_unresolved_near_city_is_a_city_filter():
    request = FilterRequest(city_ids=("dallas",), near_city_id="austin")
    clause = FilterPredicateBuilder().build(request, NOW).clause(Dimension.CITY)

    assert clause == MembershipClause("city_id", frozenset({"dallas", "austin"}))

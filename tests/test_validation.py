"""Tests for request validation and query-string parsing."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from hypothesis import given, settings, strategies as st

from marketsearch.api.params import (
    parse_bool,
    parse_conditions,
    parse_currencies,
    parse_datetime,
    parse_decimal,
    parse_int,
    parse_listing_type,
    parse_search_fields,
    split_csv,
)
from marketsearch.config.search_config import PaginationConfig
from marketsearch.error_handling.errors import InvalidSearchRequest
from marketsearch.filtering.validation import validate_filter_request
from marketsearch.models import Condition, FilterRequest, GeoCircle, ListingType, SortKey, TextField


@pytest.mark.parametrize("request_kwargs, field", [
    ({"page": 0}, "page"),
    ({"limit": 0}, "limit"),
    ({"min_price": Decimal("-1")}, "minPrice"),
    ({"max_price": Decimal("-0.01")}, "maxPrice"),
    ({"min_price": Decimal("300"), "max_price": Decimal("100")}, "minPrice"),
    ({"radius_km": 0}, "radius"),
    ({"coordinates": GeoCircle(91, 0, 10)}, "lat"),
    ({"coordinates": GeoCircle(0, -181, 10)}, "lng"),
    ({"coordinates": GeoCircle(0, 0, -5)}, "radius"),
    ({"sort": SortKey.DISTANCE}, "sortBy"),
    ({
        "published_after": datetime(2026, 2, 1, tzinfo=timezone.utc),
        "published_before": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }, "publishedAfter"),
])
def test_invalid_requests_are_rejected(request_kwargs, field):
    with pytest.raises(InvalidSearchRequest) as exc_info:
        validate_filter_request(FilterRequest(**request_kwargs))
    assert exc_info.value.field == field


@given(limit=st.integers(min_value=1, max_value=10_000))
@settings(max_examples=100)
def test_limit_is_clamped_not_rejected(limit):
    validated = validate_filter_request(FilterRequest(limit=limit), PaginationConfig(max_limit=100))

    assert validated.limit == min(limit, 100)


def test_valid_request_passes_unchanged():
    request = FilterRequest(
        min_price=Decimal("50"),
        max_price=Decimal("50"),
        coordinates=GeoCircle(30.2, -97.7, 25),
        sort=SortKey.DISTANCE,
        published_after=datetime(2026, 1, 1, tzinfo=timezone.utc),
        published_before=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(days=1),
    )

    assert validate_filter_request(request) is request


def test_split_csv():
    assert split_csv(None) == ()
    assert split_csv("") == ()
    assert split_csv("apple, samsung,,apple ") == ("apple", "samsung")


def test_parse_decimal():
    assert parse_decimal(None, "minPrice") is None
    assert parse_decimal("  ", "minPrice") is None
    assert parse_decimal("99.50", "minPrice") == Decimal("99.50")

    for bad in ("abc", "NaN", "Infinity"):
        with pytest.raises(InvalidSearchRequest) as exc_info:
            parse_decimal(bad, "minPrice")
        assert exc_info.value.field == "minPrice"


def test_parse_int():
    assert parse_int(None, "page", default=1) == 1
    assert parse_int("3", "page") == 3
    with pytest.raises(InvalidSearchRequest):
        parse_int("2.5", "page")


def test_parse_bool_only_accepts_true():
    assert parse_bool("true")
    assert parse_bool(" TRUE ")
    assert not parse_bool("1")
    assert not parse_bool(None)


def test_parse_datetime_accepts_zulu_suffix():
    assert parse_datetime("2026-01-15T12:00:00Z", "publishedAfter") == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)
    assert parse_datetime(None, "publishedAfter") is None
    with pytest.raises(InvalidSearchRequest):
        parse_datetime("yesterday", "publishedAfter")


def test_parse_datetime_without_offset_is_utc():
    assert parse_datetime("2026-01-15", "publishedAfter") == datetime(2026, 1, 15, tzinfo=timezone.utc)
    assert parse_datetime("2026-01-15T12:00:00", "publishedBefore") == datetime(2026, 1, 15, 12, tzinfo=timezone.utc)


def test_unknown_enum_values_are_ignored():
    assert parse_conditions(["new", "MINT", "good", "NEW"]) == (Condition.NEW, Condition.GOOD)
    assert parse_listing_type("wanted") == ListingType.WANTED
    assert parse_listing_type("auction") is None
    assert parse_search_fields(["title", "tags"]) == (TextField.TITLE,)
    assert parse_search_fields(["tags"]) == tuple(TextField)
    assert parse_currencies(["usd", " eur", "USD", ""]) == ("USD", "EUR")

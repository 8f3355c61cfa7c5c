"""Shared fixtures: a small earbuds catalogue and an orchestrator over it."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from marketsearch.config.search_config import SearchSettings
from marketsearch.models import (
    Brand,
    City,
    Condition,
    Listing,
    ListingStatus,
    ListingType,
    ProductModel,
)
from marketsearch.services.search import SearchOrchestrator
from marketsearch.storage.memory import InMemoryListingStore


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def make_listing(listing_id, **overrides) -> Listing:
    """Build a visible listing with sensible defaults."""
    values = dict(
        id=listing_id,
        title=f"Listing {listing_id}",
        price=Decimal("100"),
        currency="USD",
        condition=Condition.GOOD,
        brand_id=None,
        model_id=None,
        city_id=None,
        seller_id="seller-1",
        published_at=NOW - timedelta(days=1),
    )
    values.update(overrides)
    return Listing(**values)


BRANDS = [
    Brand(id="apple", name="Apple", slug="apple", logo="https://img.example.com/apple.png"),
    Brand(id="samsung", name="Samsung", slug="samsung"),
]

MODELS = [
    ProductModel(id="airpods-pro", name="AirPods Pro", brand_id="apple"),
    ProductModel(id="galaxy-buds", name="Galaxy Buds2", brand_id="samsung"),
]

CITIES = [
    City(id="austin", name="Austin", country_code="US", latitude=30.2672, longitude=-97.7431,
         population=961855, country="United States", region="Texas", region_code="TX",
         display_name="Austin, TX, USA"),
    City(id="round-rock", name="Round Rock", country_code="US", latitude=30.5083, longitude=-97.6789,
         population=119468, country="United States", region="Texas", region_code="TX",
         display_name="Round Rock, TX, USA"),
    City(id="dallas", name="Dallas", country_code="US", latitude=32.7767, longitude=-96.7970,
         population=1304379, country="United States", region="Texas", region_code="TX",
         display_name="Dallas, TX, USA"),
]


def example_listings():
    """Three verified Apple listings in range, one unverified Apple, one Samsung."""
    return [
        make_listing("l1", title="AirPods Pro 2nd generation", price=Decimal("120"),
                     brand_id="apple", model_id="airpods-pro", city_id="austin",
                     is_verified=True, views=40, images=["a.jpg"],
                     published_at=NOW - timedelta(days=1)),
        make_listing("l2", title="Sealed AirPods Pro", price=Decimal("250"), condition=Condition.NEW,
                     brand_id="apple", model_id="airpods-pro", city_id="round-rock",
                     is_verified=True, views=90, published_at=NOW - timedelta(days=2)),
        make_listing("l3", title="AirPods Pro charging case", price=Decimal("60"), condition=Condition.FAIR,
                     brand_id="apple", model_id="airpods-pro", city_id="dallas",
                     is_verified=True, views=10, seller_id="seller-2",
                     published_at=NOW - timedelta(days=3)),
        make_listing("l4", title="AirPods Pro, left earbud missing", price=Decimal("150"),
                     brand_id="apple", model_id="airpods-pro", city_id="austin",
                     is_verified=False, views=5, published_at=NOW - timedelta(days=4)),
        make_listing("l5", title="Galaxy Buds2", description="Better than airpods",
                     price=Decimal("80"), currency="EUR", condition=Condition.LIKE_NEW,
                     brand_id="samsung", model_id="galaxy-buds", city_id="austin",
                     is_verified=True, views=70, listing_type=ListingType.LISTING,
                     published_at=NOW - timedelta(days=5)),
    ]


def hidden_listings():
    """Listings search must never return."""
    return [
        make_listing("hidden-suspended", title="AirPods Pro suspended", brand_id="apple",
                     status=ListingStatus.SUSPENDED),
        make_listing("hidden-future", title="AirPods Pro scheduled", brand_id="apple",
                     published_at=NOW + timedelta(days=1)),
        make_listing("hidden-draft", title="AirPods Pro draft", brand_id="apple", published_at=None),
    ]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def store():
    return InMemoryListingStore(
        listings=example_listings() + hidden_listings(),
        brands=BRANDS,
        models=MODELS,
        cities=CITIES,
    )


@pytest.fixture
def orchestrator(store):
    return SearchOrchestrator(store, SearchSettings(), clock=lambda: NOW)

"""
Property-based tests for great-circle distance and radius lookups.
"""

import asyncio

import pytest
from hypothesis import given, settings, strategies as st

from marketsearch.geo.distance import (
    GeoDistanceEvaluator,
    bounding_box,
    haversine_km,
)
from marketsearch.models import City, GeoPoint
from marketsearch.storage.memory import InMemoryListingStore


latitudes = st.floats(min_value=-90, max_value=90, allow_nan=False)
longitudes = st.floats(min_value=-180, max_value=180, allow_nan=False)
radii = st.floats(min_value=0.1, max_value=2000, allow_nan=False)

cities = st.lists(
    st.builds(
        lambda i, lat, lng: City(id=f"city-{i}", name=f"City {i}", country_code="US", latitude=lat, longitude=lng),
        st.integers(min_value=0, max_value=10_000),
        latitudes,
        longitudes,
    ),
    max_size=40,
    unique_by=lambda c: c.id,
)


@given(lat1=latitudes, lng1=longitudes, lat2=latitudes, lng2=longitudes)
@settings(max_examples=200)
def test_haversine_symmetry(lat1, lng1, lat2, lng2):
    """distance(a, b) == distance(b, a)"""
    assert haversine_km(lat1, lng1, lat2, lng2) == pytest.approx(haversine_km(lat2, lng2, lat1, lng1), abs=1e-6)


@given(lat=latitudes, lng=longitudes)
@settings(max_examples=100)
def test_haversine_identity(lat, lng):
    """distance(a, a) == 0"""
    assert haversine_km(lat, lng, lat, lng) == 0


@given(lat1=latitudes, lng1=longitudes, lat2=latitudes, lng2=longitudes)
@settings(max_examples=100)
def test_haversine_bounded_by_half_circumference(lat1, lng1, lat2, lng2):
    distance = haversine_km(lat1, lng1, lat2, lng2)
    assert 0 <= distance <= 20016


def test_haversine_known_distance():
    # Austin to Dallas is roughly 293 km
    assert haversine_km(30.2672, -97.7431, 32.7767, -96.7970) == pytest.approx(293, abs=3)


@given(lat=latitudes, lng=longitudes, r1=radii, r2=radii)
@settings(max_examples=100)
def test_bounding_box_grows_with_radius(lat, lng, r1, r2):
    small, large = sorted((r1, r2))
    inner = bounding_box(GeoPoint(lat, lng), small)
    outer = bounding_box(GeoPoint(lat, lng), large)
    assert outer.min_lat <= inner.min_lat and inner.max_lat <= outer.max_lat
    assert outer.min_lng <= inner.min_lng and inner.max_lng <= outer.max_lng


@given(city_list=cities, lat=latitudes, lng=longitudes, radius=radii)
@settings(max_examples=100, deadline=None)
def test_bounding_box_never_drops_cities_within_radius(city_list, lat, lng, radius):
    """Every city inside the circle is also inside its pre-filter box."""
    box = bounding_box(GeoPoint(lat, lng), radius)
    for city in city_list:
        if haversine_km(lat, lng, city.latitude, city.longitude) <= radius:
            assert box.contains(city.latitude, city.longitude)


@given(city_list=cities, lat=latitudes, lng=longitudes, r1=radii, r2=radii)
@settings(max_examples=100, deadline=None)
def test_radius_monotonicity(city_list, lat, lng, r1, r2):
    """citiesWithinRadius(c, r1) is a subset of citiesWithinRadius(c, r2) when r1 <= r2."""
    small, large = sorted((r1, r2))
    evaluator = GeoDistanceEvaluator(InMemoryListingStore(cities=city_list))
    center = GeoPoint(lat, lng)

    inner = asyncio.run(evaluator.city_ids_within_radius(center, small))
    outer = asyncio.run(evaluator.city_ids_within_radius(center, large))

    assert set(inner) <= set(outer)


@given(city_list=cities, lat=latitudes, lng=longitudes, radius=radii)
@settings(max_examples=100, deadline=None)
def test_cities_within_radius_sorted_by_distance(city_list, lat, lng, radius):
    evaluator = GeoDistanceEvaluator(InMemoryListingStore(cities=city_list))
    found = asyncio.run(evaluator.cities_within_radius(GeoPoint(lat, lng), radius))

    distances = [d for _, d in found]
    assert distances == sorted(distances)
    assert all(d <= radius for d in distances)


@pytest.mark.asyncio
async def test_resolve_city_radius_includes_center_first(store):
    evaluator = GeoDistanceEvaluator(store)

    assert await evaluator.resolve_city_radius("austin", 50) == ["austin", "round-rock"]
    assert await evaluator.resolve_city_radius("austin", 400) == ["austin", "round-rock", "dallas"]


@pytest.mark.asyncio
async def test_resolve_unknown_city_keeps_only_the_id(store):
    evaluator = GeoDistanceEvaluator(store)

    assert await evaluator.find_nearby_cities("atlantis", 100) == []
    assert await evaluator.resolve_city_radius("atlantis", 100) == ["atlantis"]

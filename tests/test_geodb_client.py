"""Tests for the GeoDB client: request parameters, caching and error mapping."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from marketsearch.config.search_config import GeoConfig
from marketsearch.error_handling import RetryConfig
from marketsearch.error_handling.errors import UpstreamServiceError
from marketsearch.geo.geodb_client import GeoDBCity, GeoDBClient


AUSTIN = {
    "id": 115335,
    "name": "Austin",
    "country": "United States of America",
    "countryCode": "US",
    "region": "Texas",
    "regionCode": "TX",
    "latitude": 30.2672,
    "longitude": -97.7431,
    "population": 961855,
}


def make_client(redis_client=None, max_retries=1):
    return GeoDBClient(
        GeoConfig(geodb_api_key="test-key", cache_ttl_seconds=60),
        redis_client=redis_client,
        retry_config=RetryConfig(max_retries=max_retries),
    )


@pytest.mark.asyncio
async def test_search_cities_sends_filters_and_parses_response():
    client = make_client()
    client._get = AsyncMock(return_value={"data": [AUSTIN]})

    cities = await client.search_cities("Aus", limit=5, min_population=10000, country_ids=["US", "CA"])

    assert cities == [GeoDBCity(
        id=115335, name="Austin", country="United States of America", country_code="US",
        region="Texas", region_code="TX", latitude=30.2672, longitude=-97.7431, population=961855,
    )]
    path, params = client._get.call_args[0]
    assert path == "/v1/geo/cities"
    assert params == {
        "limit": "5", "offset": "0", "sort": "-population",
        "namePrefix": "Aus", "minPopulation": "10000", "countryIds": "US,CA",
    }


@pytest.mark.asyncio
async def test_responses_are_cached_in_redis():
    redis_client = AsyncMock()
    redis_client.get.return_value = None
    client = make_client(redis_client)
    client._get = AsyncMock(return_value={"data": [AUSTIN]})

    await client.search_cities("Aus")

    key, ttl, value = redis_client.setex.call_args[0]
    assert key.startswith("geodb:")
    assert ttl == 60
    assert json.loads(value) == {"data": [AUSTIN]}

    redis_client.get.return_value = value
    client._get.reset_mock()
    cities = await client.search_cities("Aus")

    assert [c.name for c in cities] == ["Austin"]
    client._get.assert_not_called()


@pytest.mark.asyncio
async def test_cache_failures_fall_through_to_geodb():
    redis_client = AsyncMock()
    redis_client.get.side_effect = ConnectionError("redis down")
    redis_client.setex.side_effect = ConnectionError("redis down")
    client = make_client(redis_client)
    client._get = AsyncMock(return_value={"data": []})

    assert await client.search_cities("Zz") == []
    client._get.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_city_not_found_returns_none():
    client = make_client()
    client._get = AsyncMock(side_effect=UpstreamServiceError("GeoDB API error: 404", status=404))

    assert await client.get_city(1) is None
    client._get.assert_awaited_once()


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_raised():
    client = make_client(max_retries=3)
    client._get = AsyncMock(side_effect=UpstreamServiceError("GeoDB API error: 503", status=503))

    with patch('asyncio.sleep', return_value=None):
        with pytest.raises(UpstreamServiceError):
            await client.get_city(1)

    assert client._get.await_count == 3


def test_cache_key_ignores_parameter_order():
    first = GeoDBClient._cache_key("/v1/geo/cities", {"a": "1", "b": "2"})
    second = GeoDBClient._cache_key("/v1/geo/cities", {"b": "2", "a": "1"})

    assert first == second

"""
GeoDB Cities API client.

Looks up cities in the external geocoding source. Raw responses are cached in
Redis for an hour; outbound calls are spaced by a RateLimiter and transient
failures are retried by the ErrorHandler.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from marketsearch.config.search_config import GeoConfig
from marketsearch.error_handling import ErrorHandler, RetryConfig
from marketsearch.error_handling.errors import UpstreamRateLimited, UpstreamServiceError
from marketsearch.rate_limiting.rate_limiter import RateLimiter


logger = logging.getLogger(__name__)


@dataclass
class GeoDBCity:
    """A city as returned by the GeoDB Cities API"""
    id: int
    name: str
    country: str
    country_code: str
    region: str
    region_code: str
    latitude: float
    longitude: float
    population: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'GeoDBCity':
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            country=data.get("country") or "",
            country_code=data.get("countryCode") or "",
            region=data.get("region") or "",
            region_code=data.get("regionCode") or "",
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            population=int(data.get("population") or 0),
        )


class GeoDBClient:
    """
    GeoDB Cities client with Redis caching and rate limiting.

    Args:
        config: GeoDB endpoint, credentials and limits
        redis_client: Optional ``redis.asyncio`` client used as a response cache
        retry_config: Retry policy for transient failures
        rate_limiter: Spacing/budget for outbound calls
    """

    CITIES_PATH = "/v1/geo/cities"

    def __init__(
        self,
        config: Optional[GeoConfig] = None,
        redis_client=None,
        retry_config: Optional[RetryConfig] = None,
        rate_limiter: Optional[RateLimiter] = None
    ):
        self.config = config or GeoConfig()
        self.redis_client = redis_client
        self.error_handler = ErrorHandler(retry_config)
        self.rate_limiter = rate_limiter or RateLimiter(
            min_interval_seconds=self.config.min_request_interval_seconds,
            max_requests_per_hour=self.config.max_requests_per_hour,
        )
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.config.geodb_base_url)

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Explicitly close the session when done"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _ensure_session(self):
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self.config.geodb_api_key:
                headers["X-RapidAPI-Key"] = self.config.geodb_api_key
            self._session = aiohttp.ClientSession(
                base_url=self.config.geodb_base_url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.config.geodb_timeout_seconds),
            )

    async def search_cities(
        self,
        name_prefix: Optional[str] = None,
        limit: int = 10,
        min_population: Optional[int] = None,
        max_population: Optional[int] = None,
        country_ids: Optional[Sequence[str]] = None,
        offset: int = 0,
        sort: str = "-population"
    ) -> List[GeoDBCity]:
        """
        Search cities by name prefix.

        Args:
            name_prefix: City name prefix
            limit: Maximum number of cities
            min_population: Minimum population filter
            max_population: Maximum population filter
            country_ids: ISO country codes to restrict to
            offset: Result offset
            sort: GeoDB sort expression, most populous first by default

        Returns:
            List of GeoDBCity

        Raises:
            UpstreamRateLimited: If GeoDB answers 429 or the local budget is spent
            UpstreamServiceError: If GeoDB fails after retries
        """
        params = {"limit": str(limit), "offset": str(offset), "sort": sort}
        if name_prefix:
            params["namePrefix"] = name_prefix
        if min_population:
            params["minPopulation"] = str(min_population)
        if max_population:
            params["maxPopulation"] = str(max_population)
        if country_ids:
            params["countryIds"] = ",".join(country_ids)

        payload = await self._get_cached(self.CITIES_PATH, params)
        return [GeoDBCity.from_api(item) for item in payload.get("data") or []]

    async def get_city(self, geodb_id: int) -> Optional[GeoDBCity]:
        """Fetch a single city by its GeoDB id, None if GeoDB has no data for it."""
        try:
            payload = await self._get_cached(f"{self.CITIES_PATH}/{geodb_id}", {})
        except UpstreamServiceError as e:
            if e.status == 404:
                return None
            raise
        data = payload.get("data")
        return GeoDBCity.from_api(data) if data else None

    async def _get_cached(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        cache_key = self._cache_key(path, params)

        if self.redis_client is not None:
            try:
                cached = await self.redis_client.get(cache_key)
                if cached:
                    logger.info(f"[GEODB CACHE HIT] {path} {params}")
                    return json.loads(cached)
            except Exception as e:
                logger.warning(f"Redis cache check failed: {e}")

        payload = await self.error_handler.retry_with_backoff(self._get, path, params)

        if self.redis_client is not None:
            try:
                await self.redis_client.setex(cache_key, self.config.cache_ttl_seconds, json.dumps(payload))
            except Exception as e:
                logger.warning(f"Failed to cache GeoDB response: {e}")

        return payload

    async def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        await self.rate_limiter.acquire()
        await self._ensure_session()

        logger.info(f"[GEODB] GET {path} {params}")
        try:
            async with self._session.get(path, params=params) as response:
                if response.status == 429:
                    raise UpstreamRateLimited("GeoDB rate limit exceeded", status=429)
                if response.status != 200:
                    error_text = await response.text()
                    raise UpstreamServiceError(
                        f"GeoDB API error: {response.status} - {error_text[:200]}",
                        status=response.status,
                    )
                return await response.json()
        except aiohttp.ClientError as e:
            raise UpstreamServiceError(f"GeoDB request failed: {e}") from e

    @staticmethod
    def _cache_key(path: str, params: Dict[str, str]) -> str:
        raw = f"{path}?{json.dumps(params, sort_keys=True)}"
        return f"geodb:{hashlib.md5(raw.encode()).hexdigest()}"



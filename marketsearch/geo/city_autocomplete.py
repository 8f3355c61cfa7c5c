"""
City autocomplete backed by the local city table and GeoDB.

Local cities are searched first. When they do not fill the requested limit,
GeoDB is queried and every returned city is cached locally. Any GeoDB failure
falls back to the local results.
"""

import asyncio
import logging
import uuid
from typing import List, Optional

from marketsearch.error_handling.errors import UpstreamServiceError
from marketsearch.models import City
from .geodb_client import GeoDBCity, GeoDBClient


logger = logging.getLogger(__name__)


def format_display_name(name: str, country_code: str, region_code: str = "", country: str = "") -> str:
    """Display name: "Austin, TX, USA" for US cities, "Paris, France" elsewhere."""
    if country_code == "US":
        return f"{name}, {region_code}, USA"
    return f"{name}, {country or country_code}"


def city_from_geodb(geo_city: GeoDBCity, city_id: Optional[str] = None) -> City:
    return City(
        id=city_id or str(uuid.uuid4()),
        name=geo_city.name,
        country_code=geo_city.country_code,
        latitude=geo_city.latitude,
        longitude=geo_city.longitude,
        population=geo_city.population,
        country=geo_city.country,
        region=geo_city.region,
        region_code=geo_city.region_code,
        geodb_id=geo_city.id,
        display_name=format_display_name(
            geo_city.name, geo_city.country_code, geo_city.region_code, geo_city.country
        ),
    )


class CityAutocompleteService:
    """
    Local-first city autocomplete.

    Args:
        store: ListingStore providing ``search_cities`` and ``upsert_city``
        geodb_client: Optional GeoDB client; without one only local cities are used
        min_population: Minimum population requested from GeoDB
    """

    def __init__(self, store, geodb_client: Optional[GeoDBClient] = None, min_population: int = 10000):
        self.store = store
        self.geodb_client = geodb_client
        self.min_population = min_population

    async def autocomplete(self, query: str, limit: int = 10) -> List[City]:
        """
        Cities whose search text contains ``query``.

        Args:
            query: City name fragment
            limit: Maximum number of cities

        Returns:
            Up to ``limit`` cities, most populous first
        """
        query = (query or "").strip()
        if not query:
            return []

        local = await self.store.search_cities(query, limit)
        if len(local) >= limit or self.geodb_client is None:
            return local[:limit]

        try:
            remote = await self.geodb_client.search_cities(
                name_prefix=query,
                limit=limit,
                min_population=self.min_population,
            )
        except UpstreamServiceError as e:
            logger.warning(f"GeoDB city search failed for '{query}', using local results: {e}")
            return local

        cities = await self._cache_cities(remote)
        logger.info(f"City autocomplete '{query}': {len(local)} local, {len(cities)} from GeoDB")
        return cities[:limit] if cities else local

    async def _cache_cities(self, remote: List[GeoDBCity]) -> List[City]:
        results = await asyncio.gather(
            *(self.store.upsert_city(city_from_geodb(geo_city)) for geo_city in remote),
            return_exceptions=True,
        )

        cities = []
        for geo_city, result in zip(remote, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to cache city {geo_city.name} ({geo_city.id}): {result}")
                cities.append(city_from_geodb(geo_city))
                continue
            cities.append(result)
        return cities

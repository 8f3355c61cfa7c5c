"""
Great-circle distance and radius lookups over cities.

Distances use the Haversine formula on a spherical Earth (R = 6371 km).
Radius lookups narrow candidates with a latitude/longitude bounding box in the
store, then keep only cities whose exact distance is within the radius.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from marketsearch.models import City, GeoPoint


logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres.

    Args:
        lat1: Latitude of the first point in degrees
        lon1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lon2: Longitude of the second point in degrees

    Returns:
        Distance in kilometres, 0 for identical points
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.min_lat <= latitude <= self.max_lat
            and self.min_lng <= longitude <= self.max_lng
        )


def bounding_box(center: GeoPoint, radius_km: float) -> BoundingBox:
    """
    Latitude/longitude box around a circle, used as a cheap pre-filter.

    The longitude half-width is ``radius / (111 * cos(lat))`` taken at the box
    edge nearest the pole. Boxes that reach a pole or cross the antimeridian
    span every longitude.

    Args:
        center: Circle center
        radius_km: Circle radius in kilometres

    Returns:
        BoundingBox that grows monotonically with the radius
    """
    lat_delta = radius_km / KM_PER_DEGREE
    min_lat = max(-90.0, center.latitude - lat_delta)
    max_lat = min(90.0, center.latitude + lat_delta)

    poleward = max(abs(min_lat), abs(max_lat))
    cos_lat = math.cos(math.radians(poleward))
    if poleward >= 90.0 or cos_lat <= 1e-9:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    lng_delta = radius_km / (KM_PER_DEGREE * cos_lat)
    min_lng = center.longitude - lng_delta
    max_lng = center.longitude + lng_delta
    if min_lng < -180.0 or max_lng > 180.0:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)
    return BoundingBox(min_lat, max_lat, min_lng, max_lng)


class GeoDistanceEvaluator:
    """
    Resolves radius searches into city id sets.

    Args:
        store: Any object with ``find_cities_in_box(box)`` and
            ``get_city(city_id)`` coroutines (see ``ListingStore``)
    """

    def __init__(self, store):
        self.store = store

    async def cities_within_radius(
        self,
        center: GeoPoint,
        radius_km: float,
        limit: Optional[int] = None
    ) -> List[Tuple[City, float]]:
        """
        Find cities within ``radius_km`` of ``center``.

        Args:
            center: Search center
            radius_km: Search radius in kilometres
            limit: Optional cap on the number of cities returned

        Returns:
            (city, distance_km) pairs sorted by ascending distance, ties by city id
        """
        box = bounding_box(center, radius_km)
        candidates = await self.store.find_cities_in_box(box)

        within = []
        for city in candidates:
            distance = haversine_km(center.latitude, center.longitude, city.latitude, city.longitude)
            if distance <= radius_km:
                within.append((city, distance))

        within.sort(key=lambda pair: (pair[1], pair[0].id))
        logger.debug(
            f"{len(within)}/{len(candidates)} box candidates within {radius_km}km "
            f"of ({center.latitude}, {center.longitude})"
        )
        if limit is not None:
            within = within[:limit]
        return within

    async def city_ids_within_radius(self, center: GeoPoint, radius_km: float) -> List[str]:
        return [city.id for city, _ in await self.cities_within_radius(center, radius_km)]

    async def find_nearby_cities(self, city_id: str, radius_km: float) -> List[Tuple[City, float]]:
        """
        Cities within ``radius_km`` of an existing city, excluding the city itself.

        Returns an empty list when ``city_id`` is unknown.
        """
        city = await self.store.get_city(city_id)
        if city is None:
            logger.info(f"Center city {city_id} not found, no nearby cities")
            return []
        center = GeoPoint(city.latitude, city.longitude)
        nearby = await self.cities_within_radius(center, radius_km)
        return [(c, d) for c, d in nearby if c.id != city_id]

    async def resolve_city_radius(self, city_id: str, radius_km: float) -> List[str]:
        """
        City id set for a city + radius search: the city itself first, then
        nearby cities by ascending distance.
        """
        nearby = await self.find_nearby_cities(city_id, radius_km)
        return [city_id] + [city.id for city, _ in nearby]

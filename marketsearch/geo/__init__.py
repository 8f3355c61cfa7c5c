from .distance import (
    BoundingBox,
    EARTH_RADIUS_KM,
    GeoDistanceEvaluator,
    bounding_box,
    haversine_km,
)
from .geodb_client import GeoDBCity, GeoDBClient
from .city_autocomplete import CityAutocompleteService, city_from_geodb, format_display_name

__all__ = [
    'BoundingBox',
    'EARTH_RADIUS_KM',
    'GeoDistanceEvaluator',
    'bounding_box',
    'haversine_km',
    'GeoDBCity',
    'GeoDBClient',
    'CityAutocompleteService',
    'city_from_geodb',
    'format_display_name',
]

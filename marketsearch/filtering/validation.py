"""
Boundary validation for filter requests.

Structurally invalid requests are rejected with InvalidSearchRequest; the only
value that is adjusted rather than rejected is an oversized page size, which is
clamped to the configured maximum.
"""

import logging
from dataclasses import replace

from marketsearch.config.search_config import PaginationConfig
from marketsearch.error_handling.errors import InvalidSearchRequest
from marketsearch.models import FilterRequest, SortKey


logger = logging.getLogger(__name__)


def validate_filter_request(request: FilterRequest, pagination: PaginationConfig = None) -> FilterRequest:
    """Validate a request and normalise its page size.

    Args:
        request: Request to validate
        pagination: Page size limits, defaults to PaginationConfig()

    Returns:
        The request, with ``limit`` clamped to ``pagination.max_limit``

    Raises:
        InvalidSearchRequest: If any field is out of bounds
    """
    pagination = pagination or PaginationConfig()

    if request.page < 1:
        raise InvalidSearchRequest("page must be >= 1", field="page")
    if request.limit < 1:
        raise InvalidSearchRequest("limit must be >= 1", field="limit")

    if request.min_price is not None and request.min_price < 0:
        raise InvalidSearchRequest("minPrice must be >= 0", field="minPrice")
    if request.max_price is not None and request.max_price < 0:
        raise InvalidSearchRequest("maxPrice must be >= 0", field="maxPrice")
    if (
        request.min_price is not None
        and request.max_price is not None
        and request.min_price > request.max_price
    ):
        raise InvalidSearchRequest("minPrice must not exceed maxPrice", field="minPrice")

    if request.radius_km is not None and request.radius_km <= 0:
        raise InvalidSearchRequest("radius must be > 0", field="radius")

    circle = request.coordinates
    if circle is not None:
        if not -90 <= circle.latitude <= 90:
            raise InvalidSearchRequest("lat must be within [-90, 90]", field="lat")
        if not -180 <= circle.longitude <= 180:
            raise InvalidSearchRequest("lng must be within [-180, 180]", field="lng")
        if circle.radius_km <= 0:
            raise InvalidSearchRequest("radius must be > 0", field="radius")

    if (
        request.published_after is not None
        and request.published_before is not None
        and request.published_after > request.published_before
    ):
        raise InvalidSearchRequest("publishedAfter must not be later than publishedBefore", field="publishedAfter")

    if request.sort == SortKey.DISTANCE and circle is None:
        raise InvalidSearchRequest("sort=distance requires lat, lng and radius", field="sortBy")

    if request.limit > pagination.max_limit:
        logger.debug(f"Clamping limit {request.limit} to {pagination.max_limit}")
        request = replace(request, limit=pagination.max_limit)

    return request

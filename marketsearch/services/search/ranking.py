"""
Result ranking and pagination.

Maps sort keys to orderings and slices result sets into pages. Every ordering
ends with the listing id so pages are deterministic.
"""

import logging
from typing import Optional

from marketsearch.models import FilterRequest, GeoPoint, Pagination, SortKey
from marketsearch.storage.base import OrderField, Ordering, SortTerm


logger = logging.getLogger(__name__)


ID_ASC = SortTerm(OrderField.ID)
PUBLISHED_DESC = SortTerm(OrderField.PUBLISHED_AT, descending=True)

SORT_TERMS = {
    SortKey.RELEVANCE: (SortTerm(OrderField.IS_VERIFIED, descending=True), PUBLISHED_DESC, ID_ASC),
    SortKey.PRICE_ASC: (SortTerm(OrderField.PRICE), ID_ASC),
    SortKey.PRICE_DESC: (SortTerm(OrderField.PRICE, descending=True), ID_ASC),
    SortKey.DATE_ASC: (SortTerm(OrderField.PUBLISHED_AT), ID_ASC),
    SortKey.DATE_DESC: (PUBLISHED_DESC, ID_ASC),
    SortKey.POPULARITY: (SortTerm(OrderField.VIEWS, descending=True), PUBLISHED_DESC, ID_ASC),
    SortKey.DISTANCE: (SortTerm(OrderField.DISTANCE), PUBLISHED_DESC, ID_ASC),
}

FEATURED_ORDERING = Ordering(terms=(SortTerm(OrderField.VIEWS, descending=True), PUBLISHED_DESC, ID_ASC))


def parse_sort_key(value: Optional[str]) -> Optional[SortKey]:
    """Parse a sort key, returning None for missing or unknown values."""
    if not value:
        return None
    try:
        return SortKey(value.strip().lower())
    except ValueError:
        logger.debug(f"Ignoring unknown sort key: {value}")
        return None


def effective_sort_key(request: FilterRequest) -> SortKey:
    """The requested sort key, or relevance for text queries and newest first otherwise."""
    if request.sort is not None:
        return request.sort
    return SortKey.RELEVANCE if (request.query or "").strip() else SortKey.DATE_DESC


def build_ordering(request: FilterRequest) -> Ordering:
    """
    Build the ordering for a request.

    Distance ordering measures from the request's coordinates. Requests
    reaching here with ``sort=distance`` have already been validated to
    carry coordinates.
    """
    sort = effective_sort_key(request)
    center = None
    if request.coordinates is not None:
        center = GeoPoint(request.coordinates.latitude, request.coordinates.longitude)
    if sort == SortKey.DISTANCE and center is None:
        raise ValueError("Distance ordering requires coordinates")
    return Ordering(terms=SORT_TERMS[sort], distance_from=center)


def paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total)

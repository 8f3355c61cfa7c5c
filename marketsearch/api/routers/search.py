"""
Search routes for marketplace listings.
"""

import json
import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from marketsearch.api.db import get_pg_pool, get_redis
from marketsearch.api.models import (
    AdvancedSearchBody,
    AdvancedSearchResponse,
    AutocompleteResponse,
    CityAutocompleteResponse,
    CitySummary,
    FacetsResponse,
    FilterOptionsResponse,
    GeoSearchBody,
    ListingResponse,
    ListingSearchResponse,
    SuggestionsResponse,
)
from marketsearch.api.params import (
    parse_bool,
    parse_conditions,
    parse_currencies,
    parse_datetime,
    parse_decimal,
    parse_float,
    parse_int,
    parse_listing_type,
    parse_search_fields,
    split_csv,
)
from marketsearch.config.search_config import get_search_settings
from marketsearch.error_handling.errors import InvalidSearchRequest, SearchTimeout
from marketsearch.geo.city_autocomplete import CityAutocompleteService
from marketsearch.geo.geodb_client import GeoDBClient
from marketsearch.models import AutocompleteContext, FilterRequest, GeoCircle
from marketsearch.rate_limiting.rate_limiter import RateLimiter
from marketsearch.services.search import SearchOrchestrator, parse_sort_key
from marketsearch.services.search.orchestrator import DEFAULT_FEATURED_LIMIT
from marketsearch.storage.postgres import PostgresListingStore

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_RADIUS_KM = 10.0

settings = get_search_settings()

# Shared across requests so the outbound budget is process-wide
geodb_rate_limiter = RateLimiter(
    min_interval_seconds=settings.geo.min_request_interval_seconds,
    max_requests_per_hour=settings.geo.max_requests_per_hour,
)


async def get_search_orchestrator():
    """Build an orchestrator over the PostgreSQL store for one request"""
    store = PostgresListingStore(get_pg_pool())
    geodb = GeoDBClient(
        settings.geo,
        redis_client=get_redis(),
        retry_config=settings.retry,
        rate_limiter=geodb_rate_limiter,
    )
    city_autocomplete = CityAutocompleteService(
        store,
        geodb if geodb.is_configured else None,
        min_population=settings.geo.geodb_min_population,
    )
    try:
        yield SearchOrchestrator(store, settings, city_autocomplete)
    finally:
        await geodb.close()


@contextmanager
def search_errors(operation: str):
    """Translate search errors into HTTP responses"""
    try:
        yield
    except HTTPException:
        raise
    except InvalidSearchRequest as e:
        logger.info(f"Rejected {operation} request: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except SearchTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))
    except Exception as e:
        logger.error(f"{operation} failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"{operation} failed")


def _as_decimal(value: Optional[float]) -> Optional[Decimal]:
    return None if value is None else Decimal(str(value))


def _coordinates(lat: Optional[float], lng: Optional[float], radius_km: Optional[float]) -> Optional[GeoCircle]:
    if lat is None and lng is None:
        return None
    if lat is None or lng is None:
        raise InvalidSearchRequest("lat and lng must be given together", field="lat" if lat is None else "lng")
    return GeoCircle(lat, lng, DEFAULT_RADIUS_KM if radius_km is None else radius_km)


@router.get("/search/listings", response_model=ListingSearchResponse)
async def search_listings(
    q: Optional[str] = None,
    brand: Optional[str] = None,
    model: Optional[str] = None,
    type: Optional[str] = None,
    condition: Optional[str] = None,
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    city: Optional[str] = None,
    radius: Optional[str] = None,
    currency: Optional[str] = None,
    verified: Optional[str] = None,
    has_images: Optional[str] = Query(None, alias="hasImages"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    viewer_id: Optional[str] = Header(None, alias="X-Viewer-Id"),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """
    Basic listing search with facet counts.

    ``city`` with ``radius`` searches the city and every city within the
    radius of it; ``city`` alone filters on that city only.
    """
    with search_errors("search_listings"):
        request = FilterRequest(
            query=q,
            brand_ids=split_csv(brand),
            model_ids=split_csv(model),
            conditions=parse_conditions(split_csv(condition)),
            currencies=parse_currencies(split_csv(currency)),
            near_city_id=city or None,
            radius_km=parse_float(radius, "radius"),
            min_price=parse_decimal(min_price, "minPrice"),
            max_price=parse_decimal(max_price, "maxPrice"),
            listing_type=parse_listing_type(type),
            verified_only=parse_bool(verified),
            has_images=parse_bool(has_images),
            exclude_seller_id=viewer_id,
            page=parse_int(page, "page", 1),
            limit=parse_int(limit, "limit", settings.pagination.default_limit),
        )
        result = await orchestrator.search_listings(request)
        logger.info(f"Listing search '{q or ''}': {result.page.pagination.total} results")
        return ListingSearchResponse.from_domain(result)


@router.get("/search/facets", response_model=FacetsResponse)
async def search_facets(
    q: Optional[str] = None,
    brand_ids: Optional[str] = Query(None, alias="brandIds"),
    model_ids: Optional[str] = Query(None, alias="modelIds"),
    price_min: Optional[str] = Query(None, alias="priceMin"),
    price_max: Optional[str] = Query(None, alias="priceMax"),
    conditions: Optional[str] = None,
    city_ids: Optional[str] = Query(None, alias="cityIds"),
    currencies: Optional[str] = None,
    viewer_id: Optional[str] = Header(None, alias="X-Viewer-Id"),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Facet counts for the filter panel, without a result page"""
    with search_errors("facets"):
        request = FilterRequest(
            query=q,
            brand_ids=split_csv(brand_ids),
            model_ids=split_csv(model_ids),
            conditions=parse_conditions(split_csv(conditions)),
            currencies=parse_currencies(split_csv(currencies)),
            city_ids=split_csv(city_ids),
            min_price=parse_decimal(price_min, "priceMin"),
            max_price=parse_decimal(price_max, "priceMax"),
            exclude_seller_id=viewer_id,
        )
        facets = await orchestrator.facets(request)
        return FacetsResponse.from_domain(facets)


@router.get("/search/advanced", response_model=AdvancedSearchResponse)
async def advanced_search_get(
    q: Optional[str] = None,
    brand_ids: Optional[str] = Query(None, alias="brandIds"),
    model_ids: Optional[str] = Query(None, alias="modelIds"),
    price_min: Optional[str] = Query(None, alias="priceMin"),
    price_max: Optional[str] = Query(None, alias="priceMax"),
    conditions: Optional[str] = None,
    city_ids: Optional[str] = Query(None, alias="cityIds"),
    currencies: Optional[str] = None,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius_km: Optional[str] = Query(None, alias="radiusKm"),
    verified_only: Optional[str] = Query(None, alias="verifiedOnly"),
    has_images: Optional[str] = Query(None, alias="hasImages"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    viewer_id: Optional[str] = Header(None, alias="X-Viewer-Id"),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Advanced search from query-string parameters"""
    with search_errors("advanced_search"):
        request = FilterRequest(
            query=q,
            brand_ids=split_csv(brand_ids),
            model_ids=split_csv(model_ids),
            conditions=parse_conditions(split_csv(conditions)),
            currencies=parse_currencies(split_csv(currencies)),
            city_ids=split_csv(city_ids),
            coordinates=_coordinates(
                parse_float(lat, "lat"),
                parse_float(lng, "lng"),
                parse_float(radius_km, "radiusKm"),
            ),
            min_price=parse_decimal(price_min, "priceMin"),
            max_price=parse_decimal(price_max, "priceMax"),
            verified_only=parse_bool(verified_only),
            has_images=parse_bool(has_images),
            exclude_seller_id=viewer_id,
            sort=parse_sort_key(sort_by),
            page=parse_int(page, "page", 1),
            limit=parse_int(limit, "limit", settings.pagination.default_limit),
        )
        result = await orchestrator.advanced_search(request)
        return AdvancedSearchResponse.from_domain(result)


@router.post("/search/advanced", response_model=AdvancedSearchResponse)
async def advanced_search_post(
    body: AdvancedSearchBody,
    viewer_id: Optional[str] = Header(None, alias="X-Viewer-Id"),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Advanced search from a JSON body"""
    with search_errors("advanced_search"):
        request = FilterRequest(
            query=body.query,
            exact_match=body.exact_match,
            search_fields=parse_search_fields(body.search_fields),
            brand_ids=tuple(dict.fromkeys(body.brand_ids)),
            model_ids=tuple(dict.fromkeys(body.model_ids)),
            conditions=parse_conditions(body.conditions),
            currencies=parse_currencies(body.currencies),
            city_ids=tuple(dict.fromkeys(body.city_ids)),
            coordinates=_coordinates(body.lat, body.lng, body.radius_km),
            min_price=_as_decimal(body.min_price),
            max_price=_as_decimal(body.max_price),
            listing_type=parse_listing_type(body.type),
            verified_only=body.verified_only,
            has_images=body.has_images,
            published_after=parse_datetime(body.published_after, "publishedAfter"),
            published_before=parse_datetime(body.published_before, "publishedBefore"),
            exclude_seller_id=viewer_id,
            sort=parse_sort_key(body.sort_by),
            page=body.page,
            limit=body.limit,
        )
        result = await orchestrator.advanced_search(request)
        return AdvancedSearchResponse.from_domain(result)


@router.post("/search/advanced/geo", response_model=AdvancedSearchResponse)
async def geo_search(
    body: GeoSearchBody,
    viewer_id: Optional[str] = Header(None, alias="X-Viewer-Id"),
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Search within a radius of a point, nearest first by default"""
    with search_errors("geo_search"):
        request = FilterRequest(
            query=body.query,
            brand_ids=tuple(dict.fromkeys(body.brand_ids)),
            min_price=_as_decimal(body.min_price),
            max_price=_as_decimal(body.max_price),
            verified_only=body.verified_only,
            exclude_seller_id=viewer_id,
            sort=parse_sort_key(body.sort_by),
            page=body.page,
            limit=body.limit,
        )
        result = await orchestrator.geo_search(request, body.lat, body.lng, body.radius_km)
        return AdvancedSearchResponse.from_domain(result)


@router.get("/search/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(
    q: Optional[str] = None,
    context: Optional[str] = None,
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """
    Ranked suggestions for a partial query.

    ``context`` is a JSON object such as ``{"brandIds": ["apple"]}``; when it
    cannot be parsed it is ignored.
    """
    with search_errors("autocomplete"):
        result = await orchestrator.autocomplete(q or "", parse_autocomplete_context(context))
        return AutocompleteResponse.from_domain(result)


def parse_autocomplete_context(value: Optional[str]) -> AutocompleteContext:
    if not value:
        return AutocompleteContext()
    try:
        data = json.loads(value)
    except ValueError:
        logger.debug(f"Ignoring malformed autocomplete context: {value}")
        return AutocompleteContext()
    if not isinstance(data, dict):
        return AutocompleteContext()
    brand_ids = data.get("brandIds") or []
    if not isinstance(brand_ids, list):
        return AutocompleteContext()
    return AutocompleteContext(brand_ids=tuple(str(b) for b in brand_ids))


@router.get("/search/autocomplete/cities", response_model=CityAutocompleteResponse)
async def autocomplete_cities(
    q: Optional[str] = None,
    limit: Optional[str] = None,
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """City suggestions, served from the local cache before GeoDB"""
    with search_errors("autocomplete_cities"):
        cities = await orchestrator.autocomplete_cities(q or "", parse_int(limit, "limit"))
        return CityAutocompleteResponse(cities=[CitySummary.from_domain(c) for c in cities])


@router.get("/search/suggestions", response_model=SuggestionsResponse, response_model_exclude_none=True)
async def search_suggestions(
    q: Optional[str] = None,
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Name suggestions for ``q``, or popular and trending searches without it"""
    with search_errors("suggestions"):
        result = await orchestrator.suggestions(q)
        return SuggestionsResponse(
            suggestions=result.suggestions,
            popular=result.popular,
            trending=result.trending,
        )


@router.get("/search/featured")
async def featured_listings(
    limit: Optional[str] = None,
    orchestrator: SearchOrchestrator = Depends(get_search_orchestrator),
):
    """Verified listings, most viewed first"""
    with search_errors("featured"):
        hits = await orchestrator.featured(parse_int(limit, "limit", DEFAULT_FEATURED_LIMIT))
        return {
            "listings": [
                ListingResponse.from_hit(hit).model_dump(mode="json", by_alias=True)
                for hit in hits
            ]
        }


@router.get("/search/filters", response_model=FilterOptionsResponse)
async def filter_options(orchestrator: SearchOrchestrator = Depends(get_search_orchestrator)):
    """Options for the filter panel"""
    with search_errors("filter_options"):
        options = await orchestrator.filter_options()
        return FilterOptionsResponse.from_domain(options)

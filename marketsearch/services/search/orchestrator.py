"""
Search orchestrator - validates requests and coordinates predicate building,
ranking, facet aggregation and autocomplete under a per-request deadline.
"""

import asyncio
import logging
import random
import string
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, TypeVar

from marketsearch.config.search_config import SearchSettings
from marketsearch.error_handling.errors import InvalidSearchRequest, SearchTimeout
from marketsearch.filtering.predicate_builder import FilterPredicateBuilder
from marketsearch.filtering.predicates import Dimension, FlagClause, ListingPredicate
from marketsearch.filtering.validation import validate_filter_request
from marketsearch.geo.city_autocomplete import CityAutocompleteService
from marketsearch.geo.distance import GeoDistanceEvaluator
from marketsearch.models import (
    AdvancedSearchResult,
    AutocompleteContext,
    AutocompleteResult,
    BasicSearchResult,
    City,
    Condition,
    FacetCounts,
    FilterOptions,
    FilterRequest,
    GeoCircle,
    ListingHit,
    ListingType,
    Pagination,
    SearchResultPage,
    SearchSuggestions,
    SortKey,
)
from .autocomplete import AutocompleteComposer
from .facets import FacetAggregator
from .ranking import FEATURED_ORDERING, build_ordering


logger = logging.getLogger(__name__)

T = TypeVar("T")

LISTING_TYPE_LABELS = {
    ListingType.LISTING: "For Sale",
    ListingType.WANTED: "Looking For",
}

CURRENCY_LABELS = (
    ("USD", "US Dollar"),
    ("EUR", "Euro"),
    ("GBP", "British Pound"),
    ("CAD", "Canadian Dollar"),
    ("AUD", "Australian Dollar"),
)

DEFAULT_FEATURED_LIMIT = 12
POPULAR_CITY_LIMIT = 20


def generate_search_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"search_{int(time.time() * 1000)}_{suffix}"


class SearchOrchestrator:
    """
    Entry point for every search operation.

    Args:
        store: ListingStore shared by all components
        settings: Search settings, defaults to SearchSettings()
        city_autocomplete: City autocomplete service; local-only when omitted
        clock: Returns the visibility cutoff for a request
    """

    def __init__(
        self,
        store,
        settings: Optional[SearchSettings] = None,
        city_autocomplete: Optional[CityAutocompleteService] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.store = store
        self.settings = settings or SearchSettings()
        self.builder = FilterPredicateBuilder()
        self.geo = GeoDistanceEvaluator(store)
        self.facet_aggregator = FacetAggregator(store, self.builder, self.settings.facets)
        self.autocomplete_composer = AutocompleteComposer(store, self.settings.autocomplete)
        self.city_autocomplete = city_autocomplete or CityAutocompleteService(
            store, min_population=self.settings.geo.geodb_min_population
        )
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def search_listings(self, request: FilterRequest) -> BasicSearchResult:
        """
        Basic listing search: one page of results, facet counts and, for text
        queries, keyword suggestions.

        Raises:
            InvalidSearchRequest: If the request is structurally invalid
            SearchTimeout: If the request deadline expires
        """
        return await self._with_deadline("search_listings", self._search_listings(request))

    async def _search_listings(self, request: FilterRequest) -> BasicSearchResult:
        request = await self._prepare(request)
        now = self.clock()

        suggestions = None
        if request.query and request.query.strip():
            page, facets, suggestions = await asyncio.gather(
                self._fetch_page(request, now),
                self.facet_aggregator.compute_facets(request, now),
                self.autocomplete_composer.keyword_suggestions(request.query, now),
            )
        else:
            page, facets = await asyncio.gather(
                self._fetch_page(request, now),
                self.facet_aggregator.compute_facets(request, now),
            )

        return BasicSearchResult(page=page, facets=facets, suggestions=suggestions)

    async def advanced_search(self, request: FilterRequest) -> AdvancedSearchResult:
        """
        Advanced search: one page of results plus aggregations and search metadata.

        Args:
            request: Full filter request

        Returns:
            AdvancedSearchResult with searchId, duration and applied filter count

        Raises:
            InvalidSearchRequest: If the request is structurally invalid
            SearchTimeout: If the request deadline expires
        """
        return await self._with_deadline("advanced_search", self._advanced_search(request))

    async def _advanced_search(self, request: FilterRequest) -> AdvancedSearchResult:
        started = time.monotonic()
        search_id = generate_search_id()
        applied_filters = request.applied_filter_count()

        request = await self._prepare(request)
        now = self.clock()

        page, aggregations = await asyncio.gather(
            self._fetch_page(request, now),
            self.facet_aggregator.compute_aggregations(request, now),
        )

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"Search {search_id}: {page.pagination.total} results, "
            f"{applied_filters} filters, {duration_ms}ms"
        )
        return AdvancedSearchResult(
            search_id=search_id,
            page=page,
            aggregations=aggregations,
            search_duration_ms=duration_ms,
            applied_filters=applied_filters,
        )

    async def geo_search(
        self,
        request: FilterRequest,
        latitude: float,
        longitude: float,
        radius_km: float
    ) -> AdvancedSearchResult:
        """Advanced search within a circle, nearest first unless another sort is requested."""
        request = replace(
            request,
            coordinates=GeoCircle(latitude, longitude, radius_km),
            sort=request.sort or SortKey.DISTANCE,
        )
        return await self.advanced_search(request)

    async def facets(self, request: FilterRequest) -> FacetCounts:
        """Facet counts only, without fetching a result page."""
        async def run():
            prepared = await self._prepare(request)
            return await self.facet_aggregator.compute_facets(prepared, self.clock())
        return await self._with_deadline("facets", run())

    async def autocomplete(self, query: str, context: Optional[AutocompleteContext] = None) -> AutocompleteResult:
        return await self._with_deadline(
            "autocomplete",
            self.autocomplete_composer.autocomplete(query, context, self.clock()),
        )

    async def autocomplete_cities(self, query: str, limit: Optional[int] = None) -> List[City]:
        """City suggestions for location search; queries shorter than two characters yield none."""
        if limit is None:
            limit = self.settings.geo.city_autocomplete_limit
        if limit < 1:
            raise InvalidSearchRequest("limit must be >= 1", field="limit")
        query = (query or "").strip()
        if len(query) < self.settings.autocomplete.min_query_length:
            return []
        return await self._with_deadline(
            "autocomplete_cities",
            self.city_autocomplete.autocomplete(query, min(limit, self.settings.pagination.max_limit)),
        )

    async def suggestions(self, query: Optional[str] = None) -> SearchSuggestions:
        """Name suggestions for a query, or popular and trending searches without one."""
        async def run():
            text = (query or "").strip()
            if len(text) >= self.settings.autocomplete.min_query_length:
                return SearchSuggestions(suggestions=await self.autocomplete_composer.name_suggestions(text))
            popular, trending = await asyncio.gather(
                self.autocomplete_composer.popular_searches(self.clock()),
                self.autocomplete_composer.trending_searches(),
            )
            return SearchSuggestions(popular=popular, trending=trending)
        return await self._with_deadline("suggestions", run())

    async def featured(self, limit: int = DEFAULT_FEATURED_LIMIT) -> List[ListingHit]:
        """Verified listings, most viewed first."""
        if limit < 1:
            raise InvalidSearchRequest("limit must be >= 1", field="limit")
        limit = min(limit, self.settings.pagination.max_limit)
        predicate = ListingPredicate(
            now=self.clock(),
            clauses=((Dimension.VERIFIED, FlagClause("is_verified", True)),),
        )
        return await self._with_deadline(
            "featured",
            self.store.find_listings(predicate, FEATURED_ORDERING, 0, limit),
        )

    async def filter_options(self) -> FilterOptions:
        async def run():
            brands, cities = await asyncio.gather(
                self.store.search_brands(),
                self.store.popular_cities(POPULAR_CITY_LIMIT),
            )
            return FilterOptions(
                brands=brands,
                conditions=[(c.value, c.label) for c in Condition],
                types=[(t.value, label) for t, label in LISTING_TYPE_LABELS.items()],
                currencies=list(CURRENCY_LABELS),
                popular_cities=cities,
            )
        return await self._with_deadline("filter_options", run())

    async def _prepare(self, request: FilterRequest) -> FilterRequest:
        """Validate the request and resolve a city + radius into a city id set."""
        request = validate_filter_request(request, self.settings.pagination)

        if request.near_city_id and request.radius_km:
            nearby = await self.geo.resolve_city_radius(request.near_city_id, request.radius_km)
            city_ids = tuple(dict.fromkeys(request.city_ids + tuple(nearby)))
            logger.debug(f"City {request.near_city_id} + {request.radius_km}km -> {len(city_ids)} cities")
            request = replace(request, city_ids=city_ids, near_city_id=None, radius_km=None)

        return request

    async def _fetch_page(self, request: FilterRequest, now: datetime) -> SearchResultPage:
        predicate = self.builder.build(request, now)
        ordering = build_ordering(request)
        skip = (request.page - 1) * request.limit

        total, hits = await asyncio.gather(
            self.store.count_listings(predicate),
            self.store.find_listings(predicate, ordering, skip, request.limit),
        )
        return SearchResultPage(hits=hits, pagination=Pagination(request.page, request.limit, total))

    async def _with_deadline(self, operation: str, awaitable: Awaitable[T]) -> T:
        timeout = self.settings.request_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{operation} exceeded its {timeout}s deadline")
            raise SearchTimeout(f"{operation} did not complete within {timeout}s") from None

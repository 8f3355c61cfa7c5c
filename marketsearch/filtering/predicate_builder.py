"""
Translates a FilterRequest into a ListingPredicate.
"""

from datetime import datetime, timezone
from typing import List, Optional

from marketsearch.models import FilterRequest, TextField
from .predicates import (
    Dimension,
    ExclusionClause,
    FlagClause,
    GeoRadiusClause,
    ListingPredicate,
    MembershipClause,
    NonEmptyClause,
    RangeClause,
    TextClause,
)


MIN_TOKEN_LENGTH = 3


def query_tokens(query: str) -> List[str]:
    """Whitespace-delimited words longer than two characters."""
    return [word for word in query.split() if len(word) >= MIN_TOKEN_LENGTH]


class FilterPredicateBuilder:
    """Builds predicates from filter requests.

    ``build`` is a pure function of the request and the visibility cutoff.
    City + radius requests must be resolved into a city id set before they
    reach the builder (see ``GeoDistanceEvaluator.resolve_city_radius``); an
    unresolved ``near_city_id`` is treated as a plain city id.
    """

    def build(self, request: FilterRequest, now: Optional[datetime] = None) -> ListingPredicate:
        """Build the predicate for every constraint on ``request``.

        Args:
            request: Filter request
            now: Visibility cutoff, defaults to the current UTC time

        Returns:
            ListingPredicate with one clause per constrained dimension
        """
        if now is None:
            now = datetime.now(timezone.utc)

        clauses = []

        text = self._text_clause(request)
        if text is not None:
            clauses.append((Dimension.TEXT, text))

        if request.brand_ids:
            clauses.append((Dimension.BRAND, MembershipClause("brand_id", frozenset(request.brand_ids))))

        if request.model_ids:
            clauses.append((Dimension.MODEL, MembershipClause("model_id", frozenset(request.model_ids))))

        if request.conditions:
            values = frozenset(c.value for c in request.conditions)
            clauses.append((Dimension.CONDITION, MembershipClause("condition", values)))

        if request.currencies:
            clauses.append((Dimension.CURRENCY, MembershipClause("currency", frozenset(request.currencies))))

        if request.coordinates is not None:
            clauses.append((Dimension.CITY, GeoRadiusClause(request.coordinates)))
        else:
            city_ids = set(request.city_ids)
            if request.near_city_id:
                city_ids.add(request.near_city_id)
            if city_ids:
                clauses.append((Dimension.CITY, MembershipClause("city_id", frozenset(city_ids))))

        if request.has_price_range:
            clauses.append((Dimension.PRICE, RangeClause("price", request.min_price, request.max_price)))

        if request.listing_type is not None:
            clauses.append((
                Dimension.LISTING_TYPE,
                MembershipClause("listing_type", frozenset([request.listing_type.value])),
            ))

        if request.verified_only:
            clauses.append((Dimension.VERIFIED, FlagClause("is_verified", True)))

        if request.has_images:
            clauses.append((Dimension.IMAGES, NonEmptyClause("images")))

        if request.exclude_seller_id:
            clauses.append((Dimension.SELLER, ExclusionClause("seller_id", request.exclude_seller_id)))

        if request.published_after is not None or request.published_before is not None:
            clauses.append((
                Dimension.PUBLISHED,
                RangeClause("published_at", request.published_after, request.published_before),
            ))

        return ListingPredicate(now=now, clauses=tuple(clauses))

    def build_without(
        self,
        request: FilterRequest,
        dimension: Dimension,
        now: Optional[datetime] = None
    ) -> ListingPredicate:
        """Build the predicate with ``dimension``'s own constraint removed."""
        return self.build(request, now).without(dimension)

    def _text_clause(self, request: FilterRequest) -> Optional[TextClause]:
        query = (request.query or "").strip()
        if not query:
            return None

        fields = tuple(request.search_fields) or tuple(TextField)
        tokens = () if request.exact_match else tuple(query_tokens(query))
        # a single-word query is already covered by the full-query match
        if tokens == (query,):
            tokens = ()
        return TextClause(query=query, fields=fields, exact=request.exact_match, tokens=tokens)

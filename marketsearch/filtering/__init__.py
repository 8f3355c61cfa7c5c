"""Filter predicates and their in-process evaluation."""

from .predicates import (
    Clause,
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
from .predicate_builder import FilterPredicateBuilder, query_tokens
from .listing_filter import ListingFilter
from .validation import validate_filter_request

__all__ = [
    'Clause',
    'Dimension',
    'ExclusionClause',
    'FlagClause',
    'GeoRadiusClause',
    'ListingPredicate',
    'MembershipClause',
    'NonEmptyClause',
    'RangeClause',
    'TextClause',
    'FilterPredicateBuilder',
    'query_tokens',
    'ListingFilter',
    'validate_filter_request',
]

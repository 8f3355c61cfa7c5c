"""
Composable listing predicates.

A predicate is the always-on visibility constraint (ACTIVE and published at or
before ``now``) plus at most one clause per filter dimension. Clauses are a
closed set of immutable variants, so removing one dimension is a total
operation that leaves every other clause untouched.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, FrozenSet, Iterator, Optional, Tuple, Union

from marketsearch.models import GeoCircle, TextField


class Dimension(str, Enum):
    """Filter dimensions a predicate can constrain."""
    TEXT = "text"
    BRAND = "brand"
    MODEL = "model"
    CONDITION = "condition"
    CURRENCY = "currency"
    CITY = "city"
    PRICE = "price"
    LISTING_TYPE = "listing_type"
    VERIFIED = "verified"
    IMAGES = "images"
    SELLER = "seller"
    PUBLISHED = "published"


@dataclass(frozen=True)
class TextClause:
    """Case-insensitive text match, OR-ed across ``fields``.

    ``tokens`` are extra words matched by containment against title and
    description only.
    """
    query: str
    fields: Tuple[TextField, ...]
    exact: bool = False
    tokens: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MembershipClause:
    """``field IN values``"""
    field: str
    values: FrozenSet[str]


@dataclass(frozen=True)
class RangeClause:
    """``minimum <= field <= maximum``; either bound may be open.

    With ``include_maximum=False`` the upper bound is exclusive.
    """
    field: str
    minimum: Any = None
    maximum: Any = None
    include_maximum: bool = True


@dataclass(frozen=True)
class FlagClause:
    """``field == value`` for a boolean column"""
    field: str
    value: bool = True


@dataclass(frozen=True)
class NonEmptyClause:
    """The list-valued ``field`` has at least one element"""
    field: str


@dataclass(frozen=True)
class ExclusionClause:
    """``field != value``"""
    field: str
    value: str


@dataclass(frozen=True)
class GeoRadiusClause:
    """The listing's city lies within ``circle``.

    This is the only clause a SQL store compiles to a native distance
    expression; every other clause maps to plain column comparisons.
    """
    circle: GeoCircle


Clause = Union[
    TextClause,
    MembershipClause,
    RangeClause,
    FlagClause,
    NonEmptyClause,
    ExclusionClause,
    GeoRadiusClause,
]


@dataclass(frozen=True)
class ListingPredicate:
    """Immutable conjunction of per-dimension clauses.

    Attributes:
        now: Visibility cutoff; listings published after it never match
        clauses: (dimension, clause) pairs, at most one per dimension
    """
    now: datetime
    clauses: Tuple[Tuple[Dimension, Clause], ...] = ()

    def __iter__(self) -> Iterator[Tuple[Dimension, Clause]]:
        return iter(self.clauses)

    def __len__(self) -> int:
        return len(self.clauses)

    @property
    def dimensions(self) -> Tuple[Dimension, ...]:
        return tuple(d for d, _ in self.clauses)

    def clause(self, dimension: Dimension) -> Optional[Clause]:
        for d, c in self.clauses:
            if d == dimension:
                return c
        return None

    def without(self, *dimensions: Dimension) -> 'ListingPredicate':
        """Return a copy with the given dimensions' clauses removed."""
        return replace(
            self,
            clauses=tuple((d, c) for d, c in self.clauses if d not in dimensions),
        )

    def with_clause(self, dimension: Dimension, clause: Clause) -> 'ListingPredicate':
        """Return a copy where ``dimension`` is constrained by ``clause``."""
        kept = tuple((d, c) for d, c in self.clauses if d != dimension)
        return replace(self, clauses=kept + ((dimension, clause),))

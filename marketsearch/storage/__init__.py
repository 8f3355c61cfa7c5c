from .base import GROUPABLE_FIELDS, ListingStore, OrderField, Ordering, SortTerm
from .memory import InMemoryListingStore

__all__ = [
    'GROUPABLE_FIELDS',
    'ListingStore',
    'OrderField',
    'Ordering',
    'SortTerm',
    'InMemoryListingStore',
]

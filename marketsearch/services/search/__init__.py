"""Search services"""

from .autocomplete import AutocompleteComposer
from .facets import FacetAggregator, PRICE_BUCKETS
from .ranking import build_ordering, effective_sort_key, parse_sort_key
from .orchestrator import SearchOrchestrator

__all__ = [
    "AutocompleteComposer",
    "FacetAggregator",
    "PRICE_BUCKETS",
    "build_ordering",
    "effective_sort_key",
    "parse_sort_key",
    "SearchOrchestrator",
]

"""Marketplace listing search: filter composition, facets, geo radius and autocomplete."""

__version__ = "0.1.0"

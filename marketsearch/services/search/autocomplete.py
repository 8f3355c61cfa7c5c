"""
Autocomplete and search suggestions.

The composer queries five candidate sources concurrently (brands, models,
listing titles, cities and popular terms), merges them, de-duplicates by text
and keeps the best-scored suggestions.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from marketsearch.config.search_config import AutocompleteConfig
from marketsearch.models import (
    AutocompleteContext,
    AutocompleteResult,
    AutocompleteSuggestion,
    SuggestionType,
)


logger = logging.getLogger(__name__)


SOURCE_SCORES = {
    SuggestionType.MODEL: 0.9,
    SuggestionType.BRAND: 0.8,
    SuggestionType.PRODUCT: 0.7,
    SuggestionType.LOCATION: 0.6,
    SuggestionType.TERM: 0.5,
}

COMMON_SEARCH_TERMS = ('AirPods', 'Galaxy Buds', 'Charging Case', 'Left Earbud', 'Right Earbud')

TRENDING_SEARCHES = (
    'AirPods Pro',
    'Galaxy Buds2',
    'Sony WF-1000XM4',
    'Charging case',
    'Left earbud replacement',
)

MIN_KEYWORD_LENGTH = 4


def merge_suggestions(
    sources: List[List[AutocompleteSuggestion]],
    limit: int
) -> List[AutocompleteSuggestion]:
    """
    Merge candidate lists into one ranked list.

    Suggestions are concatenated in source order, de-duplicated by text
    (first occurrence wins), stably sorted by descending score and truncated.
    """
    seen = set()
    merged = []
    for source in sources:
        for suggestion in source:
            if suggestion.text in seen:
                continue
            seen.add(suggestion.text)
            merged.append(suggestion)
    merged.sort(key=lambda s: -s.score)
    return merged[:limit]


def categorize(suggestions: List[AutocompleteSuggestion]) -> Dict[str, List[AutocompleteSuggestion]]:
    categories: Dict[str, List[AutocompleteSuggestion]] = {}
    for suggestion in suggestions:
        categories.setdefault(suggestion.type.value, []).append(suggestion)
    return categories


class AutocompleteComposer:
    """
    Builds autocomplete suggestions from the catalogue.

    Args:
        store: ListingStore with the candidate-source lookups
        config: Source and merge limits
    """

    def __init__(self, store, config: Optional[AutocompleteConfig] = None):
        self.store = store
        self.config = config or AutocompleteConfig()

    async def autocomplete(
        self,
        query: str,
        context: Optional[AutocompleteContext] = None,
        now: Optional[datetime] = None
    ) -> AutocompleteResult:
        """
        Ranked suggestions for a partial query.

        Args:
            query: Partial query; shorter than ``min_query_length`` yields no suggestions
            context: Selected brands used to narrow model suggestions
            now: Visibility cutoff for listing-title suggestions

        Returns:
            AutocompleteResult with the merged list and its per-type breakdown
        """
        query = (query or "").strip()
        if len(query) < self.config.min_query_length:
            return AutocompleteResult()

        context = context or AutocompleteContext()
        now = now or datetime.now(timezone.utc)

        sources = await asyncio.gather(
            self.brand_suggestions(query),
            self.model_suggestions(query, context),
            self.product_suggestions(query, now),
            self.location_suggestions(query),
            self.term_suggestions(query),
        )

        suggestions = merge_suggestions(list(sources), self.config.max_suggestions)
        logger.debug(f"Autocomplete '{query}': {[len(s) for s in sources]} candidates -> {len(suggestions)}")
        return AutocompleteResult(suggestions=suggestions, categories=categorize(suggestions))

    async def brand_suggestions(self, query: str) -> List[AutocompleteSuggestion]:
        """Brands whose name matches, followed by brands owning a matching model."""
        limit = self.config.per_source_limit
        by_name, models = await asyncio.gather(
            self.store.search_brands(query, limit),
            self.store.search_models(query, limit=limit),
        )

        brands = list(by_name)
        known = {b.id for b in brands}
        missing = [m.brand_id for m in models if m.brand_id not in known]
        if missing and len(brands) < limit:
            owners = await self.store.get_brands(missing)
            for brand_id in dict.fromkeys(missing):
                if brand_id in owners:
                    brands.append(owners[brand_id])

        return [
            AutocompleteSuggestion(
                text=brand.name,
                type=SuggestionType.BRAND,
                score=SOURCE_SCORES[SuggestionType.BRAND],
                id=brand.id,
                icon=brand.logo,
            )
            for brand in brands[:limit]
        ]

    async def model_suggestions(self, query: str, context: AutocompleteContext) -> List[AutocompleteSuggestion]:
        models = await self.store.search_models(
            query,
            brand_ids=context.brand_ids or None,
            limit=self.config.per_source_limit,
        )
        brands = await self.store.get_brands({m.brand_id for m in models})

        suggestions = []
        for model in models:
            brand = brands.get(model.brand_id)
            text = f"{brand.name} {model.name}" if brand else model.name
            suggestions.append(AutocompleteSuggestion(
                text=text,
                type=SuggestionType.MODEL,
                score=SOURCE_SCORES[SuggestionType.MODEL],
                id=model.id,
                icon=model.image,
            ))
        return suggestions

    async def product_suggestions(self, query: str, now: datetime) -> List[AutocompleteSuggestion]:
        listings = await self.store.search_listing_titles(query, now, self.config.per_source_limit)
        return [
            AutocompleteSuggestion(
                text=listing.title,
                type=SuggestionType.PRODUCT,
                score=SOURCE_SCORES[SuggestionType.PRODUCT],
                id=listing.id,
                icon=listing.images[0] if listing.images else None,
            )
            for listing in listings
        ]

    async def location_suggestions(self, query: str) -> List[AutocompleteSuggestion]:
        cities = await self.store.search_cities(query, self.config.per_source_limit)
        return [
            AutocompleteSuggestion(
                text=f"{city.name}, {city.country_code}",
                type=SuggestionType.LOCATION,
                score=SOURCE_SCORES[SuggestionType.LOCATION],
                id=city.id,
            )
            for city in cities
        ]

    async def term_suggestions(self, query: str) -> List[AutocompleteSuggestion]:
        needle = query.lower()
        terms = [term for term in self.config.popular_terms if needle in term.lower()]
        return [
            AutocompleteSuggestion(
                text=term,
                type=SuggestionType.TERM,
                score=SOURCE_SCORES[SuggestionType.TERM],
            )
            for term in terms[:self.config.per_source_limit]
        ]

    async def keyword_suggestions(self, query: str, now: Optional[datetime] = None) -> List[str]:
        """
        Plain-text suggestions shown under basic search results.

        Brand names, model names and title words of at least four letters
        that contain the query, de-duplicated in that order.
        """
        query = (query or "").strip()
        if not query:
            return []
        now = now or datetime.now(timezone.utc)
        limit = self.config.per_source_limit

        brands, models, listings = await asyncio.gather(
            self.store.search_brands(query, limit),
            self.store.search_models(query, limit=limit),
            self.store.search_listing_titles(query, now, limit * 2),
        )

        suggestions = [b.name for b in brands] + [m.name for m in models]
        needle = query.lower()
        for listing in listings:
            for word in listing.title.lower().split():
                if needle in word and len(word) >= MIN_KEYWORD_LENGTH:
                    suggestions.append(word)

        return list(dict.fromkeys(suggestions))[:self.config.keyword_suggestion_limit]

    async def name_suggestions(self, query: str) -> List[str]:
        """Brand then model names containing the query."""
        limit = self.config.per_source_limit
        brands, models = await asyncio.gather(
            self.store.search_brands(query, limit),
            self.store.search_models(query, limit=limit),
        )
        names = [b.name for b in brands] + [m.name for m in models]
        return names[:self.config.keyword_suggestion_limit]

    async def popular_searches(self, now: Optional[datetime] = None) -> List[str]:
        now = now or datetime.now(timezone.utc)
        top = await self.store.top_brands(now, self.config.per_source_limit)
        return [brand.name for brand, _ in top] + list(COMMON_SEARCH_TERMS)

    async def trending_searches(self) -> List[str]:
        return list(TRENDING_SEARCHES)

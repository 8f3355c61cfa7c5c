"""
Property-based tests for autocomplete suggestions.
"""

from datetime import timedelta

import pytest
from hypothesis import given, settings, strategies as st

from conftest import NOW, make_listing
from marketsearch.models import (
    AutocompleteContext,
    AutocompleteSuggestion,
    Brand,
    City,
    ProductModel,
    SuggestionType,
)
from marketsearch.services.search import AutocompleteComposer
from marketsearch.services.search.autocomplete import SOURCE_SCORES, categorize, merge_suggestions
from marketsearch.storage.memory import InMemoryListingStore


suggestions = st.builds(
    lambda text, kind: AutocompleteSuggestion(text=text, type=kind, score=SOURCE_SCORES[kind]),
    st.sampled_from(["Apple", "AirPods", "Apple AirPods Pro", "Austin, US", "air", "Galaxy"]),
    st.sampled_from(list(SuggestionType)),
)


@given(sources=st.lists(st.lists(suggestions, max_size=5), min_size=5, max_size=5))
@settings(max_examples=200)
def test_merged_suggestions_are_unique_and_bounded(sources):
    """No two merged suggestions share a text and at most 10 are kept."""
    merged = merge_suggestions(sources, 10)
    texts = [s.text for s in merged]

    assert len(texts) == len(set(texts))
    assert len(merged) <= 10
    assert [s.score for s in merged] == sorted((s.score for s in merged), reverse=True)


@given(sources=st.lists(st.lists(suggestions, max_size=5), min_size=1, max_size=5))
@settings(max_examples=100)
def test_first_occurrence_wins(sources):
    merged = {s.text: s for s in merge_suggestions(sources, 100)}
    first = {}
    for source in sources:
        for suggestion in source:
            first.setdefault(suggestion.text, suggestion)

    assert merged == first


def test_categories_group_the_merged_list():
    merged = [
        AutocompleteSuggestion("Apple AirPods Pro", SuggestionType.MODEL, 0.9),
        AutocompleteSuggestion("Apple", SuggestionType.BRAND, 0.8),
        AutocompleteSuggestion("AirPods Max", SuggestionType.MODEL, 0.9),
    ]
    categories = categorize(merged)

    assert [s.text for s in categories["model"]] == ["Apple AirPods Pro", "AirPods Max"]
    assert [s.text for s in categories["brand"]] == ["Apple"]
    assert "product" not in categories


@pytest.fixture
def air_store():
    return InMemoryListingStore(
        listings=[make_listing("purifier", title="Air Purifier Pro", published_at=NOW - timedelta(days=1))],
        brands=[Brand(id="apple", name="Apple")],
        models=[ProductModel(id="airpods-pro", name="AirPods Pro", brand_id="apple")],
    )


@pytest.mark.asyncio
async def test_air_example(air_store):
    result = await AutocompleteComposer(air_store).autocomplete("air", now=NOW)
    ranked = [(s.text, s.type) for s in result.suggestions]

    assert ranked.index(("Apple AirPods Pro", SuggestionType.MODEL)) < ranked.index(
        ("Air Purifier Pro", SuggestionType.PRODUCT))
    assert ranked.index(("Apple", SuggestionType.BRAND)) < ranked.index(
        ("Air Purifier Pro", SuggestionType.PRODUCT))
    assert ranked[0] == ("Apple AirPods Pro", SuggestionType.MODEL)
    assert set(result.categories) >= {"model", "brand", "product"}


@pytest.mark.asyncio
async def test_short_query_returns_nothing(air_store):
    class ExplodingStore:
        def __getattr__(self, name):
            raise AssertionError(f"store.{name} must not be called")

    result = await AutocompleteComposer(ExplodingStore()).autocomplete("a", now=NOW)

    assert result.suggestions == []
    assert result.categories == {}


@pytest.mark.asyncio
async def test_context_narrows_model_suggestions(store, now):
    composer = AutocompleteComposer(store)

    unrestricted = await composer.model_suggestions("buds", AutocompleteContext())
    restricted = await composer.model_suggestions("buds", AutocompleteContext(brand_ids=("apple",)))

    assert [s.text for s in unrestricted] == ["Samsung Galaxy Buds2"]
    assert restricted == []


@pytest.mark.asyncio
async def test_location_and_term_sources(store):
    store.cities["tiny"] = City(id="tiny", name="Airville", country_code="CA", latitude=50.0, longitude=-100.0)
    composer = AutocompleteComposer(store)

    locations = await composer.location_suggestions("airv")
    terms = await composer.term_suggestions("EARBUD")

    assert [(s.text, s.score) for s in locations] == [("Airville, CA", 0.6)]
    assert [s.text for s in terms] == ["left earbud", "right earbud"]
    assert all(s.type == SuggestionType.TERM for s in terms)


@pytest.mark.asyncio
async def test_keyword_suggestions(store, now):
    keywords = await AutocompleteComposer(store).keyword_suggestions("airpods", now)

    assert keywords[0] == "AirPods Pro"
    assert "airpods" in keywords
    assert len(keywords) == len(set(keywords)) <= 8


@pytest.mark.asyncio
async def test_popular_searches_rank_brands_by_listing_count(store, now):
    composer = AutocompleteComposer(store)
    popular = await composer.popular_searches(now)

    assert popular[:2] == ["Apple", "Samsung"]
    assert await composer.trending_searches()

"""
Main entry point and CLI for marketplace search.

Runs an advanced search (or autocomplete) against a JSON catalogue fixture or
the PostgreSQL store named by ``DATABASE_URL`` and prints the results.
"""

import asyncio
import argparse
import logging
import os
import sys
from decimal import Decimal, InvalidOperation
from typing import List, Optional

import asyncpg
from dotenv import load_dotenv

from marketsearch.config.search_config import get_search_settings
from marketsearch.error_handling.errors import InvalidSearchRequest, SearchTimeout
from marketsearch.models import (
    AdvancedSearchResult,
    AutocompleteResult,
    FilterRequest,
    GeoCircle,
    ListingHit,
)
from marketsearch.services.search import SearchOrchestrator, parse_sort_key
from marketsearch.storage.memory import InMemoryListingStore
from marketsearch.storage.postgres import PostgresListingStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def format_hit(hit: ListingHit) -> str:
    """
    Format one search hit for console output.

    Args:
        hit: Listing with its joined brand, model and city

    Returns:
        Multi-line string describing the listing
    """
    listing = hit.listing
    lines = [f"📌 {listing.title}", f"   ID: {listing.id}"]
    lines.append(f"   Price: {listing.price} {listing.currency} ({listing.condition.label})")

    names = [hit.brand.name if hit.brand else None, hit.model.name if hit.model else None]
    names = [n for n in names if n]
    if names:
        lines.append(f"   Product: {' '.join(names)}")

    if hit.city:
        location = f"   Location: {hit.city.display_name or hit.city.name}"
        if hit.distance_km is not None:
            location += f" ({hit.distance_km:.1f} km)"
        lines.append(location)

    if listing.is_verified:
        lines.append("   ✔ Verified seller")

    lines.append("")
    return "\n".join(lines)


def format_results(result: AdvancedSearchResult) -> str:
    """
    Format an advanced search result for console output.

    Args:
        result: Result page with aggregations

    Returns:
        Formatted string with the page, its pagination and the top brands
    """
    pagination = result.page.pagination
    if pagination.total == 0:
        return "No listings found matching your criteria.\n"

    output = [
        f"\n{'='*60}\n",
        f"Found {pagination.total} listing(s), page {pagination.page} of {pagination.total_pages}\n",
        f"{'='*60}\n\n",
    ]
    for hit in result.page.hits:
        output.append(format_hit(hit) + "\n")

    if result.aggregations.brands:
        brands = ", ".join(f"{b.label} ({b.count})" for b in result.aggregations.brands[:5])
        output.append(f"Brands: {brands}\n")

    stats = result.aggregations.price_range
    if stats.count:
        output.append(f"Prices: {stats.minimum} - {stats.maximum}, avg {stats.average}\n")

    output.append(f"{'='*60}\n")
    return "".join(output)


def format_suggestions(result: AutocompleteResult) -> str:
    if not result.suggestions:
        return "No suggestions.\n"
    lines = [f"  [{s.type.value:<8}] {s.text} ({s.score:.1f})" for s in result.suggestions]
    return "\n".join(lines) + "\n"


def _decimal(value: Optional[str], option: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        raise InvalidSearchRequest(f"{option} must be a number, got '{value}'", field=option) from None


def build_request(args: argparse.Namespace) -> FilterRequest:
    """Translate parsed CLI arguments into a FilterRequest."""
    coordinates = None
    if args.lat is not None or args.lng is not None:
        if args.lat is None or args.lng is None:
            raise InvalidSearchRequest("--lat and --lng must be given together", field="lat")
        coordinates = GeoCircle(args.lat, args.lng, args.radius if args.radius is not None else 10.0)

    return FilterRequest(
        query=args.query,
        brand_ids=tuple(args.brand or ()),
        model_ids=tuple(args.model or ()),
        city_ids=tuple(args.city or ()) if coordinates is None else (),
        coordinates=coordinates,
        near_city_id=args.near_city,
        radius_km=args.radius if coordinates is None and args.near_city else None,
        min_price=_decimal(args.min_price, "--min-price"),
        max_price=_decimal(args.max_price, "--max-price"),
        verified_only=args.verified,
        sort=parse_sort_key(args.sort),
        page=args.page,
        limit=args.limit,
    )


async def open_store(fixture: Optional[str]):
    """
    Open the listing store.

    Returns:
        Tuple of (store, pool); pool is None for fixture stores
    """
    if fixture:
        logger.info(f"Loading catalogue fixture {fixture}")
        return InMemoryListingStore.from_json_file(fixture), None

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise InvalidSearchRequest("Either --fixture or DATABASE_URL is required", field="fixture")
    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=4)
    logger.info("PostgreSQL connection pool created")
    return PostgresListingStore(pool), pool


async def run_search(args: argparse.Namespace) -> int:
    """
    Execute a search or autocomplete from parsed CLI arguments.

    Args:
        args: Parsed arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Verbose logging enabled")

    pool = None
    try:
        store, pool = await open_store(args.fixture)
        orchestrator = SearchOrchestrator(store, get_search_settings())

        if args.autocomplete:
            print(f"\n🔍 Suggestions for '{args.query or ''}':")
            result = await orchestrator.autocomplete(args.query or "")
            print(format_suggestions(result))
            return 0

        request = build_request(args)
        print(f"\n🔍 Searching for '{args.query or '*'}'...")
        if request.has_price_range:
            print(f"   Price range: {request.min_price or '0'}-{request.max_price or '∞'}")

        result = await orchestrator.advanced_search(request)
        print(format_results(result))
        print(f"✅ Search {result.search_id} completed in {result.search_duration_ms} ms")
        print(f"   Filters applied: {result.applied_filters}")
        print()
        return 0

    except InvalidSearchRequest as e:
        logger.error(f"Invalid search request: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except SearchTimeout as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        logger.info("Search interrupted by user")
        print("\n\n⚠️  Search interrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logger.exception(f"Search failed with error: {str(e)}")
        print(f"\n❌ Error: {str(e)}", file=sys.stderr)
        return 1

    finally:
        if pool is not None:
            await pool.close()


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="marketplace-search",
        description="Search marketplace listings with filters, facets and geo radius",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Search a catalogue fixture
  marketplace-search "airpods" --fixture catalogue.json

  # Apple only, verified, between 50 and 300
  marketplace-search "airpods" --fixture catalogue.json --brand apple --min-price 50 --max-price 300 --verified

  # Within 25 km of a point, nearest first
  marketplace-search "buds" --lat 30.27 --lng -97.74 --radius 25 --sort distance

  # Autocomplete
  marketplace-search "air" --fixture catalogue.json --autocomplete
        """
    )

    parser.add_argument("query", nargs="?", default=None, help="Search keywords (e.g. 'airpods pro')")
    parser.add_argument("--fixture", default=None, help="JSON catalogue file; DATABASE_URL is used when omitted")
    parser.add_argument("--brand", action="append", help="Brand id (repeatable)")
    parser.add_argument("--model", action="append", help="Model id (repeatable)")
    parser.add_argument("--city", action="append", help="City id (repeatable)")
    parser.add_argument("--near-city", default=None, help="Center city id for --radius")
    parser.add_argument("--lat", type=float, default=None, help="Search center latitude")
    parser.add_argument("--lng", type=float, default=None, help="Search center longitude")
    parser.add_argument("--radius", type=float, default=None, help="Search radius in km")
    parser.add_argument("--min-price", default=None, help="Minimum price (inclusive)")
    parser.add_argument("--max-price", default=None, help="Maximum price (inclusive)")
    parser.add_argument("--verified", action="store_true", help="Only verified listings")
    parser.add_argument(
        "--sort",
        default=None,
        help="relevance, price_asc, price_desc, date_asc, date_desc, popularity or distance"
    )
    parser.add_argument("--page", type=int, default=1, help="Page number (1-based)")
    parser.add_argument("--limit", type=int, default=20, help="Page size")
    parser.add_argument("--autocomplete", action="store_true", help="Print autocomplete suggestions for the query")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging output")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI application.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    load_dotenv()
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        return asyncio.run(run_search(args))
    except Exception as e:
        logger.exception(f"Unexpected error in main: {str(e)}")
        print(f"❌ Unexpected error: {str(e)}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

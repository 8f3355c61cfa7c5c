"""
PostgreSQL ListingStore backed by an asyncpg pool.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

import asyncpg

from marketsearch.filtering.predicates import ListingPredicate
from marketsearch.geo.distance import BoundingBox
from marketsearch.models import (
    Brand,
    City,
    Condition,
    Listing,
    ListingHit,
    ListingStatus,
    ListingType,
    PriceStatistics,
    ProductModel,
)
from . import sql
from .base import ListingStore, Ordering


logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS brands (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT,
        logo TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS models (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        brand_id TEXT NOT NULL REFERENCES brands(id),
        slug TEXT,
        image TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS cities (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        country_code TEXT NOT NULL,
        country TEXT NOT NULL DEFAULT '',
        region TEXT NOT NULL DEFAULT '',
        region_code TEXT NOT NULL DEFAULT '',
        latitude DOUBLE PRECISION NOT NULL,
        longitude DOUBLE PRECISION NOT NULL,
        population INTEGER NOT NULL DEFAULT 0,
        geodb_id INTEGER UNIQUE,
        display_name TEXT,
        search_text TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS listings (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        price NUMERIC(12, 2) NOT NULL,
        currency TEXT NOT NULL DEFAULT 'USD',
        condition TEXT NOT NULL,
        listing_type TEXT NOT NULL DEFAULT 'LISTING',
        status TEXT NOT NULL DEFAULT 'ACTIVE',
        brand_id TEXT REFERENCES brands(id),
        model_id TEXT REFERENCES models(id),
        city_id TEXT REFERENCES cities(id),
        seller_id TEXT NOT NULL,
        images TEXT[] NOT NULL DEFAULT '{}',
        is_verified BOOLEAN NOT NULL DEFAULT FALSE,
        views INTEGER NOT NULL DEFAULT 0,
        published_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_listings_status_published ON listings(status, published_at)",
    "CREATE INDEX IF NOT EXISTS idx_listings_price ON listings(price)",
    "CREATE INDEX IF NOT EXISTS idx_listings_brand ON listings(brand_id)",
    "CREATE INDEX IF NOT EXISTS idx_listings_model ON listings(model_id)",
    "CREATE INDEX IF NOT EXISTS idx_listings_city ON listings(city_id)",
    "CREATE INDEX IF NOT EXISTS idx_cities_lat_lng ON cities(latitude, longitude)",
    "CREATE INDEX IF NOT EXISTS idx_cities_population ON cities(population DESC)",
)


async def create_tables(pool: asyncpg.Pool) -> None:
    """Create the catalogue tables if they don't exist"""
    async with pool.acquire() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(statement)
    logger.info("Database tables created/verified")


def hit_from_row(row) -> ListingHit:
    listing = Listing(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        price=row["price"],
        currency=row["currency"],
        condition=Condition(row["condition"]),
        listing_type=ListingType(row["listing_type"]),
        status=ListingStatus(row["status"]),
        brand_id=row["brand_id"],
        model_id=row["model_id"],
        city_id=row["city_id"],
        seller_id=row["seller_id"],
        images=list(row["images"] or []),
        is_verified=row["is_verified"],
        views=row["views"],
        published_at=row["published_at"],
        created_at=row["created_at"],
    )

    brand = None
    if row["brand_name"] is not None:
        brand = Brand(id=row["brand_id"], name=row["brand_name"], slug=row["brand_slug"], logo=row["brand_logo"])

    model = None
    if row["model_name"] is not None:
        model = ProductModel(
            id=row["model_id"],
            name=row["model_name"],
            brand_id=row["model_brand_id"],
            slug=row["model_slug"],
            image=row["model_image"],
        )

    city = None
    if row["city_name"] is not None:
        city = City(
            id=row["city_id"],
            name=row["city_name"],
            country_code=row["city_country_code"],
            country=row["city_country"],
            region=row["city_region"],
            region_code=row["city_region_code"],
            latitude=row["city_latitude"],
            longitude=row["city_longitude"],
            population=row["city_population"],
            geodb_id=row["city_geodb_id"],
            display_name=row["city_display_name"],
            search_text=row["city_search_text"],
        )

    return ListingHit(listing=listing, brand=brand, model=model, city=city, distance_km=row["distance_km"])


def city_from_row(row) -> City:
    return City(
        id=row["id"],
        name=row["name"],
        country_code=row["country_code"],
        country=row["country"],
        region=row["region"],
        region_code=row["region_code"],
        latitude=row["latitude"],
        longitude=row["longitude"],
        population=row["population"],
        geodb_id=row["geodb_id"],
        display_name=row["display_name"],
        search_text=row["search_text"],
    )


class PostgresListingStore(ListingStore):
    """ListingStore over the ``brands``, ``models``, ``cities`` and ``listings`` tables."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def count_listings(self, predicate: ListingPredicate) -> int:
        query, params = sql.count_query(predicate)
        async with self.pool.acquire() as conn:
            return await conn.fetchval(query, *params)

    async def find_listings(
        self,
        predicate: ListingPredicate,
        ordering: Ordering,
        skip: int = 0,
        limit: Optional[int] = None
    ) -> List[ListingHit]:
        query, params = sql.select_query(predicate, ordering, skip, limit)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [hit_from_row(row) for row in rows]

    async def group_listings(
        self,
        predicate: ListingPredicate,
        field: str,
        limit: Optional[int] = None
    ) -> List[Tuple[Optional[str], int]]:
        query, params = sql.group_query(predicate, field, limit)
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [(row["value"], row["count"]) for row in rows]

    async def aggregate_prices(self, predicate: ListingPredicate) -> PriceStatistics:
        query, params = sql.price_statistics_query(predicate)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)
        return PriceStatistics(
            minimum=row["minimum"],
            maximum=row["maximum"],
            average=row["average"],
            count=row["count"],
        )

    async def get_brands(self, ids: Iterable[str]) -> Dict[str, Brand]:
        ids = list(set(ids))
        if not ids:
            return {}
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT id, name, slug, logo FROM brands WHERE id = ANY($1::text[])", ids)
        return {row["id"]: Brand(**dict(row)) for row in rows}

    async def get_models(self, ids: Iterable[str]) -> Dict[str, ProductModel]:
        ids = list(set(ids))
        if not ids:
            return {}
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT id, name, brand_id, slug, image FROM models WHERE id = ANY($1::text[])", ids
            )
        return {row["id"]: ProductModel(**dict(row)) for row in rows}

    async def get_cities(self, ids: Iterable[str]) -> Dict[str, City]:
        ids = list(set(ids))
        if not ids:
            return {}
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT * FROM cities WHERE id = ANY($1::text[])", ids)
        return {row["id"]: city_from_row(row) for row in rows}

    async def search_brands(self, query: Optional[str] = None, limit: Optional[int] = None) -> List[Brand]:
        params = sql.SqlParams()
        statement = "SELECT id, name, slug, logo FROM brands"
        if query:
            statement += f" WHERE name ILIKE {params.add(f'%{sql.escape_like(query)}%')}"
        statement += " ORDER BY name ASC, id ASC"
        if limit is not None:
            statement += f" LIMIT {params.add(limit)}"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(statement, *params.values)
        return [Brand(**dict(row)) for row in rows]

    async def search_models(
        self,
        query: Optional[str] = None,
        brand_ids: Optional[Iterable[str]] = None,
        limit: Optional[int] = None
    ) -> List[ProductModel]:
        params = sql.SqlParams()
        conditions = []
        if query:
            conditions.append(f"name ILIKE {params.add(f'%{sql.escape_like(query)}%')}")
        if brand_ids:
            conditions.append(f"brand_id = ANY({params.add(sorted(set(brand_ids)))}::text[])")

        statement = "SELECT id, name, brand_id, slug, image FROM models"
        if conditions:
            statement += " WHERE " + " AND ".join(conditions)
        statement += " ORDER BY name ASC, id ASC"
        if limit is not None:
            statement += f" LIMIT {params.add(limit)}"
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(statement, *params.values)
        return [ProductModel(**dict(row)) for row in rows]

    async def find_cities_in_box(self, box: BoundingBox) -> List[City]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM cities
                WHERE latitude BETWEEN $1 AND $2 AND longitude BETWEEN $3 AND $4
                """,
                box.min_lat, box.max_lat, box.min_lng, box.max_lng,
            )
        return [city_from_row(row) for row in rows]

    async def search_cities(self, query: str, limit: int) -> List[City]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT * FROM cities
                WHERE search_text LIKE $1
                ORDER BY population DESC, name ASC
                LIMIT $2
                """,
                f"%{sql.escape_like(query.lower())}%", limit,
            )
        return [city_from_row(row) for row in rows]

    async def popular_cities(self, limit: int, country_code: Optional[str] = None) -> List[City]:
        async with self.pool.acquire() as conn:
            if country_code:
                rows = await conn.fetch(
                    "SELECT * FROM cities WHERE country_code = $1 ORDER BY population DESC, name ASC LIMIT $2",
                    country_code, limit,
                )
            else:
                rows = await conn.fetch(
                    "SELECT * FROM cities ORDER BY population DESC, name ASC LIMIT $1", limit
                )
        return [city_from_row(row) for row in rows]

    async def upsert_city(self, city: City) -> City:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO cities (
                    id, name, country_code, country, region, region_code,
                    latitude, longitude, population, geodb_id, display_name, search_text
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
                ON CONFLICT (geodb_id) DO UPDATE SET
                    name = EXCLUDED.name,
                    country_code = EXCLUDED.country_code,
                    country = EXCLUDED.country,
                    region = EXCLUDED.region,
                    region_code = EXCLUDED.region_code,
                    latitude = EXCLUDED.latitude,
                    longitude = EXCLUDED.longitude,
                    population = EXCLUDED.population,
                    display_name = EXCLUDED.display_name,
                    search_text = EXCLUDED.search_text
                RETURNING *
                """,
                city.id, city.name, city.country_code, city.country, city.region, city.region_code,
                city.latitude, city.longitude, city.population, city.geodb_id,
                city.display_name, city.search_text,
            )
        return city_from_row(row)

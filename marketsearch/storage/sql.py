"""
Compiles ListingPredicates and Orderings to PostgreSQL.

Every statement selects from ``listings l`` left-joined to ``brands b``,
``models m`` and ``cities c``. Values are always passed as asyncpg ``$n``
parameters; only whitelisted column names are interpolated.
"""

from typing import Any, List, Optional, Tuple

from marketsearch.filtering.predicates import (
    Clause,
    ExclusionClause,
    FlagClause,
    GeoRadiusClause,
    ListingPredicate,
    MembershipClause,
    NonEmptyClause,
    RangeClause,
    TextClause,
)
from marketsearch.geo.distance import EARTH_RADIUS_KM, bounding_box
from marketsearch.models import GeoPoint, ListingStatus, TextField
from .base import GROUPABLE_FIELDS, OrderField, Ordering


FROM_CLAUSE = """
FROM listings l
LEFT JOIN brands b ON b.id = l.brand_id
LEFT JOIN models m ON m.id = l.model_id
LEFT JOIN cities c ON c.id = l.city_id
"""

LISTING_COLUMNS = {
    "brand_id": "l.brand_id",
    "model_id": "l.model_id",
    "condition": "l.condition",
    "currency": "l.currency",
    "city_id": "l.city_id",
    "price": "l.price",
    "listing_type": "l.listing_type",
    "is_verified": "l.is_verified",
    "images": "l.images",
    "seller_id": "l.seller_id",
    "published_at": "l.published_at",
}

TEXT_COLUMNS = {
    TextField.TITLE: "l.title",
    TextField.DESCRIPTION: "l.description",
    TextField.BRAND: "b.name",
    TextField.MODEL: "m.name",
}

ORDER_COLUMNS = {
    OrderField.PRICE: "l.price",
    OrderField.PUBLISHED_AT: "l.published_at",
    OrderField.VIEWS: "l.views",
    OrderField.IS_VERIFIED: "l.is_verified",
    OrderField.ID: "l.id",
}

SELECT_COLUMNS = """
l.id, l.title, l.description, l.price, l.currency, l.condition, l.listing_type,
l.status, l.brand_id, l.model_id, l.city_id, l.seller_id, l.images,
l.is_verified, l.views, l.published_at, l.created_at,
b.name AS brand_name, b.slug AS brand_slug, b.logo AS brand_logo,
m.name AS model_name, m.brand_id AS model_brand_id, m.slug AS model_slug, m.image AS model_image,
c.name AS city_name, c.country_code AS city_country_code, c.country AS city_country,
c.region AS city_region, c.region_code AS city_region_code,
c.latitude AS city_latitude, c.longitude AS city_longitude,
c.population AS city_population, c.geodb_id AS city_geodb_id,
c.display_name AS city_display_name, c.search_text AS city_search_text
"""


class SqlParams:
    """Collects positional parameters and hands out their ``$n`` placeholders."""

    def __init__(self):
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def haversine_sql(params: SqlParams, center: GeoPoint) -> str:
    """Great-circle distance in km from ``center`` to the joined city ``c``."""
    lat = f"{params.add(float(center.latitude))}::double precision"
    lng = f"{params.add(float(center.longitude))}::double precision"
    return (
        f"({EARTH_RADIUS_KM} * 2 * ASIN(SQRT(LEAST(1.0, "
        f"POWER(SIN(RADIANS(c.latitude - {lat}) / 2), 2) + "
        f"COS(RADIANS({lat})) * COS(RADIANS(c.latitude)) * "
        f"POWER(SIN(RADIANS(c.longitude - {lng}) / 2), 2)))))"
    )


def compile_where(predicate: ListingPredicate, params: SqlParams) -> str:
    conditions = [
        f"l.status = {params.add(ListingStatus.ACTIVE.value)}",
        f"l.published_at <= {params.add(predicate.now)}",
    ]
    for _, clause in predicate:
        conditions.append(compile_clause(clause, params))
    return " AND ".join(conditions)


def compile_clause(clause: Clause, params: SqlParams) -> str:
    if isinstance(clause, TextClause):
        return _compile_text(clause, params)
    if isinstance(clause, MembershipClause):
        return f"{LISTING_COLUMNS[clause.field]}::text = ANY({params.add(sorted(clause.values))}::text[])"
    if isinstance(clause, RangeClause):
        return _compile_range(clause, params)
    if isinstance(clause, FlagClause):
        return f"{LISTING_COLUMNS[clause.field]} = {params.add(clause.value)}"
    if isinstance(clause, NonEmptyClause):
        return f"COALESCE(cardinality({LISTING_COLUMNS[clause.field]}), 0) > 0"
    if isinstance(clause, ExclusionClause):
        return f"{LISTING_COLUMNS[clause.field]} IS DISTINCT FROM {params.add(clause.value)}"
    if isinstance(clause, GeoRadiusClause):
        return _compile_radius(clause, params)
    raise TypeError(f"Unsupported clause type: {type(clause).__name__}")


def _compile_text(clause: TextClause, params: SqlParams) -> str:
    alternatives = []
    if clause.exact:
        ref = params.add(clause.query.lower())
        for text_field in clause.fields:
            alternatives.append(f"LOWER({TEXT_COLUMNS[text_field]}) = {ref}")
    else:
        ref = params.add(f"%{escape_like(clause.query)}%")
        for text_field in clause.fields:
            alternatives.append(f"{TEXT_COLUMNS[text_field]} ILIKE {ref}")

    for token in clause.tokens:
        ref = params.add(f"%{escape_like(token)}%")
        alternatives.append(f"l.title ILIKE {ref}")
        alternatives.append(f"l.description ILIKE {ref}")

    return "(" + " OR ".join(alternatives) + ")"


def _compile_range(clause: RangeClause, params: SqlParams) -> str:
    column = LISTING_COLUMNS[clause.field]
    bounds = []
    if clause.minimum is not None:
        bounds.append(f"{column} >= {params.add(clause.minimum)}")
    if clause.maximum is not None:
        operator = "<=" if clause.include_maximum else "<"
        bounds.append(f"{column} {operator} {params.add(clause.maximum)}")
    if not bounds:
        return "TRUE"
    return "(" + " AND ".join(bounds) + ")"


def _compile_radius(clause: GeoRadiusClause, params: SqlParams) -> str:
    circle = clause.circle
    box = bounding_box(circle.center, circle.radius_km)
    return (
        f"(c.latitude BETWEEN {params.add(box.min_lat)} AND {params.add(box.max_lat)} "
        f"AND c.longitude BETWEEN {params.add(box.min_lng)} AND {params.add(box.max_lng)} "
        f"AND {haversine_sql(params, circle.center)} <= {params.add(float(circle.radius_km))})"
    )


def compile_order(ordering: Ordering, params: SqlParams) -> Tuple[str, Optional[str]]:
    """
    Compile an ordering.

    Returns:
        (ORDER BY expression list, distance expression or None)
    """
    distance = None
    if ordering.distance_from is not None:
        distance = haversine_sql(params, ordering.distance_from)

    parts = []
    for term in ordering.terms:
        if term.field == OrderField.DISTANCE:
            if distance is None:
                raise ValueError("Distance ordering needs distance_from")
            expression = distance
        else:
            expression = ORDER_COLUMNS[term.field]
        direction = "DESC" if term.descending else "ASC"
        parts.append(f"{expression} {direction} NULLS LAST")
    return ", ".join(parts) or "l.id ASC", distance


def count_query(predicate: ListingPredicate) -> Tuple[str, List[Any]]:
    params = SqlParams()
    where = compile_where(predicate, params)
    return f"SELECT COUNT(*) {FROM_CLAUSE} WHERE {where}", params.values


def select_query(
    predicate: ListingPredicate,
    ordering: Ordering,
    skip: int = 0,
    limit: Optional[int] = None
) -> Tuple[str, List[Any]]:
    params = SqlParams()
    where = compile_where(predicate, params)
    order_by, distance = compile_order(ordering, params)
    distance_column = f"{distance} AS distance_km" if distance else "NULL::double precision AS distance_km"

    sql = (
        f"SELECT {SELECT_COLUMNS}, {distance_column} {FROM_CLAUSE} "
        f"WHERE {where} ORDER BY {order_by} OFFSET {params.add(skip)}"
    )
    if limit is not None:
        sql += f" LIMIT {params.add(limit)}"
    return sql, params.values


def group_query(predicate: ListingPredicate, field: str, limit: Optional[int] = None) -> Tuple[str, List[Any]]:
    if field not in GROUPABLE_FIELDS:
        raise ValueError(f"Cannot group listings by {field}")
    column = LISTING_COLUMNS[field]

    params = SqlParams()
    where = compile_where(predicate, params)
    sql = (
        f"SELECT {column}::text AS value, COUNT(*) AS count {FROM_CLAUSE} "
        f"WHERE {where} GROUP BY {column} ORDER BY count DESC, value ASC NULLS LAST"
    )
    if limit is not None:
        sql += f" LIMIT {params.add(limit)}"
    return sql, params.values


def price_statistics_query(predicate: ListingPredicate) -> Tuple[str, List[Any]]:
    params = SqlParams()
    where = compile_where(predicate, params)
    sql = (
        f"SELECT MIN(l.price) AS minimum, MAX(l.price) AS maximum, "
        f"ROUND(AVG(l.price), 2) AS average, COUNT(*) AS count {FROM_CLAUSE} WHERE {where}"
    )
    return sql, params.values
